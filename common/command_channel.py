"""
Correlation-tagged command channel to the actuator.

Each issued command gets a fresh correlation id and an entry in a request
table with an explicit expiry. The actuator answers by posting a result
tagged with the same id. Results for unknown, expired or already-consumed
ids are discarded.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 30.0


class CommandKind(str, Enum):
    SET_POSE = "set_pose"
    SET_ENGAGEMENT = "set_engagement"
    CAPTURE_SCREENSHOT = "capture_screenshot"


class CommandError(RuntimeError):
    """Base error for command channel failures."""


class CommandPendingError(CommandError):
    """Raised when a command is issued while another is still outstanding."""


class CommandTimeout(CommandError):
    """Raised when no result arrives before the timeout."""


@dataclass
class Command:
    """A command sent to the actuator."""
    kind: CommandKind
    payload: dict
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    issued_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "payload": self.payload,
            "issued_at": self.issued_at,
        }


@dataclass
class _Request:
    command: Command
    expires_at: float
    done: threading.Event = field(default_factory=threading.Event)
    result: Optional[dict] = None


class CommandChannel:
    """Request table keyed by correlation id."""

    def __init__(
        self,
        transport: Optional[Callable[[Command], Any]] = None,
        default_ttl: float = DEFAULT_TTL_S,
        max_outstanding: int = 1,
    ):
        """
        Args:
            transport: Called with each issued command (push delivery). Polling
                actuators read the outstanding command via pending() instead.
            default_ttl: Seconds before an unanswered request expires
            max_outstanding: Requests allowed in flight at once
        """
        self.transport = transport
        self.default_ttl = default_ttl
        self.max_outstanding = max_outstanding
        self._lock = threading.Lock()
        self._requests: dict[str, _Request] = {}
        self.issued_count = 0

    def _purge_expired(self, now: float):
        expired = [cid for cid, req in self._requests.items() if req.expires_at <= now]
        for cid in expired:
            logger.debug(f"Command {cid} expired")
            del self._requests[cid]

    def issue(self, kind: CommandKind, payload: Optional[dict] = None, ttl: Optional[float] = None) -> Command:
        """Register a new command and hand it to the transport."""
        command = Command(kind=CommandKind(kind), payload=dict(payload or {}))
        with self._lock:
            self._purge_expired(time.time())
            if len(self._requests) >= self.max_outstanding:
                outstanding = ", ".join(self._requests)
                raise CommandPendingError(f"Command already outstanding: {outstanding}")
            self._requests[command.id] = _Request(
                command=command,
                expires_at=command.issued_at + (ttl if ttl is not None else self.default_ttl),
            )
            self.issued_count += 1

        logger.info(f"Issued {command.kind.value} command {command.id}")

        if self.transport is not None:
            try:
                self.transport(command)
            except Exception as e:
                self.cancel(command.id)
                raise CommandError(f"Transport failed for {command.kind.value}: {e}") from e

        return command

    def await_result(self, correlation_id: str, timeout: float) -> dict:
        """
        Block until the result for `correlation_id` arrives.

        Raises:
            CommandTimeout: if nothing arrives within `timeout` or the request expires first.
            KeyError: if the id was never issued or was already consumed.
        """
        with self._lock:
            request = self._requests.get(correlation_id)
        if request is None:
            raise KeyError(correlation_id)

        remaining = max(0.0, min(timeout, request.expires_at - time.time()))
        delivered = request.done.wait(remaining)

        with self._lock:
            self._requests.pop(correlation_id, None)
            if delivered and request.result is not None:
                return request.result

        logger.warning(f"Command {correlation_id} timed out after {timeout}s")
        raise CommandTimeout(f"No result for {request.command.kind.value} command within {timeout}s")

    def deliver(self, correlation_id: str, result: dict) -> bool:
        """
        Deliver a result from the actuator.

        Returns False (and drops the result) for stale, unknown or duplicate ids.
        """
        with self._lock:
            self._purge_expired(time.time())
            request = self._requests.get(correlation_id)
            if request is None or request.done.is_set():
                logger.debug(f"Discarding result for stale command {correlation_id}")
                return False
            request.result = dict(result)
            request.done.set()
            return True

    def pending(self) -> Optional[Command]:
        """The oldest unanswered command, for actuators that poll."""
        with self._lock:
            self._purge_expired(time.time())
            waiting = [req.command for req in self._requests.values() if not req.done.is_set()]
        if not waiting:
            return None
        return min(waiting, key=lambda c: c.issued_at)

    def cancel(self, correlation_id: str) -> bool:
        with self._lock:
            return self._requests.pop(correlation_id, None) is not None

    @property
    def outstanding(self) -> int:
        with self._lock:
            self._purge_expired(time.time())
            return len(self._requests)
