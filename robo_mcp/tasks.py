"""
Task definitions, results and the single task slot.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from common.completion import CompletionSignal


class ErrorCode(str, Enum):
    OBJECT_NOT_FOUND = "OBJECT_NOT_FOUND"
    ALREADY_HOLDING_OBJECT = "ALREADY_HOLDING_OBJECT"
    NO_OBJECT_HELD = "NO_OBJECT_HELD"
    OUT_OF_REACH = "OUT_OF_REACH"
    MOTION_TIMEOUT = "MOTION_TIMEOUT"
    COMMAND_TIMEOUT = "COMMAND_TIMEOUT"
    COMMAND_FAILED = "COMMAND_FAILED"
    TASK_IN_PROGRESS = "TASK_IN_PROGRESS"
    INVALID_ARGUMENTS = "INVALID_ARGUMENTS"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TaskError(Exception):
    """A task step failed. Converted to a TaskResult at the task boundary."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class TaskResult:
    """Outcome of one task invocation."""
    success: bool
    message: str
    error_code: Optional[ErrorCode] = None
    duration_ms: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d = {
            "success": self.success,
            "message": self.message,
            "duration_ms": self.duration_ms,
        }
        if self.error_code is not None:
            d["error_code"] = self.error_code.value
        d.update(self.details)
        return d


# Task variants

@dataclass(frozen=True)
class PickObject:
    object_id: str
    name = "pick_object"


@dataclass(frozen=True)
class CarryTo:
    x: float
    y: float
    z: float
    name = "carry_to"


@dataclass(frozen=True)
class PlaceObject:
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None
    name = "place_object"

    @property
    def position(self) -> Optional[tuple[float, float, float]]:
        if self.x is None or self.y is None or self.z is None:
            return None
        return (self.x, self.y, self.z)

    @property
    def partial(self) -> bool:
        given = [v is not None for v in (self.x, self.y, self.z)]
        return any(given) and not all(given)


@dataclass(frozen=True)
class Dance:
    duration_seconds: float = 5.0
    name = "dance"


@dataclass(frozen=True)
class ResetToBase:
    name = "reset_to_base"


@dataclass(frozen=True)
class TakeScreenshot:
    width: int = 800
    height: int = 600
    name = "take_screenshot"


Task = Union[PickObject, CarryTo, PlaceObject, Dance, ResetToBase, TakeScreenshot]


class TaskState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskSlot:
    """
    The single mutual-exclusion unit for tasks.

    Owns the motion and attachment signals. Only the task holding the slot
    can arm a wait on them.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.state = TaskState.IDLE
        self.current: Optional[Task] = None
        self.started_at: Optional[float] = None
        self.last_outcome: Optional[TaskState] = None
        self.motion = CompletionSignal("motion")
        self.attachment = CompletionSignal("attachment")

    def acquire(self, task: Task) -> bool:
        if not self._lock.acquire(blocking=False):
            return False
        self.current = task
        self.started_at = time.time()
        self.state = TaskState.RUNNING
        return True

    def release(self, success: bool):
        self.last_outcome = TaskState.COMPLETED if success else TaskState.FAILED
        self.motion.disarm()
        self.attachment.disarm()
        self.current = None
        self.started_at = None
        self.state = TaskState.IDLE
        self._lock.release()

    @property
    def busy(self) -> bool:
        return self.state == TaskState.RUNNING

    def _require_running(self):
        if self.state != TaskState.RUNNING:
            raise RuntimeError("No task holds the slot")

    def expect_motion(self) -> CompletionSignal:
        self._require_running()
        self.motion.arm(lambda report: bool(report.get("complete")))
        return self.motion

    def expect_attachment(self, object_id: str) -> CompletionSignal:
        self._require_running()
        self.attachment.arm(
            lambda report: report.get("object_id") == object_id and bool(report.get("attached"))
        )
        return self.attachment

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "current_task": self.current.name if self.current else None,
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
        }
