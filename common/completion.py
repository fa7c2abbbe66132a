"""
Wait-with-timeout signals bridging actuator status reports to the running task.
"""

import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class CompletionSignal:
    """
    Single-waiter completion signal.

    The task arms the signal before issuing the command that should produce
    the report, then blocks in wait_for(). A report that lands between arm()
    and wait_for() is kept, so the wakeup is never missed. Reports received
    while disarmed are recorded in `last_report` and otherwise ignored.
    """

    def __init__(self, name: str):
        self.name = name
        self._cond = threading.Condition()
        self._armed = False
        self._satisfied = False
        self._match: Optional[Callable[[Any], bool]] = None
        self.last_report: Any = None

    @property
    def armed(self) -> bool:
        with self._cond:
            return self._armed

    def arm(self, match: Optional[Callable[[Any], bool]] = None):
        """Start a new wait. `match` filters which reports resolve it."""
        with self._cond:
            self._armed = True
            self._satisfied = False
            self._match = match

    def disarm(self):
        with self._cond:
            self._armed = False
            self._satisfied = False
            self._match = None

    def report(self, value: Any) -> bool:
        """Record a status report. Returns True if it resolved the armed wait."""
        with self._cond:
            self.last_report = value
            if not self._armed or self._satisfied:
                logger.debug(f"{self.name}: report with no waiter: {value!r}")
                return False
            if self._match is not None and not self._match(value):
                return False
            self._satisfied = True
            self._cond.notify()
            return True

    def wait_for(self, timeout: float) -> bool:
        """
        Block until the armed wait is resolved or `timeout` seconds pass.

        Returns True if satisfied, False on timeout. The signal is disarmed
        either way, so a late report cannot resolve it afterwards.
        """
        with self._cond:
            if not self._armed:
                raise RuntimeError(f"{self.name}: wait_for() called without arm()")
            satisfied = self._cond.wait_for(lambda: self._satisfied, timeout)
            self._armed = False
            self._satisfied = False
            self._match = None
        if not satisfied:
            logger.warning(f"{self.name}: timed out after {timeout}s")
        return satisfied
