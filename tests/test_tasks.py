"""Tests for task results and the task slot."""

import pytest

from robo_mcp.tasks import (
    ErrorCode,
    PickObject,
    PlaceObject,
    ResetToBase,
    TaskResult,
    TaskSlot,
    TaskState,
)


class TestTaskSlot:
    def test_acquire_and_release(self):
        slot = TaskSlot()
        assert slot.acquire(PickObject("cube1"))
        assert slot.busy
        assert slot.to_dict()["current_task"] == "pick_object"

        slot.release(True)
        assert slot.state == TaskState.IDLE
        assert slot.last_outcome == TaskState.COMPLETED
        assert slot.current is None
        assert not slot.busy

    def test_failed_outcome_recorded(self):
        slot = TaskSlot()
        slot.acquire(ResetToBase())
        slot.release(False)
        assert slot.state == TaskState.IDLE
        assert slot.last_outcome == TaskState.FAILED
        assert slot.to_dict() == {"state": "idle", "current_task": None, "last_outcome": "failed"}

    def test_second_acquire_refused(self):
        slot = TaskSlot()
        assert slot.acquire(ResetToBase())
        assert not slot.acquire(PickObject("cube1"))
        slot.release(True)
        assert slot.acquire(PickObject("cube1"))

    def test_waits_need_running_task(self):
        slot = TaskSlot()
        with pytest.raises(RuntimeError):
            slot.expect_motion()
        with pytest.raises(RuntimeError):
            slot.expect_attachment("cube1")

    def test_release_disarms_signals(self):
        slot = TaskSlot()
        slot.acquire(PickObject("cube1"))
        slot.expect_attachment("cube1")
        slot.release(False)
        assert not slot.attachment.armed
        assert not slot.attachment.report({"object_id": "cube1", "attached": True})


class TestTaskTypes:
    def test_place_position(self):
        assert PlaceObject().position is None
        assert not PlaceObject().partial
        assert PlaceObject(0.1, 0.2, 0.3).position == (0.1, 0.2, 0.3)
        assert PlaceObject(0.1, None, 0.3).partial

    def test_result_dict(self):
        result = TaskResult(
            success=False,
            message="nope",
            error_code=ErrorCode.OUT_OF_REACH,
            details={"object_id": "cube1"},
        )
        assert result.to_dict() == {
            "success": False,
            "message": "nope",
            "duration_ms": 0,
            "error_code": "OUT_OF_REACH",
            "object_id": "cube1",
        }
