"""
Task executor for the magnetic-gripper arm.

The coordinator cannot move the arm itself. It solves IK for each waypoint,
sends correlation-tagged commands to the remote actuator, and blocks each
step on the actuator's status reports, with an explicit timeout per wait.
"""

import logging
import time
from typing import Callable, Optional

from common.arm_state import ArmStateStore, JsonStateStorage
from common.command_channel import CommandChannel, CommandError, CommandKind, CommandTimeout
from common.config import RoboConfig, get_config
from common.kinematics import (
    DEFAULT_GEOMETRY,
    HOME_POSE,
    ArmGeometry,
    Unreachable,
    forward_kinematics,
    solve_ik,
)
from common.safety import SafetyValidator, get_safety_config

from .tasks import (
    CarryTo,
    Dance,
    ErrorCode,
    PickObject,
    PlaceObject,
    ResetToBase,
    TakeScreenshot,
    Task,
    TaskError,
    TaskResult,
    TaskSlot,
)

logger = logging.getLogger(__name__)

# Pick waypoints: tip height above the object's centre (meters)
HOVER_CLEARANCE = 0.10
LIFT_CLEARANCE = 0.12

DANCE_MIN_S = 1.0
DANCE_MAX_S = 30.0

# Degrees: [base, shoulder, elbow, wrist_roll, wrist_pitch, wrist_rotation]
DANCE_POSES = [
    [0.0, 20.0, 40.0, 0.0, -60.0, 0.0],
    [45.0, 30.0, 50.0, 0.0, -80.0, -45.0],
    [-45.0, 30.0, 50.0, 0.0, -80.0, 45.0],
    [0.0, -25.0, 70.0, 90.0, -45.0, 0.0],
    [90.0, 10.0, 30.0, -90.0, -40.0, 180.0],
    [-90.0, 10.0, 30.0, 90.0, -40.0, -180.0],
    [0.0, 45.0, -30.0, 0.0, 60.0, 90.0],
    [0.0, -45.0, 30.0, 0.0, 15.0, -90.0],
]

SCREENSHOT_WIDTH = (100, 1920)
SCREENSHOT_HEIGHT = (100, 1080)


class ArmController:
    """
    Runs one high-level task at a time against the remote actuator.

    Task methods never raise: every outcome is a TaskResult. Status reports
    (report_* methods) may arrive from other threads at any time.
    """

    def __init__(
        self,
        config: Optional[RoboConfig] = None,
        store: Optional[ArmStateStore] = None,
        channel: Optional[CommandChannel] = None,
        geometry: ArmGeometry = DEFAULT_GEOMETRY,
    ):
        self.config = config or get_config()
        self.geometry = geometry
        self.store = store or ArmStateStore(JsonStateStorage(self.config.state_file))
        self.channel = channel or CommandChannel(default_ttl=self.config.command_timeout)
        self.validator = SafetyValidator()
        self.slot = TaskSlot()
        self._handlers: dict[type, Callable[..., TaskResult]] = {
            PickObject: self._pick_object,
            CarryTo: self._carry_to,
            PlaceObject: self._place_object,
            Dance: self._dance,
            ResetToBase: self._reset_to_base,
            TakeScreenshot: self._take_screenshot,
        }

    # ------------------------------------------------------------------
    # Task surface
    # ------------------------------------------------------------------

    def pick_object(self, object_id: str) -> TaskResult:
        return self.run(PickObject(object_id))

    def carry_to(self, x: float, y: float, z: float) -> TaskResult:
        return self.run(CarryTo(x, y, z))

    def place_object(self, x: Optional[float] = None, y: Optional[float] = None, z: Optional[float] = None) -> TaskResult:
        return self.run(PlaceObject(x, y, z))

    def dance(self, duration_seconds: float = 5.0) -> TaskResult:
        return self.run(Dance(duration_seconds))

    def reset_to_base(self) -> TaskResult:
        return self.run(ResetToBase())

    def take_screenshot(self, width: int = 800, height: int = 600) -> TaskResult:
        return self.run(TakeScreenshot(width, height))

    def run(self, task: Task) -> TaskResult:
        """Execute a task in the task slot and convert every failure to a TaskResult."""
        handler = self._handlers.get(type(task))
        if handler is None:
            raise TypeError(f"Unknown task type: {type(task).__name__}")

        if not self.slot.acquire(task):
            running = self.slot.current.name if self.slot.current else "another task"
            logger.warning(f"Rejected {task.name}: {running} is running")
            return TaskResult(
                success=False,
                message=f"Cannot start {task.name}: {running} is still running",
                error_code=ErrorCode.TASK_IN_PROGRESS,
            )

        logger.info(f"Task started: {task}")
        start = time.monotonic()
        success = False
        try:
            result = handler(task)
            success = result.success
        except TaskError as e:
            logger.warning(f"Task {task.name} failed: [{e.code.value}] {e.message}")
            result = TaskResult(success=False, message=e.message, error_code=e.code)
        except Exception as e:
            logger.exception(f"Unexpected error in task {task.name}")
            result = TaskResult(success=False, message=str(e), error_code=ErrorCode.INTERNAL_ERROR)
        finally:
            self.slot.release(success)

        result.duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"Task finished: {task.name} success={result.success} in {result.duration_ms}ms")
        return result

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def discover_objects(self) -> dict:
        return {"objects": [obj.to_dict() for obj in self.store.list_objects()]}

    def get_environment_info(self) -> dict:
        state = self.store.get()
        safety = get_safety_config().to_dict()
        return {
            "coordinate_system": {
                "type": "right-handed",
                "units": "meters",
                "origin": "base of robot arm",
                "x_axis": "right (positive)",
                "y_axis": "up (positive)",
                "z_axis": "forward (positive)",
            },
            "arm": {
                "type": "6-DOF serial manipulator",
                "reach_radius": self.geometry.reach_radius,
                "max_height": self.geometry.max_height,
                "min_height": self.geometry.min_height,
                "min_wrist_distance": round(self.geometry.min_reach, 3),
                "max_wrist_distance": round(self.geometry.max_reach, 3),
                "geometry": self.geometry.to_dict(),
                "end_effector": "electromagnetic magnet (radius 0.05m)",
                "joint_limits": safety["joint_limits"],
            },
            "workspace": {
                "floor_height": safety["floor_height"],
                "bounds": safety["workspace"],
            },
            "current_state": {
                "holding_object": state.held_object_id,
                "magnet_on": state.actuator_engaged,
                "joint_targets": state.joint_targets,
                "task": self.slot.to_dict(),
            },
            "hint": "Use discover_objects to get current object positions",
        }

    # ------------------------------------------------------------------
    # Inbound status reports
    # ------------------------------------------------------------------

    def deliver_command_result(self, command_id: str, result: dict) -> bool:
        return self.channel.deliver(command_id, result)

    def report_motion_status(self, complete: bool, joint_angles: Optional[list[float]] = None) -> bool:
        report = {
            "complete": bool(complete),
            "joint_angles": [float(a) for a in joint_angles] if joint_angles else None,
        }
        return self.slot.motion.report(report)

    def report_attachment_status(self, object_id: str, attached: bool) -> bool:
        self.store.mark_attached(object_id, attached)
        return self.slot.attachment.report({"object_id": object_id, "attached": bool(attached)})

    def sync_object_positions(self, updates: list[dict]) -> int:
        """Apply ground-truth object positions. Returns how many were applied."""
        applied = 0
        for update in updates:
            try:
                if self.store.update_object_position(update["id"], update["position"]):
                    applied += 1
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed object update {update!r}: {e}")
        return applied

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _plan(self, point: tuple[float, float, float]) -> list[float]:
        try:
            return solve_ik(point, self.geometry)
        except Unreachable as e:
            raise TaskError(ErrorCode.OUT_OF_REACH, str(e)) from e

    def _send(self, kind: CommandKind, payload: dict, timeout: Optional[float] = None) -> dict:
        """Issue a command and wait for the actuator's acknowledgement."""
        timeout = timeout or self.config.command_timeout
        try:
            command = self.channel.issue(kind, payload, ttl=timeout)
        except CommandError as e:
            raise TaskError(ErrorCode.COMMAND_FAILED, str(e)) from e

        try:
            result = self.channel.await_result(command.id, timeout)
        except CommandTimeout as e:
            raise TaskError(
                ErrorCode.COMMAND_TIMEOUT,
                f"Command timeout ({kind.value}) - is the actuator connected?",
            ) from e

        if result.get("success") is False:
            raise TaskError(
                ErrorCode.COMMAND_FAILED,
                result.get("error") or f"Actuator rejected {kind.value}",
            )
        return result

    def _move_to(self, joints: list[float], label: str = "move"):
        check = self.validator.validate_joint_target(joints)
        if not check["valid"]:
            raise TaskError(ErrorCode.INVALID_ARGUMENTS, "; ".join(check["errors"]))

        motion = self.slot.expect_motion()
        self._send(CommandKind.SET_POSE, {"joints": list(joints)})
        self.store.apply_motion(joints)

        timeout = self.config.motion_timeout
        if not motion.wait_for(timeout):
            raise TaskError(
                ErrorCode.MOTION_TIMEOUT,
                f"{label}: arm did not report reaching its target within {timeout}s",
            )

    def _set_engagement(self, engaged: bool):
        self._send(CommandKind.SET_ENGAGEMENT, {"engaged": engaged})
        self.store.set_engaged(engaged)

    def _follow_tip(self, object_id: str):
        """Infer a held object's position from the commanded tip."""
        obj = self.store.get_object(object_id)
        if obj is None:
            return
        x, y, z = forward_kinematics(self.store.get().joint_targets, self.geometry)
        self.store.update_object_position(object_id, (x, y - obj.size / 2, z))

    def _drop_to_floor(self, object_id: str):
        """Infer where a released object comes to rest."""
        obj = self.store.get_object(object_id)
        if obj is None:
            return
        x, _, z = forward_kinematics(self.store.get().joint_targets, self.geometry)
        self.store.update_object_position(object_id, (x, obj.size / 2, z))

    # ------------------------------------------------------------------
    # Task handlers
    # ------------------------------------------------------------------

    def _pick_object(self, task: PickObject) -> TaskResult:
        obj = self.store.get_object(task.object_id)
        if obj is None:
            known = ", ".join(o.id for o in self.store.list_objects())
            raise TaskError(
                ErrorCode.OBJECT_NOT_FOUND,
                f"Object '{task.object_id}' not found. Known objects: {known}",
            )

        held = self.store.get().held_object_id
        if held is not None:
            raise TaskError(
                ErrorCode.ALREADY_HOLDING_OBJECT,
                f"Already holding '{held}'. Place it before picking another object.",
            )

        x, y, z = obj.point
        hover = self._plan((x, y + HOVER_CLEARANCE, z))
        grasp = self._plan((x, y + obj.size / 2, z))
        lift = self._plan((x, y + LIFT_CLEARANCE, z))

        self._move_to(hover, label="hover")
        self._move_to(grasp, label="descend")

        attachment = self.slot.expect_attachment(obj.id)
        self._set_engagement(True)
        try:
            attached = attachment.wait_for(self.config.attach_timeout)
            if not attached:
                # Lenient: the physics side may attach late; carry on and lift
                logger.warning(f"No attachment confirmation for {obj.id}, proceeding with lift")
            self._move_to(lift, label="lift")
        except TaskError:
            self._abort_pick(obj.id)
            raise

        self.store.set_held(obj.id)
        self._follow_tip(obj.id)

        return TaskResult(
            success=True,
            message=f"Picked up {obj.id}",
            details={
                "object_id": obj.id,
                "attachment_confirmed": attached,
                "joint_targets": lift,
            },
        )

    def _abort_pick(self, object_id: str):
        """Switch the magnet off after a pick failed with it engaged."""
        obj = self.store.get_object(object_id)
        was_attached = obj is not None and obj.attached
        try:
            self._set_engagement(False)
        except TaskError as e:
            logger.warning(f"Could not release magnet after failed pick of {object_id}: {e.message}")
            return
        if was_attached:
            self._drop_to_floor(object_id)

    def _carry_to(self, task: CarryTo) -> TaskResult:
        held = self.store.get().held_object_id
        if held is None:
            raise TaskError(ErrorCode.NO_OBJECT_HELD, "Not holding any object. Use pick_object first.")

        check = self.validator.validate_cartesian_target(task.x, task.y, task.z)
        if not check["valid"]:
            raise TaskError(ErrorCode.INVALID_ARGUMENTS, "; ".join(check["errors"]))

        joints = self._plan((task.x, task.y, task.z))
        self._move_to(joints, label="carry")
        self._follow_tip(held)

        details = {
            "object_id": held,
            "position": {"x": task.x, "y": task.y, "z": task.z},
            "joint_targets": joints,
        }
        if check["warnings"]:
            details["warnings"] = check["warnings"]
        return TaskResult(
            success=True,
            message=f"Carried {held} to ({task.x:.3f}, {task.y:.3f}, {task.z:.3f})",
            details=details,
        )

    def _place_object(self, task: PlaceObject) -> TaskResult:
        held = self.store.get().held_object_id
        if held is None:
            raise TaskError(ErrorCode.NO_OBJECT_HELD, "Not holding any object.")
        if task.partial:
            raise TaskError(
                ErrorCode.INVALID_ARGUMENTS,
                "Give all of x, y and z to move before placing, or none of them",
            )

        if task.position is not None:
            joints = self._plan(task.position)
            self._move_to(joints, label="carry")

        self._set_engagement(False)
        time.sleep(self.config.settle_delay)
        self._drop_to_floor(held)

        obj = self.store.get_object(held)
        return TaskResult(
            success=True,
            message=f"Released {held}",
            details={"object_id": held, "position": obj.position if obj else None},
        )

    def _dance(self, task: Dance) -> TaskResult:
        duration = min(max(float(task.duration_seconds), DANCE_MIN_S), DANCE_MAX_S)
        frame_hold = duration / len(DANCE_POSES)

        for i, pose in enumerate(DANCE_POSES):
            frame_start = time.monotonic()
            self._move_to(pose, label=f"dance frame {i}")
            remaining = frame_hold - (time.monotonic() - frame_start)
            if remaining > 0:
                time.sleep(remaining)

        self._move_to(list(HOME_POSE), label="dance finish")
        return TaskResult(
            success=True,
            message=f"Danced for {duration:.1f}s",
            details={"frames": len(DANCE_POSES), "duration_seconds": duration},
        )

    def _reset_to_base(self, task: ResetToBase) -> TaskResult:
        state = self.store.get()
        released = state.held_object_id
        if state.actuator_engaged:
            self._set_engagement(False)
            if released is not None:
                self._drop_to_floor(released)

        self._move_to(list(HOME_POSE), label="home")
        return TaskResult(
            success=True,
            message="Arm returned to home position",
            details={"released_object": released, "joint_targets": list(HOME_POSE)},
        )

    def _take_screenshot(self, task: TakeScreenshot) -> TaskResult:
        width = int(min(max(task.width, SCREENSHOT_WIDTH[0]), SCREENSHOT_WIDTH[1]))
        height = int(min(max(task.height, SCREENSHOT_HEIGHT[0]), SCREENSHOT_HEIGHT[1]))

        result = self._send(
            CommandKind.CAPTURE_SCREENSHOT,
            {"width": width, "height": height},
            timeout=self.config.screenshot_timeout,
        )
        image = result.get("imageData") or result.get("image_data")
        if not image:
            raise TaskError(ErrorCode.COMMAND_FAILED, "Actuator returned no image data")

        return TaskResult(
            success=True,
            message=f"Captured {width}x{height} screenshot",
            details={"image_data": image, "mime_type": result.get("mimeType", "image/png")},
        )


_controller: Optional[ArmController] = None


def get_controller() -> ArmController:
    global _controller
    if _controller is None:
        _controller = ArmController()
    return _controller
