"""
Simulated actuator for running without the browser scene (ROBO_MOCK=1).

Consumes commands from the controller's channel on a worker thread and
answers the way the physics scene does: acknowledge the command, then post
motion, attachment and object-position reports.
"""

import logging
import math
import queue
import threading
import time
from typing import Optional

from common.command_channel import Command, CommandKind
from common.kinematics import DEFAULT_GEOMETRY, ArmGeometry, forward_kinematics

logger = logging.getLogger(__name__)

MAGNET_RADIUS = 0.05  # meters


class SimulatedActuator:
    """Mock arm + magnet + falling objects."""

    def __init__(
        self,
        controller,  # ArmController
        motion_delay: float = 0.05,
        geometry: ArmGeometry = DEFAULT_GEOMETRY,
        acknowledge: bool = True,
        report_motion: bool = True,
        report_attachment: bool = True,
    ):
        """
        Args:
            controller: ArmController whose channel feeds this actuator
            motion_delay: Simulated travel time per set_pose (seconds)
            geometry: Arm geometry used for forward kinematics
            acknowledge: Post command results (False simulates a dead link)
            report_motion: Post motion-complete reports
            report_attachment: Post attachment reports
        """
        self.controller = controller
        self.motion_delay = motion_delay
        self.geometry = geometry
        self.acknowledge = acknowledge
        self.report_motion = report_motion
        self.report_attachment = report_attachment

        self.joints = list(controller.store.get().joint_targets)
        self.engaged = False
        self.attached_id: Optional[str] = None
        self.received: list[Command] = []

        self._queue: queue.Queue = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._running = False

    def start(self) -> "SimulatedActuator":
        """Register as the channel transport and start the worker thread."""
        self.controller.channel.transport = self.submit
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True, name="sim-actuator")
        self._thread.start()
        logger.info("Simulated actuator started")
        return self

    def stop(self):
        self._running = False
        self._queue.put(None)
        if self._thread is not None:
            self._thread.join(timeout=2.0)
        if self.controller.channel.transport == self.submit:
            self.controller.channel.transport = None

    def submit(self, command: Command):
        self.received.append(command)
        self._queue.put(command)

    def _run(self):
        while self._running:
            command = self._queue.get()
            if command is None:
                break
            try:
                self._handle(command)
            except Exception:
                logger.exception(f"Simulated actuator failed on {command.kind.value}")

    @property
    def tip(self) -> tuple[float, float, float]:
        return forward_kinematics(self.joints, self.geometry)

    def _ack(self, command: Command, result: Optional[dict] = None):
        if self.acknowledge:
            self.controller.deliver_command_result(command.id, result or {"success": True})

    def _handle(self, command: Command):
        if command.kind == CommandKind.SET_POSE:
            self._ack(command)
            time.sleep(self.motion_delay)
            self.joints = [float(j) for j in command.payload["joints"]]
            self._carry_attached()
            if self.report_motion:
                self.controller.report_motion_status(True, self.joints)

        elif command.kind == CommandKind.SET_ENGAGEMENT:
            # The magnet switches instantly, so its reports precede the ack
            if command.payload.get("engaged"):
                self._engage()
            else:
                self._release()
            self._ack(command)

        elif command.kind == CommandKind.CAPTURE_SCREENSHOT:
            self._ack(command, {"success": False, "error": "Screenshots are not available from the simulated actuator"})

        else:
            self._ack(command, {"success": False, "error": f"Unsupported command {command.kind.value}"})

    def _engage(self):
        self.engaged = True
        if self.attached_id is not None:
            return
        tip = self.tip
        for obj in self.controller.store.list_objects():
            if math.dist(tip, obj.point) <= MAGNET_RADIUS + obj.size:
                self.attached_id = obj.id
                logger.info(f"Simulated magnet attached {obj.id}")
                if self.report_attachment:
                    self.controller.report_attachment_status(obj.id, True)
                break

    def _release(self):
        self.engaged = False
        if self.attached_id is None:
            return
        object_id = self.attached_id
        self.attached_id = None
        obj = self.controller.store.get_object(object_id)
        if self.report_attachment:
            self.controller.report_attachment_status(object_id, False)
        if obj is not None:
            x, _, z = self.tip
            self.controller.sync_object_positions([
                {"id": object_id, "position": {"x": x, "y": obj.size / 2, "z": z}},
            ])

    def _carry_attached(self):
        if self.attached_id is None:
            return
        obj = self.controller.store.get_object(self.attached_id)
        if obj is None:
            return
        x, y, z = self.tip
        self.controller.sync_object_positions([
            {"id": obj.id, "position": {"x": x, "y": y - obj.size / 2, "z": z}},
        ])
