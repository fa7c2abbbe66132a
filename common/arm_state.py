"""
Arm state store: joint targets, magnet engagement, held object and the
tracked object registry.

The in-memory copy is authoritative. Every mutation is written through to
the JSON snapshot file before the mutator returns.
"""

import copy
import json
import logging
import threading
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

from .kinematics import HOME_POSE, JOINT_COUNT, clamp_joints

logger = logging.getLogger(__name__)


@dataclass
class TrackedObject:
    """A pickable object in the scene."""
    id: str
    position: dict[str, float]  # {"x", "y", "z"} in meters
    type: str = "cube"
    size: float = 0.05
    color: str = "silver"
    attached: bool = False

    @property
    def point(self) -> tuple[float, float, float]:
        return (self.position["x"], self.position["y"], self.position["z"])

    def to_dict(self) -> dict:
        d = asdict(self)
        d["position"] = dict(self.position)
        return d


@dataclass
class ArmState:
    """Snapshot of the arm."""
    joint_targets: list[float] = field(default_factory=lambda: list(HOME_POSE))
    actuator_engaged: bool = False
    held_object_id: Optional[str] = None
    objects: list[TrackedObject] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "joint_targets": list(self.joint_targets),
            "actuator_engaged": self.actuator_engaged,
            "held_object_id": self.held_object_id,
            "objects": [obj.to_dict() for obj in self.objects],
        }


def default_objects() -> list[TrackedObject]:
    return [
        TrackedObject("cube1", {"x": 0.4, "y": 0.025, "z": 0.3}, type="cube", size=0.05, color="silver"),
        TrackedObject("cube2", {"x": -0.3, "y": 0.025, "z": 0.4}, type="cube", size=0.04, color="gray"),
        TrackedObject("cylinder1", {"x": 0.25, "y": 0.03, "z": -0.35}, type="cylinder", size=0.03, color="silver"),
    ]


def _point_dict(point) -> dict[str, float]:
    if isinstance(point, dict):
        return {"x": float(point["x"]), "y": float(point["y"]), "z": float(point["z"])}
    x, y, z = point
    return {"x": float(x), "y": float(y), "z": float(z)}


class JsonStateStorage:
    """Snapshot persistence to a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not load state from {self.path}, using defaults: {e}")
            return None

    def save(self, data: dict):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w") as f:
                json.dump(data, f, indent=2)
            tmp.replace(self.path)
        except OSError as e:
            logger.error(f"Could not save state to {self.path}: {e}")


def state_from_dict(data: Optional[dict]) -> ArmState:
    """Build an ArmState from a stored snapshot, falling back to defaults field by field."""
    state = ArmState(objects=default_objects())
    if not data:
        return state

    joints = data.get("joint_targets")
    if isinstance(joints, list) and len(joints) == JOINT_COUNT:
        state.joint_targets = clamp_joints(joints)

    state.actuator_engaged = bool(data.get("actuator_engaged", False))
    held = data.get("held_object_id")
    state.held_object_id = held if held and state.actuator_engaged else None

    stored_objects = data.get("objects")
    if isinstance(stored_objects, list) and stored_objects:
        objects = []
        for raw in stored_objects:
            try:
                objects.append(TrackedObject(
                    id=str(raw["id"]),
                    position=_point_dict(raw["position"]),
                    type=raw.get("type", "cube"),
                    size=float(raw.get("size", 0.05)),
                    color=raw.get("color", "silver"),
                    attached=bool(raw.get("attached", False)),
                ))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed stored object {raw!r}: {e}")
        if objects:
            state.objects = objects

    return state


class ArmStateStore:
    """
    Single owner of the arm state.

    Joint targets, engagement and the held object are mutated only by the
    running task; attachment flags and object positions also change from
    inbound status reports.
    """

    def __init__(self, storage: Optional[JsonStateStorage] = None, initial: Optional[ArmState] = None):
        self._storage = storage
        self._lock = threading.RLock()
        if initial is not None:
            self._state = copy.deepcopy(initial)
        else:
            self._state = state_from_dict(storage.load() if storage else None)
        self._objects = {obj.id: obj for obj in self._state.objects}

    def _persist(self):
        if self._storage is not None:
            self._storage.save(self._state.to_dict())

    def get(self) -> ArmState:
        """Return a deep copy of the current state."""
        with self._lock:
            return copy.deepcopy(self._state)

    def get_object(self, object_id: str) -> Optional[TrackedObject]:
        with self._lock:
            obj = self._objects.get(object_id)
            return copy.deepcopy(obj) if obj else None

    def list_objects(self) -> list[TrackedObject]:
        with self._lock:
            return copy.deepcopy(self._state.objects)

    def apply_motion(self, joints: list[float]):
        if len(joints) != JOINT_COUNT:
            raise ValueError(f"Expected {JOINT_COUNT} joints, got {len(joints)}")
        with self._lock:
            self._state.joint_targets = [float(j) for j in joints]
            self._persist()

    def set_engaged(self, engaged: bool):
        """Set magnet engagement. Disengaging also releases the held object."""
        with self._lock:
            self._state.actuator_engaged = bool(engaged)
            if not engaged:
                self._state.held_object_id = None
            self._persist()

    def set_held(self, object_id: Optional[str]):
        with self._lock:
            if object_id is not None:
                if not self._state.actuator_engaged:
                    raise ValueError("Cannot hold an object while the actuator is disengaged")
                if object_id not in self._objects:
                    raise KeyError(object_id)
            self._state.held_object_id = object_id
            self._persist()

    def update_object_position(self, object_id: str, point) -> bool:
        """Update a tracked object's position. Unknown ids are ignored."""
        with self._lock:
            obj = self._objects.get(object_id)
            if obj is None:
                logger.debug(f"Ignoring position for unknown object {object_id}")
                return False
            obj.position = _point_dict(point)
            self._persist()
            return True

    def mark_attached(self, object_id: str, attached: bool) -> bool:
        with self._lock:
            obj = self._objects.get(object_id)
            if obj is None:
                logger.debug(f"Ignoring attachment for unknown object {object_id}")
                return False
            obj.attached = bool(attached)
            self._persist()
            return True
