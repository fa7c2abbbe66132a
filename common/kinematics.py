"""
Closed-form kinematics for the 6-DOF magnetic-gripper arm.

Coordinate system: right-handed, meters, origin at the base of the arm.
X is right, Y is up, Z is forward. Joint angles are in degrees.

With the effector vertical the magnet tip sits L3 above the wrist centre, so
the solver works on the wrist centre and reduces the problem to a two-link
planar solve in the vertical plane through the base yaw.

Zero pose: upper arm horizontal, forearm folded 105 degrees down from it,
effector vertical. The offsets put the shoulder and elbow ranges over the
working envelope in front of and below the shoulder.
"""

import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

JOINT_NAMES = ["base", "shoulder", "elbow", "wrist_roll", "wrist_pitch", "wrist_rotation"]
JOINT_COUNT = 6

# Degrees, one (min, max) pair per joint
JOINT_LIMITS = [
    (-180.0, 180.0),  # Base rotation
    (-90.0, 90.0),    # Shoulder
    (-135.0, 135.0),  # Elbow
    (-180.0, 180.0),  # Wrist roll
    (-90.0, 90.0),    # Wrist pitch
    (-180.0, 180.0),  # Wrist rotation
]

HOME_POSE = [0.0] * JOINT_COUNT

# Degrees: upper arm direction from vertical, and elbow bend, at joint zero
SHOULDER_ZERO_DEG = 90.0
ELBOW_ZERO_DEG = 105.0


class Unreachable(ValueError):
    """Raised when a Cartesian target is outside the arm's reach."""

    def __init__(self, target: Sequence[float], distance: float, reason: str):
        self.target = tuple(float(v) for v in target)
        self.distance = distance
        self.reason = reason
        x, y, z = self.target
        super().__init__(
            f"Target ({x:.3f}, {y:.3f}, {z:.3f}) is {reason} "
            f"(wrist distance {distance:.3f}m)"
        )


@dataclass(frozen=True)
class ArmGeometry:
    """Fixed link lengths of the arm (meters)."""

    base_height: float = 0.1   # Shoulder pivot above the floor
    l1: float = 0.35           # Upper arm
    l2: float = 0.30           # Forearm
    l3: float = 0.35           # Wrist to magnet tip
    reach_radius: float = 0.80
    max_height: float = 0.95
    min_height: float = 0.05
    joint_limits: list[tuple[float, float]] = field(default_factory=lambda: list(JOINT_LIMITS))

    @property
    def max_reach(self) -> float:
        return self.l1 + self.l2

    @property
    def min_reach(self) -> float:
        return abs(self.l1 - self.l2)

    def to_dict(self) -> dict:
        return {
            "base_height": self.base_height,
            "link_lengths": {"l1": self.l1, "l2": self.l2, "l3": self.l3},
            "reach_radius": self.reach_radius,
            "max_height": self.max_height,
            "min_height": self.min_height,
        }


DEFAULT_GEOMETRY = ArmGeometry()


def clamp_joints(joints: Sequence[float], geometry: ArmGeometry = DEFAULT_GEOMETRY) -> list[float]:
    """Clamp every joint to its configured range."""
    if len(joints) != JOINT_COUNT:
        raise ValueError(f"Expected {JOINT_COUNT} joints, got {len(joints)}")
    limits = np.array(geometry.joint_limits, dtype=float)
    clipped = np.clip(np.asarray(joints, dtype=float), limits[:, 0], limits[:, 1])
    return [float(v) for v in clipped]


def wrist_distance(target: Sequence[float], geometry: ArmGeometry = DEFAULT_GEOMETRY) -> float:
    """Distance from the shoulder pivot to the wrist centre for a tip target."""
    x, y, z = target
    r = math.hypot(x, z)
    h = y - geometry.base_height - geometry.l3
    return math.hypot(r, h)


def is_reachable(target: Sequence[float], geometry: ArmGeometry = DEFAULT_GEOMETRY) -> bool:
    d = wrist_distance(target, geometry)
    return geometry.min_reach <= d <= geometry.max_reach


def solve_ik(target: Sequence[float], geometry: ArmGeometry = DEFAULT_GEOMETRY) -> list[float]:
    """
    Solve joint angles that put the magnet tip at `target` with the effector vertical.

    Args:
        target: (x, y, z) tip position in meters
        geometry: Arm link lengths and joint limits

    Returns:
        Six joint angles in degrees, clamped to the joint limits.

    Raises:
        Unreachable: if the wrist centre is farther than L1+L2 or closer than |L1-L2|.
    """
    x, y, z = (float(v) for v in target)

    base_yaw = math.atan2(x, z)

    r = math.hypot(x, z)
    h = y - geometry.base_height - geometry.l3
    d = math.hypot(r, h)

    if d > geometry.max_reach:
        raise Unreachable((x, y, z), d, "too far")
    if d < geometry.min_reach:
        raise Unreachable((x, y, z), d, "too close")

    l1, l2 = geometry.l1, geometry.l2
    cos_elbow = (d * d - l1 * l1 - l2 * l2) / (2 * l1 * l2)
    # Rounding at the reach boundaries can push the cosine just past +/-1
    cos_elbow = max(-1.0, min(1.0, cos_elbow))

    # Elbow-up branch only: the elbow sits above the shoulder-wrist line
    bend = math.acos(cos_elbow)
    upper_angle = math.atan2(r, h) - math.atan2(l2 * math.sin(bend), l1 + l2 * math.cos(bend))

    shoulder = upper_angle - math.radians(SHOULDER_ZERO_DEG)
    elbow = bend - math.radians(ELBOW_ZERO_DEG)
    wrist_pitch = -(shoulder + elbow)
    wrist_roll = 0.0
    wrist_rotation = -base_yaw

    joints = [
        math.degrees(base_yaw),
        math.degrees(shoulder),
        math.degrees(elbow),
        math.degrees(wrist_roll),
        math.degrees(wrist_pitch),
        math.degrees(wrist_rotation),
    ]
    return clamp_joints(joints, geometry)


def _rotate(vector: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """Rodrigues rotation of `vector` about unit `axis`."""
    return (
        vector * np.cos(angle)
        + np.cross(axis, vector) * np.sin(angle)
        + axis * np.dot(axis, vector) * (1 - np.cos(angle))
    )


def forward_kinematics(joints: Sequence[float], geometry: ArmGeometry = DEFAULT_GEOMETRY) -> tuple[float, float, float]:
    """
    Compute the magnet tip position for a joint vector.

    Link directions are angles from vertical, tilting toward the base's
    forward direction. The effector points straight up when shoulder, elbow
    and wrist pitch sum to zero; wrist roll turns it about the forearm axis
    and wrist rotation spins it about its own axis (no effect on the tip).
    """
    if len(joints) != JOINT_COUNT:
        raise ValueError(f"Expected {JOINT_COUNT} joints, got {len(joints)}")
    base, shoulder, elbow, roll, pitch, _ = np.radians(np.asarray(joints, dtype=float))

    forward = np.array([np.sin(base), 0.0, np.cos(base)])
    up = np.array([0.0, 1.0, 0.0])

    upper_angle = shoulder + np.radians(SHOULDER_ZERO_DEG)
    upper_dir = np.sin(upper_angle) * forward + np.cos(upper_angle) * up
    fore_angle = upper_angle + elbow + np.radians(ELBOW_ZERO_DEG)
    fore_dir = np.sin(fore_angle) * forward + np.cos(fore_angle) * up

    tool_angle = shoulder + elbow + pitch
    tool_dir = np.sin(tool_angle) * forward + np.cos(tool_angle) * up
    tool_dir = _rotate(tool_dir, fore_dir, roll)

    tip = (
        np.array([0.0, geometry.base_height, 0.0])
        + geometry.l1 * upper_dir
        + geometry.l2 * fore_dir
        + geometry.l3 * tool_dir
    )
    return float(tip[0]), float(tip[1]), float(tip[2])
