"""
Safety constraints and validation for the magnetic-gripper arm.

These checks run BEFORE any command is sent to the actuator.
"""

from dataclasses import dataclass, field
from typing import Optional
import numpy as np

from .kinematics import JOINT_COUNT, JOINT_LIMITS, JOINT_NAMES


@dataclass
class WorkspaceLimits:
    """Cartesian workspace bounding box (meters, relative to arm base, Y up)."""

    x_min: float = -0.8   # Left
    x_max: float = 0.8    # Right
    y_min: float = 0.05   # Stay above the floor
    y_max: float = 0.95   # Upper limit
    z_min: float = -0.8   # Behind the base
    z_max: float = 0.8    # Forward reach limit

    def contains(self, x: float, y: float, z: float) -> bool:
        """Check if a point is within the workspace."""
        return (
            self.x_min <= x <= self.x_max and
            self.y_min <= y <= self.y_max and
            self.z_min <= z <= self.z_max
        )

    def clamp(self, x: float, y: float, z: float) -> tuple[float, float, float]:
        """Clamp a point to within the workspace."""
        return (
            float(np.clip(x, self.x_min, self.x_max)),
            float(np.clip(y, self.y_min, self.y_max)),
            float(np.clip(z, self.z_min, self.z_max)),
        )

    def to_dict(self) -> dict:
        return {
            "x": [self.x_min, self.x_max],
            "y": [self.y_min, self.y_max],
            "z": [self.z_min, self.z_max],
        }


@dataclass
class SafetyConfig:
    """Complete safety configuration."""

    workspace: WorkspaceLimits = field(default_factory=WorkspaceLimits)
    joint_limits: list[tuple[float, float]] = field(default_factory=lambda: list(JOINT_LIMITS))
    floor_height: float = 0.0

    def to_dict(self) -> dict:
        return {
            "workspace": self.workspace.to_dict(),
            "floor_height": self.floor_height,
            "joint_limits": [
                {"joint": i, "name": name, "min": lo, "max": hi, "unit": "degrees"}
                for i, (name, (lo, hi)) in enumerate(zip(JOINT_NAMES, self.joint_limits))
            ],
        }


class SafetyValidator:
    """Validates commands against safety constraints."""

    def __init__(self, config: Optional[SafetyConfig] = None):
        self.config = config or SafetyConfig()

    def validate_cartesian_target(self, x: float, y: float, z: float) -> dict:
        """
        Validate a Cartesian target position.

        Out-of-workspace targets are not rejected here; reachability is the
        IK solver's call. They produce a warning and a suggested clamp.

        Returns:
            dict with keys:
                - valid: bool
                - warnings: list[str]
                - errors: list[str]
                - clamped_position: Optional[tuple] if outside the workspace
        """
        result = {
            "valid": True,
            "warnings": [],
            "errors": [],
            "clamped_position": None,
        }

        if not all(np.isfinite([x, y, z])):
            result["valid"] = False
            result["errors"].append(f"Target ({x}, {y}, {z}) is not a finite point")
            return result

        if not self.config.workspace.contains(x, y, z):
            clamped = self.config.workspace.clamp(x, y, z)
            result["warnings"].append(
                f"Target ({x:.3f}, {y:.3f}, {z:.3f}) outside workspace "
                f"(nearest in-bounds point ({clamped[0]:.3f}, {clamped[1]:.3f}, {clamped[2]:.3f}))"
            )
            result["clamped_position"] = clamped

        if y < self.config.floor_height:
            result["warnings"].append(f"Target height {y:.3f}m is below the floor")

        return result

    def validate_joint_target(self, joints: list[float]) -> dict:
        """Validate a joint configuration target (degrees)."""
        result = {
            "valid": True,
            "warnings": [],
            "errors": [],
        }

        if len(joints) != JOINT_COUNT:
            result["valid"] = False
            result["errors"].append(f"Expected {JOINT_COUNT} joints, got {len(joints)}")
            return result

        for i, (q, (q_min, q_max)) in enumerate(zip(joints, self.config.joint_limits)):
            if not (q_min <= q <= q_max):
                result["valid"] = False
                result["errors"].append(
                    f"Joint {i} ({JOINT_NAMES[i]}) value {q:.2f} outside limits [{q_min:.1f}, {q_max:.1f}]"
                )

        return result


# Singleton default config
_default_safety_config = SafetyConfig()


def get_safety_config() -> SafetyConfig:
    return _default_safety_config
