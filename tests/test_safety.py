"""Tests for safety constraints."""

import pytest
from common.safety import (
    SafetyConfig,
    SafetyValidator,
    WorkspaceLimits,
)


class TestWorkspaceLimits:
    def test_default_limits(self):
        limits = WorkspaceLimits()
        assert limits.x_min == -0.8
        assert limits.y_min == 0.05
        assert limits.y_max == 0.95

    def test_contains_inside(self):
        limits = WorkspaceLimits()
        assert limits.contains(0.4, 0.2, 0.3)

    def test_contains_outside(self):
        limits = WorkspaceLimits()
        assert not limits.contains(0.9, 0.2, 0.3)   # Too far right
        assert not limits.contains(0.4, 0.01, 0.3)  # Below the floor margin
        assert not limits.contains(0.4, 0.2, -0.9)  # Too far behind

    def test_clamp(self):
        limits = WorkspaceLimits()
        x, y, z = limits.clamp(5.0, 0.0, 0.3)
        assert x == 0.8
        assert y == 0.05
        assert z == 0.3


class TestSafetyValidator:
    def test_valid_cartesian_target(self):
        validator = SafetyValidator()
        result = validator.validate_cartesian_target(0.0, 0.3, 0.0)
        assert result["valid"]
        assert result["warnings"] == []
        assert result["clamped_position"] is None

    def test_outside_workspace_warns_but_stays_valid(self):
        validator = SafetyValidator()
        result = validator.validate_cartesian_target(5.0, 0.0, 0.0)
        assert result["valid"]
        assert result["clamped_position"] == (0.8, 0.05, 0.0)
        assert len(result["warnings"]) == 1

    def test_below_floor_warns(self):
        validator = SafetyValidator()
        result = validator.validate_cartesian_target(0.3, -0.1, 0.3)
        assert result["valid"]
        assert any("below the floor" in w for w in result["warnings"])

    def test_non_finite_target_invalid(self):
        validator = SafetyValidator()
        result = validator.validate_cartesian_target(float("nan"), 0.2, 0.3)
        assert not result["valid"]

    def test_valid_joint_target(self):
        validator = SafetyValidator()
        result = validator.validate_joint_target([0.0, 20.0, 40.0, 0.0, -60.0, 0.0])
        assert result["valid"]

    def test_invalid_joint_target_wrong_count(self):
        validator = SafetyValidator()
        result = validator.validate_joint_target([0.0, 0.0, 0.0])
        assert not result["valid"]

    @pytest.mark.parametrize("joint,value", [(1, 95.0), (2, -140.0), (4, 91.0)])
    def test_invalid_joint_target_out_of_range(self, joint, value):
        validator = SafetyValidator()
        joints = [0.0] * 6
        joints[joint] = value
        result = validator.validate_joint_target(joints)
        assert not result["valid"]
        assert f"Joint {joint}" in result["errors"][0]


class TestSafetyConfig:
    def test_to_dict(self):
        d = SafetyConfig().to_dict()
        assert d["workspace"]["x"] == [-0.8, 0.8]
        assert len(d["joint_limits"]) == 6
        assert d["joint_limits"][1] == {
            "joint": 1, "name": "shoulder", "min": -90.0, "max": 90.0, "unit": "degrees",
        }
