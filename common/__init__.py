from .safety import (
    SafetyConfig,
    SafetyValidator,
    WorkspaceLimits,
    get_safety_config,
)

from .kinematics import (
    ArmGeometry,
    DEFAULT_GEOMETRY,
    ELBOW_ZERO_DEG,
    HOME_POSE,
    JOINT_LIMITS,
    JOINT_NAMES,
    SHOULDER_ZERO_DEG,
    Unreachable,
    clamp_joints,
    forward_kinematics,
    solve_ik,
)

from .arm_state import (
    ArmState,
    ArmStateStore,
    JsonStateStorage,
    TrackedObject,
    default_objects,
)

from .command_channel import (
    Command,
    CommandChannel,
    CommandError,
    CommandKind,
    CommandPendingError,
    CommandTimeout,
)

from .completion import CompletionSignal

from .config import RoboConfig, get_config

__all__ = [
    # Safety
    "SafetyConfig",
    "SafetyValidator",
    "WorkspaceLimits",
    "get_safety_config",
    # Kinematics
    "ArmGeometry",
    "DEFAULT_GEOMETRY",
    "ELBOW_ZERO_DEG",
    "HOME_POSE",
    "JOINT_LIMITS",
    "JOINT_NAMES",
    "SHOULDER_ZERO_DEG",
    "Unreachable",
    "clamp_joints",
    "forward_kinematics",
    "solve_ik",
    # State
    "ArmState",
    "ArmStateStore",
    "JsonStateStorage",
    "TrackedObject",
    "default_objects",
    # Command channel
    "Command",
    "CommandChannel",
    "CommandError",
    "CommandKind",
    "CommandPendingError",
    "CommandTimeout",
    # Signals
    "CompletionSignal",
    # Config
    "RoboConfig",
    "get_config",
]
