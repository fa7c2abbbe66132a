"""
Runtime configuration for the arm coordinator.

Values come from ROBO_* environment variables, falling back to the defaults
below.
"""

import logging
import os
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = Path(__file__).parent.parent / "state.json"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


@dataclass
class RoboConfig:
    """Coordinator settings. Timeouts and delays are in seconds."""

    mock: bool = False
    state_file: Path = field(default_factory=lambda: DEFAULT_STATE_FILE)
    bridge_host: str = "127.0.0.1"
    bridge_port: int = 3000

    command_timeout: float = 5.0      # Actuator acknowledgement of a command
    motion_timeout: float = 10.0      # Motion-complete report after set_pose
    attach_timeout: float = 2.0       # Attachment report after engaging the magnet
    settle_delay: float = 0.5         # Free-fall time after releasing an object
    screenshot_timeout: float = 10.0

    # Mock actuator only: simulated travel time per motion
    sim_motion_delay: float = 0.05

    @classmethod
    def from_env(cls) -> "RoboConfig":
        return cls(
            mock=os.environ.get("ROBO_MOCK", "0") == "1",
            state_file=Path(os.environ.get("ROBO_STATE_FILE") or DEFAULT_STATE_FILE),
            bridge_host=os.environ.get("ROBO_BRIDGE_HOST", "127.0.0.1"),
            bridge_port=int(_env_float("ROBO_BRIDGE_PORT", 3000)),
            command_timeout=_env_float("ROBO_COMMAND_TIMEOUT", 5.0),
            motion_timeout=_env_float("ROBO_MOTION_TIMEOUT", 10.0),
            attach_timeout=_env_float("ROBO_ATTACH_TIMEOUT", 2.0),
            settle_delay=_env_float("ROBO_SETTLE_DELAY", 0.5),
            screenshot_timeout=_env_float("ROBO_SCREENSHOT_TIMEOUT", 10.0),
            sim_motion_delay=_env_float("ROBO_SIM_MOTION_DELAY", 0.05),
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["state_file"] = str(self.state_file)
        return d


_config: Optional[RoboConfig] = None


def get_config() -> RoboConfig:
    global _config
    if _config is None:
        _config = RoboConfig.from_env()
    return _config
