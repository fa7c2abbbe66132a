"""Pytest configuration."""

import os
import sys
import tempfile

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

# Always run in mock mode for tests, never touch the repo's state file
os.environ["ROBO_MOCK"] = "1"
os.environ["ROBO_STATE_FILE"] = os.path.join(tempfile.mkdtemp(prefix="robo-test-"), "state.json")

from common.arm_state import ArmStateStore  # noqa: E402
from common.config import RoboConfig  # noqa: E402
from robo_mcp.controller import ArmController  # noqa: E402
from robo_mcp.simulator import SimulatedActuator  # noqa: E402


@pytest.fixture
def config():
    return RoboConfig(
        mock=True,
        command_timeout=0.5,
        motion_timeout=1.0,
        attach_timeout=0.3,
        settle_delay=0.0,
        screenshot_timeout=0.5,
        sim_motion_delay=0.0,
    )


@pytest.fixture
def controller(config):
    return ArmController(config=config, store=ArmStateStore())


@pytest.fixture
def sim(controller):
    actuator = SimulatedActuator(controller, motion_delay=0.0).start()
    yield actuator
    actuator.stop()
