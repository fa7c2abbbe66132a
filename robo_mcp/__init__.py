"""Robo Demo MCP Server."""

from .controller import ArmController, get_controller
from .server import server

__all__ = ["ArmController", "get_controller", "server"]
