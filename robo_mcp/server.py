"""
MCP Server for the magnetic-gripper robot arm demo.

Exposes semantic task tools (pick, carry, place, dance, reset) that the
coordinator executes against the remote actuator, plus read-only scene
queries.
"""

import asyncio
import json
import logging
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent, ImageContent

from common.config import get_config
from .bridge import BridgeServer, create_app
from .controller import get_controller
from .tasks import TaskResult

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create the MCP server
server = Server("robo-demo")

TOOL_DEFINITIONS = [
    # Discovery
    {
        "name": "take_screenshot",
        "description": "Capture a screenshot of the current 3D scene. Returns a base64 PNG image.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "width": {"type": "integer", "description": "Width in pixels (default: 800)", "minimum": 100, "maximum": 1920},
                "height": {"type": "integer", "description": "Height in pixels (default: 600)", "minimum": 100, "maximum": 1080},
            },
        },
    },
    {
        "name": "discover_objects",
        "description": "List all metallic objects in the scene that can be picked up by the magnetic gripper.",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "get_environment_info",
        "description": "Get information about the robot arm, workspace bounds, and coordinate system.",
        "inputSchema": {"type": "object", "properties": {}},
    },
    # Tasks
    {
        "name": "pick_object",
        "description": "Move the arm to the specified object and pick it up with the magnetic gripper. "
                       "The arm will move above the object, descend, activate the magnet, and lift.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "object_id": {"type": "string", "description": "ID of the object to pick (from discover_objects)"},
            },
            "required": ["object_id"],
        },
    },
    {
        "name": "carry_to",
        "description": "Move the currently held object to a specified position. "
                       "Must be holding an object first (use pick_object).",
        "inputSchema": {
            "type": "object",
            "properties": {
                "x": {"type": "number", "description": "X coordinate (right is positive)"},
                "y": {"type": "number", "description": "Y coordinate (up is positive, should be > 0.1 to stay above ground)"},
                "z": {"type": "number", "description": "Z coordinate (forward is positive)"},
            },
            "required": ["x", "y", "z"],
        },
    },
    {
        "name": "place_object",
        "description": "Release the currently held object. Optionally move to a position first. "
                       "The object will fall due to gravity.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "x": {"type": "number", "description": "Optional X coordinate to move to before placing"},
                "y": {"type": "number", "description": "Optional Y coordinate to move to before placing"},
                "z": {"type": "number", "description": "Optional Z coordinate to move to before placing"},
            },
        },
    },
    {
        "name": "dance",
        "description": "Make the robot arm perform a fun dance animation.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "duration_seconds": {
                    "type": "number",
                    "description": "Duration of the dance in seconds (default: 5)",
                    "minimum": 1,
                    "maximum": 30,
                },
            },
        },
    },
    {
        "name": "reset_to_base",
        "description": "Return the arm to its home position (all joints at 0 degrees) and release any held object.",
        "inputSchema": {"type": "object", "properties": {}},
    },
]


def json_response(data: Any) -> list[TextContent]:
    """Format response as JSON text content."""
    return [TextContent(type="text", text=json.dumps(data, indent=2))]


def task_response(result: TaskResult) -> list[TextContent]:
    return json_response(result.to_dict())


def _number(arguments: dict, key: str):
    value = arguments.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number")
    return float(value)


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools for arm control."""
    return [Tool(**definition) for definition in TOOL_DEFINITIONS]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent | ImageContent]:
    """Handle tool calls."""
    controller = get_controller()
    arguments = arguments or {}

    try:
        if name == "discover_objects":
            return json_response(controller.discover_objects())

        elif name == "get_environment_info":
            return json_response(controller.get_environment_info())

        elif name == "pick_object":
            object_id = arguments.get("object_id")
            if not object_id:
                return json_response({"error": "Missing object_id"})
            result = await asyncio.to_thread(controller.pick_object, str(object_id))
            return task_response(result)

        elif name == "carry_to":
            x, y, z = (_number(arguments, key) for key in ("x", "y", "z"))
            if x is None or y is None or z is None:
                return json_response({"error": "carry_to requires x, y and z"})
            result = await asyncio.to_thread(controller.carry_to, x, y, z)
            return task_response(result)

        elif name == "place_object":
            x, y, z = (_number(arguments, key) for key in ("x", "y", "z"))
            result = await asyncio.to_thread(controller.place_object, x, y, z)
            return task_response(result)

        elif name == "dance":
            duration = _number(arguments, "duration_seconds")
            result = await asyncio.to_thread(controller.dance, 5.0 if duration is None else duration)
            return task_response(result)

        elif name == "reset_to_base":
            result = await asyncio.to_thread(controller.reset_to_base)
            return task_response(result)

        elif name == "take_screenshot":
            width = int(arguments.get("width", 800))
            height = int(arguments.get("height", 600))
            result = await asyncio.to_thread(controller.take_screenshot, width, height)
            if not result.success:
                return task_response(result)
            return [ImageContent(
                type="image",
                data=result.details["image_data"],
                mimeType=result.details.get("mime_type", "image/png"),
            )]

        else:
            return json_response({"error": f"Unknown tool: {name}"})

    except Exception as e:
        logger.exception(f"Error in tool {name}")
        return json_response({"success": False, "error": str(e)})


async def main():
    """Run the actuator bridge and the MCP server."""
    config = get_config()
    controller = get_controller()

    simulator = None
    if config.mock:
        from .simulator import SimulatedActuator
        logger.info("Running in MOCK mode - simulated actuator, no browser needed")
        simulator = SimulatedActuator(controller, motion_delay=config.sim_motion_delay).start()

    bridge = BridgeServer(
        create_app(controller, TOOL_DEFINITIONS),
        host=config.bridge_host,
        port=config.bridge_port,
    )
    bridge.start()

    logger.info("Starting Robo Demo MCP server...")
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        bridge.stop()
        if simulator is not None:
            simulator.stop()


def main_entry():
    """Sync entry point for console_scripts."""
    asyncio.run(main())


if __name__ == "__main__":
    main_entry()
