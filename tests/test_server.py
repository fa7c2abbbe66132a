"""Tests for the MCP tool surface."""

import asyncio
import importlib
import inspect
import json

import pytest

# The package re-exports the Server instance under the submodule name
mcp_server = importlib.import_module("robo_mcp.server")


@pytest.fixture
def use_controller(controller, monkeypatch):
    monkeypatch.setattr(mcp_server, "get_controller", lambda: controller)
    return controller


def call(name, arguments=None):
    content = asyncio.run(mcp_server.call_tool(name, arguments or {}))
    return content


def call_json(name, arguments=None):
    content = call(name, arguments)
    assert content[0].type == "text"
    return json.loads(content[0].text)


class TestModule:
    def test_handlers_are_module_functions(self):
        assert inspect.iscoroutinefunction(mcp_server.list_tools)
        assert inspect.iscoroutinefunction(mcp_server.call_tool)
        assert callable(mcp_server.get_controller)


class TestListTools:
    def test_tool_names(self):
        tools = asyncio.run(mcp_server.list_tools())
        assert [t.name for t in tools] == [
            "take_screenshot", "discover_objects", "get_environment_info",
            "pick_object", "carry_to", "place_object", "dance", "reset_to_base",
        ]


class TestCallTool:
    def test_discover_objects(self, use_controller):
        data = call_json("discover_objects")
        assert [o["id"] for o in data["objects"]] == ["cube1", "cube2", "cylinder1"]

    def test_environment_info(self, use_controller):
        data = call_json("get_environment_info")
        assert data["coordinate_system"]["y_axis"] == "up (positive)"

    def test_unknown_tool(self, use_controller):
        assert call_json("fly") == {"error": "Unknown tool: fly"}

    def test_pick_requires_object_id(self, use_controller):
        assert call_json("pick_object") == {"error": "Missing object_id"}

    def test_carry_requires_numbers(self, use_controller):
        data = call_json("carry_to", {"x": "far", "y": 0.3, "z": 0.0})
        assert data["success"] is False
        assert "must be a number" in data["error"]

    def test_task_error_surfaces_as_result(self, use_controller, sim):
        data = call_json("pick_object", {"object_id": "nope"})
        assert data["success"] is False
        assert data["error_code"] == "OBJECT_NOT_FOUND"
        assert "duration_ms" in data

    def test_pick_carry_place(self, use_controller, sim):
        assert call_json("pick_object", {"object_id": "cube1"})["success"]
        assert call_json("carry_to", {"x": 0, "y": 0.3, "z": 0})["success"]
        data = call_json("place_object")
        assert data["success"]
        assert data["object_id"] == "cube1"

    def test_reset_to_base(self, use_controller, sim):
        assert call_json("reset_to_base")["success"]

    def test_screenshot_image(self, use_controller):
        controller = use_controller
        controller.channel.transport = lambda cmd: controller.deliver_command_result(
            cmd.id, {"success": True, "imageData": "iVBORw0KGgo="})
        content = call("take_screenshot", {"width": 640, "height": 480})
        assert content[0].type == "image"
        assert content[0].data == "iVBORw0KGgo="
        assert content[0].mimeType == "image/png"

    def test_screenshot_failure_is_text(self, use_controller, sim):
        data = call_json("take_screenshot")
        assert data["error_code"] == "COMMAND_FAILED"
