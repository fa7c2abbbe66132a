"""Tests for the actuator-facing HTTP bridge."""

import threading
import time

import pytest
from fastapi.testclient import TestClient

from common.command_channel import CommandKind
from robo_mcp.bridge import create_app
from robo_mcp.server import TOOL_DEFINITIONS


@pytest.fixture
def client(controller):
    return TestClient(create_app(controller, TOOL_DEFINITIONS))


def poll_command(client, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        command = client.get("/api/commands/next").json()["command"]
        if command is not None:
            return command
        time.sleep(0.01)
    raise AssertionError("No command issued")


class TestCommands:
    def test_no_pending_command(self, client):
        assert client.get("/api/commands/next").json() == {"command": None}

    def test_command_result_round_trip(self, client, controller):
        command = controller.channel.issue(CommandKind.SET_ENGAGEMENT, {"engaged": True})
        polled = client.get("/api/commands/next").json()["command"]
        assert polled["id"] == command.id
        assert polled["kind"] == "set_engagement"

        response = client.post("/api/command-result", json={"commandId": command.id, "success": True})
        assert response.json() == {"success": True, "accepted": True}
        assert controller.channel.await_result(command.id, timeout=0.1)["success"]

    def test_extra_result_fields_kept(self, client, controller):
        command = controller.channel.issue(CommandKind.CAPTURE_SCREENSHOT, {})
        client.post("/api/command-result", json={"commandId": command.id, "imageData": "abc"})
        assert controller.channel.await_result(command.id, timeout=0.1)["imageData"] == "abc"

    def test_missing_command_id(self, client):
        response = client.post("/api/command-result", json={"success": True})
        assert response.status_code == 400

    def test_stale_command_id(self, client):
        response = client.post("/api/command-result", json={"commandId": "old", "success": True})
        assert response.status_code == 200
        assert response.json()["accepted"] is False


class TestStatusReports:
    def test_motion_status_without_task(self, client):
        response = client.post("/api/motion-status", json={"complete": True, "jointAngles": [0] * 6})
        assert response.json() == {"success": True, "resolved": False}

    def test_attachment_status(self, client, controller):
        client.post("/api/attachment-status", json={"objectId": "cube2", "attached": True})
        assert controller.store.get_object("cube2").attached
        # Attachment reports never change what the task holds
        assert controller.store.get().held_object_id is None

    def test_object_positions(self, client, controller):
        response = client.post("/api/objects", json={"objects": [
            {"id": "cube1", "position": {"x": 0.1, "y": 0.025, "z": 0.2}},
            {"id": "ghost", "position": {"x": 0.0, "y": 0.0, "z": 0.0}},
        ]})
        assert response.json() == {"success": True, "applied": 1}
        assert controller.store.get_object("cube1").position == {"x": 0.1, "y": 0.025, "z": 0.2}

    def test_invalid_body(self, client):
        response = client.post("/api/attachment-status", json={"attached": True})
        assert response.status_code == 422


class TestPollingActuator:
    def test_reset_driven_over_http(self, client, controller):
        results = []
        worker = threading.Thread(target=lambda: results.append(controller.reset_to_base()))
        worker.start()

        command = poll_command(client)
        assert command["kind"] == "set_pose"
        assert command["payload"]["joints"] == [0.0] * 6
        client.post("/api/command-result", json={"commandId": command["id"], "success": True})
        client.post("/api/motion-status", json={"complete": True, "jointAngles": [0.0] * 6})

        worker.join(timeout=5.0)
        assert results and results[0].success


class TestQueries:
    def test_state(self, client):
        data = client.get("/api/state").json()
        assert data["joint_targets"] == [0.0] * 6
        assert data["pending_command"] is None
        assert data["joint_limits"][2] == [-135.0, 135.0]
        assert data["task"]["state"] == "idle"

    def test_tools(self, client):
        names = [tool["name"] for tool in client.get("/api/tools").json()["tools"]]
        assert "pick_object" in names

    def test_read_only_tool(self, client):
        data = client.post("/api/tools/discover_objects").json()
        assert len(data["objects"]) == 3

    def test_task_tool_needs_mcp(self, client):
        assert client.post("/api/tools/pick_object").status_code == 400

    def test_unknown_tool(self, client):
        assert client.post("/api/tools/fly").status_code == 404

    def test_health(self, client):
        assert client.get("/health").json() == {
            "status": "ok", "task": "idle", "outstanding_commands": 0,
        }
