"""HTTP bridge between the coordinator and the actuator (browser physics scene).

The actuator polls for the outstanding command, executes it locally, and
posts back a correlation-tagged result plus asynchronous status reports.

Endpoints:
    GET  /api/commands/next      - Outstanding command (or null)
    POST /api/command-result     - Result for a command id
    POST /api/motion-status      - Motion complete / current joint angles
    POST /api/attachment-status  - Magnet attached / released an object
    POST /api/objects            - Ground-truth object positions
    GET  /api/state              - Arm state snapshot
    GET  /api/tools              - MCP tool definitions
    POST /api/tools/{name}       - Run a read-only tool
    GET  /health                 - Server status
"""

import asyncio
import logging
import threading
import time
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from common.kinematics import JOINT_LIMITS

logger = logging.getLogger(__name__)

READ_ONLY_TOOLS = ("discover_objects", "get_environment_info")


class CommandResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    commandId: Optional[str] = None
    success: bool = True
    error: Optional[str] = None


class MotionStatus(BaseModel):
    complete: bool
    jointAngles: Optional[list[float]] = None


class AttachmentStatus(BaseModel):
    objectId: str
    attached: bool


class ObjectPosition(BaseModel):
    x: float
    y: float
    z: float


class ObjectUpdate(BaseModel):
    id: str
    position: ObjectPosition


class ObjectsUpdate(BaseModel):
    objects: list[ObjectUpdate] = Field(default_factory=list)


def create_app(controller, tool_definitions: Optional[list[dict]] = None) -> FastAPI:
    """Build the bridge app around an ArmController."""
    app = FastAPI(title="Robo Demo Actuator Bridge")
    tools = tool_definitions or []

    @app.get("/api/commands/next")
    async def next_command():
        command = controller.channel.pending()
        return {"command": command.to_dict() if command else None}

    @app.post("/api/command-result")
    async def command_result(req: CommandResult):
        if not req.commandId:
            raise HTTPException(status_code=400, detail="Missing commandId")
        result = req.model_dump(exclude={"commandId"})
        accepted = controller.deliver_command_result(req.commandId, result)
        if not accepted:
            logger.debug(f"Ignored result for stale command {req.commandId}")
        return {"success": True, "accepted": accepted}

    @app.post("/api/motion-status")
    async def motion_status(req: MotionStatus):
        resolved = controller.report_motion_status(req.complete, req.jointAngles)
        return {"success": True, "resolved": resolved}

    @app.post("/api/attachment-status")
    async def attachment_status(req: AttachmentStatus):
        resolved = controller.report_attachment_status(req.objectId, req.attached)
        return {"success": True, "resolved": resolved}

    @app.post("/api/objects")
    async def objects(req: ObjectsUpdate):
        applied = controller.sync_object_positions([
            {"id": obj.id, "position": obj.position.model_dump()} for obj in req.objects
        ])
        return {"success": True, "applied": applied}

    @app.get("/api/state")
    async def state():
        snapshot = controller.store.get().to_dict()
        command = controller.channel.pending()
        snapshot["joint_limits"] = [list(limits) for limits in JOINT_LIMITS]
        snapshot["pending_command"] = command.to_dict() if command else None
        snapshot["task"] = controller.slot.to_dict()
        return snapshot

    @app.get("/api/tools")
    async def list_tools():
        return {"tools": tools}

    @app.post("/api/tools/{name}")
    async def call_tool(name: str):
        if not any(tool["name"] == name for tool in tools):
            raise HTTPException(status_code=404, detail="Tool not found")
        if name == "discover_objects":
            return controller.discover_objects()
        if name == "get_environment_info":
            return controller.get_environment_info()
        raise HTTPException(status_code=400, detail="Use the MCP endpoint for task tools")

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "task": controller.slot.state.value,
            "outstanding_commands": controller.channel.outstanding,
        }

    return app


class BridgeServer:
    """Runs the bridge app with uvicorn on a background thread."""

    def __init__(self, app: FastAPI, host: str = "127.0.0.1", port: int = 3000):
        self.app = app
        self.host = host
        self.port = port
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> dict:
        # log_config=None keeps uvicorn on the root logger (stderr); stdout belongs to MCP stdio
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_config=None,
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(target=self._run, daemon=True, name="actuator-bridge")
        self._thread.start()

        # Wait for server to bind
        deadline = time.time() + 5.0
        while not self._server.started and time.time() < deadline:
            time.sleep(0.05)
        logger.info(f"Actuator bridge listening on http://{self.host}:{self.port}")
        return {"success": self._server.started, "url": f"http://{self.host}:{self.port}"}

    def _run(self):
        try:
            asyncio.run(self._server.serve())
        except Exception as e:
            logger.error(f"Actuator bridge error: {e}")

    def stop(self):
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=5.0)
