"""MCP server - exposes the assistant's actions as tools for AI clients.

Tools go through the same dispatcher as voice commands and the REST routes,
so they share the Credential Store, retries, de-duplication and history.
The HTTP transport is mounted by the FastAPI app under
``/mcp/voice-assistant``; ``voice_assistant.mcp_stdio`` runs it locally.
"""

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from fastmcp import FastMCP
from pydantic import Field
from starlette.middleware.base import BaseHTTPMiddleware

from voice_assistant.config import settings
from voice_assistant.dependencies import get_assistant
from voice_assistant.errors import VoiceAssistantError
from voice_assistant.models import SUPPORTED_ACTIONS
from voice_assistant.service import CommandError, CommandOutcome, outcome_from_result


logger = logging.getLogger(__name__)

mcp = FastMCP(name="VoiceAssistant")


@mcp.tool()
async def voice_command(
    text: str = Field(..., description="What the user said, e.g. 'what's on my calendar tomorrow'"),
    user_id: str = Field(..., description="The user the command runs for"),
    idempotency_key: str | None = Field(None, description="Repeat-safe key for commands with side effects"),
) -> dict[str, Any]:
    """Interpret a spoken command and run it against Calendar, Gmail, YouTube or Amazon Music."""
    outcome = await get_assistant().process_command(text, user_id, idempotency_key=idempotency_key)
    return outcome.model_dump(mode="json")


@mcp.tool()
async def run_action(
    provider: str = Field(..., description="calendar, gmail, youtube or amazon_music"),
    action: str = Field(..., description="One of the provider's actions, see supported_actions"),
    user_id: str = Field(..., description="The user the action runs for"),
    parameters: dict[str, Any] | None = Field(None, description="Action parameters"),
    idempotency_key: str | None = Field(None, description="Repeat-safe key for actions with side effects"),
) -> dict[str, Any]:
    """Run one structured action, e.g. calendar.createEvent with title, start and end."""
    assistant = get_assistant()
    try:
        intent = assistant.interpreter.structured(provider, action, parameters or {}, user_id)
    except VoiceAssistantError as e:
        outcome = CommandOutcome(success=False, error=CommandError(kind=e.kind, message=e.message))
        return outcome.model_dump(mode="json")

    result = await assistant.execute(intent, idempotency_key=idempotency_key)
    return outcome_from_result(intent, result).model_dump(mode="json")


@mcp.tool()
async def supported_actions() -> dict[str, list[str]]:
    """Actions each provider supports."""
    return {p.value: sorted(actions) for p, actions in SUPPORTED_ACTIONS.items()}


@mcp.tool()
async def connected_services(
    user_id: str = Field(..., description="The user to check"),
) -> dict[str, Any]:
    """Providers the user has connected an account for."""
    connected = get_assistant().credentials.connected(user_id)
    return {"user_id": user_id, "connected": [p.value for p in connected]}


class MCPAuthMiddleware(BaseHTTPMiddleware):
    """Require X-API-Key (or a Bearer token with the same value) when API_KEY is set."""

    async def dispatch(self, request: Request, call_next):
        if not settings.api_key:
            return await call_next(request)

        provided = request.headers.get("x-api-key")
        auth_header = request.headers.get("authorization", "")
        if not provided and auth_header.startswith("Bearer "):
            provided = auth_header[len("Bearer "):].strip()

        if not provided or not secrets.compare_digest(provided, settings.api_key):
            logger.warning("Unauthorized MCP request blocked")
            return JSONResponse(status_code=401, content={"detail": "Invalid or missing API key"})
        return await call_next(request)


class MCPMount:
    """ASGI app mounted on the FastAPI app that serves the MCP HTTP transport.

    The transport's session manager can only run once, so a fresh MCP app is
    built for every application lifespan.
    """

    def __init__(self, server: FastMCP):
        self.server = server
        self.app = None

    @asynccontextmanager
    async def lifespan(self, application):
        mcp_app = self.server.http_app(path="/")
        mcp_app.add_middleware(MCPAuthMiddleware)
        async with mcp_app.lifespan(application):
            self.app = mcp_app
            try:
                yield
            finally:
                self.app = None

    async def __call__(self, scope, receive, send):
        if self.app is None:
            response = JSONResponse(status_code=503, content={"detail": "MCP server is not running"})
            await response(scope, receive, send)
            return
        await self.app(scope, receive, send)


mcp_mount = MCPMount(mcp)
