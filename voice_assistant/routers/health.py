from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from voice_assistant import __version__
from voice_assistant.config import settings


router = APIRouter(tags=["health"])

_startup_time = datetime.now(timezone.utc)


class EndpointInfo(BaseModel):
    path: str
    description: str
    provider: str | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    endpoints: list[EndpointInfo]


class IntegrationStatus(BaseModel):
    connected: bool
    status: str
    last_check: str | None = None


class IntegrationsResponse(BaseModel):
    google_calendar: IntegrationStatus
    gmail: IntegrationStatus
    youtube: IntegrationStatus
    amazon_music: IntegrationStatus


ENDPOINTS = [
    EndpointInfo(path="/health", description="Service status and API directory"),
    EndpointInfo(path="/health/integrations", description="OAuth client configuration status"),
    EndpointInfo(path="/voice", description="Voice commands, history and feedback"),
    EndpointInfo(path="/auth", description="Credential seeding from OAuth callbacks"),
    EndpointInfo(path="/mcp/voice-assistant", description="MCP tools for AI clients"),
    EndpointInfo(path="/google/calendar", description="Calendar events", provider="Google Calendar"),
    EndpointInfo(path="/google/gmail", description="Email access", provider="Gmail"),
    EndpointInfo(path="/youtube", description="Video search and playlists", provider="YouTube"),
    EndpointInfo(path="/amazon/music", description="Music search and playback", provider="Amazon Music"),
]


def _check_google_services() -> IntegrationStatus:
    if not settings.google_client_id or not settings.google_client_secret:
        return IntegrationStatus(connected=False, status="credentials not configured")
    return IntegrationStatus(
        connected=True,
        status="ok",
        last_check=datetime.now(timezone.utc).isoformat(),
    )


def _check_amazon_music() -> IntegrationStatus:
    if not settings.amazon_client_id or not settings.amazon_client_secret:
        return IntegrationStatus(connected=False, status="credentials not configured")
    if not settings.amazon_music_api_key:
        return IntegrationStatus(connected=False, status="api key not configured")
    return IntegrationStatus(
        connected=True,
        status="ok",
        last_check=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check():
    uptime = (datetime.now(timezone.utc) - _startup_time).total_seconds()

    return HealthResponse(
        status="ok",
        version=__version__,
        uptime_seconds=round(uptime, 2),
        endpoints=ENDPOINTS,
    )


@router.get("/health/integrations", response_model=IntegrationsResponse)
async def get_integrations():
    google_status = _check_google_services()

    return IntegrationsResponse(
        google_calendar=google_status,
        gmail=google_status,
        youtube=google_status,
        amazon_music=_check_amazon_music(),
    )
