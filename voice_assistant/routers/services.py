"""Direct service endpoints - structured intents for Calendar, Gmail, YouTube and Amazon Music.

These go through the same dispatcher as voice commands, so they share
credential refresh, retries, de-duplication and history.
"""

from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from voice_assistant.dependencies import get_assistant
from voice_assistant.errors import ErrorKind, VoiceAssistantError
from voice_assistant.models import Provider
from voice_assistant.service import VoiceAssistant

google_router = APIRouter()
youtube_router = APIRouter()
amazon_music_router = APIRouter()

HTTP_STATUS = {
    ErrorKind.PARSE_ERROR: 400,
    ErrorKind.UNSUPPORTED_INTENT: 400,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.NOT_AUTHENTICATED: 401,
    ErrorKind.REFRESH_FAILED: 401,
    ErrorKind.AUTH_ERROR: 401,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPSTREAM_ERROR: 502,
    ErrorKind.TIMEOUT: 504,
}


async def _run(
    assistant: VoiceAssistant,
    provider: Provider,
    action: str,
    user_id: str,
    parameters: dict[str, Any],
    idempotency_key: str | None = None,
) -> Any:
    try:
        intent = assistant.interpreter.structured(provider, action, parameters, user_id)
    except VoiceAssistantError as e:
        raise HTTPException(HTTP_STATUS[e.kind], e.message)

    result = await assistant.execute(intent, idempotency_key=idempotency_key)
    if not result.success:
        kind = result.error_kind or ErrorKind.UPSTREAM_ERROR
        raise HTTPException(HTTP_STATUS[kind], {"kind": kind.value, "message": result.message})
    return result.payload


# Google Calendar

class CreateEventRequest(BaseModel):
    user_id: str
    title: str
    start: str                  # ISO 8601 datetime or date
    end: str                    # ISO 8601 datetime or date
    all_day: bool = False
    location: str | None = None
    description: str | None = None
    timezone: str | None = None


class UpdateEventRequest(BaseModel):
    user_id: str
    title: str | None = None
    start: str | None = None
    end: str | None = None
    location: str | None = None
    description: str | None = None
    timezone: str | None = None


@google_router.get("/calendar/events")
async def get_events(
    user_id: str = Query(..., min_length=1),
    date: str | None = Query(default=None, description="Start date (YYYY-MM-DD), defaults to today"),
    days: int = Query(default=7, ge=1, le=30),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    """Calendar events for the next N days."""
    return await _run(assistant, Provider.CALENDAR, "listEvents", user_id, {"date": date, "days": days})


@google_router.post("/calendar/events", status_code=201)
async def create_event(
    body: CreateEventRequest,
    idempotency_key: str | None = Header(default=None),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    params = body.model_dump(exclude={"user_id"})
    return await _run(assistant, Provider.CALENDAR, "createEvent", body.user_id, params, idempotency_key)


@google_router.put("/calendar/events/{event_id}")
async def update_event(
    event_id: str,
    body: UpdateEventRequest,
    assistant: VoiceAssistant = Depends(get_assistant),
):
    params = {"event_id": event_id, **body.model_dump(exclude={"user_id"})}
    return await _run(assistant, Provider.CALENDAR, "updateEvent", body.user_id, params)


@google_router.delete("/calendar/events/{event_id}")
async def delete_event(
    event_id: str,
    user_id: str = Query(..., min_length=1),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    return await _run(assistant, Provider.CALENDAR, "deleteEvent", user_id, {"event_id": event_id})


# Gmail

class SendMessageRequest(BaseModel):
    user_id: str
    to: str
    subject: str | None = None
    body: str
    cc: str | None = None


@google_router.get("/gmail/messages")
async def get_messages(
    user_id: str = Query(..., min_length=1),
    q: str | None = Query(default=None, description="Gmail search query, e.g. 'from:alice is:unread'"),
    max_results: int = Query(default=20, ge=1, le=50),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    params = {"query": q, "max_results": max_results}
    return await _run(assistant, Provider.GMAIL, "listMessages", user_id, params)


@google_router.post("/gmail/messages", status_code=201)
async def send_message(
    body: SendMessageRequest,
    idempotency_key: str | None = Header(default=None),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    params = body.model_dump(exclude={"user_id"})
    return await _run(assistant, Provider.GMAIL, "sendMessage", body.user_id, params, idempotency_key)


@google_router.get("/gmail/messages/{message_id}")
async def get_message(
    message_id: str,
    user_id: str = Query(..., min_length=1),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    return await _run(assistant, Provider.GMAIL, "getMessage", user_id, {"message_id": message_id})


# YouTube

class CreatePlaylistRequest(BaseModel):
    user_id: str
    title: str = Field(..., min_length=1, max_length=150)
    description: str | None = None
    privacy: str = "private"


@youtube_router.get("/search")
async def search_videos(
    user_id: str = Query(..., min_length=1),
    q: str = Query(..., min_length=1),
    max_results: int = Query(default=5, ge=1, le=25),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    params = {"query": q, "max_results": max_results}
    return await _run(assistant, Provider.YOUTUBE, "search", user_id, params)


@youtube_router.get("/video/{video_id}")
async def get_video(
    video_id: str,
    user_id: str = Query(..., min_length=1),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    return await _run(assistant, Provider.YOUTUBE, "getVideo", user_id, {"video_id": video_id})


@youtube_router.post("/playlist", status_code=201)
async def create_playlist(
    body: CreatePlaylistRequest,
    idempotency_key: str | None = Header(default=None),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    params = body.model_dump(exclude={"user_id"})
    return await _run(assistant, Provider.YOUTUBE, "createPlaylist", body.user_id, params, idempotency_key)


# Amazon Music

class PlayRequest(BaseModel):
    user_id: str
    query: str | None = None
    track_id: str | None = None
    device_id: str | None = None


@amazon_music_router.get("/search")
async def search_music(
    user_id: str = Query(..., min_length=1),
    q: str = Query(..., min_length=1),
    limit: int = Query(default=10, ge=1, le=50),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    return await _run(assistant, Provider.AMAZON_MUSIC, "search", user_id, {"query": q, "limit": limit})


@amazon_music_router.post("/play")
async def play(body: PlayRequest, assistant: VoiceAssistant = Depends(get_assistant)):
    if not body.query and not body.track_id:
        raise HTTPException(400, "query or track_id is required")
    params = body.model_dump(exclude={"user_id"})
    return await _run(assistant, Provider.AMAZON_MUSIC, "play", body.user_id, params)


@amazon_music_router.get("/playlists")
async def get_playlists(
    user_id: str = Query(..., min_length=1),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    return await _run(assistant, Provider.AMAZON_MUSIC, "getPlaylists", user_id, {})
