"""Core data types: intents, credentials, dispatch results and history entries."""

import hashlib
import json
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from voice_assistant.errors import ErrorKind


class Provider(str, Enum):
    CALENDAR = "calendar"
    GMAIL = "gmail"
    YOUTUBE = "youtube"
    AMAZON_MUSIC = "amazon_music"


GOOGLE_PROVIDERS = (Provider.CALENDAR, Provider.GMAIL, Provider.YOUTUBE)

SUPPORTED_ACTIONS: dict[Provider, frozenset[str]] = {
    Provider.CALENDAR: frozenset({"listEvents", "createEvent", "updateEvent", "deleteEvent"}),
    Provider.GMAIL: frozenset({"listMessages", "getMessage", "sendMessage"}),
    Provider.YOUTUBE: frozenset({"search", "getVideo", "createPlaylist"}),
    Provider.AMAZON_MUSIC: frozenset({"search", "play", "getPlaylists"}),
}


def is_supported(provider: Provider, action: str) -> bool:
    return action in SUPPORTED_ACTIONS.get(provider, frozenset())


class Intent(BaseModel):
    """A normalized request: which provider, which action, with what parameters, for whom."""
    model_config = ConfigDict(frozen=True)

    provider: Provider
    action: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    user_id: str

    def fingerprint(self) -> str:
        """Stable digest of the action and parameters, used to collapse duplicate commands."""
        raw = json.dumps(
            {"action": self.action, "parameters": self.parameters},
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


class Credential(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    provider: Provider
    access_token: str
    refresh_token: str | None = None
    expires_at: int
    scope: str | None = None

    def is_expired(self, buffer_seconds: int = 0, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return current >= (self.expires_at - buffer_seconds)


class DispatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    command_id: str
    success: bool
    payload: Any = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    attempts: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    command_id: str
    user_id: str
    intent: Intent
    result: DispatchResult
    timestamp: datetime = Field(default_factory=_utcnow)


class FeedbackEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    command_id: str
    user_id: str
    rating: int = Field(ge=1, le=5)
    comment: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)
