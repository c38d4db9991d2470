"""Shared FastAPI dependencies."""

import secrets

from fastapi import Header, HTTPException

from voice_assistant.config import settings
from voice_assistant.service import VoiceAssistant, build_assistant

_assistant: VoiceAssistant | None = None


async def verify_api_key(x_api_key: str | None = Header(default=None)):
    """Require X-API-Key when API_KEY is configured."""
    if not settings.api_key:
        return
    if not x_api_key or not secrets.compare_digest(x_api_key, settings.api_key):
        raise HTTPException(401, "Invalid or missing API key")


def get_assistant() -> VoiceAssistant:
    global _assistant
    if _assistant is None:
        _assistant = build_assistant(settings)
    return _assistant
