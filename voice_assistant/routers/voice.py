"""Voice command endpoints - command, history, feedback, status."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from voice_assistant.config import settings
from voice_assistant.dependencies import get_assistant
from voice_assistant.models import SUPPORTED_ACTIONS, FeedbackEntry, HistoryEntry, Provider
from voice_assistant.service import CommandOutcome, VoiceAssistant


logger = logging.getLogger(__name__)
router = APIRouter()

limiter = Limiter(key_func=get_remote_address)


class CommandRequest(BaseModel):
    text: str
    user_id: str = Field(..., min_length=1)
    idempotency_key: str | None = Field(None, max_length=128)
    timeout_seconds: float | None = Field(None, gt=0, le=120)


class HistoryResponse(BaseModel):
    user_id: str
    entries: list[HistoryEntry]
    feedback: list[FeedbackEntry]
    count: int


class FeedbackRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    command_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=1000)


class StatusResponse(BaseModel):
    user_id: str
    connected: list[Provider]
    supported_actions: dict[Provider, list[str]]


@router.post("/command", response_model=CommandOutcome)
@limiter.limit(settings.command_rate_limit)
async def process_command(
    request: Request,
    command: CommandRequest,
    assistant: VoiceAssistant = Depends(get_assistant),
):
    """Interpret a spoken command and run it against the matching service."""
    outcome = await assistant.process_command(
        command.text,
        command.user_id,
        idempotency_key=command.idempotency_key,
        timeout=command.timeout_seconds,
    )
    if not outcome.success:
        logger.info(f"Command failed for user {command.user_id}: {outcome.error.kind.value}")
    return outcome


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    user_id: str = Query(..., min_length=1),
    limit: int = Query(default=50, ge=1, le=500),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    """Command history for a user, oldest first."""
    entries = assistant.history.entries(user_id, limit)
    return HistoryResponse(
        user_id=user_id,
        entries=entries,
        feedback=assistant.history.feedback(user_id),
        count=len(entries),
    )


@router.post("/feedback", response_model=FeedbackEntry, status_code=201)
async def submit_feedback(
    body: FeedbackRequest,
    assistant: VoiceAssistant = Depends(get_assistant),
):
    """Rate the outcome of a previous command."""
    try:
        return assistant.history.record_feedback(body.user_id, body.command_id, body.rating, body.comment)
    except KeyError:
        raise HTTPException(404, "Command not found")


@router.get("/status", response_model=StatusResponse)
async def voice_status(
    user_id: str = Query(..., min_length=1),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    """Connected services and supported actions for a user."""
    return StatusResponse(
        user_id=user_id,
        connected=assistant.credentials.connected(user_id),
        supported_actions={p: sorted(actions) for p, actions in SUPPORTED_ACTIONS.items()},
    )
