"""Credential seeding - OAuth callback collaborators hand tokens to the assistant here."""

import time

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, model_validator

from voice_assistant.dependencies import get_assistant
from voice_assistant.models import GOOGLE_PROVIDERS, Credential, Provider
from voice_assistant.service import VoiceAssistant

router = APIRouter()


class CredentialSeed(BaseModel):
    user_id: str = Field(..., min_length=1)
    # "google" seeds Calendar, Gmail and YouTube from one consent
    provider: str
    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    expires_at: int | None = None
    expires_in: int | None = Field(None, gt=0)
    scope: str | None = None

    @model_validator(mode="after")
    def check_expiry(self):
        if self.expires_at is None and self.expires_in is None:
            raise ValueError("expires_at or expires_in is required")
        return self


class SeedResponse(BaseModel):
    user_id: str
    providers: list[Provider]
    expires_at: int


def _providers(name: str) -> list[Provider]:
    if name == "google":
        return list(GOOGLE_PROVIDERS)
    try:
        return [Provider(name)]
    except ValueError:
        raise HTTPException(422, f"Unknown provider: {name}")


@router.post("/credentials", response_model=SeedResponse, status_code=201)
async def seed_credentials(body: CredentialSeed, assistant: VoiceAssistant = Depends(get_assistant)):
    """Store tokens obtained by an OAuth callback."""
    providers = _providers(body.provider)
    expires_at = body.expires_at if body.expires_at is not None else int(time.time()) + body.expires_in

    for provider in providers:
        await assistant.credentials.seed(Credential(
            user_id=body.user_id,
            provider=provider,
            access_token=body.access_token,
            refresh_token=body.refresh_token,
            expires_at=expires_at,
            scope=body.scope,
        ))

    return SeedResponse(user_id=body.user_id, providers=providers, expires_at=expires_at)


@router.delete("/credentials/{provider}", status_code=204)
async def revoke_credentials(
    provider: str,
    user_id: str = Query(..., min_length=1),
    assistant: VoiceAssistant = Depends(get_assistant),
):
    """Forget stored tokens for a provider (or all Google providers)."""
    removed = [await assistant.credentials.revoke(user_id, p) for p in _providers(provider)]
    if not any(removed):
        raise HTTPException(404, "No stored credentials")
