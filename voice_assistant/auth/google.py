"""Google OAuth 2.0 client for Calendar, Gmail and YouTube credentials."""

import time
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from voice_assistant.config import settings
from voice_assistant.models import Provider


GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

SCOPES = {
    Provider.CALENDAR: [
        "https://www.googleapis.com/auth/calendar.readonly",
        "https://www.googleapis.com/auth/calendar.events",
    ],
    Provider.GMAIL: [
        "https://www.googleapis.com/auth/gmail.readonly",
        "https://www.googleapis.com/auth/gmail.send",
    ],
    Provider.YOUTUBE: [
        "https://www.googleapis.com/auth/youtube",
    ],
}

ALL_SCOPES = [scope for scopes in SCOPES.values() for scope in scopes]


def scopes_for(*providers: Provider) -> list[str]:
    """Scopes to request for a subset of the Google services."""
    return [scope for provider in providers for scope in SCOPES[provider]]


class TokenData(BaseModel):
    """Tokens returned by an OAuth token endpoint, with an absolute expiry."""

    access_token: str
    refresh_token: str | None = None
    expires_at: int
    token_type: str = "Bearer"
    scope: str | None = None

    @classmethod
    def from_response(cls, data: dict, refresh_token: str | None = None, scope: str | None = None) -> "TokenData":
        return cls(
            access_token=data["access_token"],
            # Token endpoints omit the refresh token unless they rotate it
            refresh_token=data.get("refresh_token", refresh_token),
            expires_at=int(time.time()) + data.get("expires_in", 3600),
            token_type=data.get("token_type", "Bearer").capitalize(),
            scope=data.get("scope", scope),
        )


class GoogleOAuth:
    def __init__(
        self,
        scopes: list[str] | None = None,
        redirect_uri: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.scopes = scopes or ALL_SCOPES
        self.redirect_uri = redirect_uri or settings.google_redirect_uri
        self._transport = transport

    def get_auth_url(self, state: str | None = None) -> str:
        # offline + consent so Google always hands back a refresh token
        params = {
            "client_id": settings.google_client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state

        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def _token_request(self, grant: dict) -> dict:
        payload = {
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            **grant,
        }
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(GOOGLE_TOKEN_URL, data=payload)
            response.raise_for_status()
            return response.json()

    async def exchange_code(self, code: str) -> TokenData:
        data = await self._token_request({
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        })
        return TokenData.from_response(data)

    async def refresh_token(self, refresh_token: str) -> TokenData:
        data = await self._token_request({
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })
        return TokenData.from_response(data, refresh_token=refresh_token)
