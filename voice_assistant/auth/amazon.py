"""Login with Amazon OAuth 2.0 client for Amazon Music credentials."""

from urllib.parse import urlencode

import httpx

from voice_assistant.auth.google import TokenData
from voice_assistant.config import settings


AMAZON_AUTH_URL = "https://www.amazon.com/ap/oa"
AMAZON_TOKEN_URL = "https://api.amazon.com/auth/o2/token"

MUSIC_SCOPES = [
    "profile",
    "amazon_music:access",
]


class AmazonOAuth:
    def __init__(
        self,
        scopes: list[str] | None = None,
        redirect_uri: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.scopes = scopes or MUSIC_SCOPES
        self.redirect_uri = redirect_uri or settings.amazon_redirect_uri
        self._transport = transport

    def get_auth_url(self, state: str | None = None) -> str:
        params = {
            "client_id": settings.amazon_client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
        }
        if state:
            params["state"] = state

        return f"{AMAZON_AUTH_URL}?{urlencode(params)}"

    async def _token_request(self, payload: dict) -> dict:
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(AMAZON_TOKEN_URL, data=payload)
            response.raise_for_status()
            return response.json()

    async def exchange_code(self, code: str) -> TokenData:
        data = await self._token_request({
            "client_id": settings.amazon_client_id,
            "client_secret": settings.amazon_client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        })
        return TokenData.from_response(data, scope=" ".join(self.scopes))

    async def refresh_token(self, refresh_token: str) -> TokenData:
        # LWA rotates refresh tokens on every refresh
        data = await self._token_request({
            "client_id": settings.amazon_client_id,
            "client_secret": settings.amazon_client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })
        return TokenData.from_response(data, refresh_token=refresh_token, scope=" ".join(self.scopes))
