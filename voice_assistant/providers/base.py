"""Base adapter interface for external service integrations."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from voice_assistant.errors import (
    AuthError,
    RateLimited,
    UpstreamError,
    ValidationError,
    parse_google_error,
)
from voice_assistant.models import Credential, Provider


logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any], Credential], Awaitable[dict]]

VALIDATION_STATUSES = (400, 404, 409, 422)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class BaseAdapter(ABC):
    """Uniform ``execute`` contract over one external API.

    Adapters hold no per-user state: the credential is passed into every call.
    Provider status codes are translated into the shared error taxonomy here so
    callers never inspect provider-specific responses.
    """

    api_name: str = "API"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, timeout: float = 20.0):
        self._transport = transport
        self._timeout = timeout

    @property
    @abstractmethod
    def provider(self) -> Provider:
        """Return the provider this adapter serves."""
        pass

    @abstractmethod
    def handlers(self) -> dict[str, Handler]:
        """Return the action name to coroutine mapping."""
        pass

    @property
    def actions(self) -> frozenset[str]:
        return frozenset(self.handlers())

    def supports(self, action: str) -> bool:
        return action in self.handlers()

    async def execute(self, action: str, parameters: dict[str, Any], credential: Credential) -> dict:
        handler = self.handlers().get(action)
        if handler is None:
            raise ValidationError(f"{self.api_name} does not support '{action}'")
        return await handler(dict(parameters), credential)

    def _auth_headers(self, credential: Credential) -> dict:
        return {"Authorization": f"Bearer {credential.access_token}"}

    def _describe_error(self, response: httpx.Response) -> str:
        return parse_google_error(response.text)

    async def _request(
        self,
        method: str,
        url: str,
        credential: Credential,
        *,
        params: dict | list | None = None,
        json: dict | None = None,
        ok_statuses: tuple[int, ...] = (200, 201, 204),
    ) -> httpx.Response:
        """Send an authenticated request and map failures onto the error taxonomy."""
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._auth_headers(credential),
                )
        except httpx.TimeoutException:
            logger.warning(f"{self.api_name} timed out: {method} {url}")
            raise UpstreamError(f"{self.api_name} did not respond in time")
        except httpx.HTTPError as e:
            logger.warning(f"{self.api_name} unreachable: {method} {url}: {e}")
            raise UpstreamError(f"{self.api_name} is unreachable")

        if response.status_code in ok_statuses:
            return response

        detail = self._describe_error(response)
        logger.warning(f"{self.api_name} error {response.status_code} on {method} {url}: {detail}")

        if response.status_code in (401, 403):
            raise AuthError(f"{self.api_name} rejected the credentials")
        if response.status_code == 429:
            raise RateLimited(
                f"{self.api_name} is rate limiting requests",
                retry_after=_retry_after(response),
            )
        if response.status_code in VALIDATION_STATUSES:
            if response.status_code == 404:
                raise ValidationError(f"{self.api_name} could not find that")
            raise ValidationError(f"{self.api_name} rejected the request")
        raise UpstreamError(f"{self.api_name} error (HTTP {response.status_code})")


def require(parameters: dict[str, Any], *names: str) -> None:
    """Raise ValidationError if any of the named parameters is missing or blank."""
    missing = [n for n in names if parameters.get(n) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required parameter(s): {', '.join(missing)}")
