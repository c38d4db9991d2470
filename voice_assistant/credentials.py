"""Per-user, per-provider OAuth credential store with serialized token refresh."""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from typing import Protocol

from voice_assistant.auth.google import TokenData
from voice_assistant.errors import NotAuthenticated, RefreshFailed
from voice_assistant.models import Credential, Provider


logger = logging.getLogger(__name__)


class TokenRefresher(Protocol):
    async def refresh_token(self, refresh_token: str) -> TokenData: ...


class CredentialStore:
    """Holds the current credential for each (user, provider).

    Stored credentials are immutable values; a refresh builds a new one and
    swaps it in under the user's lock, so a failed or cancelled refresh leaves
    the previous credential untouched.
    """

    def __init__(
        self,
        refreshers: Mapping[Provider, TokenRefresher],
        expiry_buffer_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self._refreshers = dict(refreshers)
        self._buffer = expiry_buffer_seconds
        self._clock = clock
        self._credentials: dict[tuple[str, Provider], Credential] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    async def seed(self, credential: Credential) -> None:
        """Store a credential handed over by an OAuth callback."""
        async with self._lock_for(credential.user_id):
            self._credentials[(credential.user_id, credential.provider)] = credential
        logger.info(f"Stored {credential.provider.value} credential for user {credential.user_id}")

    async def revoke(self, user_id: str, provider: Provider) -> bool:
        lock = self._lock_for(user_id)
        async with lock:
            removed = self._credentials.pop((user_id, provider), None)
        if not self.connected(user_id) and not lock.locked() and self._locks.get(user_id) is lock:
            del self._locks[user_id]
        return removed is not None

    async def get(self, user_id: str, provider: Provider) -> Credential:
        credential = self._credentials.get((user_id, provider))
        if credential is None:
            raise NotAuthenticated(f"Please connect your {_display_name(provider)} account first")
        return credential

    def connected(self, user_id: str) -> list[Provider]:
        return [provider for (uid, provider) in self._credentials if uid == user_id]

    def is_expired(self, credential: Credential) -> bool:
        return credential.is_expired(self._buffer, now=self._clock())

    async def refresh_if_expired(self, credential: Credential, force: bool = False) -> Credential:
        """Return a usable credential, refreshing it at most once.

        With ``force`` the token is refreshed even if it has not expired yet
        (used after the provider rejected it), unless another task already
        replaced the stored credential in the meantime.
        """
        if not force and not self.is_expired(credential):
            return credential

        key = (credential.user_id, credential.provider)
        async with self._lock_for(credential.user_id):
            current = self._credentials.get(key)
            if current is None:
                raise NotAuthenticated(
                    f"Please connect your {_display_name(credential.provider)} account first"
                )

            # Another dispatch refreshed while we waited for the lock
            if current != credential and not self.is_expired(current):
                return current

            refresher = self._refreshers.get(credential.provider)
            if refresher is None or not current.refresh_token:
                logger.warning(
                    f"Cannot refresh {credential.provider.value} credential for user "
                    f"{credential.user_id}: no refresh token"
                )
                raise RefreshFailed()

            try:
                token = await refresher.refresh_token(current.refresh_token)
            except Exception as e:
                logger.warning(
                    f"Token refresh failed for {credential.provider.value} "
                    f"user {credential.user_id}: {e}"
                )
                raise RefreshFailed() from e

            refreshed = Credential(
                user_id=current.user_id,
                provider=current.provider,
                access_token=token.access_token,
                refresh_token=token.refresh_token or current.refresh_token,
                expires_at=token.expires_at,
                scope=token.scope or current.scope,
            )
            self._credentials[key] = refreshed

        logger.info(f"Refreshed {credential.provider.value} credential for user {credential.user_id}")
        return refreshed


def _display_name(provider: Provider) -> str:
    return {
        Provider.CALENDAR: "Google Calendar",
        Provider.GMAIL: "Gmail",
        Provider.YOUTUBE: "YouTube",
        Provider.AMAZON_MUSIC: "Amazon Music",
    }[provider]
