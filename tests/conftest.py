"""Shared test fixtures: fake refreshers, scripted adapters and a wired dispatcher."""

import time
from typing import Any

import pytest

from voice_assistant.auth.google import TokenData
from voice_assistant.credentials import CredentialStore
from voice_assistant.dispatch import Dispatcher, RetryPolicy
from voice_assistant.history import HistorySink
from voice_assistant.models import SUPPORTED_ACTIONS, Credential, Provider
from voice_assistant.providers.base import BaseAdapter, Handler


class FakeRefresher:
    """Counts refresh calls; fails when ``error`` is set."""

    def __init__(self, error: Exception | None = None, lifetime: int = 3600):
        self.calls: list[str] = []
        self.error = error
        self.lifetime = lifetime

    async def refresh_token(self, refresh_token: str) -> TokenData:
        self.calls.append(refresh_token)
        if self.error is not None:
            raise self.error
        return TokenData(
            access_token=f"fresh-{len(self.calls)}",
            refresh_token=refresh_token,
            expires_at=int(time.time()) + self.lifetime,
        )


class ScriptedAdapter(BaseAdapter):
    """Adapter whose outcomes come from a script: exceptions are raised, anything else returned."""

    def __init__(self, provider: Provider, script: list[Any] | None = None, gate=None):
        super().__init__()
        self._provider = provider
        self.script = list(script or [])
        self.gate = gate
        self.calls: list[tuple[dict, Credential]] = []

    @property
    def provider(self) -> Provider:
        return self._provider

    def handlers(self) -> dict[str, Handler]:
        return {action: self._handle for action in SUPPORTED_ACTIONS[self._provider]}

    async def _handle(self, params: dict, credential: Credential) -> dict:
        self.calls.append((params, credential))
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.script.pop(0) if self.script else {"ok": True}
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_credential(
    user_id: str = "42",
    provider: Provider = Provider.CALENDAR,
    expires_in: int = 3600,
    refresh_token: str | None = "refresh-1",
    access_token: str = "access-1",
) -> Credential:
    return Credential(
        user_id=user_id,
        provider=provider,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=int(time.time()) + expires_in,
    )


@pytest.fixture
def refresher():
    return FakeRefresher()


@pytest.fixture
def store(refresher):
    return CredentialStore({p: refresher for p in Provider}, expiry_buffer_seconds=60)


@pytest.fixture
def history():
    return HistorySink()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_dispatcher(store, history, sleeps):
    """Build a dispatcher around the given adapters with a recording sleep."""

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    def _make(*adapters: BaseAdapter, timeout: float | None = 5.0, max_attempts: int = 3) -> Dispatcher:
        return Dispatcher(
            {a.provider: a for a in adapters},
            store,
            history,
            retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=0.5, max_delay=8.0),
            default_timeout=timeout,
            sleep=fake_sleep,
        )

    return _make
