"""Dispatch core - routes an intent to its adapter with auth, retries and de-duplication."""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum

from pydantic import BaseModel

from voice_assistant.credentials import CredentialStore
from voice_assistant.errors import (
    AuthError,
    DispatchTimeout,
    RateLimited,
    UnsupportedIntent,
    UpstreamError,
    VoiceAssistantError,
)
from voice_assistant.history import HistorySink
from voice_assistant.models import DispatchResult, Intent, Provider
from voice_assistant.providers.base import BaseAdapter


logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    RECEIVED = "received"
    AUTHORIZING = "authorizing"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RetryPolicy(BaseModel):
    """Exponential backoff for rate-limited calls."""
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    multiplier: float = 2.0

    def delay(self, attempt: int, retry_after: float | None = None, previous: float = 0.0) -> float:
        """Delay before retry number ``attempt`` (1-based); never shorter than ``previous``."""
        computed = min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))
        if retry_after is not None:
            computed = max(computed, min(retry_after, self.max_delay))
        return max(previous, computed)


class _Attempts:
    def __init__(self):
        self.count = 0


class Dispatcher:
    """Runs one dispatch per (user, provider, idempotency key) at a time.

    A dispatch moves through Received -> Authorizing -> Executing and ends in
    Succeeded or Failed. Failures come back as a failed ``DispatchResult``;
    ``dispatch`` does not raise for them.
    """

    def __init__(
        self,
        adapters: Mapping[Provider, BaseAdapter],
        credentials: CredentialStore,
        history: HistorySink,
        retry_policy: RetryPolicy | None = None,
        default_timeout: float | None = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.adapters = dict(adapters)
        self.credentials = credentials
        self.history = history
        self.retry_policy = retry_policy or RetryPolicy()
        self.default_timeout = default_timeout
        self._sleep = sleep
        self._in_flight: dict[tuple[str, Provider, str], asyncio.Task] = {}

    def in_flight(self) -> int:
        return len(self._in_flight)

    async def dispatch(
        self,
        intent: Intent,
        idempotency_key: str | None = None,
        timeout: float | None = None,
    ) -> DispatchResult:
        key = (intent.user_id, intent.provider, idempotency_key or intent.fingerprint())

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._run(intent, timeout))
            self._in_flight[key] = task

            def _release(t: asyncio.Task) -> None:
                if self._in_flight.get(key) is t:
                    del self._in_flight[key]

            task.add_done_callback(_release)
        else:
            logger.info(
                f"Joining in-flight dispatch for user {intent.user_id} ({intent.provider.value}.{intent.action})"
            )
            if timeout is not None:
                return await self._join(task, timeout)

        # A caller giving up must not cancel the dispatch other callers share
        return await asyncio.shield(task)

    async def _join(self, task: asyncio.Task, timeout: float) -> DispatchResult:
        """Wait on a shared dispatch for at most this caller's own timeout."""
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Gave up waiting on a shared dispatch after {timeout}s")
            # The shared dispatch keeps running and records its own history entry
            error = DispatchTimeout()
            return DispatchResult(
                command_id=uuid.uuid4().hex,
                success=False,
                error_kind=error.kind,
                message=error.message,
            )

    async def _run(self, intent: Intent, timeout: float | None) -> DispatchResult:
        command_id = uuid.uuid4().hex
        attempts = _Attempts()
        limit = timeout if timeout is not None else self.default_timeout

        try:
            payload = await asyncio.wait_for(self._execute(intent, command_id, attempts), limit)
            result = DispatchResult(
                command_id=command_id,
                success=True,
                payload=payload,
                attempts=attempts.count,
            )
            self._transition(command_id, DispatchState.SUCCEEDED)
        except asyncio.TimeoutError:
            logger.warning(f"Dispatch {command_id} timed out after {limit}s")
            result = self._failed(command_id, DispatchTimeout(), attempts)
        except VoiceAssistantError as e:
            result = self._failed(command_id, e, attempts)
        except Exception:
            logger.exception(f"Unexpected error in dispatch {command_id}")
            result = self._failed(command_id, UpstreamError(), attempts)

        self.history.record(intent, result)
        return result

    def _failed(self, command_id: str, error: VoiceAssistantError, attempts: _Attempts) -> DispatchResult:
        self._transition(command_id, DispatchState.FAILED, error.kind.value)
        return DispatchResult(
            command_id=command_id,
            success=False,
            error_kind=error.kind,
            message=error.message,
            attempts=attempts.count,
        )

    def _transition(self, command_id: str, state: DispatchState, detail: str = "") -> None:
        logger.debug(f"Dispatch {command_id} -> {state.value}{f' ({detail})' if detail else ''}")

    def _precheck(self, intent: Intent) -> BaseAdapter:
        adapter = self.adapters.get(intent.provider)
        if adapter is None:
            raise UnsupportedIntent(f"{intent.provider.value} is not enabled")
        if not adapter.supports(intent.action):
            raise UnsupportedIntent(f"{intent.provider.value} does not support '{intent.action}'")
        return adapter

    async def _execute(self, intent: Intent, command_id: str, attempts: _Attempts):
        adapter = self._precheck(intent)
        self._transition(command_id, DispatchState.RECEIVED, f"{intent.provider.value}.{intent.action}")

        self._transition(command_id, DispatchState.AUTHORIZING)
        credential = await self.credentials.get(intent.user_id, intent.provider)
        credential = await self.credentials.refresh_if_expired(credential)

        self._transition(command_id, DispatchState.EXECUTING)
        auth_retried = False
        rate_limited = 0
        delay = 0.0

        while True:
            attempts.count += 1
            try:
                return await adapter.execute(intent.action, intent.parameters, credential)
            except AuthError:
                if auth_retried:
                    raise
                auth_retried = True
                logger.info(f"Dispatch {command_id}: credentials rejected, refreshing once")
                credential = await self.credentials.refresh_if_expired(credential, force=True)
            except RateLimited as e:
                rate_limited += 1
                if rate_limited >= self.retry_policy.max_attempts:
                    raise
                delay = self.retry_policy.delay(rate_limited, e.retry_after, delay)
                logger.info(
                    f"Dispatch {command_id}: rate limited "
                    f"(attempt {rate_limited}/{self.retry_policy.max_attempts}), retrying in {delay:.2f}s"
                )
                await self._sleep(delay)
