"""Voice assistant facade - wires interpreter, credentials, adapters, dispatcher and history."""

import logging
from typing import Any

from pydantic import BaseModel

from voice_assistant.auth import AmazonOAuth, GoogleOAuth
from voice_assistant.config import Settings
from voice_assistant.credentials import CredentialStore
from voice_assistant.dispatch import Dispatcher, RetryPolicy
from voice_assistant.errors import ErrorKind, VoiceAssistantError
from voice_assistant.history import HistorySink, InMemoryHistoryBackend
from voice_assistant.interpreter import CommandInterpreter
from voice_assistant.models import GOOGLE_PROVIDERS, DispatchResult, Intent, Provider
from voice_assistant.providers import (
    AmazonMusicAdapter,
    GmailAdapter,
    GoogleCalendarAdapter,
    YouTubeAdapter,
)


logger = logging.getLogger(__name__)


class CommandError(BaseModel):
    kind: ErrorKind
    message: str


class CommandOutcome(BaseModel):
    command_id: str | None = None
    success: bool
    payload: Any = None
    error: CommandError | None = None
    intent: Intent | None = None


def outcome_from_result(intent: Intent, result: DispatchResult) -> CommandOutcome:
    return CommandOutcome(
        command_id=result.command_id,
        success=result.success,
        payload=result.payload,
        error=None if result.success else CommandError(
            kind=result.error_kind or ErrorKind.UPSTREAM_ERROR,
            message=result.message or "",
        ),
        intent=intent,
    )


class VoiceAssistant:
    def __init__(
        self,
        interpreter: CommandInterpreter,
        credentials: CredentialStore,
        dispatcher: Dispatcher,
        history: HistorySink,
    ):
        self.interpreter = interpreter
        self.credentials = credentials
        self.dispatcher = dispatcher
        self.history = history

    async def process_command(
        self,
        text: str,
        user_id: str,
        idempotency_key: str | None = None,
        timeout: float | None = None,
    ) -> CommandOutcome:
        """Interpret and dispatch one spoken command."""
        try:
            intent = self.interpreter.interpret(text, user_id)
        except VoiceAssistantError as e:
            logger.info(f"Could not interpret command for user {user_id}: {e.kind.value}")
            return CommandOutcome(success=False, error=CommandError(kind=e.kind, message=e.message))

        result = await self.dispatcher.dispatch(intent, idempotency_key=idempotency_key, timeout=timeout)
        return outcome_from_result(intent, result)

    async def execute(self, intent: Intent, idempotency_key: str | None = None) -> DispatchResult:
        return await self.dispatcher.dispatch(intent, idempotency_key=idempotency_key)


def build_assistant(settings: Settings) -> VoiceAssistant:
    """Create the assistant with the real OAuth clients and provider adapters."""
    google = GoogleOAuth()
    amazon = AmazonOAuth()
    refreshers = {provider: google for provider in GOOGLE_PROVIDERS}
    refreshers[Provider.AMAZON_MUSIC] = amazon

    credentials = CredentialStore(refreshers, expiry_buffer_seconds=settings.token_expiry_buffer_seconds)
    history = HistorySink(InMemoryHistoryBackend(limit=settings.history_limit))

    timeout = settings.upstream_timeout_seconds
    adapters = {
        Provider.CALENDAR: GoogleCalendarAdapter(timezone=settings.default_timezone, timeout=timeout),
        Provider.GMAIL: GmailAdapter(timeout=timeout),
        Provider.YOUTUBE: YouTubeAdapter(timeout=timeout),
        Provider.AMAZON_MUSIC: AmazonMusicAdapter(api_key=settings.amazon_music_api_key, timeout=timeout),
    }

    dispatcher = Dispatcher(
        adapters,
        credentials,
        history,
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        ),
        default_timeout=settings.dispatch_timeout_seconds,
    )

    return VoiceAssistant(
        CommandInterpreter(timezone=settings.default_timezone),
        credentials,
        dispatcher,
        history,
    )
