"""History/feedback sink - append-only audit trail of dispatched commands."""

import asyncio
import logging
from collections import defaultdict, deque
from typing import Protocol

from voice_assistant.models import DispatchResult, FeedbackEntry, HistoryEntry, Intent


logger = logging.getLogger(__name__)


class HistoryBackend(Protocol):
    async def append(self, entry: HistoryEntry) -> None: ...

    async def append_feedback(self, feedback: FeedbackEntry) -> None: ...

    def list_entries(self, user_id: str, limit: int | None = None) -> list[HistoryEntry]: ...

    def list_feedback(self, user_id: str) -> list[FeedbackEntry]: ...


class InMemoryHistoryBackend:
    """Per-user bounded history, oldest entries dropped first."""

    def __init__(self, limit: int = 500):
        self._entries: dict[str, deque[HistoryEntry]] = defaultdict(lambda: deque(maxlen=limit))
        self._feedback: dict[str, deque[FeedbackEntry]] = defaultdict(lambda: deque(maxlen=limit))

    async def append(self, entry: HistoryEntry) -> None:
        self._entries[entry.user_id].append(entry)

    async def append_feedback(self, feedback: FeedbackEntry) -> None:
        self._feedback[feedback.user_id].append(feedback)

    def list_entries(self, user_id: str, limit: int | None = None) -> list[HistoryEntry]:
        entries = list(self._entries.get(user_id, ()))
        return entries[-limit:] if limit else entries

    def list_feedback(self, user_id: str) -> list[FeedbackEntry]:
        return list(self._feedback.get(user_id, ()))


class HistorySink:
    """Fire-and-forget recorder.

    ``record`` schedules the write and returns at once. Writes for one user
    are chained so they land in the order ``record`` was called, which is the
    order dispatches completed.
    """

    def __init__(self, backend: HistoryBackend | None = None):
        self.backend = backend or InMemoryHistoryBackend()
        self._tails: dict[str, asyncio.Task] = {}
        self._pending: set[asyncio.Task] = set()
        # Entries recorded but not yet written, by command id
        self._unwritten: dict[str, str] = {}

    def record(self, intent: Intent, result: DispatchResult) -> HistoryEntry:
        entry = HistoryEntry(
            command_id=result.command_id,
            user_id=intent.user_id,
            intent=intent,
            result=result,
        )
        self._unwritten[entry.command_id] = entry.user_id
        self._schedule(entry.user_id, self._append(entry), f"history entry {entry.command_id}")
        return entry

    def record_feedback(
        self,
        user_id: str,
        command_id: str,
        rating: int,
        comment: str | None = None,
    ) -> FeedbackEntry:
        if not self._issued_by(user_id, command_id):
            raise KeyError(command_id)

        feedback = FeedbackEntry(command_id=command_id, user_id=user_id, rating=rating, comment=comment)
        self._schedule(user_id, self.backend.append_feedback(feedback), f"feedback for {command_id}")
        return feedback

    def _issued_by(self, user_id: str, command_id: str) -> bool:
        if command_id in self._unwritten:
            return self._unwritten[command_id] == user_id
        return any(e.command_id == command_id for e in self.backend.list_entries(user_id))

    async def _append(self, entry: HistoryEntry) -> None:
        try:
            await self.backend.append(entry)
        finally:
            self._unwritten.pop(entry.command_id, None)

    def entries(self, user_id: str, limit: int | None = None) -> list[HistoryEntry]:
        return self.backend.list_entries(user_id, limit)

    def feedback(self, user_id: str) -> list[FeedbackEntry]:
        return self.backend.list_feedback(user_id)

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def _schedule(self, user_id: str, write, description: str) -> None:
        previous = self._tails.get(user_id)
        task = asyncio.create_task(self._write(previous, write, description))
        self._tails[user_id] = task
        self._pending.add(task)

        def _done(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if self._tails.get(user_id) is t:
                del self._tails[user_id]

        task.add_done_callback(_done)

    async def _write(self, previous: asyncio.Task | None, write, description: str) -> None:
        if previous is not None:
            await asyncio.wait([previous])
        try:
            await write
        except Exception:
            logger.exception(f"Failed to persist {description}")
