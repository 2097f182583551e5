"""Telemetry recorder: a bounded, persisted log of compression attempts.

One recorder instance is constructed at application start and passed to
everything that needs it (dispatcher, debug API, CLI). Writes are serialized
with a lock; reads return immutable snapshots. Storage failures are reported on
the ``context_tiers.telemetry.persistence`` logger and never interrupt the
compression path.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from context_tiers.config import TelemetrySettings
from context_tiers.errors import PersistenceError
from context_tiers.telemetry.models import DebugLogEntry, SessionStatistics
from context_tiers.telemetry.store import InMemoryTelemetryStore, TelemetryStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from context_tiers.summarizer.models import SummarizationResult

LOGGER = logging.getLogger(__name__)
PERSISTENCE_LOGGER = logging.getLogger("context_tiers.telemetry.persistence")


class TelemetryRecorder:
    """Captures one DebugLogEntry per compression result.

    Args:
        store: Durable storage; an in-memory store when omitted.
        settings: Buffer cap, retention window and preview length.
        clock: Returns the current time; injectable for tests.

    """

    def __init__(
        self,
        store: TelemetryStore | None = None,
        settings: TelemetrySettings | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or TelemetrySettings()
        self.store = store or InMemoryTelemetryStore(max_entries=self.settings.max_entries)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.RLock()
        self._subscribers: list[Callable[[tuple[DebugLogEntry, ...]], None]] = []
        self._entries: list[DebugLogEntry] = []

        try:
            loaded = self.store.load()
        except PersistenceError as e:
            PERSISTENCE_LOGGER.warning("Starting with empty telemetry: %s", e)
            loaded = []
        self._entries = sorted(loaded, key=lambda e: e.timestamp)[-self.settings.max_entries :]
        self.purge_expired()

    # --- Writes ---

    def record(self, result: SummarizationResult) -> DebugLogEntry:
        """Append a log entry for ``result``, evicting the oldest beyond the cap."""
        entry = DebugLogEntry.from_result(result, self.settings.preview_chars)
        with self._lock:
            self._entries.append(entry)
            del self._entries[: -self.settings.max_entries]
            self._persist("append", self.store.bulk_append, [entry])
            snapshot = tuple(self._entries)
        LOGGER.debug(
            "Recorded %s for %s/%s chunk %d",
            entry.status,
            entry.conversation_id,
            entry.zone,
            entry.chunk_index,
        )
        self._notify(snapshot)
        return entry

    def clear(self, conversation_id: str | None = None) -> None:
        """Delete one conversation's entries, or everything when None."""
        with self._lock:
            if conversation_id is None:
                self._entries = []
            else:
                self._entries = [e for e in self._entries if e.conversation_id != conversation_id]
            self._persist("clear", self.store.delete_conversation, conversation_id)
            snapshot = tuple(self._entries)
        LOGGER.info("Cleared telemetry for %s", conversation_id or "all conversations")
        self._notify(snapshot)

    def purge_expired(self, now: datetime | None = None) -> int:
        """Drop entries older than the retention window. Returns the number dropped."""
        cutoff = (now or self._clock()) - timedelta(days=self.settings.retention_days)
        with self._lock:
            kept = [e for e in self._entries if e.timestamp >= cutoff]
            removed = len(self._entries) - len(kept)
            self._entries = kept
            self._persist("purge", self.store.delete_older_than, cutoff)
            snapshot = tuple(self._entries)
        if removed:
            LOGGER.info("Purged %d telemetry entries older than %s", removed, cutoff.isoformat())
            self._notify(snapshot)
        return removed

    async def run_cleanup_loop(
        self,
        interval: float | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Purge expired entries every ``interval`` seconds until ``stop_event`` is set."""
        interval = interval or self.settings.cleanup_interval
        stop_event = stop_event or asyncio.Event()
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except TimeoutError:
                self.purge_expired()

    # --- Reads ---

    def get_logs(self, conversation_id: str | None = None) -> tuple[DebugLogEntry, ...]:
        """Snapshot of the buffered entries, oldest first."""
        with self._lock:
            if conversation_id is None:
                return tuple(self._entries)
            return tuple(e for e in self._entries if e.conversation_id == conversation_id)

    def get_stats(self, conversation_id: str) -> SessionStatistics:
        """Aggregate statistics for one conversation."""
        return SessionStatistics.from_entries(conversation_id, self.get_logs(conversation_id))

    # --- Subscriptions ---

    def subscribe(
        self,
        callback: Callable[[tuple[DebugLogEntry, ...]], None],
    ) -> Callable[[], None]:
        """Call ``callback`` with a snapshot after every change.

        Returns:
            A function that removes the subscription.

        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, snapshot: tuple[DebugLogEntry, ...]) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception:
                LOGGER.exception("Telemetry subscriber %r failed", callback)

    def _persist(self, action: str, fn: Callable[..., object], *args: object) -> None:
        try:
            fn(*args)
        except PersistenceError as e:
            PERSISTENCE_LOGGER.warning("Telemetry %s failed: %s", action, e)
