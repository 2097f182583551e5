"""Durable storage for telemetry entries."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError

from context_tiers import constants
from context_tiers.core.utils import atomic_write_text
from context_tiers.errors import PersistenceError
from context_tiers.telemetry.models import DebugLogEntry

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime
    from pathlib import Path

logger = logging.getLogger(__name__)


@runtime_checkable
class TelemetryStore(Protocol):
    """Storage boundary used by the TelemetryRecorder.

    Implementations raise PersistenceError when the underlying storage fails.
    """

    def load(self) -> list[DebugLogEntry]:
        """Return all stored entries, oldest first."""
        ...

    def bulk_append(self, entries: Sequence[DebugLogEntry]) -> None:
        """Append entries (oldest first)."""
        ...

    def query_by_time_range(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DebugLogEntry]:
        """Entries with ``start <= timestamp < end``; open-ended when a bound is None."""
        ...

    def delete_older_than(self, timestamp: datetime) -> int:
        """Delete entries older than ``timestamp``. Returns the number deleted."""
        ...

    def delete_conversation(self, conversation_id: str | None) -> int:
        """Delete a conversation's entries, or all entries for None."""
        ...


def _in_range(entry: DebugLogEntry, start: datetime | None, end: datetime | None) -> bool:
    if start is not None and entry.timestamp < start:
        return False
    return end is None or entry.timestamp < end


class InMemoryTelemetryStore:
    """Process-local store, mainly for tests."""

    def __init__(
        self,
        entries: Iterable[DebugLogEntry] = (),
        max_entries: int = constants.TELEMETRY_MAX_ENTRIES,
    ) -> None:
        self.max_entries = max_entries
        self.entries: list[DebugLogEntry] = list(entries)[-max_entries:]

    def load(self) -> list[DebugLogEntry]:
        """Return all stored entries, oldest first."""
        return list(self.entries)

    def bulk_append(self, entries: Sequence[DebugLogEntry]) -> None:
        """Append entries, dropping the oldest beyond the cap."""
        self.entries = [*self.entries, *entries][-self.max_entries :]

    def query_by_time_range(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DebugLogEntry]:
        """Entries with ``start <= timestamp < end``."""
        return [e for e in self.entries if _in_range(e, start, end)]

    def delete_older_than(self, timestamp: datetime) -> int:
        """Delete entries older than ``timestamp``."""
        kept = [e for e in self.entries if e.timestamp >= timestamp]
        deleted = len(self.entries) - len(kept)
        self.entries = kept
        return deleted

    def delete_conversation(self, conversation_id: str | None) -> int:
        """Delete a conversation's entries, or all entries for None."""
        kept = (
            [e for e in self.entries if e.conversation_id != conversation_id]
            if conversation_id is not None
            else []
        )
        deleted = len(self.entries) - len(kept)
        self.entries = kept
        return deleted


class _TelemetryDocument(BaseModel):
    version: int = 1
    entries: list[DebugLogEntry] = Field(default_factory=list)


class JsonFileTelemetryStore:
    """All entries in one JSON document, rewritten atomically on every change.

    The document never holds more than ``max_entries`` entries; the oldest are
    dropped first.
    """

    def __init__(self, path: Path, max_entries: int = constants.TELEMETRY_MAX_ENTRIES) -> None:
        self.path = path
        self.max_entries = max_entries
        self._lock = threading.Lock()

    def _read(self) -> list[DebugLogEntry]:
        if not self.path.exists():
            return []
        try:
            raw = self.path.read_text(encoding="utf-8")
            if not raw.strip():
                return []
            return _TelemetryDocument.model_validate_json(raw).entries
        except (OSError, ValidationError) as e:
            msg = f"Could not read telemetry from {self.path}: {e}"
            raise PersistenceError(msg) from e

    def _write(self, entries: list[DebugLogEntry]) -> None:
        document = _TelemetryDocument(entries=entries[-self.max_entries :])
        try:
            atomic_write_text(self.path, document.model_dump_json(indent=2))
        except OSError as e:
            msg = f"Could not write telemetry to {self.path}: {e}"
            raise PersistenceError(msg) from e

    def load(self) -> list[DebugLogEntry]:
        """Return all stored entries, oldest first."""
        with self._lock:
            return self._read()[-self.max_entries :]

    def bulk_append(self, entries: Sequence[DebugLogEntry]) -> None:
        """Append entries, dropping the oldest beyond the cap."""
        with self._lock:
            self._write([*self._read(), *entries])

    def query_by_time_range(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DebugLogEntry]:
        """Entries with ``start <= timestamp < end``."""
        with self._lock:
            return [e for e in self._read() if _in_range(e, start, end)]

    def delete_older_than(self, timestamp: datetime) -> int:
        """Delete entries older than ``timestamp``."""
        with self._lock:
            entries = self._read()
            kept = [e for e in entries if e.timestamp >= timestamp]
            if len(kept) != len(entries):
                self._write(kept)
            return len(entries) - len(kept)

    def delete_conversation(self, conversation_id: str | None) -> int:
        """Delete a conversation's entries, or all entries for None."""
        with self._lock:
            entries = self._read()
            kept = (
                [e for e in entries if e.conversation_id != conversation_id]
                if conversation_id is not None
                else []
            )
            if len(kept) != len(entries) or conversation_id is None:
                self._write(kept)
            logger.debug("Deleted %d telemetry entries from %s", len(entries) - len(kept), self.path)
            return len(entries) - len(kept)
