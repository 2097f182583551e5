"""Utility functions for zone compression: chunking, truncation and output checks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from context_tiers.errors import DegradedOutputError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from context_tiers.config import ContextSettings
    from context_tiers.entities import TranscriptEntry

_ENTRY_SEPARATOR = "\n\n"

# Refusals and safety-filter boilerplate. Summaries matching these are not summaries.
_REFUSAL_PATTERNS = (
    re.compile(r"I cannot|I can't|I'm unable|I apologize|I'm sorry", re.IGNORECASE),
    re.compile(r"inappropriate|unsafe|harmful|violates", re.IGNORECASE),
)


@dataclass(frozen=True)
class Chunk:
    """A bounded slice of zone text and the entries it covers."""

    text: str
    entry_ids: tuple[str, ...]


def needs_compression(entry: TranscriptEntry, retention_rate: float) -> bool:
    """False when the entry already carries a summary at the same or a lower retention."""
    return entry.summary_retention is None or entry.summary_retention > retention_rate


def render_entry(entry: TranscriptEntry) -> str:
    """Render an entry as ``role: text`` using its final summary when it has one."""
    text = entry.summary if entry.is_compressed else entry.content
    if not text:
        return ""
    return f"{entry.role}: {text}"


def split_into_chunks(
    entries: Sequence[TranscriptEntry],
    max_chars: int,
    max_entries: int,
) -> list[Chunk]:
    """Split zone entries into chunks, respecting message boundaries.

    Entries are packed in order until adding the next one would exceed
    ``max_chars`` or ``max_entries``. A single entry longer than ``max_chars``
    is cut into fixed-size character windows, each its own chunk.
    """
    chunks: list[Chunk] = []
    parts: list[str] = []
    ids: list[str] = []
    size = 0

    def flush() -> None:
        nonlocal parts, ids, size
        if ids:
            chunks.append(Chunk(_ENTRY_SEPARATOR.join(parts), tuple(ids)))
        parts, ids, size = [], [], 0

    for entry in entries:
        rendered = render_entry(entry)
        if not rendered:
            # Folded into a neighbour's summary; keep it with the chunk it belongs to
            ids.append(entry.id)
            continue

        if len(rendered) > max_chars:
            flush()
            for start in range(0, len(rendered), max_chars):
                chunks.append(Chunk(rendered[start : start + max_chars], (entry.id,)))
            continue

        added = len(rendered) + (len(_ENTRY_SEPARATOR) if parts else 0)
        if parts and (size + added > max_chars or len(ids) >= max_entries):
            flush()
            added = len(rendered)
        parts.append(rendered)
        ids.append(entry.id)
        size += added

    flush()
    return [chunk for chunk in chunks if chunk.text]


def truncate_to_target(text: str, target_length: int) -> str:
    """Deterministically keep the first ``target_length`` characters."""
    return text[: max(1, target_length)]


def validate_output(output: str | None, target_length: int, settings: ContextSettings) -> str:
    """Return the stripped output or raise DegradedOutputError.

    Raises:
        DegradedOutputError: Empty, refused/safety-filtered, or too short.

    """
    summary = (output or "").strip()
    if not summary:
        msg = "Backend returned an empty summary"
        raise DegradedOutputError(msg, reason="empty_response")

    if any(pattern.search(summary) for pattern in _REFUSAL_PATTERNS):
        msg = "Backend refused to summarize (safety filter)"
        raise DegradedOutputError(msg, reason="refusal_detected")

    minimum = max(settings.min_viable_chars, target_length * settings.min_output_fraction)
    if len(summary) < minimum:
        msg = f"Summary too short ({len(summary)} < {minimum:.0f} chars)"
        raise DegradedOutputError(msg, reason="too_short")

    return summary
