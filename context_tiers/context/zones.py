"""Zone partitioner: assign transcript entries to retention tiers by recency.

Walking from the newest entry to the oldest, entries fill the Recent zone up to
its token ceiling, then the MidTerm zone up to its ceiling, and everything
older lands in the Archive. An entry that would straddle a ceiling goes to the
older zone in full; zone assignment never splits an entry.

Short transcripts (not larger than the Recent ceiling) get a single Basic zone
and are never compressed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from context_tiers.config import ContextSettings
from context_tiers.context.tokenizer import default_count_tokens
from context_tiers.entities import Zone, ZoneName

if TYPE_CHECKING:
    from collections.abc import Sequence

    from context_tiers.entities import TranscriptEntry

LOGGER = logging.getLogger(__name__)


def retention_for(name: ZoneName, settings: ContextSettings) -> float:
    """Fixed target retention per zone."""
    if name == ZoneName.mid_term:
        return settings.compression_levels.mid_term
    if name == ZoneName.archive:
        return settings.compression_levels.archive
    return 1.0


def partition(
    transcript: Sequence[TranscriptEntry],
    max_tokens: int,
    *,
    token_counts: Sequence[int] | None = None,
    settings: ContextSettings | None = None,
) -> list[Zone]:
    """Partition a transcript into retention zones.

    Args:
        transcript: Entries in chronological order (oldest first).
        max_tokens: The model's maximum context size.
        token_counts: Token count per entry, aligned with ``transcript``.
            Counted with the default tokenizer when omitted.
        settings: Zone ceilings and retention rates.

    Returns:
        Zones ordered from most recent to oldest; entries inside each zone are
        chronological. Either a single Basic zone, or Recent followed by the
        non-empty MidTerm and Archive zones. Empty for an empty transcript.

    """
    settings = settings or ContextSettings()
    if not transcript:
        return []

    if token_counts is None:
        token_counts = [default_count_tokens(entry.effective_text) for entry in transcript]
    if len(token_counts) != len(transcript):
        msg = "token_counts must align with transcript"
        raise ValueError(msg)

    recent_ceiling = min(settings.recent_zone_tokens, max_tokens)
    total = sum(token_counts)

    if total <= recent_ceiling:
        return [
            Zone(
                name=ZoneName.basic,
                token_ceiling=max_tokens,
                retention_rate=retention_for(ZoneName.basic, settings),
                entries=list(transcript),
                token_count=total,
            ),
        ]

    recent = Zone(ZoneName.recent, recent_ceiling, retention_for(ZoneName.recent, settings))
    mid_term = Zone(
        ZoneName.mid_term,
        settings.mid_term_zone_tokens,
        retention_for(ZoneName.mid_term, settings),
    )
    archive = Zone(ZoneName.archive, max_tokens, retention_for(ZoneName.archive, settings))

    current = recent
    for entry, tokens in zip(reversed(transcript), reversed(token_counts), strict=True):
        if current is recent:
            # The newest entry always stays in Recent, however large it is
            if not recent.entries or recent.token_count + tokens <= recent.token_ceiling:
                _assign(recent, entry, tokens)
                continue
            current = mid_term
        if current is mid_term:
            if mid_term.token_count + tokens <= mid_term.token_ceiling:
                _assign(mid_term, entry, tokens)
                continue
            current = archive
        _assign(archive, entry, tokens)

    zones = [recent, *(zone for zone in (mid_term, archive) if zone.entries)]
    for zone in zones:
        zone.entries.reverse()

    LOGGER.info(
        "Partitioned %d entries (%d tokens): %s",
        len(transcript),
        total,
        ", ".join(f"{z.name.value}={len(z.entries)} entries/{z.token_count} tokens" for z in zones),
    )
    return zones


def _assign(zone: Zone, entry: TranscriptEntry, tokens: int) -> None:
    zone.entries.append(entry)
    zone.token_count += tokens
