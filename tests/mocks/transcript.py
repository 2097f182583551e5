"""Transcript builders and a predictable token counter."""

from __future__ import annotations

from typing import Any

from context_tiers.entities import TranscriptEntry


def word_count(text: str, model: Any = None, settings: Any = None) -> int:  # noqa: ARG001
    """One token per whitespace-separated word."""
    return len(text.split())


def make_entry(entry_id: str, content: str, role: str = "user", **kwargs: Any) -> TranscriptEntry:
    """Build a transcript entry."""
    return TranscriptEntry(id=entry_id, role=role, content=content, **kwargs)


def make_transcript(count: int, words: int = 10) -> list[TranscriptEntry]:
    """``count`` alternating user/assistant entries of ``words`` words each, oldest first."""
    return [
        make_entry(
            f"m{i}",
            " ".join(f"w{i}x{j}" for j in range(words)),
            role="user" if i % 2 == 0 else "assistant",
        )
        for i in range(count)
    ]
