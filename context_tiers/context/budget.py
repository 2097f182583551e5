"""Budget calculator: how much of a model's context window a transcript uses.

The calculator is stateless. Callers are responsible for not invoking it more
than once concurrently for the same transcript snapshot (debounce or coalesce
duplicate in-flight calls on the caller's side); it takes no locks itself.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from context_tiers import constants
from context_tiers.entities import ContextUsage

if TYPE_CHECKING:
    from collections.abc import Sequence

    from context_tiers.config import ContextSettings
    from context_tiers.context.tokenizer import TokenizerAdapter
    from context_tiers.entities import ModelInfo, TranscriptEntry


def resolve_max_tokens(model: ModelInfo | None, settings: ContextSettings | None) -> int:
    """Explicit settings override, else the model's registered length, else the default."""
    if settings is not None and settings.max_context_tokens:
        return settings.max_context_tokens
    if model is not None and model.context_length_tokens:
        return model.context_length_tokens
    return constants.DEFAULT_MAX_CONTEXT_TOKENS


def utilization(total_tokens: int, max_tokens: int) -> float:
    """Percentage of ``max_tokens`` used, clamped to [0, 100]."""
    if max_tokens <= 0:
        return 100.0
    return min(100.0, max(0.0, total_tokens / max_tokens * 100))


async def count_entries(
    transcript: Sequence[TranscriptEntry],
    tokenizer: TokenizerAdapter,
    model: ModelInfo | None = None,
    settings: ContextSettings | None = None,
) -> list[int]:
    """Tokenize every entry concurrently, preserving transcript order."""
    return list(
        await asyncio.gather(
            *(tokenizer.count_entry(entry, model, settings) for entry in transcript),
        ),
    )


async def compute_usage(
    transcript: Sequence[TranscriptEntry],
    model: ModelInfo | None,
    settings: ContextSettings | None,
    tokenizer: TokenizerAdapter,
    *,
    reserved_tokens: int = 0,
) -> ContextUsage:
    """Compute total tokens and utilization of ``transcript`` for ``model``.

    Args:
        transcript: Entries in chronological order.
        model: Model registry record (may be None when unknown).
        settings: Context settings; ``max_context_tokens`` overrides the model.
        tokenizer: Token counter for the model.
        reserved_tokens: Tokens already spoken for (e.g. the system prompt).

    Returns:
        ContextUsage with ``total_tokens`` including ``reserved_tokens``.

    """
    counts = await count_entries(transcript, tokenizer, model, settings)
    total = sum(counts) + reserved_tokens
    max_tokens = resolve_max_tokens(model, settings)
    return ContextUsage(
        total_tokens=total,
        max_tokens=max_tokens,
        utilization_pct=utilization(total, max_tokens),
    )
