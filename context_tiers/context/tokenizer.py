"""Tokenizer adapter: a uniform async face over model-specific token counters."""

from __future__ import annotations

import inspect
import math
import re
from functools import lru_cache
from typing import TYPE_CHECKING, Protocol

from context_tiers import constants

if TYPE_CHECKING:
    from collections.abc import Awaitable

    import tiktoken

    from context_tiers.config import ContextSettings
    from context_tiers.entities import ModelInfo, TranscriptEntry

_ARABIC_RE = re.compile(r"[؀-ۿ]")
_ARABIC_HEAVY = 0.6
_ARABIC_MIXED = 0.2


class CountFunction(Protocol):
    """A token counter supplied by the model registry. May be sync or async."""

    def __call__(
        self,
        text: str,
        model: ModelInfo | None,
        settings: ContextSettings | None,
    ) -> int | Awaitable[int]:
        """Return the number of tokens in ``text``."""


@lru_cache(maxsize=4)
def _get_encoding(model: str = constants.DEFAULT_TOKENIZER_MODEL) -> tiktoken.Encoding:
    """Get tiktoken encoding for a model, with caching.

    Falls back to cl100k_base for unknown models (covers most modern LLMs).
    """
    import tiktoken  # noqa: PLC0415

    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("cl100k_base")


def _gemini_chars_per_token(text: str) -> float:
    """Characters per token for Gemini, calibrated by script mix."""
    arabic_ratio = len(_ARABIC_RE.findall(text)) / len(text)
    if arabic_ratio > _ARABIC_HEAVY:
        return constants.GEMINI_ARABIC_CHARS_PER_TOKEN
    if arabic_ratio > _ARABIC_MIXED:
        return constants.GEMINI_MIXED_CHARS_PER_TOKEN
    return constants.GEMINI_CHARS_PER_TOKEN


def default_count_tokens(
    text: str,
    model: ModelInfo | None = None,
    settings: ContextSettings | None = None,  # noqa: ARG001
) -> int:
    """Count tokens with tiktoken, or a calibrated character ratio for Google models.

    tiktoken overestimates Gemini token counts considerably, so Google models
    use a character-based approximation instead.
    """
    if not text:
        return 0
    if model is not None and model.provider.lower() in {"google", "gemini"}:
        return math.ceil(len(text) / _gemini_chars_per_token(text))
    enc = _get_encoding(model.id if model else constants.DEFAULT_TOKENIZER_MODEL)
    # Disable special token checking - transcripts may contain text like <|endoftext|>
    return len(enc.encode(text, disallowed_special=()))


class TokenizerAdapter:
    """Wraps a model-specific token-counting function.

    Stateless: the adapter only normalizes sync and async counters to a single
    awaitable interface. It never mutates its input.
    """

    def __init__(self, count_fn: CountFunction | None = None) -> None:
        self._count_fn = count_fn or default_count_tokens

    async def count(
        self,
        text: str,
        model: ModelInfo | None = None,
        settings: ContextSettings | None = None,
    ) -> int:
        """Return the token count of ``text`` for ``model``."""
        if not text:
            return 0
        result = self._count_fn(text, model, settings)
        if inspect.isawaitable(result):
            result = await result
        return int(result)

    async def count_entry(
        self,
        entry: TranscriptEntry,
        model: ModelInfo | None = None,
        settings: ContextSettings | None = None,
    ) -> int:
        """Tokens an entry contributes: its summary if attached, else its raw text."""
        return await self.count(entry.effective_text, model, settings)
