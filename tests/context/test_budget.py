"""Tests for the budget calculator."""

from __future__ import annotations

import pytest

from context_tiers import constants
from context_tiers.config import ContextSettings
from context_tiers.context.budget import (
    compute_usage,
    count_entries,
    resolve_max_tokens,
    utilization,
)
from context_tiers.context.tokenizer import TokenizerAdapter
from context_tiers.entities import ModelInfo
from tests.mocks.transcript import make_entry


class TestResolveMaxTokens:
    """Settings override the model, the model overrides the default."""

    def test_settings_override(self) -> None:
        model = ModelInfo(id="m", context_length_tokens=128_000)
        settings = ContextSettings(max_context_tokens=4000)
        assert resolve_max_tokens(model, settings) == 4000

    def test_model_length(self) -> None:
        model = ModelInfo(id="m", context_length_tokens=128_000)
        assert resolve_max_tokens(model, ContextSettings()) == 128_000

    def test_default(self) -> None:
        assert resolve_max_tokens(None, None) == constants.DEFAULT_MAX_CONTEXT_TOKENS
        assert resolve_max_tokens(ModelInfo(id="m"), None) == constants.DEFAULT_MAX_CONTEXT_TOKENS


class TestUtilization:
    """Percentages are clamped to [0, 100]."""

    def test_half(self) -> None:
        assert utilization(50, 100) == 50.0

    def test_clamped_above(self) -> None:
        assert utilization(250, 100) == 100.0

    def test_zero(self) -> None:
        assert utilization(0, 100) == 0.0


class TestComputeUsage:
    """Usage of a transcript against a context window."""

    @pytest.mark.asyncio
    async def test_total_and_utilization(self, tokenizer: TokenizerAdapter) -> None:
        transcript = [make_entry("a", "one two"), make_entry("b", "three four five")]
        usage = await compute_usage(transcript, None, ContextSettings(max_context_tokens=10), tokenizer)
        assert usage.total_tokens == 5
        assert usage.max_tokens == 10
        assert usage.utilization_pct == 50.0
        assert not usage.exceeds

    @pytest.mark.asyncio
    async def test_reserved_tokens_are_included(self, tokenizer: TokenizerAdapter) -> None:
        transcript = [make_entry("a", "one two")]
        usage = await compute_usage(
            transcript,
            None,
            ContextSettings(max_context_tokens=4),
            tokenizer,
            reserved_tokens=3,
        )
        assert usage.total_tokens == 5
        assert usage.exceeds
        assert usage.utilization_pct == 100.0

    @pytest.mark.asyncio
    async def test_empty_transcript(self, tokenizer: TokenizerAdapter) -> None:
        usage = await compute_usage([], ModelInfo(id="m", context_length_tokens=100), None, tokenizer)
        assert usage.total_tokens == 0
        assert usage.max_tokens == 100
        assert usage.utilization_pct == 0.0

    @pytest.mark.asyncio
    async def test_summaries_count_instead_of_content(self, tokenizer: TokenizerAdapter) -> None:
        transcript = [
            make_entry("a", "a b c d e f g h", summary="a b", summary_retention=0.2),
            make_entry("b", "folded away", summary="", summary_retention=0.2),
        ]
        usage = await compute_usage(transcript, None, ContextSettings(max_context_tokens=100), tokenizer)
        assert usage.total_tokens == 2

    @pytest.mark.asyncio
    async def test_does_not_mutate_transcript(self, tokenizer: TokenizerAdapter) -> None:
        transcript = [make_entry("a", "one two")]
        before = [entry.model_dump() for entry in transcript]
        await compute_usage(transcript, None, None, tokenizer)
        assert [entry.model_dump() for entry in transcript] == before


@pytest.mark.asyncio
async def test_count_entries_preserves_order(tokenizer: TokenizerAdapter) -> None:
    transcript = [make_entry("a", "one"), make_entry("b", "one two three"), make_entry("c", "")]
    assert await count_entries(transcript, tokenizer) == [1, 3, 0]
