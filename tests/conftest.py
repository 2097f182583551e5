"""Shared test fixtures and configuration."""

from __future__ import annotations

import asyncio
import contextlib
import io

import pytest
from rich.console import Console

from context_tiers.config import ContextSettings, RetryPolicy
from context_tiers.context.tokenizer import TokenizerAdapter
from tests.mocks.transcript import word_count


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Set default timeout for all tests."""
    for item in items:
        with contextlib.suppress(AttributeError):
            item.add_marker(pytest.mark.timeout(3))


@pytest.fixture
def mock_console() -> Console:
    """Provide a console that writes to a StringIO for testing."""
    return Console(file=io.StringIO(), width=80, force_terminal=True)


@pytest.fixture
def stop_event() -> asyncio.Event:
    """Provide an asyncio event for stopping operations."""
    return asyncio.Event()


@pytest.fixture
def tokenizer() -> TokenizerAdapter:
    """A tokenizer that counts words."""
    return TokenizerAdapter(word_count)


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Retry policy without backoff delays."""
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0)


@pytest.fixture
def small_settings() -> ContextSettings:
    """Tiny zones, so that short transcripts get compressed."""
    return ContextSettings(
        max_context_tokens=100,
        recent_zone_tokens=20,
        mid_term_zone_tokens=30,
        min_viable_chars=1,
        min_output_fraction=0.0,
    )
