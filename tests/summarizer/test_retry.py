"""Tests for retry with backoff."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from context_tiers.config import RetryPolicy
from context_tiers.errors import ConfigurationError, TransientBackendError
from context_tiers.summarizer.retry import (
    AttemptCounter,
    build_retrying,
    call_with_retry,
    call_with_timeout,
)


class TestCallWithRetry:
    """Transient failures are retried, everything else propagates."""

    @pytest.mark.asyncio
    async def test_success_first_time(self, fast_retry: RetryPolicy) -> None:
        fn = AsyncMock(return_value="ok")
        counter = AttemptCounter()
        assert await call_with_retry(fn, fast_retry, timeout=1.0, counter=counter) == "ok"
        assert counter.count == 1

    @pytest.mark.asyncio
    async def test_recovers_from_transient(self, fast_retry: RetryPolicy) -> None:
        fn = AsyncMock(
            side_effect=[
                TransientBackendError("busy", reason="rate_limited"),
                TransientBackendError("down", reason="server_error"),
                "ok",
            ],
        )
        counter = AttemptCounter()
        assert await call_with_retry(fn, fast_retry, timeout=1.0, counter=counter) == "ok"
        assert counter.count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, fast_retry: RetryPolicy) -> None:
        fn = AsyncMock(side_effect=TransientBackendError("down"))
        counter = AttemptCounter()
        with pytest.raises(TransientBackendError):
            await call_with_retry(fn, fast_retry, timeout=1.0, counter=counter)
        assert counter.count == fast_retry.max_attempts

    @pytest.mark.asyncio
    async def test_configuration_error_is_not_retried(self, fast_retry: RetryPolicy) -> None:
        fn = AsyncMock(side_effect=ConfigurationError("bad key"))
        counter = AttemptCounter()
        with pytest.raises(ConfigurationError):
            await call_with_retry(fn, fast_retry, timeout=1.0, counter=counter)
        assert counter.count == 1

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(self, fast_retry: RetryPolicy) -> None:
        async def slow() -> str:
            await asyncio.sleep(1)
            return "late"

        counter = AttemptCounter()
        with pytest.raises(TransientBackendError) as exc_info:
            await call_with_retry(slow, fast_retry, timeout=0.01, counter=counter)
        assert exc_info.value.reason == "timeout"
        assert counter.count == 3


@pytest.mark.asyncio
async def test_call_with_timeout_passes_result() -> None:
    assert await call_with_timeout(AsyncMock(return_value=42), 1.0) == 42


def test_backoff_schedule() -> None:
    policy = RetryPolicy(max_attempts=10, base_delay=1.0, multiplier=2.0, max_delay=30.0)
    retrying = build_retrying(policy)
    delays = [retrying.wait(MagicMock(attempt_number=n)) for n in range(1, 7)]
    assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]


def test_policy_rejects_max_below_base() -> None:
    with pytest.raises(ValueError, match="max_delay"):
        RetryPolicy(base_delay=5.0, max_delay=1.0)
