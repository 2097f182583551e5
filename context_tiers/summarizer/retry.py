"""Retry with exponential backoff for backend calls.

Only TransientBackendError is retried. Configuration and degraded-output errors
propagate immediately so the dispatcher can move on to the next backend.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

import tenacity

from context_tiers.errors import TransientBackendError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from context_tiers.config import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptCounter:
    """Counts calls made through :func:`call_with_retry`."""

    def __init__(self) -> None:
        self.count = 0


def build_retrying(policy: RetryPolicy) -> tenacity.AsyncRetrying:
    """Build an AsyncRetrying for ``policy``.

    The n-th wait is ``base_delay * multiplier ** (n - 1)``, capped at ``max_delay``.
    """
    return tenacity.AsyncRetrying(
        retry=tenacity.retry_if_exception_type(TransientBackendError),
        wait=tenacity.wait_exponential(
            multiplier=policy.base_delay,
            exp_base=policy.multiplier,
            max=policy.max_delay,
        ),
        stop=tenacity.stop_after_attempt(policy.max_attempts),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


async def call_with_timeout(
    fn: Callable[[], Awaitable[T]],
    timeout: float,
    label: str = "backend",
) -> T:
    """Await ``fn()`` but give up after ``timeout`` seconds.

    Raises:
        TransientBackendError: With reason ``timeout`` when the call overruns.

    """
    try:
        return await asyncio.wait_for(fn(), timeout=timeout)
    except TimeoutError as e:
        msg = f"{label} timed out after {timeout:g}s"
        raise TransientBackendError(msg, reason="timeout") from e


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    timeout: float,
    label: str = "backend",
    counter: AttemptCounter | None = None,
) -> T:
    """Call ``fn`` with a per-attempt timeout, retrying transient failures.

    Args:
        fn: Zero-argument coroutine factory; called once per attempt.
        policy: Attempt limit and backoff delays.
        timeout: Seconds allowed per attempt.
        label: Name used in log and error messages.
        counter: Incremented once per attempt, when given.

    Returns:
        Whatever ``fn`` returns on the first successful attempt.

    Raises:
        TransientBackendError: When every attempt failed transiently.

    """
    counter = counter or AttemptCounter()

    async def attempt() -> T:
        counter.count += 1
        return await call_with_timeout(fn, timeout, label)

    return await build_retrying(policy)(attempt)
