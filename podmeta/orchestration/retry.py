"""Retry with exponential backoff and jitter for transient provider failures.

Only retryable error kinds (rate limit, server overload, network) are
retried. Everything else, including a missing model, propagates after
the first attempt so the caller can move on to the next candidate.

Delay for 0-indexed attempt n is ``base * 2**n + uniform(0, jitter)``,
capped at ``max_delay``. Jitter is clamped to ``base`` so consecutive
delays never decrease.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from podmeta.logging.audit import get_audit_logger
from podmeta.providers.errors import ProviderError

T = TypeVar("T")


def compute_backoff(
    attempt: int,
    base: float,
    jitter: float,
    max_delay: float | None = None,
    rand: Callable[[float, float], float] = random.uniform,
) -> float:
    """Delay in seconds before retry number `attempt` (0-indexed)."""
    jitter = max(0.0, min(jitter, base))
    delay = base * (2 ** attempt) + (rand(0.0, jitter) if jitter else 0.0)
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


async def retry_with_backoff(
    attempt_fn: Callable[[], Awaitable[T]],
    max_retries: int,
    *,
    base_delay: float = 2.0,
    jitter: float = 1.0,
    max_delay: float | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """Call `attempt_fn` until it succeeds or fails terminally.

    Args:
        attempt_fn: zero-argument coroutine function performing one attempt.
        max_retries: retries after the first attempt (total attempts ≤ max_retries + 1).
        base_delay: delay before the first retry, doubled per retry.
        jitter: upper bound of the random delay added to each wait.
        max_delay: optional cap on a single wait.
        sleep: awaitable sleep, defaults to asyncio.sleep.

    Raises:
        ProviderError: the non-retryable error, or the last retryable one
            once retries are exhausted.
    """
    sleep = sleep or asyncio.sleep
    logger = get_audit_logger()

    attempt = 0
    while True:
        try:
            return await attempt_fn()
        except ProviderError as exc:
            if not exc.retryable or attempt >= max_retries:
                raise
            delay = compute_backoff(attempt, base_delay, jitter, max_delay)
            logger.warning(
                "Retrying after transient failure",
                extra={"audit_data": {
                    "provider": exc.provider,
                    "model": exc.model,
                    "error_kind": exc.kind.value,
                    "upstream_status": exc.status_code,
                    "attempt": attempt + 1,
                    "max_retries": max_retries,
                    "delay_seconds": round(delay, 2),
                }},
            )
            await sleep(delay)
            attempt += 1
