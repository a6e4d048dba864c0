"""Retry logic with exponential backoff and jitter

Used to re-run optimistic transactions:
1. Only TransactionConflict is retried; every other error propagates at once
2. Exponential backoff with jitter keeps contending writers from re-colliding
3. Gives up after max_attempts with ConflictRetryExhausted
"""

import asyncio
import random
import logging
from typing import Awaitable, Callable, TypeVar

from wellness_ledger.exceptions import ConflictRetryExhausted, TransactionConflict
from wellness_ledger.observability.metrics import transaction_conflicts_total, transactions_exhausted_total

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Retry configuration
MAX_ATTEMPTS = 5
BASE_DELAY = 0.05  # seconds
MAX_DELAY = 1.0  # seconds
JITTER = 0.1  # 10% random jitter


def is_retryable_error(exc: Exception) -> bool:
    """
    Determine if an error means "try the same unit of work again".

    Only optimistic-concurrency conflicts qualify. Transient storage failures
    are surfaced to the caller, which owns the retry affordance.
    """
    return isinstance(exc, TransactionConflict)


def calculate_backoff(attempt: int, base_delay: float = BASE_DELAY, max_delay: float = MAX_DELAY) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Formula: delay = min(base_delay * (2 ** attempt), max_delay) + jitter
    Jitter is random value between -10% and +10% of delay

    Example (defaults):
        Attempt 0: ~0.05s
        Attempt 1: ~0.1s
        Attempt 2: ~0.2s
    """
    delay = min(base_delay * (2 ** attempt), max_delay)

    jitter_amount = random.uniform(-JITTER * delay, JITTER * delay)
    final_delay = delay + jitter_amount

    return max(final_delay, 0.0)


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    operation: str,
    max_attempts: int = MAX_ATTEMPTS,
    base_delay: float = BASE_DELAY,
    max_delay: float = MAX_DELAY,
    user_id: str | None = None,
) -> T:
    """
    Run func until it succeeds, a non-retryable error occurs, or attempts run out.

    Args:
        func: Zero-argument coroutine function for one attempt
        operation: Name used in logs, metrics and the final error
        max_attempts: Total attempts including the first

    Raises:
        ConflictRetryExhausted: Every attempt ended in TransactionConflict
        Any non-retryable exception from func, unchanged
    """
    for attempt in range(max_attempts):
        try:
            return await func()

        except Exception as e:
            if not is_retryable_error(e):
                raise

            transaction_conflicts_total.labels(operation=operation).inc()

            if attempt == max_attempts - 1:
                transactions_exhausted_total.labels(operation=operation).inc()
                logger.error(f"[RETRY] All {max_attempts} attempts conflicted for {operation}")
                raise ConflictRetryExhausted(
                    attempts=max_attempts,
                    user_id=user_id,
                    operation=operation,
                    cause=e,
                )

            backoff = calculate_backoff(attempt, base_delay, max_delay)
            logger.info(
                f"[RETRY] Attempt {attempt + 1}/{max_attempts} for {operation} "
                f"conflicted, retrying after {backoff:.3f}s"
            )
            await asyncio.sleep(backoff)

    raise ValueError("max_attempts must be at least 1")
