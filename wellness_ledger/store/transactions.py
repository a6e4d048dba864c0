"""Bounded optimistic transaction runner"""

import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from wellness_ledger import config
from wellness_ledger.observability.metrics import transaction_duration_seconds
from wellness_ledger.resilience.retry import retry_with_backoff
from wellness_ledger.store.base import DocumentStore, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_transaction(
    store: DocumentStore,
    fn: Callable[[Transaction], Awaitable[T]],
    *,
    operation: str,
    user_id: Optional[str] = None,
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
) -> T:
    """
    Run fn inside a fresh transaction, committing its buffered writes.

    fn must read everything it needs through the transaction it is given and
    may be called more than once: each conflict discards the attempt and
    starts over from fresh reads.

    Raises:
        ConflictRetryExhausted: after max_attempts conflicting commits
        TransientStorageError: store unreachable (not retried here)
    """

    async def attempt() -> T:
        tx = store.transaction()
        result = await fn(tx)
        await tx.commit()
        return result

    started = time.perf_counter()
    try:
        return await retry_with_backoff(
            attempt,
            operation=operation,
            user_id=user_id,
            max_attempts=max_attempts or config.TRANSACTION_MAX_ATTEMPTS,
            base_delay=config.TRANSACTION_BASE_DELAY if base_delay is None else base_delay,
            max_delay=config.TRANSACTION_MAX_DELAY if max_delay is None else max_delay,
        )
    finally:
        transaction_duration_seconds.labels(operation=operation).observe(time.perf_counter() - started)
