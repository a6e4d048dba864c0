"""Retry logic for optimistic transactions"""

from wellness_ledger.resilience.retry import calculate_backoff, is_retryable_error, retry_with_backoff

__all__ = [
    "calculate_backoff",
    "is_retryable_error",
    "retry_with_backoff",
]
