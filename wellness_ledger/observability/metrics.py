"""
Prometheus metrics definitions for the wellness ledger.

Organized by category:
- Ledger metrics: awards, guard hits, rollovers
- Transaction metrics: conflicts, exhausted retries, latency
- Event log metrics: emotion writes
- HTTP/API metrics: request counts

Metrics are exposed at the /metrics endpoint for Prometheus scraping.
"""

import logging
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# =============================================================================
# Ledger Metrics
# =============================================================================

ledger_awards_total = Counter(
    "ledger_awards_total",
    "Points awards committed",
    ["kind"],  # kind: daily/weekly
)

ledger_guard_hits_total = Counter(
    "ledger_guard_hits_total",
    "Completions skipped because the period was already awarded",
    ["kind"],
)

ledger_weekly_rollovers_total = Counter(
    "ledger_weekly_rollovers_total",
    "Weekly progress resets when a new week starts",
)

# =============================================================================
# Transaction Metrics
# =============================================================================

transaction_conflicts_total = Counter(
    "transaction_conflicts_total",
    "Optimistic commits rejected because a read document changed",
    ["operation"],
)

transactions_exhausted_total = Counter(
    "transactions_exhausted_total",
    "Transactions abandoned after the retry limit",
    ["operation"],
)

transaction_duration_seconds = Histogram(
    "transaction_duration_seconds",
    "Wall time of a transaction including retries",
    ["operation"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
)

# =============================================================================
# Event Log Metrics
# =============================================================================

emotion_writes_total = Counter(
    "emotion_writes_total",
    "Daily emotion entry writes",
    ["status"],  # status: success/error
)

# =============================================================================
# HTTP/API Metrics
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests received",
    ["method", "endpoint", "status"],
)

logger.debug("Prometheus metrics registered")
