"""Transactional document store used by the ledger"""

from wellness_ledger.store.base import (
    DocumentSnapshot,
    DocumentStore,
    Query,
    Subscription,
    Transaction,
)
from wellness_ledger.store.memory import MemoryDocumentStore
from wellness_ledger.store.transactions import run_transaction

__all__ = [
    "DocumentSnapshot",
    "DocumentStore",
    "Query",
    "Subscription",
    "Transaction",
    "MemoryDocumentStore",
    "run_transaction",
    "create_store",
]


async def create_store(backend: str, database_url: str = "") -> DocumentStore:
    """Build and open the configured store backend"""
    if backend == "postgres":
        from wellness_ledger.store.postgres import PostgresDocumentStore

        store = PostgresDocumentStore(database_url)
        await store.init_pool()
        return store
    return MemoryDocumentStore()
