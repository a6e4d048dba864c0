"""
In-process document store

Keeps versioned documents in a dict. Transactions are optimistic: reads
remember the version they saw and commit fails with TransactionConflict if
any of those versions moved. Watchers are called synchronously after each
write; a watcher that raises is logged and skipped. Used for development
and tests; state is not persisted.
"""

import asyncio
import copy
import logging
from typing import Any, Dict, List, Optional

from wellness_ledger.exceptions import TransactionConflict
from wellness_ledger.store.base import (
    Document,
    DocumentCallback,
    DocumentSnapshot,
    DocumentStore,
    Query,
    QueryCallback,
    Subscription,
    Transaction,
    merge_documents,
    split_path,
)

logger = logging.getLogger(__name__)


class MemoryTransaction(Transaction):
    def __init__(self, store: "MemoryDocumentStore"):
        super().__init__()
        self._store = store

    async def _read(self, path: str) -> tuple[DocumentSnapshot, Any]:
        await asyncio.sleep(0)
        version, data = self._store._docs.get(path, (0, None))
        return DocumentSnapshot(path, copy.deepcopy(data)), version

    async def _commit(self) -> None:
        async with self._store._lock:
            stale = [
                path for path, version in self._reads.items()
                if self._store._docs.get(path, (0, None))[0] != version
            ]
            if stale:
                raise TransactionConflict(paths=stale)
            self._store._apply(self.writes)


class MemoryDocumentStore(DocumentStore):
    """Process-local DocumentStore"""

    def __init__(self) -> None:
        self._docs: Dict[str, tuple[int, Optional[Document]]] = {}
        self._lock = asyncio.Lock()
        self._doc_watchers: Dict[int, tuple[str, DocumentCallback]] = {}
        self._query_watchers: Dict[int, tuple[Query, QueryCallback]] = {}
        self._next_watch_id = 0
        logger.info("MemoryDocumentStore initialized (documents are not persisted)")

    def _apply(self, writes: Dict[str, tuple[Document, bool]]) -> None:
        for path, (data, merge) in writes.items():
            version, existing = self._docs.get(path, (0, None))
            new_data = merge_documents(existing, data) if merge else copy.deepcopy(data)
            self._docs[path] = (version + 1, new_data)
        self._notify(list(writes))

    def _notify(self, paths: List[str]) -> None:
        changed_collections = {split_path(p)[0] for p in paths}
        for path, callback in list(self._doc_watchers.values()):
            if path in paths:
                self._deliver(callback, self._snapshot(path), f"document {path}")
        for query, callback in list(self._query_watchers.values()):
            if query.collection in changed_collections:
                self._deliver(callback, self._query(query), f"query {query.collection}")

    @staticmethod
    def _deliver(callback, value, description: str) -> None:
        # The write has already been applied; a failing watcher only misses this update
        try:
            callback(value)
        except Exception as e:
            logger.warning(f"Watcher for {description} failed: {e!r}", exc_info=True)

    def _snapshot(self, path: str) -> DocumentSnapshot:
        _, data = self._docs.get(path, (0, None))
        return DocumentSnapshot(path, copy.deepcopy(data))

    def _query(self, query: Query) -> List[DocumentSnapshot]:
        children = [
            self._snapshot(path) for path in self._docs
            if split_path(path)[0] == query.collection
        ]
        return query.apply(children)

    async def get(self, path: str) -> DocumentSnapshot:
        split_path(path)
        await asyncio.sleep(0)
        return self._snapshot(path)

    async def set(self, path: str, data: Document, merge: bool = False) -> None:
        split_path(path)
        async with self._lock:
            self._apply({path: (copy.deepcopy(data), merge)})

    async def run_query(self, query: Query) -> List[DocumentSnapshot]:
        await asyncio.sleep(0)
        return self._query(query)

    def transaction(self) -> MemoryTransaction:
        return MemoryTransaction(self)

    def _register(self, registry: dict, entry: tuple, description: str) -> Subscription:
        watch_id = self._next_watch_id
        self._next_watch_id += 1
        registry[watch_id] = entry
        return Subscription(description, _cancel=lambda: registry.pop(watch_id, None))

    async def watch_document(self, path: str, callback: DocumentCallback) -> Subscription:
        split_path(path)
        subscription = self._register(self._doc_watchers, (path, callback), f"document {path}")
        callback(self._snapshot(path))
        return subscription

    async def watch_query(self, query: Query, callback: QueryCallback) -> Subscription:
        subscription = self._register(self._query_watchers, (query, callback), f"query {query.collection}")
        callback(self._query(query))
        return subscription

    @property
    def watcher_count(self) -> int:
        return len(self._doc_watchers) + len(self._query_watchers)

    async def close(self) -> None:
        self._doc_watchers.clear()
        self._query_watchers.clear()
