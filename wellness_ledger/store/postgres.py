"""
PostgreSQL-backed document store

All documents live in one table keyed by path. Each row carries a version
that every write bumps. Transactions read without locks, then at commit time
take transaction-scoped advisory locks on every touched path (in sorted
order), re-check the versions they read and apply their writes. Writers
announce changed paths with NOTIFY; each subscription holds its own LISTEN
connection and re-reads its target when a relevant path changes.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from wellness_ledger.exceptions import TransactionConflict, WellnessLedgerError, wrap_external_exception
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

NOTIFY_CHANNEL = "documents_changed"

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    path TEXT PRIMARY KEY,
    collection TEXT NOT NULL,
    data JSONB NOT NULL,
    version BIGINT NOT NULL DEFAULT 1,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS documents_collection_idx ON documents (collection);
"""

UPSERT = """
INSERT INTO documents (path, collection, data, version)
VALUES (%s, %s, %s, 1)
ON CONFLICT (path) DO UPDATE
SET data = EXCLUDED.data,
    version = documents.version + 1,
    updated_at = CURRENT_TIMESTAMP
"""


class PostgresTransaction(Transaction):
    def __init__(self, store: "PostgresDocumentStore"):
        super().__init__()
        self._store = store

    async def _read(self, path: str) -> tuple[DocumentSnapshot, Any]:
        row = await self._store._fetch_row(path)
        if row is None:
            return DocumentSnapshot(path, None), 0
        return DocumentSnapshot(path, row["data"]), row["version"]

    async def _commit(self) -> None:
        touched = sorted(set(self._reads) | set(self.writes))
        try:
            async with self._store.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        for path in touched:
                            await cur.execute("SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))", (path,))

                        await cur.execute(
                            "SELECT path, data, version FROM documents WHERE path = ANY(%s)",
                            (touched,)
                        )
                        current = {row["path"]: row for row in await cur.fetchall()}

                        stale = [
                            path for path, version in self._reads.items()
                            if (current[path]["version"] if path in current else 0) != version
                        ]
                        if stale:
                            raise TransactionConflict(paths=stale)

                        for path, (data, merge) in self.writes.items():
                            existing = current[path]["data"] if path in current else None
                            await self._store._upsert(cur, path, merge_documents(existing, data) if merge else data)
                        for path in self.writes:
                            await cur.execute("SELECT pg_notify(%s, %s)", (NOTIFY_CHANNEL, path))
        except WellnessLedgerError:
            raise
        except Exception as e:
            raise wrap_external_exception(e, operation="transaction.commit", context={"paths": touched})


class PostgresDocumentStore(DocumentStore):
    """DocumentStore on a psycopg connection pool"""

    def __init__(self, connection_string: str, min_size: int = 2, max_size: int = 10):
        self.connection_string = connection_string
        self._min_size = min_size
        self._max_size = max_size
        self._pool: Optional[AsyncConnectionPool] = None
        self._watch_tasks: Dict[int, asyncio.Task] = {}
        self._next_watch_id = 0

    async def init_pool(self) -> None:
        """Open the pool and create the documents table if needed"""
        logger.info("Initializing document store connection pool")
        self._pool = AsyncConnectionPool(
            self.connection_string,
            min_size=self._min_size,
            max_size=self._max_size,
            open=False
        )
        await self._pool.open()
        async with self.connection() as conn:
            await conn.execute(SCHEMA)
            await conn.commit()

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Get a connection from the pool"""
        if not self._pool:
            raise RuntimeError("Document store pool not initialized")

        async with self._pool.connection() as conn:
            conn.row_factory = dict_row
            yield conn

    async def _fetch_row(self, path: str) -> Optional[dict]:
        split_path(path)
        try:
            async with self.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT data, version FROM documents WHERE path = %s", (path,))
                    return await cur.fetchone()
        except Exception as e:
            raise wrap_external_exception(e, operation="store.get", context={"path": path})

    async def _upsert(self, cur, path: str, data: Document) -> None:
        collection, _ = split_path(path)
        await cur.execute(UPSERT, (path, collection, Jsonb(data)))

    async def get(self, path: str) -> DocumentSnapshot:
        row = await self._fetch_row(path)
        return DocumentSnapshot(path, row["data"] if row else None)

    async def set(self, path: str, data: Document, merge: bool = False) -> None:
        split_path(path)
        try:
            async with self.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        await cur.execute("SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))", (path,))
                        if merge:
                            await cur.execute("SELECT data FROM documents WHERE path = %s", (path,))
                            row = await cur.fetchone()
                            data = merge_documents(row["data"] if row else None, data)
                        await self._upsert(cur, path, data)
                        await cur.execute("SELECT pg_notify(%s, %s)", (NOTIFY_CHANNEL, path))
        except Exception as e:
            raise wrap_external_exception(e, operation="store.set", context={"path": path})

    async def run_query(self, query: Query) -> List[DocumentSnapshot]:
        direction = "DESC" if query.descending else "ASC"
        sql = (
            "SELECT path, data FROM documents "
            "WHERE collection = %s AND data ? %s AND data -> %s <> 'null'::jsonb "
            f"ORDER BY data -> %s {direction}, path ASC"
        )
        params: list = [query.collection, query.order_by, query.order_by, query.order_by]
        if query.limit is not None:
            sql += " LIMIT %s"
            params.append(query.limit)
        try:
            async with self.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(sql, params)
                    rows = await cur.fetchall()
        except Exception as e:
            raise wrap_external_exception(e, operation="store.run_query", context={"collection": query.collection})
        return [DocumentSnapshot(row["path"], row["data"]) for row in rows]

    def transaction(self) -> PostgresTransaction:
        return PostgresTransaction(self)

    async def _open_listener(self) -> psycopg.AsyncConnection:
        """Dedicated autocommit connection already LISTENing on the change channel"""
        conn = None
        try:
            conn = await psycopg.AsyncConnection.connect(self.connection_string, autocommit=True)
            await conn.execute(f"LISTEN {NOTIFY_CHANNEL}")
        except Exception as e:
            if conn is not None:
                await conn.close()
            raise wrap_external_exception(e, operation="store.watch")
        return conn

    async def _listen(self, conn: psycopg.AsyncConnection, matches, refresh, description: str) -> None:
        """Re-run refresh whenever a NOTIFY names a matching path"""
        try:
            async for notify in conn.notifies():
                if not matches(notify.payload):
                    continue
                try:
                    await refresh()
                except Exception as e:
                    # Watchers degrade to "no update" on read or callback failures
                    logger.warning(f"Skipped update for {description}: {e!r}")
        finally:
            await conn.close()

    async def _watch(self, matches, refresh, description: str) -> Subscription:
        # LISTEN before the first read so no change between the two is missed
        conn = await self._open_listener()
        try:
            await refresh()
        except BaseException:
            await conn.close()
            raise

        watch_id = self._next_watch_id
        self._next_watch_id += 1
        task = asyncio.create_task(self._listen(conn, matches, refresh, description))
        self._watch_tasks[watch_id] = task

        def cancel() -> None:
            self._watch_tasks.pop(watch_id, None)
            task.cancel()

        subscription = Subscription(description, _cancel=cancel)

        def finished(done: asyncio.Task) -> None:
            self._watch_tasks.pop(watch_id, None)
            if done.cancelled():
                return
            subscription.active = False
            error = done.exception()
            if error is not None:
                logger.error(f"Watch on {description} stopped: {error!r}")
            else:
                logger.warning(f"Watch on {description} ended")

        task.add_done_callback(finished)
        return subscription

    async def watch_document(self, path: str, callback: DocumentCallback) -> Subscription:
        async def refresh() -> None:
            callback(await self.get(path))

        split_path(path)
        return await self._watch(lambda changed: changed == path, refresh, f"document {path}")

    async def watch_query(self, query: Query, callback: QueryCallback) -> Subscription:
        async def refresh() -> None:
            callback(await self.run_query(query))

        return await self._watch(
            lambda changed: split_path(changed)[0] == query.collection,
            refresh,
            f"query {query.collection}",
        )

    async def close(self) -> None:
        for task in list(self._watch_tasks.values()):
            task.cancel()
        self._watch_tasks.clear()
        if self._pool:
            logger.info("Closing document store connection pool")
            await self._pool.close()
