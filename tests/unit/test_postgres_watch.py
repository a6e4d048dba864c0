"""Unit tests for PostgresDocumentStore subscriptions (no database needed)"""
import asyncio
import pytest
import psycopg
from unittest.mock import AsyncMock, patch

from wellness_ledger.store import DocumentSnapshot
from wellness_ledger.store.postgres import PostgresDocumentStore

PATH = "users/u1/data/stats"


class FakeListener:
    """Stands in for the LISTEN connection"""

    def __init__(self, error=None):
        self.error = error
        self.closed = False
        self._stop = asyncio.Event()

    async def notifies(self):
        if self.error:
            raise self.error
        await self._stop.wait()
        return
        yield

    async def close(self):
        self.closed = True


@pytest.fixture
def pg_store():
    return PostgresDocumentStore("postgresql://unused")


@pytest.mark.asyncio
async def test_listen_starts_before_first_read(pg_store):
    calls = []
    listener = FakeListener()

    async def open_listener():
        calls.append("listen")
        return listener

    async def get(path):
        calls.append("read")
        return DocumentSnapshot(path)

    with patch.object(pg_store, "_open_listener", open_listener), patch.object(pg_store, "get", get):
        subscription = await pg_store.watch_document(PATH, lambda snapshot: None)

    assert calls == ["listen", "read"]
    subscription.unsubscribe()
    await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_failed_first_read_closes_listener(pg_store):
    listener = FakeListener()
    with patch.object(pg_store, "_open_listener", AsyncMock(return_value=listener)), \
            patch.object(pg_store, "get", AsyncMock(side_effect=RuntimeError("read failed"))):
        with pytest.raises(RuntimeError):
            await pg_store.watch_document(PATH, lambda snapshot: None)

    assert listener.closed


@pytest.mark.asyncio
async def test_dropped_connection_marks_subscription_inactive(pg_store):
    listener = FakeListener(error=psycopg.OperationalError("connection lost"))
    with patch.object(pg_store, "_open_listener", AsyncMock(return_value=listener)), \
            patch.object(pg_store, "get", AsyncMock(return_value=DocumentSnapshot(PATH))):
        subscription = await pg_store.watch_document(PATH, lambda snapshot: None)

    async def stopped():
        while subscription.active:
            await asyncio.sleep(0)

    await asyncio.wait_for(stopped(), timeout=1)
    assert listener.closed
    assert pg_store._watch_tasks == {}
