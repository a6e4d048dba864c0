"""
Integration tests for the PostgreSQL document store

Need a disposable database: set TEST_DATABASE_URL to run them.
"""
import asyncio
import os
import pytest
from uuid import uuid4

from wellness_ledger.services.ledger_service import LedgerService
from wellness_ledger.store import Query
from wellness_ledger.store.paths import stats_path

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL not set"),
]


@pytest.fixture(scope="function")
async def pg_store():
    """Initialize database connection for tests"""
    from wellness_ledger.store.postgres import PostgresDocumentStore

    store = PostgresDocumentStore(TEST_DATABASE_URL, min_size=1, max_size=5)
    await store.init_pool()
    yield store
    await store.close()


@pytest.fixture
def unique_user_id() -> str:
    """Generate unique user ID for test isolation"""
    return f"test_{uuid4().hex[:8]}"


@pytest.mark.asyncio
async def test_set_get_merge(pg_store, unique_user_id):
    path = f"users/{unique_user_id}/data/profile"
    await pg_store.set(path, {"theme": "dark", "language": "en"})
    await pg_store.set(path, {"language": "de"}, merge=True)

    snapshot = await pg_store.get(path)
    assert snapshot.data == {"theme": "dark", "language": "de"}


@pytest.mark.asyncio
async def test_query_orders_and_limits(pg_store, unique_user_id):
    collection = f"users/{unique_user_id}/emotions"
    for day, created in [("2024-01-01", 3), ("2024-01-02", 1), ("2024-01-03", 2)]:
        await pg_store.set(f"{collection}/{day}", {"createdAt": created})

    results = await pg_store.run_query(Query(collection, order_by="createdAt", descending=True, limit=2))
    assert [s.id for s in results] == ["2024-01-01", "2024-01-03"]


@pytest.mark.asyncio
async def test_concurrent_daily_awards_once(pg_store, clock, unique_user_id, no_backoff):
    """Racing completions on one day commit exactly one award"""
    ledger = LedgerService(pg_store, timezone="UTC", clock=clock, points_per_challenge=50)

    await asyncio.gather(*[ledger.complete_daily_challenge(unique_user_id) for _ in range(4)])

    stored = await pg_store.get(stats_path(unique_user_id))
    assert stored.data["points"] == 50
    assert stored.data["challengesCompleted"] == 1


@pytest.mark.asyncio
async def test_document_watch_receives_updates(pg_store, unique_user_id):
    path = f"users/{unique_user_id}/data/stats"
    seen = []
    subscription = await pg_store.watch_document(path, seen.append)

    await pg_store.set(path, {"points": 10})
    for _ in range(50):
        if len(seen) > 1:
            break
        await asyncio.sleep(0.05)

    assert seen[0].data is None
    assert seen[-1].data == {"points": 10}
    subscription.unsubscribe()


@pytest.mark.asyncio
async def test_query_skips_missing_and_null_order_field(pg_store, unique_user_id):
    collection = f"users/{unique_user_id}/emotions"
    await pg_store.set(f"{collection}/2024-01-01", {"createdAt": 1})
    await pg_store.set(f"{collection}/2024-01-02", {"createdAt": None})
    await pg_store.set(f"{collection}/2024-01-03", {"intensity": 5})

    results = await pg_store.run_query(Query(collection, order_by="createdAt"))
    assert [s.id for s in results] == ["2024-01-01"]


@pytest.mark.asyncio
async def test_failing_watcher_keeps_watching(pg_store, unique_user_id):
    path = f"users/{unique_user_id}/data/stats"
    seen = []

    def flaky(snapshot):
        seen.append(snapshot)
        if len(seen) == 2:
            raise RuntimeError("watcher bug")

    subscription = await pg_store.watch_document(path, flaky)
    await pg_store.set(path, {"points": 10})
    await pg_store.set(path, {"points": 20})
    for _ in range(50):
        if len(seen) > 2:
            break
        await asyncio.sleep(0.05)

    assert seen[-1].data == {"points": 20}
    assert subscription.active
    subscription.unsubscribe()
