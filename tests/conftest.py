"""Global test fixtures and utilities for wellness-ledger tests"""
import pytest
from datetime import datetime, timedelta, timezone

from wellness_ledger.api.middleware import limiter
from wellness_ledger.services import ServiceContext
from wellness_ledger.store import MemoryDocumentStore


# ============================================================================
# Clock Fixtures
# ============================================================================

class FakeClock:
    """Settable clock; call it to read the current instant"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def set_day(self, key: str, hour: int = 9) -> None:
        """Move to a given DateKey at the given UTC hour"""
        self.now = datetime.strptime(key, "%Y-%m-%d").replace(hour=hour, tzinfo=timezone.utc)

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock frozen at Monday 2024-01-01 09:00 UTC"""
    return FakeClock(datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc))


# ============================================================================
# Store & Service Fixtures
# ============================================================================

@pytest.fixture
async def store():
    """Fresh in-memory document store"""
    memory_store = MemoryDocumentStore()
    yield memory_store
    await memory_store.close()


@pytest.fixture
def context(store, clock):
    """Service context over the memory store with a fixed clock"""
    return ServiceContext(store=store, timezone="UTC", clock=clock)


@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "user-123"


@pytest.fixture
def test_api_key():
    """Standard test API key"""
    return "test_api_key_12345"


@pytest.fixture(autouse=True)
def disable_rate_limiting():
    """Rate limits are keyed by client address; every test client shares one"""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def no_backoff(monkeypatch):
    """Retry conflicting transactions without sleeping"""
    from wellness_ledger import config
    monkeypatch.setattr(config, "TRANSACTION_BASE_DELAY", 0.0)
    monkeypatch.setattr(config, "TRANSACTION_MAX_DELAY", 0.0)
