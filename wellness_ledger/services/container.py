"""
Service Context - Explicit Dependency Container

Built once at process start around an opened document store and handed to
whatever needs ledger services (API app state, workers, tests). Services are
lazy-loaded on first access and share the store and clock.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
import logging

from wellness_ledger import config
from wellness_ledger.store import DocumentStore, create_store
from wellness_ledger.utils.date_keys import now_local

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """
    Dependency container for ledger services.

    The store is injected; services are created lazily via properties.
    close() releases the store and must be called on shutdown.
    """

    store: DocumentStore
    timezone: str = config.DEFAULT_TIMEZONE
    clock: Optional[Callable[[], datetime]] = None

    _ledger: Optional[object] = field(default=None, init=False, repr=False)
    _emotions: Optional[object] = field(default=None, init=False, repr=False)
    _leaderboard: Optional[object] = field(default=None, init=False, repr=False)
    _challenges: Optional[object] = field(default=None, init=False, repr=False)
    _users: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def ledger(self):
        """Get LedgerService instance (lazy-loaded)"""
        if self._ledger is None:
            from wellness_ledger.services.ledger_service import LedgerService
            self._ledger = LedgerService(self.store, timezone=self.timezone, clock=self.clock)
            logger.debug("LedgerService instantiated")
        return self._ledger

    @property
    def emotions(self):
        """Get EmotionService instance (lazy-loaded)"""
        if self._emotions is None:
            from wellness_ledger.services.emotion_service import EmotionService
            self._emotions = EmotionService(self.store, timezone=self.timezone, clock=self.clock)
            logger.debug("EmotionService instantiated")
        return self._emotions

    @property
    def leaderboard(self):
        """Get LeaderboardService instance (lazy-loaded)"""
        if self._leaderboard is None:
            from wellness_ledger.services.leaderboard_service import LeaderboardService
            self._leaderboard = LeaderboardService(self.store)
            logger.debug("LeaderboardService instantiated")
        return self._leaderboard

    @property
    def challenges(self):
        """Get ChallengeService instance (lazy-loaded)"""
        if self._challenges is None:
            from wellness_ledger.services.challenge_service import ChallengeService
            self._challenges = ChallengeService(self.store)
            logger.debug("ChallengeService instantiated")
        return self._challenges

    @property
    def users(self):
        """Get UserService instance (lazy-loaded)"""
        if self._users is None:
            from wellness_ledger.services.user_service import UserService
            self._users = UserService(self.store)
            logger.debug("UserService instantiated")
        return self._users

    def now(self) -> datetime:
        """Current time from the injected clock, else the context timezone"""
        return self.clock() if self.clock else now_local(self.timezone)

    async def close(self) -> None:
        await self.store.close()
        logger.info("Service context closed")


async def create_context(
    backend: Optional[str] = None,
    database_url: Optional[str] = None,
    timezone: Optional[str] = None,
) -> ServiceContext:
    """
    Open the configured store and wrap it in a ServiceContext.

    Args:
        backend: 'memory' or 'postgres' (default: config.STORE_BACKEND)
        database_url: DSN for postgres (default: config.DATABASE_URL)
        timezone: Zone for DateKeys (default: config.DEFAULT_TIMEZONE)
    """
    store = await create_store(backend or config.STORE_BACKEND, database_url or config.DATABASE_URL)
    context = ServiceContext(store=store, timezone=timezone or config.DEFAULT_TIMEZONE)
    logger.info(f"Service context initialized with {type(store).__name__}")
    return context
