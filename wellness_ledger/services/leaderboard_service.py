"""
LeaderboardService - Ranked Reads of the Points Projection

Leaderboard rows are written by the ledger transactions; this service only
reads them. Rank is the 1-based position in the ordered result.
"""

import logging
from typing import Callable, List

from pydantic import ValidationError as PydanticValidationError

from wellness_ledger import config
from wellness_ledger.exceptions import ValidationError
from wellness_ledger.models import LeaderboardEntry
from wellness_ledger.store import DocumentSnapshot, DocumentStore, Query, Subscription
from wellness_ledger.store.paths import LEADERBOARD_COLLECTION

logger = logging.getLogger(__name__)


def rank_entries(snapshots: List[DocumentSnapshot]) -> List[LeaderboardEntry]:
    entries = []
    for snap in snapshots:
        try:
            entry = LeaderboardEntry.model_validate({**snap.data, "uid": snap.id})
        except PydanticValidationError:
            logger.warning(f"Skipping malformed leaderboard row {snap.path}")
            continue
        entry.rank = len(entries) + 1
        entries.append(entry)
    return entries


class LeaderboardService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _query(self, top_n: int) -> Query:
        if top_n < 1:
            raise ValidationError("top_n must be at least 1", field="top_n", value=top_n)
        return Query(LEADERBOARD_COLLECTION, order_by="points", descending=True, limit=top_n)

    async def get_leaderboard(self, top_n: int = config.LEADERBOARD_TOP_N) -> List[LeaderboardEntry]:
        return rank_entries(await self.store.run_query(self._query(top_n)))

    async def subscribe_leaderboard(
        self,
        top_n: int,
        callback: Callable[[List[LeaderboardEntry]], None],
    ) -> Subscription:
        """Push the full ranked top-N list whenever any row changes"""
        return await self.store.watch_query(self._query(top_n), lambda snaps: callback(rank_entries(snaps)))
