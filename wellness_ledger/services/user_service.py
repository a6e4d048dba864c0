"""
UserService - Profile and Dashboard Documents

Profile (theme, language) and the generated dashboard payload live next to
the stats document under users/{uid}/data. Dashboard payloads are validated
against their schema on write and on read.
"""

import logging
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from wellness_ledger.exceptions import ValidationError
from wellness_ledger.models import DashboardData, UserProfile
from wellness_ledger.store import DocumentSnapshot, DocumentStore, Subscription
from wellness_ledger.store.paths import dashboard_path, profile_path

logger = logging.getLogger(__name__)


class UserService:
    """
    Service for per-user settings documents.

    Responsibilities:
    - Profile preferences (merge writes)
    - Dashboard data persistence with schema validation
    - Live dashboard reads across devices
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        logger.debug("UserService initialized")

    async def save_profile(self, uid: str, profile: UserProfile) -> None:
        await self.store.set(profile_path(uid), profile.to_document(), merge=True)
        logger.info(f"Saved profile for user {uid}")

    async def get_profile(self, uid: str) -> Optional[UserProfile]:
        snapshot = await self.store.get(profile_path(uid))
        return UserProfile.model_validate(snapshot.data) if snapshot.exists else None

    async def save_dashboard_data(self, uid: str, data: DashboardData) -> None:
        await self.store.set(dashboard_path(uid), data.to_document())

    def _parse_dashboard(self, snapshot: DocumentSnapshot) -> Optional[DashboardData]:
        if not snapshot.exists:
            return None
        try:
            return DashboardData.model_validate(snapshot.data)
        except PydanticValidationError as e:
            raise ValidationError(
                "Stored dashboard data does not match its schema",
                field="dashboard",
                value=e.error_count(),
                operation="get_dashboard_data",
            )

    async def get_dashboard_data(self, uid: str) -> Optional[DashboardData]:
        return self._parse_dashboard(await self.store.get(dashboard_path(uid)))

    async def subscribe_dashboard_data(
        self,
        uid: str,
        callback: Callable[[Optional[DashboardData]], None],
    ) -> Subscription:
        """Push the dashboard document (or None) on every change"""

        def on_change(snapshot: DocumentSnapshot) -> None:
            try:
                callback(self._parse_dashboard(snapshot))
            except ValidationError:
                logger.warning(f"Ignoring invalid dashboard update for user {uid}")

        return await self.store.watch_document(dashboard_path(uid), on_change)
