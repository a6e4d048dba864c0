"""
ChallengeService - Read-only Challenge Catalog

The daily and weekly challenge definitions are managed outside the ledger
at challenges/daily and challenges/weekly. This service merges them into a
single view; it never writes them.
"""

import logging
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from wellness_ledger.models import ActiveChallenges, ChallengeDefinition, ChallengeType
from wellness_ledger.store import DocumentSnapshot, DocumentStore, Subscription
from wellness_ledger.store.paths import challenge_path

logger = logging.getLogger(__name__)


def parse_definition(snapshot: DocumentSnapshot, challenge_type: ChallengeType) -> Optional[ChallengeDefinition]:
    """Definition from a catalog document, or None if absent or malformed"""
    if not snapshot.exists:
        return None
    data = {"type": challenge_type.value, **snapshot.data, "id": challenge_type.value}
    try:
        return ChallengeDefinition.model_validate(data)
    except PydanticValidationError:
        logger.warning(f"Ignoring malformed challenge definition at {snapshot.path}")
        return None


class ChallengeService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def get_active_challenges(self) -> ActiveChallenges:
        challenges = ActiveChallenges()
        for challenge_type in ChallengeType:
            snapshot = await self.store.get(challenge_path(challenge_type.value))
            setattr(challenges, challenge_type.value, parse_definition(snapshot, challenge_type))
        return challenges

    async def subscribe_active_challenges(
        self,
        callback: Callable[[ActiveChallenges], None],
    ) -> Subscription:
        """
        Push the merged {daily, weekly} view whenever either definition changes

        Only documents that exist trigger a push; a definition stays in the
        view once seen.
        """
        current = ActiveChallenges()

        def on_change(challenge_type: ChallengeType):
            def handle(snapshot: DocumentSnapshot) -> None:
                definition = parse_definition(snapshot, challenge_type)
                if definition is None:
                    return
                setattr(current, challenge_type.value, definition)
                callback(current.model_copy())
            return handle

        subscriptions = [
            await self.store.watch_document(challenge_path(t.value), on_change(t))
            for t in ChallengeType
        ]

        def cancel() -> None:
            for subscription in subscriptions:
                subscription.unsubscribe()

        return Subscription("active challenges", _cancel=cancel)
