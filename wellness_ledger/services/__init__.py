"""
Service layer for the wellness ledger

Services hold the ledger's business logic on top of the document store:
- LedgerService: points, streaks, weekly goals
- EmotionService: daily emotion log and weekly summary
- LeaderboardService: ranked reads
- ChallengeService: challenge catalog reads
- UserService: profile and dashboard documents
"""

from wellness_ledger.services.challenge_service import ChallengeService
from wellness_ledger.services.container import ServiceContext, create_context
from wellness_ledger.services.emotion_service import EmotionService
from wellness_ledger.services.leaderboard_service import LeaderboardService
from wellness_ledger.services.ledger_service import LedgerService
from wellness_ledger.services.user_service import UserService

__all__ = [
    "ChallengeService",
    "EmotionService",
    "LeaderboardService",
    "LedgerService",
    "UserService",
    "ServiceContext",
    "create_context",
]
