"""Document models for the wellness ledger"""

from wellness_ledger.models.ledger import (
    DEFAULT_WEEKLY_GOAL_DAYS,
    ActiveChallenges,
    ChallengeDefinition,
    ChallengeType,
    DailyCompletionMarker,
    EmotionBreakdownItem,
    EmotionEntry,
    LeaderboardEntry,
    MoodTrendPoint,
    Theme,
    UserProfile,
    UserStats,
    WeeklyAwardMarker,
    WeeklyEmotionSummary,
)
from wellness_ledger.models.dashboard import DashboardAnalytics, DashboardData, WellnessPlan

__all__ = [
    "DEFAULT_WEEKLY_GOAL_DAYS",
    "ActiveChallenges",
    "ChallengeDefinition",
    "ChallengeType",
    "DailyCompletionMarker",
    "EmotionBreakdownItem",
    "EmotionEntry",
    "LeaderboardEntry",
    "MoodTrendPoint",
    "Theme",
    "UserProfile",
    "UserStats",
    "WeeklyAwardMarker",
    "WeeklyEmotionSummary",
    "DashboardAnalytics",
    "DashboardData",
    "WellnessPlan",
]
