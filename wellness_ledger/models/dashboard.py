"""Schemas for AI-generated dashboard payloads

Generated JSON is untrusted; it is validated against these models before it
reaches storage or callers.
"""
from enum import Enum
from pydantic import Field

from wellness_ledger.models.ledger import LedgerModel, MoodTrendPoint, EmotionBreakdownItem


class RewardType(str, Enum):
    POINTS = "points"
    BADGE = "badge"
    MILESTONE = "milestone"


class Reward(LedgerModel):
    type: RewardType
    value: str


class PlanDailyChallenge(LedgerModel):
    description: str = Field(..., min_length=1)
    reward: Reward


class StreakInfo(LedgerModel):
    current_streak: int = Field(..., ge=0)
    reward: str
    encouragement: str


class PlanWeeklyChallenge(LedgerModel):
    description: str = Field(..., min_length=1)
    reward: Reward
    goal_days: int = Field(..., ge=1, le=7)


class WellnessPlan(LedgerModel):
    """Gamified self-care plan"""
    daily_challenge: PlanDailyChallenge
    streak_info: StreakInfo
    weekly_challenge: PlanWeeklyChallenge
    encouragement: str


class KeyMetrics(LedgerModel):
    current_streak: int = Field(..., ge=0)
    challenges_completed: int = Field(..., ge=0)


class ActivityLogItem(LedgerModel):
    date: str
    activity: str


class DashboardAnalytics(LedgerModel):
    key_metrics: KeyMetrics
    mood_trend: list[MoodTrendPoint] = Field(default_factory=list)
    emotion_breakdown: list[EmotionBreakdownItem] = Field(default_factory=list)
    activity_log: list[ActivityLogItem] = Field(default_factory=list)


class DashboardData(LedgerModel):
    """Document stored at users/{uid}/data/dashboard"""
    wellness_plan: WellnessPlan
    analytics_data: DashboardAnalytics
