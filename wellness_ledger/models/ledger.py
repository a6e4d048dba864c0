"""Ledger document models

Field names are snake_case in Python and camelCase in stored documents.
"""
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_WEEKLY_GOAL_DAYS = 4


class LedgerModel(BaseModel):
    """Base for documents persisted with camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class ChallengeType(str, Enum):
    """Challenge cadence"""
    DAILY = "daily"
    WEEKLY = "weekly"


class UserStats(LedgerModel):
    """Per-user points, streaks and weekly progress"""
    points: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    challenges_completed: int = Field(default=0, ge=0)
    last_completion_date: Optional[str] = None
    last_daily_completion_date: Optional[str] = None
    weekly_start_date: Optional[str] = None
    weekly_goal_days: int = DEFAULT_WEEKLY_GOAL_DAYS
    weekly_completed_dates: list[str] = Field(default_factory=list)

    @field_validator("weekly_completed_dates")
    @classmethod
    def dedupe_dates(cls, v: list[str]) -> list[str]:
        return sorted(set(v))


class EmotionEntry(LedgerModel):
    """One mood check-in per user per day"""
    id: str
    date: str
    emotions: list[str] = Field(..., min_length=1)
    intensity: int = Field(..., ge=1, le=10)
    created_at: int = Field(..., description="Milliseconds since the epoch")


class DailyCompletionMarker(LedgerModel):
    """Existence-only guard for the daily award"""
    completed: bool = True
    created_at: int


class WeeklyAwardMarker(LedgerModel):
    """Existence-only guard for the weekly bonus"""
    week_start: str
    awarded_at: int


class LeaderboardEntry(LedgerModel):
    """Denormalized points projection; rank is positional and never stored"""
    uid: str
    display_name: Optional[str] = None
    points: int = 0
    rank: Optional[int] = None

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude={"rank"})


class ChallengeDefinition(LedgerModel):
    """Externally managed challenge; read-only to the ledger"""
    id: str
    type: ChallengeType
    description: str = ""
    reward_points: int = Field(default=50, ge=0)
    goal_days: Optional[int] = Field(default=None, ge=1, le=7)


class ActiveChallenges(LedgerModel):
    """Merged view of the daily and weekly definitions"""
    daily: Optional[ChallengeDefinition] = None
    weekly: Optional[ChallengeDefinition] = None


class MoodTrendPoint(LedgerModel):
    """Mood score for one check-in, labelled by weekday"""
    day: str
    mood_score: int


class EmotionBreakdownItem(LedgerModel):
    """Share of one emotion tag across recent check-ins"""
    emotion: str
    percentage: int
    color: str


class WeeklyEmotionSummary(LedgerModel):
    trend: list[MoodTrendPoint] = Field(default_factory=list)
    breakdown: list[EmotionBreakdownItem] = Field(default_factory=list)


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class UserProfile(LedgerModel):
    """Display preferences stored next to the stats document"""
    theme: Theme = Theme.LIGHT
    language: str = "en"
