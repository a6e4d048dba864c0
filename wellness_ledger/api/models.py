"""Pydantic models for API request/response validation"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime

from wellness_ledger.models import (
    EmotionBreakdownItem,
    LeaderboardEntry,
    MoodTrendPoint,
)


class CompleteDailyRequest(BaseModel):
    """Request to complete today's daily challenge"""
    display_name: Optional[str] = Field(default=None, description="Name to show on the leaderboard")
    points: Optional[int] = Field(default=None, ge=0, description="Override the catalog reward")


class TrackWeeklyRequest(BaseModel):
    """Request to track today toward the weekly goal"""
    display_name: Optional[str] = Field(default=None, description="Name to show on the leaderboard")
    goal_days: Optional[int] = Field(default=None, ge=1, le=7, description="Override the weekly goal")
    points: Optional[int] = Field(default=None, ge=0, description="Override the catalog reward")


class EmotionRequest(BaseModel):
    """Daily emotion check-in"""
    emotions: List[str] = Field(..., min_length=1, description="Emotion tags")
    intensity: int = Field(..., ge=1, le=10, description="Intensity 1-10")
    date: Optional[str] = Field(default=None, description="YYYY-MM-DD, defaults to today")


class EmotionRecordedResponse(BaseModel):
    """recorded is False when the write was queued for retry"""
    recorded: bool
    date: str


class EmotionSummaryResponse(BaseModel):
    trend: List[MoodTrendPoint]
    breakdown: List[EmotionBreakdownItem]


class LeaderboardResponse(BaseModel):
    entries: List[LeaderboardEntry]


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str
    store: str
    timestamp: datetime

