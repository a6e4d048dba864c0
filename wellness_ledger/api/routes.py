"""API routes for the wellness ledger

Ledger errors are not caught here; the handlers registered in server.py turn
them into responses (503 for retryable storage failures, 422 for invalid
input).
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from wellness_ledger import config
from wellness_ledger.api.auth import Caller, verify_api_key
from wellness_ledger.api.middleware import limiter
from wellness_ledger.api.models import (
    CompleteDailyRequest,
    EmotionRecordedResponse,
    EmotionRequest,
    EmotionSummaryResponse,
    HealthCheckResponse,
    LeaderboardResponse,
    TrackWeeklyRequest,
)
from wellness_ledger.models import ActiveChallenges, UserProfile, UserStats
from wellness_ledger.services import ServiceContext
from wellness_ledger.utils.date_keys import date_key

logger = logging.getLogger(__name__)

router = APIRouter()


def get_context(request: Request) -> ServiceContext:
    return request.app.state.context


@router.post("/api/v1/users/{user_id}/challenges/daily/complete", response_model=UserStats)
@limiter.limit("30/minute")
async def complete_daily_challenge(
    request: Request,
    user_id: str,
    body: Optional[CompleteDailyRequest] = None,
    context: ServiceContext = Depends(get_context),
    caller: Caller = Depends(verify_api_key)
):
    """
    Award today's daily challenge (at most once per day)

    Reward defaults to the catalog's daily rewardPoints.
    """
    body = body or CompleteDailyRequest()
    points = body.points
    if points is None:
        challenges = await context.challenges.get_active_challenges()
        if challenges.daily:
            points = challenges.daily.reward_points

    return await context.ledger.complete_daily_challenge(
        user_id, points_per_challenge=points, display_name=body.display_name
    )


@router.post("/api/v1/users/{user_id}/challenges/weekly/track", response_model=UserStats)
@limiter.limit("30/minute")
async def track_weekly_day(
    request: Request,
    user_id: str,
    body: Optional[TrackWeeklyRequest] = None,
    context: ServiceContext = Depends(get_context),
    caller: Caller = Depends(verify_api_key)
):
    """
    Track today toward the weekly goal (bonus paid once per week)

    Goal and reward default to the catalog's weekly definition.
    """
    body = body or TrackWeeklyRequest()
    points, goal_days = body.points, body.goal_days
    if points is None or goal_days is None:
        challenges = await context.challenges.get_active_challenges()
        if challenges.weekly:
            points = challenges.weekly.reward_points if points is None else points
            goal_days = challenges.weekly.goal_days if goal_days is None else goal_days

    return await context.ledger.complete_weekly_day(
        user_id, goal_days=goal_days, points_per_challenge=points, display_name=body.display_name
    )


@router.get("/api/v1/users/{user_id}/stats", response_model=UserStats)
@limiter.limit("60/minute")
async def get_stats(
    request: Request,
    user_id: str,
    context: ServiceContext = Depends(get_context),
    caller: Caller = Depends(verify_api_key)
):
    """Current stats; weekly progress from a past week reads as empty"""
    return await context.ledger.get_user_stats(user_id)


@router.post(
    "/api/v1/users/{user_id}/emotions",
    response_model=EmotionRecordedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
@limiter.limit("30/minute")
async def record_emotion(
    request: Request,
    user_id: str,
    body: EmotionRequest,
    context: ServiceContext = Depends(get_context),
    caller: Caller = Depends(verify_api_key)
):
    """
    Record today's emotions

    Storage failures do not fail the request: the entry is queued and
    written on a later attempt.
    """
    day = body.date or date_key(context.now(), context.timezone)
    recorded = await context.emotions.record_daily_emotion_later_on_failure(
        user_id, body.emotions, body.intensity, day
    )
    return EmotionRecordedResponse(recorded=recorded, date=day)


@router.get("/api/v1/users/{user_id}/emotions/summary", response_model=EmotionSummaryResponse)
@limiter.limit("60/minute")
async def emotion_summary(
    request: Request,
    user_id: str,
    context: ServiceContext = Depends(get_context),
    caller: Caller = Depends(verify_api_key)
):
    """Mood trend and top emotions over the last 7 check-ins"""
    summary = await context.emotions.get_weekly_emotion_summary(user_id)
    return EmotionSummaryResponse(trend=summary.trend, breakdown=summary.breakdown)


@router.get("/api/v1/users/{user_id}/profile", response_model=UserProfile)
@limiter.limit("60/minute")
async def get_profile(
    request: Request,
    user_id: str,
    context: ServiceContext = Depends(get_context),
    caller: Caller = Depends(verify_api_key)
):
    """Profile preferences (defaults when none saved)"""
    return await context.users.get_profile(user_id) or UserProfile()


@router.put("/api/v1/users/{user_id}/profile", response_model=UserProfile)
@limiter.limit("30/minute")
async def update_profile(
    request: Request,
    user_id: str,
    body: UserProfile,
    context: ServiceContext = Depends(get_context),
    caller: Caller = Depends(verify_api_key)
):
    await context.users.save_profile(user_id, body)
    return body


@router.get("/api/v1/leaderboard", response_model=LeaderboardResponse)
@limiter.limit("60/minute")
async def leaderboard(
    request: Request,
    top: int = Query(default=config.LEADERBOARD_TOP_N, ge=1, le=100),
    context: ServiceContext = Depends(get_context),
    caller: Caller = Depends(verify_api_key)
):
    """Top users by points; rank is 1-based position"""
    return LeaderboardResponse(entries=await context.leaderboard.get_leaderboard(top))


@router.get("/api/v1/challenges", response_model=ActiveChallenges)
@limiter.limit("60/minute")
async def active_challenges(
    request: Request,
    context: ServiceContext = Depends(get_context),
    caller: Caller = Depends(verify_api_key)
):
    return await context.challenges.get_active_challenges()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(request: Request):
    """Health check endpoint (no auth)"""
    context = get_context(request)
    return HealthCheckResponse(
        status="healthy",
        store=type(context.store).__name__,
        timestamp=datetime.now(timezone.utc)
    )


@router.get("/metrics")
async def metrics_endpoint():
    """Expose Prometheus metrics"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
