"""
LedgerService - Points, Streaks and Weekly Goals

Turns "the user completed today's challenge" and "the user did the weekly
challenge today" into points, streak and weekly-progress updates.

Every mutation runs as one optimistic transaction that reads the stats
document together with the relevant completion marker, so concurrent
devices can never award the same day or week twice: the loser of a race is
retried, sees the marker, and returns the winner's state.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from wellness_ledger import config
from wellness_ledger.exceptions import ValidationError
from wellness_ledger.models import (
    DEFAULT_WEEKLY_GOAL_DAYS,
    DailyCompletionMarker,
    LeaderboardEntry,
    UserStats,
    WeeklyAwardMarker,
)
from wellness_ledger.observability.metrics import (
    ledger_awards_total,
    ledger_guard_hits_total,
    ledger_weekly_rollovers_total,
)
from wellness_ledger.store import DocumentSnapshot, DocumentStore, Subscription, Transaction, run_transaction
from wellness_ledger.store.paths import (
    daily_completion_path,
    leaderboard_path,
    stats_path,
    weekly_award_path,
)
from wellness_ledger.utils.date_keys import date_key, day_gap, now_local, week_key

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def default_stats(current_week: str, weekly_goal_days: Optional[int] = None) -> UserStats:
    """Zero-valued stats for a user with no stats document yet"""
    return UserStats(
        weekly_start_date=current_week,
        weekly_goal_days=weekly_goal_days or DEFAULT_WEEKLY_GOAL_DAYS,
    )


def roll_week(stats: UserStats, current_week: str) -> bool:
    """
    Reset weekly progress if stats belong to an earlier week

    Points and streaks are untouched. Returns True when a rollover happened.
    """
    if stats.weekly_start_date == current_week:
        return False
    stats.weekly_start_date = current_week
    stats.weekly_completed_dates = []
    return True


def next_streak(current_streak: int, last_completion_date: Optional[str], today: str) -> int:
    """
    Streak after completing the daily challenge on `today`

    - No prior completion: 1
    - Completed yesterday: current + 1
    - Completed today already: unchanged
    - Any other gap: reset to 1
    """
    if not last_completion_date:
        return 1
    gap = day_gap(today, last_completion_date)
    if gap == 1:
        return current_streak + 1
    if gap == 0:
        return current_streak or 1
    return 1


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class LedgerService:
    """
    Service for the per-user stats ledger.

    Responsibilities:
    - Daily challenge awards with streak tracking
    - Weekly goal tracking with a once-per-week bonus
    - Leaderboard projection writes in the same transaction
    - Stats initialisation and live stats reads
    """

    def __init__(
        self,
        store: DocumentStore,
        timezone: str = config.DEFAULT_TIMEZONE,
        clock: Optional[Clock] = None,
        points_per_challenge: int = config.POINTS_PER_CHALLENGE,
        weekly_goal_days: int = config.DEFAULT_WEEKLY_GOAL_DAYS,
    ):
        self.store = store
        self.timezone = timezone
        self._clock = clock or (lambda: now_local(timezone))
        self.points_per_challenge = points_per_challenge
        self.weekly_goal_days = weekly_goal_days
        logger.debug("LedgerService initialized")

    def _now(self) -> datetime:
        return self._clock()

    def _load_stats(self, snapshot: DocumentSnapshot, current_week: str, goal_days: Optional[int] = None) -> UserStats:
        if snapshot.exists:
            return UserStats.model_validate(snapshot.data)
        return default_stats(current_week, goal_days or self.weekly_goal_days)

    def _resolve_points(self, points_per_challenge: Optional[int], uid: str) -> int:
        points = self.points_per_challenge if points_per_challenge is None else points_per_challenge
        if points < 0:
            raise ValidationError("Points per challenge cannot be negative", field="points_per_challenge",
                                  value=points, user_id=uid)
        return points

    def _write_leaderboard(self, tx: Transaction, uid: str, stats: UserStats, display_name: Optional[str]) -> None:
        entry = LeaderboardEntry(uid=uid, display_name=display_name, points=stats.points).to_document()
        if display_name is None:
            # Keep whatever name is already on the board
            entry.pop("displayName")
        tx.set(leaderboard_path(uid), entry, merge=True)

    async def complete_daily_challenge(
        self,
        uid: str,
        points_per_challenge: Optional[int] = None,
        display_name: Optional[str] = None,
    ) -> UserStats:
        """
        Award the daily challenge once per calendar day.

        Args:
            uid: User ID
            points_per_challenge: Points for the award (default from config)
            display_name: Caller's current display name for the leaderboard

        Returns:
            Stats after the award, or the unchanged stats if today was
            already awarded

        Raises:
            TransientStorageError, ConflictRetryExhausted: nothing was recorded
        """
        points = self._resolve_points(points_per_challenge, uid)
        now = self._now()
        today = date_key(now, self.timezone)
        current_week = week_key(today)

        async def award(tx: Transaction) -> tuple[UserStats, bool, bool]:
            stats_snap = await tx.get(stats_path(uid))
            marker_snap = await tx.get(daily_completion_path(uid, today))
            stats = self._load_stats(stats_snap, current_week)

            if marker_snap.exists:
                return stats, False, False

            rolled = roll_week(stats, current_week)
            streak = next_streak(stats.current_streak, stats.last_completion_date, today)

            stats.points += points
            stats.current_streak = streak
            stats.longest_streak = max(stats.longest_streak, streak)
            stats.challenges_completed += 1
            stats.last_completion_date = today
            stats.last_daily_completion_date = today
            stats.weekly_completed_dates = sorted(set(stats.weekly_completed_dates) | {today})

            tx.set(stats_path(uid), stats.to_document())
            tx.set(daily_completion_path(uid, today), DailyCompletionMarker(created_at=_epoch_ms(now)).to_document())
            self._write_leaderboard(tx, uid, stats, display_name)
            return stats, True, rolled

        stats, awarded, rolled = await run_transaction(
            self.store, award, operation="complete_daily_challenge", user_id=uid
        )

        if rolled:
            ledger_weekly_rollovers_total.inc()
        if awarded:
            ledger_awards_total.labels(kind="daily").inc()
            logger.info(
                f"Daily challenge awarded: user={uid}, date={today}, points={stats.points}, "
                f"streak={stats.current_streak}"
            )
        else:
            ledger_guard_hits_total.labels(kind="daily").inc()
            logger.info(f"Daily challenge already awarded for user {uid} on {today}")
        return stats

    async def complete_weekly_day(
        self,
        uid: str,
        goal_days: Optional[int] = None,
        points_per_challenge: Optional[int] = None,
        display_name: Optional[str] = None,
    ) -> UserStats:
        """
        Track today toward the weekly goal; pay the bonus once per week.

        Tracking the same day twice is a no-op on the set. Once the goal is
        met and paid, further calls that week change nothing but membership.

        Args:
            uid: User ID
            goal_days: Overrides the stored weekly goal when given
            points_per_challenge: Bonus for reaching the goal
            display_name: Caller's current display name for the leaderboard

        Returns:
            Updated stats
        """
        points = self._resolve_points(points_per_challenge, uid)
        if goal_days is not None and not 1 <= goal_days <= 7:
            raise ValidationError("Weekly goal must be between 1 and 7 days", field="goal_days",
                                  value=goal_days, user_id=uid)

        now = self._now()
        today = date_key(now, self.timezone)
        current_week = week_key(today)

        async def track(tx: Transaction) -> tuple[UserStats, bool, bool]:
            stats_snap = await tx.get(stats_path(uid))
            award_snap = await tx.get(weekly_award_path(uid, current_week))
            stats = self._load_stats(stats_snap, current_week, goal_days)

            rolled = roll_week(stats, current_week)
            if goal_days is not None:
                if stats.weekly_goal_days != goal_days:
                    logger.info(f"Weekly goal for user {uid} changed {stats.weekly_goal_days} -> {goal_days}")
                stats.weekly_goal_days = goal_days

            stats.weekly_completed_dates = sorted(set(stats.weekly_completed_dates) | {today})

            goal = stats.weekly_goal_days or DEFAULT_WEEKLY_GOAL_DAYS
            awarded = False
            if len(stats.weekly_completed_dates) >= goal and not award_snap.exists:
                stats.points += points
                stats.challenges_completed += 1
                marker = WeeklyAwardMarker(week_start=current_week, awarded_at=_epoch_ms(now))
                tx.set(weekly_award_path(uid, current_week), marker.to_document())
                awarded = True

            tx.set(stats_path(uid), stats.to_document())
            self._write_leaderboard(tx, uid, stats, display_name)
            return stats, awarded, rolled

        stats, awarded, rolled = await run_transaction(
            self.store, track, operation="complete_weekly_day", user_id=uid
        )

        if rolled:
            ledger_weekly_rollovers_total.inc()
        if awarded:
            ledger_awards_total.labels(kind="weekly").inc()
            logger.info(f"Weekly goal reached: user={uid}, week={current_week}, points={stats.points}")
        else:
            logger.debug(
                f"Tracked weekly day for user {uid}: "
                f"{len(stats.weekly_completed_dates)}/{stats.weekly_goal_days}"
            )
        return stats

    async def ensure_stats_initialized(self, uid: str, weekly_goal_days: Optional[int] = None) -> UserStats:
        """Create the default stats document if the user has none"""
        current_week = week_key(date_key(self._now(), self.timezone))

        async def init(tx: Transaction) -> tuple[UserStats, bool]:
            snap = await tx.get(stats_path(uid))
            if snap.exists:
                return UserStats.model_validate(snap.data), False
            stats = default_stats(current_week, weekly_goal_days or self.weekly_goal_days)
            tx.set(stats_path(uid), stats.to_document())
            return stats, True

        stats, created = await run_transaction(
            self.store, init, operation="ensure_stats_initialized", user_id=uid
        )
        if created:
            logger.info(f"Created stats document for user {uid}")
        return stats

    def _view(self, snapshot: DocumentSnapshot) -> UserStats:
        """Stats as of now: weekly progress from an earlier week reads as empty"""
        current_week = week_key(date_key(self._now(), self.timezone))
        stats = self._load_stats(snapshot, current_week)
        roll_week(stats, current_week)
        return stats

    async def get_user_stats(self, uid: str) -> UserStats:
        return self._view(await self.store.get(stats_path(uid)))

    async def subscribe_user_stats(
        self,
        uid: str,
        callback: Callable[[UserStats], None],
        weekly_goal_days: Optional[int] = None,
    ) -> Subscription:
        """Initialise stats, then push them on every change until unsubscribed"""
        await self.ensure_stats_initialized(uid, weekly_goal_days)
        return await self.store.watch_document(stats_path(uid), lambda snap: callback(self._view(snap)))
