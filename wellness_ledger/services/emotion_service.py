"""
EmotionService - Daily Emotion Log and Weekly Summary

Writes one emotion entry per user per day (last write wins, merge keeps
untouched fields) and derives the mood trend and emotion breakdown from the
seven most recent entries.
"""

import logging
import math
from collections import Counter
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from wellness_ledger import config
from wellness_ledger.exceptions import StorageError, ValidationError
from wellness_ledger.models import (
    EmotionBreakdownItem,
    EmotionEntry,
    MoodTrendPoint,
    WeeklyEmotionSummary,
)
from wellness_ledger.observability.metrics import emotion_writes_total
from wellness_ledger.store import DocumentSnapshot, DocumentStore, Query, Subscription, Transaction, run_transaction
from wellness_ledger.store.paths import emotion_path, emotions_collection
from wellness_ledger.utils.date_keys import date_key, now_local, parse_date_key, weekday_abbrev

logger = logging.getLogger(__name__)

SUMMARY_WINDOW = 7
BREAKDOWN_SIZE = 4
PALETTE = ["#60A5FA", "#F59E0B", "#A78BFA", "#10B981", "#F472B6", "#34D399"]

SummaryCallback = Callable[[List[MoodTrendPoint], List[EmotionBreakdownItem]], None]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def summarize_emotions(entries: Iterable[EmotionEntry]) -> WeeklyEmotionSummary:
    """
    Build the mood trend and emotion breakdown for a set of entries

    - trend: one point per entry, oldest first, labelled by the weekday of
      the entry's date
    - breakdown: top 4 tags by count; percentages are shares of all tag
      occurrences; equal counts keep first-seen order; colors follow rank
    """
    ordered = sorted(entries, key=lambda e: e.created_at)

    trend = [MoodTrendPoint(day=weekday_abbrev(e.date), mood_score=e.intensity) for e in ordered]

    counts: Counter = Counter()
    for entry in ordered:
        counts.update(entry.emotions)
    total = sum(counts.values()) or 1

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:BREAKDOWN_SIZE]
    breakdown = [
        EmotionBreakdownItem(
            emotion=emotion,
            percentage=_round_half_up(count / total * 100),
            color=PALETTE[rank % len(PALETTE)],
        )
        for rank, (emotion, count) in enumerate(ranked)
    ]
    return WeeklyEmotionSummary(trend=trend, breakdown=breakdown)


def _parse_entries(snapshots: List[DocumentSnapshot]) -> List[EmotionEntry]:
    entries = []
    for snap in snapshots:
        try:
            entries.append(EmotionEntry.model_validate(snap.data))
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed emotion entry {snap.path}: {e.error_count()} errors")
    return entries


class EmotionService:
    """
    Service for the per-user emotion event log.

    Responsibilities:
    - Idempotent per-day emotion writes
    - Store-and-forward of writes that failed on a storage error
    - One-shot and live weekly summaries
    """

    def __init__(self, store: DocumentStore, timezone: str = config.DEFAULT_TIMEZONE,
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.timezone = timezone
        self._clock = clock or (lambda: now_local(timezone))
        self._pending: dict[tuple[str, str], EmotionEntry] = {}
        logger.debug("EmotionService initialized")

    def _query(self, uid: str) -> Query:
        return Query(emotions_collection(uid), order_by="createdAt", descending=True, limit=SUMMARY_WINDOW)

    def _new_entry(self, uid: str, emotions: List[str], intensity: int, day: Optional[str]) -> EmotionEntry:
        now = self._clock()
        key = date_key(now, self.timezone) if day is None else day
        parse_date_key(key)

        if not emotions:
            raise ValidationError("At least one emotion is required", field="emotions", value=emotions, user_id=uid)
        if not 1 <= intensity <= 10:
            raise ValidationError("Intensity must be between 1 and 10", field="intensity",
                                  value=intensity, user_id=uid)

        return EmotionEntry(
            id=key,
            date=key,
            emotions=list(emotions),
            intensity=intensity,
            created_at=int(now.timestamp() * 1000),
        )

    async def _write(self, uid: str, entry: EmotionEntry) -> None:
        try:
            await self.store.set(emotion_path(uid, entry.date), entry.to_document(), merge=True)
        except StorageError:
            emotion_writes_total.labels(status="error").inc()
            raise
        emotion_writes_total.labels(status="success").inc()

    async def record_daily_emotion(
        self,
        uid: str,
        emotions: List[str],
        intensity: int,
        day: Optional[str] = None,
    ) -> EmotionEntry:
        """
        Upsert the emotion entry for a day (default: today)

        Raises:
            ValidationError: intensity outside 1-10 or no emotions
            InvalidDateKey: day is not YYYY-MM-DD
            StorageError: the write failed; the caller decides whether to retry
        """
        entry = self._new_entry(uid, emotions, intensity, day)
        await self._write(uid, entry)
        logger.info(f"Recorded emotions for user {uid} on {entry.date}: {len(emotions)} tags, intensity {intensity}")
        return entry

    async def record_daily_emotion_later_on_failure(
        self,
        uid: str,
        emotions: List[str],
        intensity: int,
        day: Optional[str] = None,
    ) -> bool:
        """
        Fire-and-forget variant: storage failures are queued, never raised

        A successful write replaces anything queued for the same day and then
        retries the rest of the queue.

        Returns True if the entry was written now, False if it was queued.
        """
        entry = self._new_entry(uid, emotions, intensity, day)
        try:
            await self._write(uid, entry)
        except StorageError as e:
            self._pending[(uid, entry.date)] = entry
            logger.warning(f"Queued emotion entry for user {uid} on {entry.date} after storage failure: {e.message}")
            return False

        self._pending.pop((uid, entry.date), None)
        if self._pending:
            await self.flush_pending()
        return True

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def _write_unless_superseded(self, uid: str, entry: EmotionEntry) -> bool:
        path = emotion_path(uid, entry.date)

        async def write(tx: Transaction) -> bool:
            stored = await tx.get(path)
            if stored.exists and stored.data.get("createdAt", 0) >= entry.created_at:
                return False
            tx.set(path, entry.to_document(), merge=True)
            return True

        try:
            written = await run_transaction(self.store, write, operation="flush_emotion", user_id=uid)
        except StorageError:
            emotion_writes_total.labels(status="error").inc()
            raise
        if written:
            emotion_writes_total.labels(status="success").inc()
        return written

    async def flush_pending(self) -> int:
        """
        Retry queued writes; returns how many were written

        An entry is dropped without writing when the stored entry for that day
        was created after it.
        """
        written = 0
        for (uid, key), entry in list(self._pending.items()):
            try:
                applied = await self._write_unless_superseded(uid, entry)
            except StorageError:
                logger.warning(f"Emotion entry for user {uid} on {key} still pending")
                continue
            if self._pending.get((uid, key)) is entry:
                del self._pending[(uid, key)]
            if applied:
                written += 1
            else:
                logger.info(f"Dropped queued emotion entry for user {uid} on {key}: superseded by a newer write")
        return written

    async def get_weekly_emotion_summary(self, uid: str) -> WeeklyEmotionSummary:
        snapshots = await self.store.run_query(self._query(uid))
        return summarize_emotions(_parse_entries(snapshots))

    async def subscribe_weekly_emotion_summary(self, uid: str, callback: SummaryCallback) -> Subscription:
        """
        Push (trend, breakdown) for the last 7 entries on every change

        The returned handle must be unsubscribed on teardown.
        """

        def on_change(snapshots: List[DocumentSnapshot]) -> None:
            summary = summarize_emotions(_parse_entries(snapshots))
            callback(summary.trend, summary.breakdown)

        return await self.store.watch_query(self._query(uid), on_change)
