"""Unit tests for ledger metrics"""
import pytest
from prometheus_client import REGISTRY


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.asyncio
async def test_award_and_guard_counters(context, test_user_id):
    awards = _sample("ledger_awards_total", kind="daily")
    guards = _sample("ledger_guard_hits_total", kind="daily")

    await context.ledger.complete_daily_challenge(test_user_id)
    await context.ledger.complete_daily_challenge(test_user_id)

    assert _sample("ledger_awards_total", kind="daily") == awards + 1
    assert _sample("ledger_guard_hits_total", kind="daily") == guards + 1


@pytest.mark.asyncio
async def test_rollover_counter(context, clock, test_user_id):
    await context.ledger.complete_weekly_day(test_user_id)
    before = _sample("ledger_weekly_rollovers_total")

    clock.set_day("2024-01-08")
    await context.ledger.complete_weekly_day(test_user_id)

    assert _sample("ledger_weekly_rollovers_total") == before + 1


@pytest.mark.asyncio
async def test_emotion_write_counter(context, test_user_id):
    before = _sample("emotion_writes_total", status="success")
    await context.emotions.record_daily_emotion(test_user_id, ["calm"], 5)
    assert _sample("emotion_writes_total", status="success") == before + 1
