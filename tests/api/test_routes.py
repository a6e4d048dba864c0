"""Tests for the ledger REST endpoints"""
import asyncio
import pytest
import httpx
from unittest.mock import AsyncMock, patch

from wellness_ledger import config
from wellness_ledger.api.server import create_api_application, flush_emotions_periodically
from wellness_ledger.exceptions import RETRY_LATER_MESSAGE, TransientStorageError
from wellness_ledger.store.memory import MemoryTransaction
from wellness_ledger.store.paths import challenge_path, emotion_path


@pytest.fixture
def headers(monkeypatch, test_api_key):
    monkeypatch.setattr(config, "API_KEYS", [test_api_key])
    return {"Authorization": f"Bearer {test_api_key}"}


@pytest.fixture
async def client(context):
    app = create_api_application(context=context)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as api_client:
        yield api_client


@pytest.mark.asyncio
async def test_complete_daily_challenge(client, headers, test_user_id):
    """Test awarding the daily challenge once per day"""
    response = await client.post(
        f"/api/v1/users/{test_user_id}/challenges/daily/complete",
        json={"display_name": "Ada"},
        headers=headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["points"] == 50
    assert data["currentStreak"] == 1
    assert data["weeklyCompletedDates"] == ["2024-01-01"]

    # Same day again
    response = await client.post(f"/api/v1/users/{test_user_id}/challenges/daily/complete", headers=headers)
    assert response.status_code == 200
    assert response.json()["points"] == 50


@pytest.mark.asyncio
async def test_daily_reward_from_catalog(client, headers, store, test_user_id):
    await store.set(challenge_path("daily"), {"description": "Stretch", "rewardPoints": 20})
    response = await client.post(f"/api/v1/users/{test_user_id}/challenges/daily/complete", headers=headers)
    assert response.json()["points"] == 20


@pytest.mark.asyncio
async def test_weekly_goal_from_catalog(client, headers, store, test_user_id):
    await store.set(challenge_path("weekly"), {"description": "Walk", "rewardPoints": 100, "goalDays": 1})
    response = await client.post(f"/api/v1/users/{test_user_id}/challenges/weekly/track", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["points"] == 100
    assert data["weeklyGoalDays"] == 1


@pytest.mark.asyncio
async def test_weekly_body_overrides(client, headers, test_user_id):
    response = await client.post(
        f"/api/v1/users/{test_user_id}/challenges/weekly/track",
        json={"goal_days": 2, "points": 30},
        headers=headers
    )
    data = response.json()
    assert data["points"] == 0
    assert data["weeklyGoalDays"] == 2


@pytest.mark.asyncio
async def test_weekly_goal_out_of_range(client, headers, test_user_id):
    response = await client.post(
        f"/api/v1/users/{test_user_id}/challenges/weekly/track",
        json={"goal_days": 9},
        headers=headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_stats(client, headers, test_user_id):
    await client.post(f"/api/v1/users/{test_user_id}/challenges/daily/complete", headers=headers)
    response = await client.get(f"/api/v1/users/{test_user_id}/stats", headers=headers)
    assert response.status_code == 200
    assert response.json()["challengesCompleted"] == 1


@pytest.mark.asyncio
async def test_storage_outage_returns_503(client, headers, test_user_id):
    """Test that a failed award is reported as retryable, not as success"""
    with patch.object(MemoryTransaction, "_commit", AsyncMock(side_effect=TransientStorageError())):
        response = await client.post(f"/api/v1/users/{test_user_id}/challenges/daily/complete", headers=headers)

    assert response.status_code == 503
    data = response.json()
    assert data["error"] == "TransientStorageError"
    assert data["user_message"] == RETRY_LATER_MESSAGE


@pytest.mark.asyncio
async def test_record_emotion_and_summary(client, headers, test_user_id):
    """Test emotion check-in and weekly summary"""
    response = await client.post(
        f"/api/v1/users/{test_user_id}/emotions",
        json={"emotions": ["calm", "happy"], "intensity": 7},
        headers=headers
    )
    assert response.status_code == 202
    assert response.json() == {"recorded": True, "date": "2024-01-01"}

    response = await client.get(f"/api/v1/users/{test_user_id}/emotions/summary", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["trend"] == [{"day": "Mon", "moodScore": 7}]
    assert [b["emotion"] for b in data["breakdown"]] == ["calm", "happy"]
    assert [b["percentage"] for b in data["breakdown"]] == [50, 50]


@pytest.mark.asyncio
async def test_record_emotion_queued_on_outage(client, headers, context, store, test_user_id):
    with patch.object(store, "set", AsyncMock(side_effect=TransientStorageError())):
        response = await client.post(
            f"/api/v1/users/{test_user_id}/emotions",
            json={"emotions": ["tired"], "intensity": 3},
            headers=headers
        )
    assert response.status_code == 202
    assert response.json()["recorded"] is False
    assert context.emotions.pending_count == 1


@pytest.mark.asyncio
async def test_queued_emotion_written_by_next_checkin(client, headers, clock, store, test_user_id):
    with patch.object(store, "set", AsyncMock(side_effect=TransientStorageError())):
        await client.post(
            f"/api/v1/users/{test_user_id}/emotions",
            json={"emotions": ["tired"], "intensity": 3},
            headers=headers
        )

    clock.set_day("2024-01-02")
    response = await client.post(
        f"/api/v1/users/{test_user_id}/emotions",
        json={"emotions": ["calm"], "intensity": 6},
        headers=headers
    )
    assert response.json() == {"recorded": True, "date": "2024-01-02"}

    stored = await store.get(emotion_path(test_user_id, "2024-01-01"))
    assert stored.data["emotions"] == ["tired"]


@pytest.mark.asyncio
async def test_periodic_flush_writes_queued_emotions(context, store, test_user_id):
    with patch.object(store, "set", AsyncMock(side_effect=TransientStorageError())):
        await context.emotions.record_daily_emotion_later_on_failure(test_user_id, ["tired"], 3)

    flusher = asyncio.create_task(flush_emotions_periodically(context, 0))

    async def drained():
        while context.emotions.pending_count:
            await asyncio.sleep(0)

    await asyncio.wait_for(drained(), timeout=1)
    flusher.cancel()
    with pytest.raises(asyncio.CancelledError):
        await flusher

    stored = await store.get(emotion_path(test_user_id, "2024-01-01"))
    assert stored.data["emotions"] == ["tired"]


@pytest.mark.asyncio
async def test_record_emotion_validation(client, headers, test_user_id):
    response = await client.post(
        f"/api/v1/users/{test_user_id}/emotions",
        json={"emotions": ["calm"], "intensity": 11},
        headers=headers
    )
    assert response.status_code == 422

    response = await client.post(
        f"/api/v1/users/{test_user_id}/emotions",
        json={"emotions": ["calm"], "intensity": 5, "date": "2024-02-30"},
        headers=headers
    )
    assert response.status_code == 422
    assert response.json()["error"] == "InvalidDateKey"


@pytest.mark.asyncio
async def test_leaderboard(client, headers):
    for uid, name in [("u1", "One"), ("u2", "Two")]:
        await client.post(f"/api/v1/users/{uid}/challenges/daily/complete", json={"display_name": name}, headers=headers)
    await client.post("/api/v1/users/u2/challenges/weekly/track", json={"goal_days": 1}, headers=headers)

    response = await client.get("/api/v1/leaderboard?top=5", headers=headers)
    assert response.status_code == 200
    entries = response.json()["entries"]
    assert [(e["uid"], e["displayName"], e["points"], e["rank"]) for e in entries] == [
        ("u2", "Two", 100, 1), ("u1", "One", 50, 2),
    ]


@pytest.mark.asyncio
async def test_challenges(client, headers, store):
    await store.set(challenge_path("weekly"), {"description": "Walk", "goalDays": 4})
    response = await client.get("/api/v1/challenges", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["daily"] is None
    assert data["weekly"]["goalDays"] == 4


@pytest.mark.asyncio
async def test_profile(client, headers, test_user_id):
    response = await client.get(f"/api/v1/users/{test_user_id}/profile", headers=headers)
    assert response.json() == {"theme": "light", "language": "en"}

    response = await client.put(
        f"/api/v1/users/{test_user_id}/profile",
        json={"theme": "dark", "language": "fr"},
        headers=headers
    )
    assert response.status_code == 200

    response = await client.get(f"/api/v1/users/{test_user_id}/profile", headers=headers)
    assert response.json() == {"theme": "dark", "language": "fr"}


@pytest.mark.asyncio
async def test_invalid_api_key(client, headers, test_user_id):
    response = await client.get(
        f"/api/v1/users/{test_user_id}/stats",
        headers={"Authorization": "Bearer wrong_key"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_api_key(client, headers, test_user_id):
    response = await client.get(f"/api/v1/users/{test_user_id}/stats")
    assert response.status_code == 401
    assert response.json()["error"] == "AuthenticationError"


@pytest.mark.asyncio
async def test_no_keys_configured(client, monkeypatch, test_user_id):
    monkeypatch.setattr(config, "API_KEYS", [])
    response = await client.get(
        f"/api/v1/users/{test_user_id}/stats",
        headers={"Authorization": "Bearer anything"}
    )
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_health_and_metrics(client, headers, test_user_id):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["store"] == "MemoryDocumentStore"

    await client.post(f"/api/v1/users/{test_user_id}/challenges/daily/complete", headers=headers)
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "ledger_awards_total" in response.text
    assert 'endpoint="/api/v1/users/{uid}/challenges/daily/complete"' in response.text


@pytest.mark.asyncio
async def test_user_scoped_key(client, monkeypatch, test_user_id):
    monkeypatch.setattr(config, "API_KEYS", ["service-key", f"app-key:{test_user_id}"])
    scoped = {"Authorization": "Bearer app-key"}

    response = await client.post(f"/api/v1/users/{test_user_id}/challenges/daily/complete", headers=scoped)
    assert response.status_code == 200

    response = await client.post("/api/v1/users/someone-else/challenges/daily/complete", headers=scoped)
    assert response.status_code == 403
    assert response.json()["error"] == "AuthorizationError"

    response = await client.get("/api/v1/leaderboard", headers=scoped)
    assert [e["uid"] for e in response.json()["entries"]] == [test_user_id]

    response = await client.get(
        "/api/v1/users/someone-else/stats",
        headers={"Authorization": "Bearer service-key"}
    )
    assert response.status_code == 200
