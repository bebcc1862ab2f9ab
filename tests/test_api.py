"""HTTP tests for the engagement API."""

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from jose import jwt

from api import create_app
from common.auth import JWTAuth
from engagement.database import collections
from engagement.dependencies import init_auth

from tests.conftest import TODAY, YESTERDAY

SECRET = "test-secret"


def _token(user_id):
    return jwt.encode({"sub": user_id}, SECRET, algorithm="HS256")


def _headers(user_id):
    return {"Authorization": f"Bearer {_token(user_id)}"}


@pytest_asyncio.fixture
async def client(settings, context):
    app = create_app(settings)
    app.state.context = context
    init_auth(JWTAuth(secret=SECRET))

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    init_auth(None)


# ─────────────────────────────────────────────────────────────────
# Auth and envelope
# ─────────────────────────────────────────────────────────────────


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/checkins/today")

        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_bad_signature(self, client, make_user):
        user_id = await make_user()
        token = jwt.encode({"sub": user_id}, "other-secret", algorithm="HS256")

        response = await client.get("/api/checkins/today", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_unknown_subject(self, client):
        response = await client.get("/api/checkins/today", headers=_headers(str(ObjectId())))

        assert response.status_code == 401
        assert response.json()["code"] == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_employee_cannot_create_surveys(self, client, make_user):
        user_id = await make_user()

        response = await client.post("/api/surveys", json={"title": "x"}, headers=_headers(user_id))

        assert response.status_code == 403
        assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["success"] is True


# ─────────────────────────────────────────────────────────────────
# Check-ins
# ─────────────────────────────────────────────────────────────────


class TestCheckInEndpoints:
    @pytest.mark.asyncio
    async def test_submit_checkin(self, client, make_user):
        user_id = await make_user()

        response = await client.post("/api/checkins", json={"mood": 5, "note": "Great"}, headers=_headers(user_id))

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["coinsEarned"]["total"] == 75
        assert body["data"]["day"] == TODAY

    @pytest.mark.asyncio
    async def test_duplicate_checkin_is_409(self, client, make_user):
        user_id = await make_user()
        await client.post("/api/checkins", json={"mood": 3}, headers=_headers(user_id))

        response = await client.post("/api/checkins", json={"mood": 3}, headers=_headers(user_id))

        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_CHECKED_IN_TODAY"

    @pytest.mark.asyncio
    async def test_out_of_range_mood_is_400(self, client, make_user):
        user_id = await make_user()

        response = await client.post("/api/checkins", json={"mood": 6}, headers=_headers(user_id))

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["errors"][0]["field"] == "mood"

    @pytest.mark.asyncio
    async def test_history_is_paginated(self, client, context, make_user):
        user_id = await make_user()
        await context.checkins.record(user_id, YESTERDAY, 4)
        await context.checkins.record(user_id, TODAY, 2)

        response = await client.get("/api/checkins/history?limit=1", headers=_headers(user_id))

        data = response.json()["data"]
        assert len(data["items"]) == 1
        assert data["pagination"]["total"] == 2
        assert data["pagination"]["hasNextPage"] is True
        assert data["statistics"]["averageMood"] == 3.0


# ─────────────────────────────────────────────────────────────────
# Notifications, recognitions and rewards
# ─────────────────────────────────────────────────────────────────


class TestNotificationEndpoints:
    @pytest.mark.asyncio
    async def test_list_and_mark_read(self, client, make_user):
        user_id = await make_user()
        await client.post("/api/checkins", json={"mood": 4}, headers=_headers(user_id))

        listed = (await client.get("/api/notifications", headers=_headers(user_id))).json()["data"]
        assert listed["unreadCount"] == len(listed["items"]) > 0

        marked = await client.post("/api/notifications/mark-read", json={}, headers=_headers(user_id))
        assert marked.json()["data"]["modified"] == listed["unreadCount"]

        count = await client.get("/api/notifications/unread-count", headers=_headers(user_id))
        assert count.json()["data"]["unreadCount"] == 0

    @pytest.mark.asyncio
    async def test_filter_by_type(self, client, make_user):
        user_id = await make_user()
        await client.post("/api/checkins", json={"mood": 4}, headers=_headers(user_id))

        response = await client.get("/api/notifications?type=CHECK_IN_COMPLETED", headers=_headers(user_id))

        items = response.json()["data"]["items"]
        assert [n["type"] for n in items] == ["CHECK_IN_COMPLETED"]


class TestRewardEndpoints:
    @pytest.mark.asyncio
    async def test_recognition(self, client, make_user):
        sender = await make_user()
        recipient = await make_user()

        response = await client.post(
            "/api/recognitions",
            json={"toUserId": recipient, "type": "kudos", "message": "Thanks!"},
            headers=_headers(sender),
        )

        assert response.status_code == 201
        assert response.json()["data"]["recognition"]["happyCoinsAwarded"] == 25

    @pytest.mark.asyncio
    async def test_insufficient_funds_is_409(self, client, make_user, db):
        user_id = await make_user(wellness={"happyCoins": 10})
        result = await db[collections.REWARDS].insert_one({
            "name": "Spa Day",
            "cost": 500,
            "availability": {"isActive": True, "quantity": -1},
        })

        response = await client.post(f"/api/rewards/{result.inserted_id}/redeem", headers=_headers(user_id))

        assert response.status_code == 409
        assert response.json()["code"] == "INSUFFICIENT_FUNDS"


class TestTrendAndAchievementEndpoints:
    @pytest.mark.asyncio
    async def test_mood_trend(self, client, context, make_user):
        user_id = await make_user()
        await context.checkins.record(user_id, YESTERDAY, 2)
        await context.checkins.record(user_id, TODAY, 4)

        response = await client.get("/api/checkins/trend?days=7", headers=_headers(user_id))

        data = response.json()["data"]
        assert [p["mood"] for p in data["trend"]] == [2, 4]
        assert data["analysis"]["period"] == "7 days"

    @pytest.mark.asyncio
    async def test_trend_days_bounded(self, client, make_user):
        user_id = await make_user()

        response = await client.get("/api/checkins/trend?days=365", headers=_headers(user_id))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_progress_and_earned(self, client, context, make_user):
        user_id = await make_user()
        await context.checkins.record(user_id, TODAY, 3)
        await context.achievements.evaluate(user_id)

        progress = (await client.get("/api/achievements/progress", headers=_headers(user_id))).json()["data"]
        earned = (await client.get("/api/achievements/earned", headers=_headers(user_id))).json()["data"]

        assert progress["summary"]["earned"] == 1
        assert progress["summary"]["total"] == len(progress["achievements"])
        assert earned["count"] == 1
        assert earned["achievements"][0]["happyCoinsEarned"] == 50


# ─────────────────────────────────────────────────────────────────
# Surveys
# ─────────────────────────────────────────────────────────────────


SURVEY_BODY = {
    "title": "Team Health",
    "questions": [
        {"id": "q_scale", "question": "How are you?", "type": "scale", "scale": {"min": 1, "max": 5}},
        {"id": "q_bool", "question": "Supported?", "type": "boolean"},
    ],
    "rewards": {"happyCoins": 40},
}


class TestSurveyEndpoints:
    @pytest.mark.asyncio
    async def test_create_activate_and_respond(self, client, make_user):
        admin = await make_user(role="admin")
        employee = await make_user()

        created = await client.post("/api/surveys", json=SURVEY_BODY, headers=_headers(admin))
        assert created.status_code == 201
        survey_id = created.json()["data"]["id"]
        assert created.json()["data"]["status"] == "draft"

        activated = await client.post(f"/api/surveys/{survey_id}/activate", headers=_headers(admin))
        assert activated.json()["data"]["status"] == "active"

        active = (await client.get("/api/surveys/active", headers=_headers(employee))).json()["data"]
        assert [s["id"] for s in active["surveys"]] == [survey_id]

        response = await client.post(
            f"/api/surveys/{survey_id}/responses",
            json={"answers": {"q_scale": 5, "q_bool": True}},
            headers=_headers(employee),
        )
        assert response.status_code == 201
        assert response.json()["data"]["score"] == 100
        assert response.json()["data"]["coinsAwarded"] == 40

        again = await client.post(
            f"/api/surveys/{survey_id}/responses",
            json={"answers": {"q_scale": 5, "q_bool": True}},
            headers=_headers(employee),
        )
        assert again.status_code == 409
        assert again.json()["code"] == "ALREADY_RESPONDED"

    @pytest.mark.asyncio
    async def test_respond_to_draft_is_closed(self, client, make_user):
        admin = await make_user(role="admin")
        employee = await make_user()
        survey_id = (await client.post("/api/surveys", json=SURVEY_BODY, headers=_headers(admin))).json()["data"]["id"]

        response = await client.post(
            f"/api/surveys/{survey_id}/responses",
            json={"answers": {"q_scale": 3, "q_bool": True}},
            headers=_headers(employee),
        )

        assert response.status_code == 409
        assert response.json()["code"] == "SURVEY_CLOSED"
