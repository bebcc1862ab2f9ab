"""Tests for the low-mood risk monitor."""

import pytest
from bson import ObjectId

from engagement.database import collections
from engagement.events import CheckInRecorded
from engagement.services.risk import RiskMonitor

from tests.conftest import TODAY


def _event(user_id, mood=1, day=TODAY):
    return CheckInRecorded(
        user_id=user_id,
        check_in_id=str(ObjectId()),
        mood=mood,
        day=day,
        previous_streak=2,
        new_streak=3,
    )


async def _record_moods(context, user_id, moods):
    days = ["2026-03-08", "2026-03-09", TODAY][-len(moods):]
    for day, mood in zip(days, moods):
        await context.checkins.record(user_id, day, mood)


class TestIsAtRisk:
    def test_needs_enough_history(self, db, mock_sink):
        monitor = RiskMonitor(db, mock_sink)

        assert monitor.is_at_risk([1, 2]) is False

    def test_all_at_or_below_threshold(self, db, mock_sink):
        monitor = RiskMonitor(db, mock_sink, low_mood_threshold=2.5)

        assert monitor.is_at_risk([2, 1, 2]) is True
        assert monitor.is_at_risk([2, 3, 1]) is False


class TestOnCheckIn:
    @pytest.mark.asyncio
    async def test_alerts_hr_and_admins(self, context, make_user, db):
        employee = await make_user(name="Sam")
        hr = await make_user(role="hr")
        admin = await make_user(role="admin")
        await make_user(role="hr", isActive=False)
        await _record_moods(context, employee, [2, 1, 1])

        alerted = await context.risk.on_check_in(_event(employee))

        assert alerted == 2
        alerts = [n async for n in db[collections.NOTIFICATIONS].find({"type": "RISK_ALERT"})]
        assert {str(n["userId"]) for n in alerts} == {hr, admin}
        assert alerts[0]["priority"] == "urgent"
        assert alerts[0]["data"]["recentMoods"] == [2, 1, 1]
        assert alerts[0]["data"]["alertKey"] == f"low_mood:{employee}:{TODAY}"

    @pytest.mark.asyncio
    async def test_one_alert_per_day(self, context, make_user, db):
        employee = await make_user()
        await make_user(role="hr")
        await _record_moods(context, employee, [1, 1, 1])

        await context.risk.on_check_in(_event(employee))
        again = await context.risk.on_check_in(_event(employee))

        assert again == 0
        assert await db[collections.NOTIFICATIONS].count_documents({"type": "RISK_ALERT"}) == 1

    @pytest.mark.asyncio
    async def test_recent_good_mood_clears_risk(self, context, make_user, db):
        employee = await make_user()
        await make_user(role="hr")
        await _record_moods(context, employee, [1, 1, 4])

        assert await context.risk.on_check_in(_event(employee, mood=4)) == 0

    @pytest.mark.asyncio
    async def test_no_reviewers(self, context, make_user):
        employee = await make_user()
        await _record_moods(context, employee, [1, 1, 1])

        assert await context.risk.on_check_in(_event(employee)) == 0

    @pytest.mark.asyncio
    async def test_wellness_untouched(self, context, make_user, db):
        employee = await make_user(wellness={"happyCoins": 10})
        await make_user(role="hr")
        await _record_moods(context, employee, [1, 1, 1])

        await context.risk.on_check_in(_event(employee))

        user = await db[collections.USERS].find_one({"_id": ObjectId(employee)})
        assert user["wellness"] == {"happyCoins": 10}

    @pytest.mark.asyncio
    async def test_triggered_by_checkin_submission(self, context, make_user, db):
        employee = await make_user(wellness={"currentStreak": 2, "lastCheckInDay": "2026-03-09"})
        await make_user(role="admin")
        await context.checkins.record(employee, "2026-03-08", 2)
        await context.checkins.record(employee, "2026-03-09", 1)

        await context.processor.submit(employee, 1)

        assert await db[collections.NOTIFICATIONS].count_documents({"type": "RISK_ALERT"}) == 1
