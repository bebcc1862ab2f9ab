"""Tests for the check-in processor, storage and analytics."""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, patch
from bson import ObjectId

from common.utils.outcomes import ErrorKind
from engagement.database import collections
from engagement.services.checkin import CheckInAnalytics

from tests.conftest import TODAY, YESTERDAY


async def _balance(db, user_id):
    user = await db[collections.USERS].find_one({"_id": ObjectId(user_id)})
    return user["wellness"]["happyCoins"]


async def _achievement_coins(db, user_id):
    cursor = db[collections.USER_ACHIEVEMENTS].find({"userId": ObjectId(user_id)})
    return sum([ua["happyCoinsEarned"] async for ua in cursor])


async def _achievement_names(db, user_id):
    cursor = db[collections.USER_ACHIEVEMENTS].find({"userId": ObjectId(user_id)})
    return {ua["achievement"]["name"] async for ua in cursor}


# ─────────────────────────────────────────────────────────────────
# End-to-end check-ins
# ─────────────────────────────────────────────────────────────────


class TestSubmit:
    @pytest.mark.asyncio
    async def test_first_checkin_with_great_mood(self, context, make_user, db):
        user_id = await make_user()

        outcome = await context.processor.submit(user_id, 5, note="Feeling great")

        receipt = outcome.value
        assert receipt["day"] == TODAY
        assert receipt["moodLabel"] == "Excellent"
        assert receipt["streak"]["current"] == 1
        assert receipt["coinsEarned"] == {"base": 50, "moodBonus": 25, "streakBonus": 0, "total": 75}
        assert receipt["streakMilestone"] is None
        assert await _achievement_names(db, user_id) == {"First Steps"}
        assert await _balance(db, user_id) == 125
        assert receipt["happyCoins"] == 125

    @pytest.mark.asyncio
    async def test_seventh_day_pays_streak_bonus(self, context, make_user, db):
        user_id = await make_user(wellness={
            "currentStreak": 6,
            "longestStreak": 6,
            "lastCheckInDay": YESTERDAY,
            "happyCoins": 0,
        })

        receipt = (await context.processor.submit(user_id, 3)).value

        assert receipt["streak"]["current"] == 7
        assert receipt["coinsEarned"] == {"base": 50, "moodBonus": 0, "streakBonus": 100, "total": 150}
        assert receipt["streakMilestone"] == {"days": 7, "coins": 100}
        assert "Week Warrior" in await _achievement_names(db, user_id)
        assert await _balance(db, user_id) == 150 + await _achievement_coins(db, user_id)

        milestone = await db[collections.NOTIFICATIONS].find_one({"type": "STREAK_MILESTONE"})
        assert milestone["data"]["streakDays"] == 7

    @pytest.mark.asyncio
    async def test_second_checkin_same_day_conflicts(self, context, make_user, db):
        user_id = await make_user(wellness={
            "currentStreak": 6,
            "longestStreak": 6,
            "lastCheckInDay": YESTERDAY,
            "happyCoins": 0,
        })
        await context.processor.submit(user_id, 3)
        balance = await _balance(db, user_id)

        outcome = await context.processor.submit(user_id, 4)

        assert outcome.error.kind == ErrorKind.CONFLICT
        assert outcome.error.code == "ALREADY_CHECKED_IN_TODAY"
        assert await _balance(db, user_id) == balance
        assert await db[collections.CHECK_INS].count_documents({"userId": ObjectId(user_id)}) == 1

    @pytest.mark.asyncio
    async def test_gap_breaks_streak(self, context, make_user):
        user_id = await make_user(wellness={
            "currentStreak": 5,
            "longestStreak": 5,
            "lastCheckInDay": "2026-03-07",
        })

        receipt = (await context.processor.submit(user_id, 3)).value

        assert receipt["streak"] == {"previous": 5, "current": 1, "longest": 5, "brokeStreak": True}
        assert receipt["coinsEarned"]["streakBonus"] == 0

    @pytest.mark.asyncio
    async def test_checkin_records_outcome(self, context, make_user, db):
        user_id = await make_user()

        receipt = (await context.processor.submit(user_id, 4, source="slack")).value

        checkin = await db[collections.CHECK_INS].find_one({"_id": ObjectId(receipt["checkInId"])})
        assert checkin["happyCoinsEarned"] == 75
        assert checkin["streakAtCheckIn"] == 1
        assert checkin["source"] == "slack"

    @pytest.mark.asyncio
    async def test_completion_notification_persisted(self, context, make_user, db):
        user_id = await make_user()

        await context.processor.submit(user_id, 2)

        notification = await db[collections.NOTIFICATIONS].find_one({
            "userId": ObjectId(user_id),
            "type": "CHECK_IN_COMPLETED",
        })
        assert notification is not None
        assert notification["isRead"] is False

    @pytest.mark.asyncio
    async def test_next_checkin_is_tomorrow_morning(self, context, make_user):
        user_id = await make_user()

        receipt = (await context.processor.submit(user_id, 3)).value

        assert receipt["nextCheckIn"] == "2026-03-11T09:00:00Z"

    @pytest.mark.asyncio
    async def test_user_timezone_decides_the_day(self, context, make_user, clock):
        clock.set(datetime(2026, 3, 10, 23, 30))
        user_id = await make_user(timezone="Europe/Stockholm")

        receipt = (await context.processor.submit(user_id, 3)).value

        assert receipt["day"] == "2026-03-11"

    @pytest.mark.asyncio
    async def test_failing_coin_step_still_returns_receipt(self, context, make_user, db):
        user_id = await make_user()

        with patch.object(context.ledger, "credit_coins", AsyncMock(side_effect=RuntimeError("db down"))):
            outcome = await context.processor.submit(user_id, 3)

        assert outcome.ok
        assert outcome.value["coinsEarned"]["base"] == 0
        assert await db[collections.CHECK_INS].count_documents({"userId": ObjectId(user_id)}) == 1

    @pytest.mark.asyncio
    async def test_broken_channel_stores_one_notification(self, context, make_user, db, slack_channel):
        slack_channel.error = RuntimeError("boom")
        user_id = await make_user(notifications={"preferredChannel": "slack"})

        outcome = await context.processor.submit(user_id, 3)

        assert outcome.ok
        stored = [n async for n in db[collections.NOTIFICATIONS].find({"type": "CHECK_IN_COMPLETED"})]
        assert len(stored) == 1
        assert stored[0]["data"]["delivery"]["slack"]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_streak_bonus_survives_failed_credit(self, context, make_user, db):
        user_id = await make_user(wellness={
            "currentStreak": 6,
            "longestStreak": 6,
            "lastCheckInDay": YESTERDAY,
            "happyCoins": 0,
        })
        real_credit = context.ledger.credit_coins
        calls = []

        async def flaky_credit(uid, amount, reason):
            calls.append(reason.source)
            if reason.source == "streak" and calls.count("streak") == 1:
                raise ConnectionError("journal unavailable")
            return await real_credit(uid, amount, reason)

        with patch.object(context.ledger, "credit_coins", flaky_credit):
            receipt = (await context.processor.submit(user_id, 3)).value

        assert receipt["streak"]["previous"] == 6
        assert receipt["streak"]["current"] == 7
        assert receipt["coinsEarned"]["streakBonus"] == 100
        assert receipt["streakMilestone"] == {"days": 7, "coins": 100}


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("mood", [0, 6, True, 3.5, "4", None])
    async def test_invalid_mood_rejected(self, context, make_user, db, mood):
        user_id = await make_user()

        outcome = await context.processor.submit(user_id, mood)

        assert outcome.error.kind == ErrorKind.VALIDATION
        assert outcome.error.code == "INVALID_MOOD"
        assert await db[collections.CHECK_INS].count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_boundary_moods_accepted(self, context, make_user):
        low = await make_user()
        high = await make_user()

        assert (await context.processor.submit(low, 1)).ok
        assert (await context.processor.submit(high, 5)).ok

    @pytest.mark.asyncio
    async def test_note_too_long(self, context, make_user):
        user_id = await make_user()

        outcome = await context.processor.submit(user_id, 3, note="x" * 501)

        assert outcome.error.code == "NOTE_TOO_LONG"

    @pytest.mark.asyncio
    async def test_unknown_source(self, context, make_user):
        user_id = await make_user()

        outcome = await context.processor.submit(user_id, 3, source="sms")

        assert outcome.error.code == "INVALID_SOURCE"

    @pytest.mark.asyncio
    async def test_unknown_user(self, context, sample_user_id):
        outcome = await context.processor.submit(sample_user_id, 3)

        assert outcome.error.code == "USER_NOT_FOUND"


# ─────────────────────────────────────────────────────────────────
# Read side
# ─────────────────────────────────────────────────────────────────


class TestReadSide:
    @pytest.mark.asyncio
    async def test_today_before_and_after(self, context, make_user):
        user_id = await make_user()

        before = await context.processor.get_today(user_id)
        await context.processor.submit(user_id, 4)
        after = await context.processor.get_today(user_id)

        assert before["checkedInToday"] is False
        assert before["canCheckIn"] is True
        assert after["checkedInToday"] is True
        assert after["checkIn"]["mood"] == 4

    @pytest.mark.asyncio
    async def test_history_with_statistics(self, context, make_user, db, clock):
        user_id = await make_user()
        for day, mood in [("2026-03-07", 2), ("2026-03-08", 4), ("2026-03-09", 5)]:
            await context.checkins.record(user_id, day, mood)

        history = await context.processor.get_history(user_id, page=1, limit=2)

        assert history["total"] == 3
        assert [c["day"] for c in history["items"]] == ["2026-03-09", "2026-03-08"]
        assert history["statistics"]["averageMood"] == 3.67
        assert history["statistics"]["moodDistribution"]["4"] == 1

    @pytest.mark.asyncio
    async def test_history_day_range(self, context, make_user):
        user_id = await make_user()
        for day in ["2026-03-01", "2026-03-05", "2026-03-09"]:
            await context.checkins.record(user_id, day, 3)

        history = await context.processor.get_history(
            user_id, start_day="2026-03-02", end_day="2026-03-08"
        )

        assert [c["day"] for c in history["items"]] == ["2026-03-05"]


class TestTrendDirection:
    def test_improving(self):
        result = CheckInAnalytics.calculate_trend_direction([2, 2, 2, 4, 4, 4])

        assert result["direction"] == "improving"
        assert result["change"] == 2.0

    def test_declining(self):
        assert CheckInAnalytics.calculate_trend_direction([5, 5, 2, 2, 2])["direction"] == "declining"

    def test_small_change_is_stable(self):
        assert CheckInAnalytics.calculate_trend_direction([3, 3, 3, 3])["direction"] == "stable"

    def test_single_mood(self):
        assert CheckInAnalytics.calculate_trend_direction([4]) == {"direction": "stable", "change": 0, "average": 4}
