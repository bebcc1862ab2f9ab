"""Tests for the wellness ledger: coins, credit replay and streak transitions."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from bson import ObjectId

from common.utils.outcomes import ErrorKind
from engagement.database import collections
from engagement.services.notifications import NotificationSink
from engagement.services.wellness import WellnessLedger
from engagement.services.wellness.ledger_service import CreditReason, reason_hash

from tests.conftest import TODAY, YESTERDAY


@pytest.fixture
def ledger(db, clock):
    return WellnessLedger(db, NotificationSink(db, clock=clock), clock=clock)


async def _wellness(db, user_id):
    user = await db[collections.USERS].find_one({"_id": ObjectId(user_id)})
    return user.get("wellness", {})


# ─────────────────────────────────────────────────────────────────
# Coins
# ─────────────────────────────────────────────────────────────────


class TestCreditCoins:
    @pytest.mark.asyncio
    async def test_credit_increments_balance(self, ledger, make_user):
        user_id = await make_user()

        outcome = await ledger.credit_coins(user_id, 50, CreditReason(source="check_in"))

        assert outcome.ok
        assert outcome.value.balance == 50
        assert outcome.value.replayed is False

    @pytest.mark.asyncio
    async def test_same_key_credits_once(self, ledger, make_user, db):
        user_id = await make_user()
        reason = CreditReason(source="check_in", key="checkin:abc:base")

        first = await ledger.credit_coins(user_id, 50, reason)
        second = await ledger.credit_coins(user_id, 50, reason)

        assert first.value.replayed is False
        assert second.ok
        assert second.value.replayed is True
        assert (await _wellness(db, user_id))["happyCoins"] == 50

    @pytest.mark.asyncio
    async def test_key_is_journaled_as_hash(self, ledger, make_user, db):
        user_id = await make_user()

        await ledger.credit_coins(user_id, 10, CreditReason(source="survey", key="survey:s1:u1"))

        entry = await db[collections.COIN_CREDITS].find_one({})
        assert entry["reasonKey"] == reason_hash("survey:s1:u1")
        assert entry["reasonKey"] != "survey:s1:u1"

    @pytest.mark.asyncio
    async def test_key_outside_window_credits_again(self, ledger, make_user, db, clock):
        user_id = await make_user()
        reason = CreditReason(source="check_in", key="checkin:abc:base")

        await ledger.credit_coins(user_id, 50, reason)
        clock.advance(days=8)
        again = await ledger.credit_coins(user_id, 50, reason)

        assert again.value.replayed is False
        assert (await _wellness(db, user_id))["happyCoins"] == 100

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, ledger, make_user):
        user_id = await make_user()

        outcome = await ledger.credit_coins(user_id, 0, CreditReason(source="check_in"))

        assert outcome.error.kind == ErrorKind.VALIDATION
        assert outcome.error.code == "INVALID_AMOUNT"

    @pytest.mark.asyncio
    async def test_unknown_user_releases_key(self, ledger, db, sample_user_id):
        outcome = await ledger.credit_coins(
            sample_user_id, 50, CreditReason(source="check_in", key="checkin:x:base")
        )

        assert outcome.error.code == "USER_NOT_FOUND"
        assert await db[collections.COIN_CREDITS].count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_failed_balance_update_releases_key(self, ledger, make_user, db):
        user_id = await make_user()
        reason = CreditReason(source="streak", key="streak:u1:7:2026-03-10")
        failing = AsyncMock(side_effect=ConnectionError("primary stepped down"))

        with patch.object(ledger, "_users", MagicMock(find_one_and_update=failing)):
            with pytest.raises(ConnectionError):
                await ledger.credit_coins(user_id, 100, reason)

        assert await db[collections.COIN_CREDITS].count_documents({}) == 0
        retried = await ledger.credit_coins(user_id, 100, reason)
        assert retried.value.replayed is False
        assert retried.value.balance == 100

    @pytest.mark.asyncio
    async def test_notify_emits_happy_coins_notification(self, ledger, make_user, db):
        user_id = await make_user()

        await ledger.credit_coins(
            user_id, 75, CreditReason(source="survey", notify=True, description="Completed survey: Pulse")
        )

        notification = await db[collections.NOTIFICATIONS].find_one({"userId": ObjectId(user_id)})
        assert notification["type"] == "HAPPY_COINS_EARNED"
        assert notification["title"] == "+75 Happy Coins!"


class TestDebitCoins:
    @pytest.mark.asyncio
    async def test_debit_within_balance(self, ledger, make_user):
        user_id = await make_user(wellness={"happyCoins": 200})

        outcome = await ledger.debit_coins(user_id, 150, CreditReason(source="reward"))

        assert outcome.ok
        assert outcome.value.balance == 50

    @pytest.mark.asyncio
    async def test_debit_beyond_balance_is_insufficient_funds(self, ledger, make_user, db):
        user_id = await make_user(wellness={"happyCoins": 100})

        outcome = await ledger.debit_coins(user_id, 150, CreditReason(source="reward"))

        assert outcome.error.kind == ErrorKind.FUNDS
        assert outcome.error.code == "INSUFFICIENT_FUNDS"
        assert (await _wellness(db, user_id))["happyCoins"] == 100

    @pytest.mark.asyncio
    async def test_debit_unknown_user(self, ledger, sample_user_id):
        outcome = await ledger.debit_coins(sample_user_id, 10, CreditReason(source="reward"))

        assert outcome.error.code == "USER_NOT_FOUND"


# ─────────────────────────────────────────────────────────────────
# Streaks
# ─────────────────────────────────────────────────────────────────


class TestApplyCheckinToStreak:
    @pytest.mark.asyncio
    async def test_first_checkin_starts_streak(self, ledger, make_user, db):
        user_id = await make_user()

        outcome = await ledger.apply_checkin_to_streak(user_id, TODAY)

        update = outcome.value
        assert (update.previous_streak, update.new_streak, update.broke_streak) == (0, 1, False)
        wellness = await _wellness(db, user_id)
        assert wellness["currentStreak"] == 1
        assert wellness["longestStreak"] == 1
        assert wellness["lastCheckInDay"] == TODAY
        assert wellness["totalCheckIns"] == 1

    @pytest.mark.asyncio
    async def test_consecutive_day_extends(self, ledger, make_user):
        user_id = await make_user(wellness={"currentStreak": 3, "longestStreak": 3, "lastCheckInDay": YESTERDAY})

        update = (await ledger.apply_checkin_to_streak(user_id, TODAY)).value

        assert update.new_streak == 4
        assert update.bonuses_credited == []

    @pytest.mark.asyncio
    async def test_gap_resets_and_keeps_longest(self, ledger, make_user, db):
        user_id = await make_user(wellness={"currentStreak": 5, "longestStreak": 5, "lastCheckInDay": "2026-03-07"})

        update = (await ledger.apply_checkin_to_streak(user_id, TODAY)).value

        assert update.new_streak == 1
        assert update.broke_streak is True
        wellness = await _wellness(db, user_id)
        assert wellness["longestStreak"] == 5

    @pytest.mark.asyncio
    async def test_same_day_is_unchanged(self, ledger, make_user, db):
        user_id = await make_user(wellness={"currentStreak": 2, "longestStreak": 2, "lastCheckInDay": TODAY, "totalCheckIns": 2})

        update = (await ledger.apply_checkin_to_streak(user_id, TODAY)).value

        assert update.unchanged is True
        assert update.new_streak == 2
        assert (await _wellness(db, user_id))["totalCheckIns"] == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("previous,bonus", [(6, 100), (29, 500), (89, 1500)])
    async def test_bonus_paid_at_exact_length(self, ledger, make_user, db, previous, bonus):
        user_id = await make_user(wellness={
            "currentStreak": previous,
            "longestStreak": previous,
            "lastCheckInDay": YESTERDAY,
            "happyCoins": 0,
        })

        update = (await ledger.apply_checkin_to_streak(user_id, TODAY)).value

        assert update.bonuses_credited == [{"days": previous + 1, "coins": bonus}]
        assert update.bonus_coins == bonus
        assert (await _wellness(db, user_id))["happyCoins"] == bonus

    @pytest.mark.asyncio
    @pytest.mark.parametrize("previous", [5, 7, 28, 30, 88, 90])
    async def test_no_bonus_next_to_milestone(self, ledger, make_user, db, previous):
        user_id = await make_user(wellness={
            "currentStreak": previous,
            "longestStreak": previous,
            "lastCheckInDay": YESTERDAY,
            "happyCoins": 0,
        })

        update = (await ledger.apply_checkin_to_streak(user_id, TODAY)).value

        assert update.new_streak == previous + 1
        assert update.bonuses_credited == []
        assert (await _wellness(db, user_id))["happyCoins"] == 0

    @pytest.mark.asyncio
    async def test_failed_bonus_credit_is_retried(self, ledger, make_user, db):
        user_id = await make_user(wellness={"currentStreak": 6, "longestStreak": 6, "lastCheckInDay": YESTERDAY})
        real_credit = ledger.credit_coins
        attempts = []

        async def flaky_credit(uid, amount, reason):
            attempts.append(reason.key)
            if len(attempts) == 1:
                raise ConnectionError("journal unavailable")
            return await real_credit(uid, amount, reason)

        with patch.object(ledger, "credit_coins", flaky_credit):
            update = (await ledger.apply_checkin_to_streak(user_id, TODAY)).value

        assert len(attempts) == 2
        assert update.new_streak == 7
        assert update.bonuses_credited == [{"days": 7, "coins": 100}]
        assert (await _wellness(db, user_id))["happyCoins"] == 100

    @pytest.mark.asyncio
    async def test_same_day_settles_unpaid_bonus(self, ledger, make_user, db):
        user_id = await make_user(wellness={
            "currentStreak": 7,
            "longestStreak": 7,
            "lastCheckInDay": TODAY,
            "happyCoins": 0,
        })

        first = (await ledger.apply_checkin_to_streak(user_id, TODAY)).value
        second = (await ledger.apply_checkin_to_streak(user_id, TODAY)).value

        assert first.unchanged is True
        assert first.bonuses_credited == [{"days": 7, "coins": 100}]
        assert second.bonuses_credited == []
        assert (await _wellness(db, user_id))["happyCoins"] == 100

    @pytest.mark.asyncio
    async def test_unknown_user(self, ledger, sample_user_id):
        outcome = await ledger.apply_checkin_to_streak(sample_user_id, TODAY)

        assert outcome.error.kind == ErrorKind.NOT_FOUND


class TestGetWellness:
    @pytest.mark.asyncio
    async def test_defaults_filled_in(self, ledger, make_user):
        user_id = await make_user()

        wellness = await ledger.get_wellness(user_id)

        assert wellness == {
            "happyCoins": 0,
            "currentStreak": 0,
            "longestStreak": 0,
            "lastCheckInDay": None,
            "totalCheckIns": 0,
        }

    @pytest.mark.asyncio
    async def test_unknown_user_is_none(self, ledger, sample_user_id):
        assert await ledger.get_wellness(sample_user_id) is None
