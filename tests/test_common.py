"""Tests for the shared infrastructure: event bus, outcomes, clock, database."""

import pytest
from dataclasses import dataclass
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

from common.database import MongoDB
from common.events import EventBus
from common.utils import ConflictException, NotFoundException, Outcome, raise_for_outcome
from common.utils.clock import FixedClock, get_timezone, iso_week, previous_day, week_window
from common.utils.exceptions import BadRequestException

from tests.conftest import NOW


@dataclass(frozen=True)
class Ping:
    value: int


@dataclass(frozen=True)
class Pong:
    value: int


# ─────────────────────────────────────────────────────────────────
# Event bus
# ─────────────────────────────────────────────────────────────────


class TestEventBus:
    @pytest.mark.asyncio
    async def test_delivers_in_registration_order(self):
        bus = EventBus()
        seen = []

        async def first(event):
            seen.append(("first", event.value))

        async def second(event):
            seen.append(("second", event.value))

        bus.subscribe(Ping, first)
        bus.subscribe(Ping, second)

        assert await bus.publish(Ping(1)) == 2
        assert seen == [("first", 1), ("second", 1)]

    @pytest.mark.asyncio
    async def test_topics_are_event_types(self):
        bus = EventBus()
        handler = AsyncMock()
        bus.subscribe(Pong, handler)

        assert await bus.publish(Ping(1)) == 0
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_subscriber_is_skipped(self):
        bus = EventBus()
        after = AsyncMock()
        bus.subscribe(Ping, AsyncMock(side_effect=RuntimeError("boom")))
        bus.subscribe(Ping, after)

        assert await bus.publish(Ping(2)) == 1
        after.assert_awaited_once_with(Ping(2))

    @pytest.mark.asyncio
    async def test_duplicate_subscription_ignored(self):
        bus = EventBus()
        handler = AsyncMock()
        bus.subscribe(Ping, handler)
        bus.subscribe(Ping, handler)

        await bus.publish(Ping(3))

        handler.assert_awaited_once()
        bus.unsubscribe(Ping, handler)
        assert bus.subscribers(Ping) == []


# ─────────────────────────────────────────────────────────────────
# Outcomes
# ─────────────────────────────────────────────────────────────────


class TestRaiseForOutcome:
    def test_success_returns_value(self):
        assert raise_for_outcome(Outcome.success({"id": "1"})) == {"id": "1"}

    @pytest.mark.parametrize("outcome,exception,status", [
        (Outcome.validation("bad", code="INVALID_MOOD"), BadRequestException, 400),
        (Outcome.conflict("dup", code="ALREADY_CHECKED_IN_TODAY"), ConflictException, 409),
        (Outcome.not_found("missing"), NotFoundException, 404),
        (Outcome.insufficient_funds(), ConflictException, 409),
    ])
    def test_error_kinds_map_to_http(self, outcome, exception, status):
        with pytest.raises(exception) as exc_info:
            raise_for_outcome(outcome)

        assert exc_info.value.status_code == status
        assert exc_info.value.detail["code"] == outcome.error.code


# ─────────────────────────────────────────────────────────────────
# Clock
# ─────────────────────────────────────────────────────────────────


class TestClock:
    def test_day_in_user_timezone(self):
        clock = FixedClock(datetime(2026, 3, 10, 23, 30))

        assert clock.day_of(tz="UTC") == "2026-03-10"
        assert clock.day_of(tz="Asia/Tokyo") == "2026-03-11"
        assert clock.day_of(tz="America/New_York") == "2026-03-10"

    def test_unknown_timezone_falls_back_to_utc(self):
        assert get_timezone("Mars/Olympus").zone == "UTC"

    def test_hours_until_midnight(self):
        assert FixedClock(NOW).hours_until_local_midnight("UTC") == 12

    def test_week_window(self):
        start, end = week_window(NOW, "UTC")

        assert start == datetime(2026, 3, 9)
        assert end == datetime(2026, 3, 15, 23, 59, 59, 999000)

    def test_week_window_in_local_time(self):
        start, _ = week_window(NOW, "Europe/Stockholm")

        assert start == datetime(2026, 3, 8, 23, 0)

    def test_iso_week_and_previous_day(self):
        assert iso_week(NOW) == (2026, 11)
        assert previous_day("2026-03-01") == "2026-02-28"

    @pytest.mark.parametrize("instant,expected", [
        (datetime(2026, 12, 31, 12, 0), (2026, 53)),
        (datetime(2027, 1, 1, 12, 0), (2026, 53)),
        (datetime(2027, 1, 4, 12, 0), (2027, 1)),
        (datetime(2025, 12, 29, 12, 0), (2026, 1)),
    ])
    def test_iso_week_across_year_boundary(self, instant, expected):
        assert iso_week(instant) == expected

    def test_iso_week_uses_local_date(self):
        # Sunday evening in New York, Monday of week 1 in UTC
        assert iso_week(datetime(2027, 1, 4, 3, 0), "America/New_York") == (2026, 53)


# ─────────────────────────────────────────────────────────────────
# Database connection
# ─────────────────────────────────────────────────────────────────


class TestMongoDB:
    @pytest.mark.asyncio
    async def test_connect_runs_hook(self):
        client = MagicMock()
        hook = AsyncMock()
        database = MongoDB()

        with patch("common.database.mongodb.AsyncIOMotorClient", return_value=client):
            await database.connect("mongodb://user:pw@db:27017", "wellnessai", on_connect=hook)

        hook.assert_awaited_once_with(client["wellnessai"])
        assert database.is_connected
        assert database.database_name == "wellnessai"

        await database.disconnect()
        client.close.assert_called_once()
        assert not database.is_connected

    @pytest.mark.asyncio
    async def test_failed_hook_closes_client(self):
        client = MagicMock()
        database = MongoDB()

        with patch("common.database.mongodb.AsyncIOMotorClient", return_value=client):
            with pytest.raises(RuntimeError):
                await database.connect("mongodb://db:27017", "wellnessai", on_connect=AsyncMock(side_effect=RuntimeError("index")))

        client.close.assert_called_once()
        with pytest.raises(RuntimeError, match="not connected"):
            database.db
