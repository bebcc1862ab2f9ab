"""Shared test fixtures for WellnessAI engagement tests."""

import pytest
import pytest_asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from common.utils.clock import FixedClock
from engagement.config import Settings
from engagement.context import build_context
from engagement.database import collections
from engagement.database.collections import ensure_indexes
from engagement.services.achievements import install_default_catalog
from engagement.services.notifications.channels.base import NotificationChannel


# Tuesday; the Monday before is 2026-03-09
NOW = datetime(2026, 3, 10, 12, 0, 0)
TODAY = "2026-03-10"
YESTERDAY = "2026-03-09"


class RecordingChannel(NotificationChannel):
    """In-memory channel that records what it was asked to deliver."""

    def __init__(self, name, error=None):
        self.name = name
        self.error = error
        self.sent = []
        self.surveys = []

    async def send(self, user, notification):
        if self.error:
            raise self.error
        self.sent.append((user["_id"], notification))

    async def send_survey(self, user, survey):
        self.surveys.append((user["_id"], survey["_id"]))


# ─────────────────────────────────────────────────────────────────
# Database and clock
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest_asyncio.fixture
async def db():
    database = AsyncMongoMockClient()["wellnessai_test"]
    await ensure_indexes(database)
    return database


@pytest.fixture
def settings():
    return Settings(
        ENVIRONMENT="test",
        JWT_SECRET="test-secret",
        ENABLE_SCHEDULED_JOBS=False,
        SEED_DEFAULT_ACHIEVEMENTS=False,
        COMPANY_NAME="Acme",
    )


@pytest.fixture
def slack_channel():
    return RecordingChannel("slack")


@pytest_asyncio.fixture
async def context(db, settings, clock, slack_channel):
    """Fully wired engagement context with the default achievement catalog."""
    await install_default_catalog(db, clock=clock)
    return build_context(settings, db, clock=clock, channels=[slack_channel])


# ─────────────────────────────────────────────────────────────────
# Users
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def make_user(db, clock):
    async def _make_user(role="employee", wellness=None, **fields):
        doc = {
            "name": fields.pop("name", f"{role.title()} User"),
            "email": fields.pop("email", f"{ObjectId()}@example.com"),
            "role": role,
            "isActive": fields.pop("isActive", True),
            "createdAt": clock.now(),
        }
        if wellness is not None:
            doc["wellness"] = wellness
        doc.update(fields)
        result = await db[collections.USERS].insert_one(doc)
        return str(result.inserted_id)

    return _make_user


@pytest.fixture
def sample_user_id():
    return str(ObjectId())


@pytest.fixture
def mock_sink():
    sink = MagicMock()
    sink.emit = AsyncMock(return_value={"_id": ObjectId()})
    sink.emit_bulk = AsyncMock(return_value=[])
    sink.deliver_interactive_survey = AsyncMock(return_value=False)
    sink.gc = AsyncMock(return_value=0)
    return sink
