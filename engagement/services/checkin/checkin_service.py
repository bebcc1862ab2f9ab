"""
Check-in storage service.

Handles check-in storage and retrieval. One check-in per user per local
day, enforced by the unique (userId, day) index.
"""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from common.utils.clock import Clock
from engagement.database import collections

logger = logging.getLogger(__name__)


class CheckInService:
    """
    Handles check-in storage and retrieval.
    Pure storage - streaks and coins live in the wellness ledger.
    """

    MAX_LIMIT = 90

    def __init__(self, db: AsyncIOMotorDatabase, clock: Optional[Clock] = None):
        """
        Initialize CheckInService.

        Args:
            db: MongoDB database connection
            clock: Source of the current instant
        """
        self._db = db
        self._checkins_collection = db[collections.CHECK_INS]
        self._clock = clock or Clock()

    async def record(
        self,
        user_id: str,
        day: str,
        mood: int,
        note: Optional[str] = None,
        source: str = "web",
    ) -> Optional[Dict[str, Any]]:
        """
        Insert the check-in for ``day``.

        Args:
            user_id: MongoDB user ID
            day: Local day bucket (YYYY-MM-DD)
            mood: Mood scalar 1-5
            note: Optional free-text note
            source: web, whatsapp or slack

        Returns:
            The stored document, or None if the user already checked in that day
        """
        now = self._clock.now()
        doc = {
            "userId": ObjectId(user_id),
            "day": day,
            "mood": mood,
            "note": note.strip() if note else None,
            "source": source,
            "happyCoinsEarned": 0,
            "streakAtCheckIn": None,
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            result = await self._checkins_collection.insert_one(doc)
        except DuplicateKeyError:
            logger.info(f"Duplicate check-in for user {user_id} on {day}")
            return None

        doc["_id"] = result.inserted_id
        logger.info(f"Check-in recorded for user {user_id} on {day}")
        return doc

    async def set_outcome(self, checkin_id: ObjectId, coins_earned: int, streak: int) -> None:
        """Store the coins and streak a check-in produced."""
        await self._checkins_collection.update_one(
            {"_id": checkin_id},
            {"$set": {
                "happyCoinsEarned": coins_earned,
                "streakAtCheckIn": streak,
                "updatedAt": self._clock.now(),
            }},
        )

    async def get_for_day(self, user_id: str, day: str) -> Optional[Dict[str, Any]]:
        return await self._checkins_collection.find_one({"userId": ObjectId(user_id), "day": day})

    def _range_query(
        self,
        user_id: str,
        start_day: Optional[str] = None,
        end_day: Optional[str] = None,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"userId": ObjectId(user_id)}
        if start_day or end_day:
            query["day"] = {}
            if start_day:
                query["day"]["$gte"] = start_day
            if end_day:
                query["day"]["$lte"] = end_day
        return query

    async def get_history(
        self,
        user_id: str,
        start_day: Optional[str] = None,
        end_day: Optional[str] = None,
        limit: int = 30,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Get paginated check-in history, newest day first.

        Args:
            user_id: MongoDB user ID
            start_day: Optional YYYY-MM-DD start filter
            end_day: Optional YYYY-MM-DD end filter
            limit: Max records to return (capped at 90)
            offset: Number of records to skip
        """
        limit = min(limit, self.MAX_LIMIT)

        cursor = self._checkins_collection.find(self._range_query(user_id, start_day, end_day))
        cursor = cursor.sort("day", -1)
        cursor = cursor.skip(offset)
        cursor = cursor.limit(limit)

        return await cursor.to_list(length=limit)

    async def get_total_count(
        self,
        user_id: str,
        start_day: Optional[str] = None,
        end_day: Optional[str] = None,
    ) -> int:
        return await self._checkins_collection.count_documents(
            self._range_query(user_id, start_day, end_day)
        )

    async def get_moods(
        self,
        user_id: str,
        start_day: Optional[str] = None,
        end_day: Optional[str] = None,
    ) -> List[int]:
        cursor = self._checkins_collection.find(
            self._range_query(user_id, start_day, end_day), {"mood": 1}
        )
        return [doc["mood"] async for doc in cursor]

    async def get_recent(self, user_id: str, count: int) -> List[Dict[str, Any]]:
        """The ``count`` most recent check-ins by day, newest first."""
        cursor = self._checkins_collection.find({"userId": ObjectId(user_id)})
        cursor = cursor.sort("day", -1).limit(count)
        return await cursor.to_list(length=count)

    async def get_since(self, user_id: str, start_day: str) -> List[Dict[str, Any]]:
        """Check-ins from ``start_day`` on, oldest first."""
        cursor = self._checkins_collection.find({
            "userId": ObjectId(user_id),
            "day": {"$gte": start_day},
        })
        cursor = cursor.sort("day", 1)
        return await cursor.to_list(length=None)
