"""
Survey lifecycle manager.

Surveys move draft -> active -> closed -> archived. Every transition is a
conditional update on the expected current status, so two admins (or an
admin and the closure sweep) cannot move a survey backwards.

Responses live in ``surveyResponses`` with a unique (surveyId, userId)
index; ``analytics.totalResponses`` on the survey is a denormalized count.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from common.events import EventBus
from common.utils.clock import Clock, iso_week, to_naive_utc, week_window
from common.utils.outcomes import Outcome
from engagement.database import collections
from engagement.events import SurveyClosed, SurveyCompleted, SurveyCreated
from engagement.services.notifications.notification_sink import NotificationSink
from engagement.services.notifications.templates import Priority, SurveyAvailable, SurveyReminder
from engagement.services.surveys.models import (
    SurveyDefinition,
    SurveyPriority,
    SurveySchedule,
    SurveyStatus,
    SurveyType,
)
from engagement.services.surveys.pulse import PULSE_DESCRIPTION, build_pulse_questions, pulse_title
from engagement.services.surveys.scoring import score_answers, validate_answers
from engagement.services.wellness.ledger_service import CreditReason, WellnessLedger

logger = logging.getLogger(__name__)

# Reminders cover surveys due between now and now + REMINDER_HORIZON. Overdue
# surveys that are still active get none; the nightly closure sweep ends them.
REMINDER_HORIZON = timedelta(days=2)
REMINDER_PRIORITIES = [SurveyPriority.HIGH.value, SurveyPriority.URGENT.value]

TRANSITION_STAMPS = {
    SurveyStatus.ACTIVE: "activatedAt",
    SurveyStatus.CLOSED: "closedAt",
    SurveyStatus.ARCHIVED: "archivedAt",
}

TARGET_PROJECTION = {
    "name": 1,
    "email": 1,
    "department": 1,
    "role": 1,
    "integrations": 1,
    "notifications": 1,
}


def _object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _notification_priority(value: Optional[str]) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        return Priority.MEDIUM


def wants_slack_survey(user: Dict[str, Any]) -> bool:
    """Connected Slack users get interactive surveys unless they prefer email."""
    slack = (user.get("integrations") or {}).get("slack") or {}
    preferred = (user.get("notifications") or {}).get("preferredChannel")
    return bool(slack.get("isConnected")) and preferred != "email"


def format_survey(doc: Dict[str, Any], has_responded: Optional[bool] = None) -> Dict[str, Any]:
    """Format a survey document for API responses."""
    audience = dict(doc.get("targetAudience") or {})
    audience["specific_users"] = [str(u) for u in audience.get("specific_users", [])]
    schedule = doc.get("schedule")
    if schedule:
        schedule = {k: v.isoformat() if isinstance(v, datetime) else v for k, v in schedule.items()}

    formatted = {
        "id": str(doc["_id"]),
        "title": doc["title"],
        "description": doc.get("description", ""),
        "type": doc.get("type", SurveyType.CUSTOM.value),
        "status": doc["status"],
        "priority": doc.get("priority", SurveyPriority.MEDIUM.value),
        "questions": doc.get("questions", []),
        "targetAudience": audience,
        "rewards": doc.get("rewards", {}),
        "schedule": schedule,
        "dueDate": doc["dueDate"].isoformat() if doc.get("dueDate") else None,
        "totalResponses": (doc.get("analytics") or {}).get("totalResponses", 0),
        "createdAt": doc["createdAt"].isoformat() if doc.get("createdAt") else None,
    }
    if has_responded is not None:
        formatted["hasResponded"] = has_responded
    return formatted


class SurveyService:
    """Creates, distributes, collects and closes surveys."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        ledger: WellnessLedger,
        sink: NotificationSink,
        bus: EventBus,
        clock: Optional[Clock] = None,
        timezone: str = "UTC",
        company_name: str = "our company",
        system_email: Optional[str] = None,
        pulse_coins: int = 100,
        survey_completion_coins: int = 75,
    ):
        """
        Initialize SurveyService.

        Args:
            db: MongoDB database connection
            ledger: Credits survey completion rewards
            sink: Survey notifications and Slack delivery
            bus: Publishes survey lifecycle events
            clock: Source of the current instant
            timezone: Zone the pulse week is measured in
            company_name: Used in the eNPS question
            system_email: Email of the admin that owns generated surveys
            pulse_coins: Reward for the weekly pulse
            survey_completion_coins: Reward when a survey sets none
        """
        self._db = db
        self._surveys_collection = db[collections.SURVEYS]
        self._responses_collection = db[collections.SURVEY_RESPONSES]
        self._users_collection = db[collections.USERS]
        self._ledger = ledger
        self._sink = sink
        self._bus = bus
        self._clock = clock or Clock()
        self._timezone = timezone
        self._company_name = company_name
        self._system_email = system_email or "system@company.com"
        self._pulse_coins = pulse_coins
        self._survey_completion_coins = survey_completion_coins

    # ─────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────

    async def get_survey(self, survey_id: str) -> Optional[Dict[str, Any]]:
        oid = _object_id(survey_id)
        if oid is None:
            return None
        return await self._surveys_collection.find_one({"_id": oid})

    async def resolve_targets(self, survey: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Active employees the survey is addressed to.

        ``targetAudience.all`` selects every active employee. Otherwise the
        department, role and specific-user filters are OR-ed together; with
        no filters at all the survey falls back to every active employee.
        """
        query: Dict[str, Any] = {"isActive": True, "role": "employee"}
        audience = survey.get("targetAudience") or {"all": True}

        if not audience.get("all", True):
            conditions = []
            if audience.get("departments"):
                conditions.append({"department": {"$in": audience["departments"]}})
            if audience.get("roles"):
                conditions.append({"role": {"$in": audience["roles"]}})
            if audience.get("specific_users"):
                ids = [oid for oid in (_object_id(u) for u in audience["specific_users"]) if oid]
                conditions.append({"_id": {"$in": ids}})
            if conditions:
                query["$or"] = conditions

        cursor = self._users_collection.find(query, TARGET_PROJECTION)
        return await cursor.to_list(length=None)

    async def has_user_responded(self, survey_id: Any, user_id: Any) -> bool:
        response = await self._responses_collection.find_one(
            {"surveyId": _object_id(survey_id), "userId": _object_id(user_id)},
            {"_id": 1},
        )
        return response is not None

    async def _responded_user_ids(self, survey_id: ObjectId) -> Set[ObjectId]:
        cursor = self._responses_collection.find({"surveyId": survey_id}, {"userId": 1})
        return {doc["userId"] async for doc in cursor}

    async def get_system_user_id(self) -> Optional[ObjectId]:
        """Admin with SYSTEM_EMAIL, else any admin, else any HR user."""
        user = await self._users_collection.find_one({"role": "admin", "email": self._system_email}, {"_id": 1})
        if not user:
            user = await self._users_collection.find_one({"role": "admin"}, {"_id": 1})
        if not user:
            user = await self._users_collection.find_one({"role": "hr"}, {"_id": 1})
        return user["_id"] if user else None

    # ─────────────────────────────────────────────────────────────────
    # Distribution
    # ─────────────────────────────────────────────────────────────────

    async def notify_targets(self, survey: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Tell every target about a newly available survey.

        Connected Slack users also get the interactive survey.

        Returns:
            The target users
        """
        targets = await self.resolve_targets(survey)
        if not targets:
            logger.info(f"Survey '{survey['title']}' has no target users")
            return targets

        await self._sink.emit_bulk(
            [t["_id"] for t in targets],
            SurveyAvailable(
                survey_id=str(survey["_id"]),
                survey_title=survey["title"],
                priority=_notification_priority(survey.get("priority")),
                happy_coins=self._reward_for(survey),
                due_date=survey.get("dueDate"),
                question_count=len(survey.get("questions", [])),
            ),
        )

        slack_count = await self._deliver_to_slack(targets, survey)
        logger.info(f"Sent survey notifications to {len(targets)} employees ({slack_count} via Slack)")
        return targets

    async def _deliver_to_slack(self, users: List[Dict[str, Any]], survey: Dict[str, Any]) -> int:
        sent = 0
        for user in users:
            if wants_slack_survey(user) and await self._sink.deliver_interactive_survey(user, survey):
                sent += 1
        return sent

    def _reward_for(self, survey: Dict[str, Any]) -> int:
        coins = (survey.get("rewards") or {}).get("happyCoins")
        return self._survey_completion_coins if coins is None else coins

    # ─────────────────────────────────────────────────────────────────
    # Scheduled sweeps
    # ─────────────────────────────────────────────────────────────────

    async def create_weekly_pulse(self) -> Optional[Dict[str, Any]]:
        """
        Create this ISO week's pulse survey unless one already exists.

        Returns:
            The new survey, or None when the week already has a pulse or
            there are no active employees
        """
        now = self._clock.now()
        start_of_week, end_of_week = week_window(now, self._timezone)

        existing = await self._surveys_collection.find_one({
            "type": SurveyType.PULSE.value,
            "status": {"$in": [SurveyStatus.ACTIVE.value, SurveyStatus.DRAFT.value]},
            "createdAt": {"$gte": start_of_week, "$lte": end_of_week},
        })
        if existing:
            logger.info("Weekly pulse survey already exists for this week")
            return None

        employees = await self._users_collection.count_documents({"role": "employee", "isActive": True})
        if employees == 0:
            logger.info("No active employees found, skipping pulse survey creation")
            return None

        year, week = iso_week(now, self._timezone)
        survey = {
            "title": pulse_title(week, year),
            "description": PULSE_DESCRIPTION,
            "type": SurveyType.PULSE.value,
            "priority": SurveyPriority.HIGH.value,
            "status": SurveyStatus.ACTIVE.value,
            "questions": build_pulse_questions(self._company_name),
            "schedule": {
                "frequency": "weekly",
                "dayOfWeek": 1,
                "time": "09:00",
                "startDate": now,
                "endDate": now + timedelta(days=7),
            },
            "targetAudience": {"all": True, "departments": [], "roles": [], "specific_users": []},
            "rewards": {"happyCoins": self._pulse_coins},
            "dueDate": end_of_week,
            "analytics": {"totalResponses": 0},
            "category": "pulse",
            "createdBy": await self.get_system_user_id(),
            "createdAt": now,
            "updatedAt": now,
        }
        result = await self._surveys_collection.insert_one(survey)
        survey["_id"] = result.inserted_id
        logger.info(f"Created weekly pulse survey: {survey['title']}")

        targets = await self.notify_targets(survey)
        await self._bus.publish(SurveyCreated(
            survey_id=str(survey["_id"]),
            target_ids=[str(t["_id"]) for t in targets],
        ))
        return survey

    async def send_reminders(self) -> Dict[str, int]:
        """
        Remind non-respondents of high/urgent surveys due within two days.

        Returns:
            Dict with ``surveys`` and ``reminded`` counts
        """
        now = self._clock.now()
        cursor = self._surveys_collection.find({
            "status": SurveyStatus.ACTIVE.value,
            "dueDate": {"$gte": now, "$lte": now + REMINDER_HORIZON},
            "priority": {"$in": REMINDER_PRIORITIES},
        })
        surveys = await cursor.to_list(length=None)

        reminded = 0
        for survey in surveys:
            try:
                reminded += await self._remind(survey, now)
            except Exception:
                logger.exception(f"Error sending reminders for survey {survey['_id']}")

        return {"surveys": len(surveys), "reminded": reminded}

    async def _remind(self, survey: Dict[str, Any], now) -> int:
        responded = await self._responded_user_ids(survey["_id"])
        pending = [u for u in await self.resolve_targets(survey) if u["_id"] not in responded]
        if not pending:
            return 0

        days_until_due = max(math.ceil((survey["dueDate"] - now).total_seconds() / 86400), 0)
        await self._sink.emit_bulk(
            [u["_id"] for u in pending],
            SurveyReminder(
                survey_id=str(survey["_id"]),
                survey_title=survey["title"],
                priority=_notification_priority(survey.get("priority")),
                happy_coins=self._reward_for(survey),
                days_until_due=days_until_due,
                due_date=survey["dueDate"],
            ),
        )
        await self._deliver_to_slack(pending, survey)

        logger.info(f"Sent reminders for survey \"{survey['title']}\" to {len(pending)} users")
        return len(pending)

    async def close_expired_surveys(self) -> int:
        """
        Close every active survey whose due date has passed.

        Returns:
            Number of surveys closed by this sweep
        """
        now = self._clock.now()
        cursor = self._surveys_collection.find(
            {"status": SurveyStatus.ACTIVE.value, "dueDate": {"$lt": now}},
            {"title": 1},
        )
        closed = 0
        async for survey in cursor:
            result = await self._surveys_collection.update_one(
                {"_id": survey["_id"], "status": SurveyStatus.ACTIVE.value},
                {"$set": {"status": SurveyStatus.CLOSED.value, "closedAt": now, "updatedAt": now}},
            )
            if result.modified_count:
                closed += 1
                logger.info(f"Closed expired survey: {survey['title']}")
                await self._bus.publish(SurveyClosed(survey_id=str(survey["_id"])))

        if closed:
            logger.info(f"Closed {closed} expired surveys")
        return closed

    # ─────────────────────────────────────────────────────────────────
    # Admin lifecycle
    # ─────────────────────────────────────────────────────────────────

    async def create_survey(
        self,
        data: Dict[str, Any],
        created_by: Optional[str] = None,
        schedule: Optional[SurveySchedule] = None,
    ) -> Outcome[Dict[str, Any]]:
        """
        Store a new survey as a draft.

        Args:
            data: Survey fields (see SurveyDefinition)
            created_by: Admin user ID
            schedule: Optional recurring activation

        Returns:
            Outcome with the stored survey, or a validation failure
        """
        try:
            definition = SurveyDefinition.model_validate(data)
        except ValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            return Outcome.validation("Invalid survey definition", code="INVALID_SURVEY", details=errors)

        now = self._clock.now()
        survey = definition.model_dump(mode="json", exclude={"dueDate"})
        survey.update({
            "status": SurveyStatus.DRAFT.value,
            "dueDate": to_naive_utc(definition.dueDate) if definition.dueDate else None,
            "analytics": {"totalResponses": 0},
            "createdBy": _object_id(created_by) if created_by else None,
            "createdAt": now,
            "updatedAt": now,
        })
        survey["targetAudience"]["specific_users"] = [
            oid for oid in (_object_id(u) for u in definition.targetAudience.specific_users) if oid
        ]
        if schedule is not None:
            survey["schedule"] = {
                "frequency": schedule.frequency,
                "dayOfWeek": schedule.dayOfWeek,
                "time": schedule.time,
                "startDate": now,
                "endDate": now + timedelta(days=schedule.duration) if schedule.duration else None,
            }

        result = await self._surveys_collection.insert_one(survey)
        survey["_id"] = result.inserted_id
        logger.info(f"Created survey draft: {survey['title']}")
        return Outcome.success(survey)

    async def list_scheduled_drafts(self) -> List[Dict[str, Any]]:
        """Drafts waiting for a weekly scheduled activation."""
        cursor = self._surveys_collection.find({
            "status": SurveyStatus.DRAFT.value,
            "schedule.frequency": "weekly",
        })
        return await cursor.to_list(length=None)

    async def _transition(
        self,
        survey_id: str,
        expected: SurveyStatus,
        target: SurveyStatus,
    ) -> Outcome[Dict[str, Any]]:
        oid = _object_id(survey_id)
        if oid is None:
            return Outcome.not_found("Survey not found", code="SURVEY_NOT_FOUND")

        now = self._clock.now()
        updates: Dict[str, Any] = {"status": target.value, "updatedAt": now, TRANSITION_STAMPS[target]: now}
        result = await self._surveys_collection.update_one(
            {"_id": oid, "status": expected.value},
            {"$set": updates},
        )
        survey = await self._surveys_collection.find_one({"_id": oid})
        if survey is None:
            return Outcome.not_found("Survey not found", code="SURVEY_NOT_FOUND")
        if result.modified_count == 0:
            return Outcome.conflict(
                f"Survey is {survey['status']}, expected {expected.value}",
                code="INVALID_SURVEY_TRANSITION",
            )

        logger.info(f"Survey {survey_id}: {expected.value} -> {target.value}")
        return Outcome.success(survey)

    async def activate_survey(self, survey_id: str, notify: bool = True) -> Outcome[Dict[str, Any]]:
        """Promote a draft to active and, by default, notify its targets."""
        outcome = await self._transition(survey_id, SurveyStatus.DRAFT, SurveyStatus.ACTIVE)
        if outcome.ok and notify:
            await self.notify_targets(outcome.value)
        return outcome

    async def close_survey(self, survey_id: str) -> Outcome[Dict[str, Any]]:
        outcome = await self._transition(survey_id, SurveyStatus.ACTIVE, SurveyStatus.CLOSED)
        if outcome.ok:
            await self._bus.publish(SurveyClosed(survey_id=str(outcome.value["_id"])))
        return outcome

    async def archive_survey(self, survey_id: str) -> Outcome[Dict[str, Any]]:
        return await self._transition(survey_id, SurveyStatus.CLOSED, SurveyStatus.ARCHIVED)

    # ─────────────────────────────────────────────────────────────────
    # Responses
    # ─────────────────────────────────────────────────────────────────

    async def submit_response(
        self,
        survey_id: str,
        user_id: str,
        answers: Dict[str, Any],
    ) -> Outcome[Dict[str, Any]]:
        """
        Record a user's answers, credit the reward and publish SurveyCompleted.

        Returns:
            Outcome with ``{surveyId, responseId, score, coinsAwarded,
            happyCoins}``, or SURVEY_NOT_FOUND / SURVEY_CLOSED /
            ALREADY_RESPONDED / INVALID_ANSWERS failures
        """
        survey = await self.get_survey(survey_id)
        if not survey:
            return Outcome.not_found("Survey not found", code="SURVEY_NOT_FOUND")

        now = self._clock.now()
        due = survey.get("dueDate")
        if survey["status"] != SurveyStatus.ACTIVE.value or (due is not None and due < now):
            return Outcome.conflict("Survey is not currently active", code="SURVEY_CLOSED")

        if await self.has_user_responded(survey["_id"], user_id):
            return Outcome.conflict("You have already responded to this survey", code="ALREADY_RESPONDED")

        questions = survey.get("questions", [])
        errors = validate_answers(questions, answers)
        if errors:
            return Outcome.validation(errors[0]["message"], code="INVALID_ANSWERS", details=errors)

        known = {q["id"] for q in questions}
        kept = {qid: value for qid, value in answers.items() if qid in known}
        score = score_answers(questions, kept)

        try:
            result = await self._responses_collection.insert_one({
                "surveyId": survey["_id"],
                "userId": ObjectId(user_id),
                "answers": kept,
                "score": score,
                "completedAt": now,
            })
        except DuplicateKeyError:
            return Outcome.conflict("You have already responded to this survey", code="ALREADY_RESPONDED")

        await self._surveys_collection.update_one(
            {"_id": survey["_id"]},
            {"$inc": {"analytics.totalResponses": 1}, "$set": {"lastResponseAt": now, "updatedAt": now}},
        )

        coins = self._reward_for(survey)
        awarded = 0
        if coins > 0:
            credited = await self._ledger.credit_coins(
                user_id,
                coins,
                CreditReason(
                    source="survey",
                    key=f"survey:{survey['_id']}:{user_id}",
                    notify=True,
                    description=f"Completed survey: {survey['title']}",
                ),
            )
            if credited.ok:
                awarded = coins
            else:
                logger.error(f"Survey reward not credited to user {user_id}: {credited.error.code}")

        await self._bus.publish(SurveyCompleted(survey_id=str(survey["_id"]), user_id=user_id, score=score))

        wellness = await self._ledger.get_wellness(user_id) or {}
        logger.info(f"User {user_id} completed survey {survey['_id']} (score={score})")
        return Outcome.success({
            "surveyId": str(survey["_id"]),
            "responseId": str(result.inserted_id),
            "score": score,
            "coinsAwarded": awarded,
            "happyCoins": wellness.get("happyCoins", 0),
        })

    async def list_active_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """Active, not yet due surveys addressed to the user."""
        user = await self._users_collection.find_one({"_id": ObjectId(user_id)}, {"department": 1, "role": 1})
        if not user:
            return []

        now = self._clock.now()
        audience: List[Dict[str, Any]] = [
            {"targetAudience.all": True},
            {"targetAudience.specific_users": user["_id"]},
        ]
        if user.get("department"):
            audience.append({"targetAudience.departments": user["department"]})
        if user.get("role"):
            audience.append({"targetAudience.roles": user["role"]})

        cursor = self._surveys_collection.find({
            "status": SurveyStatus.ACTIVE.value,
            "$and": [
                {"$or": [{"dueDate": None}, {"dueDate": {"$gte": now}}]},
                {"$or": audience},
            ],
        }).sort("dueDate", 1)

        responded_cursor = self._responses_collection.find({"userId": user["_id"]}, {"surveyId": 1})
        responded = {doc["surveyId"] async for doc in responded_cursor}

        return [format_survey(s, has_responded=s["_id"] in responded) async for s in cursor]
