"""
Engagement scheduler.

Drives the survey sweeps, streak warnings and notification cleanup on cron
patterns with APScheduler, plus one dynamic job per custom-scheduled survey.

Patterns use crontab numbering (day-of-week 0 or 7 = Sunday) and are
converted to APScheduler day names. Missed fires are coalesced into at most
one run and never backfilled; the next sweep picks up accumulated work.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from pydantic import ValidationError

from common.utils.outcomes import Outcome
from engagement.services.notifications.notification_sink import NotificationSink
from engagement.services.surveys.models import SurveySchedule
from engagement.services.surveys.survey_service import SurveyService
from engagement.services.wellness.streak_warning_service import StreakWarningService

logger = logging.getLogger(__name__)

CRON_DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun")
MISFIRE_GRACE_SECONDS = 60
SURVEY_JOB_PREFIX = "survey:"

# job id -> cron pattern
FIXED_JOBS = {
    "weekly_pulse": "0 9 * * 1",
    "survey_reminders": "0 10 * * *",
    "survey_closure": "59 23 * * *",
    "streak_warnings": "0 18 * * *",
    "notification_cleanup": "0 3 * * *",
}


def _convert_day_of_week(field: str) -> str:
    if field == "*":
        return field

    converted = []
    for part in field.split(","):
        if "-" in part:
            start, end = part.split("-", 1)
            converted.append(f"{CRON_DAY_NAMES[int(start)]}-{CRON_DAY_NAMES[int(end)]}")
        else:
            converted.append(CRON_DAY_NAMES[int(part)])
    return ",".join(converted)


def cron_trigger(pattern: str, timezone: str = "UTC") -> CronTrigger:
    """
    Build a CronTrigger from a 5-field crontab pattern.

    Raises:
        ValueError: If the pattern is malformed
    """
    fields = pattern.split()
    if len(fields) != 5:
        raise ValueError(f"Cron pattern needs 5 fields: '{pattern}'")

    minute, hour, day, month, day_of_week = fields
    try:
        day_of_week = _convert_day_of_week(day_of_week)
    except (IndexError, ValueError) as e:
        raise ValueError(f"Invalid day-of-week in cron pattern '{pattern}'") from e

    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=day_of_week,
        timezone=timezone,
    )


def build_weekly_cron_pattern(day_of_week: int, time: str) -> str:
    """``HH:MM`` on crontab day ``day_of_week`` -> ``MM HH * * D``."""
    hour, minute = time.split(":")
    return f"{minute} {hour} * * {day_of_week}"


class SurveyScheduler:
    """Owns the APScheduler instance and every engagement job."""

    def __init__(
        self,
        surveys: SurveyService,
        streak_warnings: StreakWarningService,
        sink: NotificationSink,
        timezone: str = "UTC",
        notification_retention_days: int = 30,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        """
        Initialize SurveyScheduler.

        Args:
            surveys: Survey lifecycle manager
            streak_warnings: Streak warning sweep
            sink: Notification sink, for the cleanup sweep
            timezone: Zone the cron patterns are evaluated in
            notification_retention_days: Age at which read notifications are removed
            scheduler: Preconfigured scheduler (tests)
        """
        self._surveys = surveys
        self._streak_warnings = streak_warnings
        self._sink = sink
        self._timezone = timezone
        self._retention_days = notification_retention_days
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone)
        self._dynamic_jobs: Dict[str, str] = {}
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def scheduled_surveys(self) -> Dict[str, str]:
        """survey id -> cron pattern of the registered dynamic jobs."""
        return dict(self._dynamic_jobs)

    def jobs(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": job.id,
                "nextRunTime": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
            }
            for job in self._scheduler.get_jobs()
        ]

    # ─────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """
        Register the fixed jobs and re-register scheduled drafts, then start.

        Safe to call more than once.
        """
        if self._initialized:
            return

        logger.info("Initializing survey scheduler...")

        actions: Dict[str, Callable[[], Awaitable[Any]]] = {
            "weekly_pulse": self._surveys.create_weekly_pulse,
            "survey_reminders": self._surveys.send_reminders,
            "survey_closure": self._surveys.close_expired_surveys,
            "streak_warnings": self._streak_warnings.send_streak_warnings,
            "notification_cleanup": self._cleanup_notifications,
        }
        for job_id, pattern in FIXED_JOBS.items():
            self._add_job(job_id, pattern, self._run, job_id, actions[job_id])

        for survey in await self._surveys.list_scheduled_drafts():
            schedule = survey.get("schedule") or {}
            try:
                self._register_survey(str(survey["_id"]), schedule.get("dayOfWeek", 1), schedule.get("time", "09:00"))
            except ValueError as e:
                logger.error(f"Could not re-register scheduled survey {survey['_id']}: {e}")

        if not self._scheduler.running:
            self._scheduler.start()

        self._initialized = True
        logger.info(f"Survey scheduler initialized with {len(self._scheduler.get_jobs())} jobs")

    async def shutdown(self) -> None:
        """Cancel every dynamic job and stop the scheduler."""
        for survey_id in list(self._dynamic_jobs):
            self.cancel_custom_survey(survey_id)

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

        self._initialized = False
        logger.info("Survey scheduler cleanup completed")

    def _add_job(self, job_id: str, pattern: str, func, *args) -> None:
        self._scheduler.add_job(
            func,
            cron_trigger(pattern, self._timezone),
            args=list(args),
            id=job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
        )
        logger.debug(f"Scheduled job {job_id} ({pattern})")

    async def _run(self, name: str, action: Callable[[], Awaitable[Any]]) -> Any:
        """Run a sweep; failures are logged so the scheduler keeps going."""
        logger.info(f"Running scheduled job: {name}")
        try:
            return await action()
        except Exception:
            logger.exception(f"Scheduled job {name} failed")
            return None

    async def _cleanup_notifications(self) -> int:
        return await self._sink.gc(self._retention_days)

    # ─────────────────────────────────────────────────────────────────
    # Manual triggers
    # ─────────────────────────────────────────────────────────────────

    async def trigger_weekly_pulse(self) -> Optional[Dict[str, Any]]:
        logger.info("Manually triggering weekly pulse survey creation...")
        return await self._surveys.create_weekly_pulse()

    async def trigger_reminders(self) -> Dict[str, int]:
        logger.info("Manually triggering survey reminders...")
        return await self._surveys.send_reminders()

    async def trigger_closures(self) -> int:
        logger.info("Manually triggering survey closures...")
        return await self._surveys.close_expired_surveys()

    # ─────────────────────────────────────────────────────────────────
    # Custom scheduled surveys
    # ─────────────────────────────────────────────────────────────────

    async def schedule_custom_survey(
        self,
        survey_data: Dict[str, Any],
        schedule_options: Dict[str, Any],
        created_by: Optional[str] = None,
    ) -> Outcome[Dict[str, Any]]:
        """
        Store a draft survey and, for weekly schedules, register its activation job.

        Args:
            survey_data: Survey fields (see SurveyDefinition)
            schedule_options: ``{frequency, dayOfWeek, time, duration}``
            created_by: Admin user ID

        Returns:
            Outcome with the stored draft
        """
        try:
            schedule = SurveySchedule.model_validate(schedule_options)
        except ValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            return Outcome.validation("Invalid survey schedule", code="INVALID_SCHEDULE", details=errors)

        outcome = await self._surveys.create_survey(survey_data, created_by=created_by, schedule=schedule)
        if not outcome.ok:
            return outcome

        survey = outcome.value
        if schedule.frequency == "weekly":
            self._register_survey(str(survey["_id"]), schedule.dayOfWeek, schedule.time)

        logger.info(f"Scheduled custom survey: {survey['title']}")
        return outcome

    def _register_survey(self, survey_id: str, day_of_week: int, time: str) -> None:
        pattern = build_weekly_cron_pattern(day_of_week, time)
        self._add_job(f"{SURVEY_JOB_PREFIX}{survey_id}", pattern, self.activate_scheduled_survey, survey_id)
        self._dynamic_jobs[survey_id] = pattern

    def cancel_custom_survey(self, survey_id: str) -> bool:
        if self._dynamic_jobs.pop(survey_id, None) is None:
            return False
        job_id = f"{SURVEY_JOB_PREFIX}{survey_id}"
        if self._scheduler.get_job(job_id):
            self._scheduler.remove_job(job_id)
        return True

    async def activate_scheduled_survey(self, survey_id: str) -> bool:
        """
        Promote a scheduled draft to active and notify its targets.

        The survey's job is removed once the survey is no longer a draft.

        Returns:
            True when this call activated the survey
        """
        try:
            outcome = await self._surveys.activate_survey(survey_id)
        except Exception:
            logger.exception(f"Error activating scheduled survey {survey_id}")
            return False

        self.cancel_custom_survey(survey_id)
        if not outcome.ok:
            logger.info(f"Scheduled survey {survey_id} not activated: {outcome.error.code}")
            return False

        logger.info(f"Activated scheduled survey: {outcome.value['title']}")
        return True
