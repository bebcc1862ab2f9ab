"""Tests for cron conversion and the survey scheduler."""

import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId

from common.utils.outcomes import Outcome
from engagement.services.scheduler import FIXED_JOBS, SurveyScheduler, build_weekly_cron_pattern, cron_trigger


@pytest.fixture
def mock_apscheduler():
    scheduler = MagicMock()
    scheduler.running = False
    scheduler.get_jobs.return_value = []
    scheduler.get_job.return_value = object()
    return scheduler


@pytest.fixture
def mock_surveys():
    surveys = MagicMock()
    surveys.create_weekly_pulse = AsyncMock(return_value=None)
    surveys.send_reminders = AsyncMock(return_value={"surveys": 0, "reminded": 0})
    surveys.close_expired_surveys = AsyncMock(return_value=0)
    surveys.list_scheduled_drafts = AsyncMock(return_value=[])
    surveys.activate_survey = AsyncMock()
    surveys.create_survey = AsyncMock()
    return surveys


@pytest.fixture
def survey_scheduler(mock_surveys, mock_sink, mock_apscheduler):
    streak_warnings = MagicMock()
    streak_warnings.send_streak_warnings = AsyncMock(return_value={"warningsSent": 0, "errors": 0})
    return SurveyScheduler(mock_surveys, streak_warnings, mock_sink, scheduler=mock_apscheduler)


# ─────────────────────────────────────────────────────────────────
# Cron patterns
# ─────────────────────────────────────────────────────────────────


class TestCronPatterns:
    def test_weekly_pattern(self):
        assert build_weekly_cron_pattern(1, "09:00") == "00 09 * * 1"
        assert build_weekly_cron_pattern(0, "18:30") == "30 18 * * 0"

    @pytest.mark.parametrize("day,name", [("0", "sun"), ("7", "sun"), ("1", "mon"), ("6", "sat")])
    def test_crontab_day_numbers_converted(self, day, name):
        trigger = cron_trigger(f"0 9 * * {day}")

        day_field = next(f for f in trigger.fields if f.name == "day_of_week")
        assert str(day_field) == name

    def test_day_range_converted(self):
        trigger = cron_trigger("0 9 * * 1-5")

        day_field = next(f for f in trigger.fields if f.name == "day_of_week")
        assert str(day_field) == "mon-fri"

    def test_wrong_field_count(self):
        with pytest.raises(ValueError, match="5 fields"):
            cron_trigger("0 9 * *")

    def test_day_out_of_range(self):
        with pytest.raises(ValueError):
            cron_trigger("0 9 * * 8")


# ─────────────────────────────────────────────────────────────────
# Lifecycle
# ─────────────────────────────────────────────────────────────────


class TestInitialize:
    @pytest.mark.asyncio
    async def test_registers_fixed_jobs_and_starts(self, survey_scheduler, mock_apscheduler):
        await survey_scheduler.initialize()

        job_ids = [c.kwargs["id"] for c in mock_apscheduler.add_job.call_args_list]
        assert job_ids == list(FIXED_JOBS)
        assert all(c.kwargs["coalesce"] for c in mock_apscheduler.add_job.call_args_list)
        mock_apscheduler.start.assert_called_once()
        assert survey_scheduler.is_initialized

    @pytest.mark.asyncio
    async def test_initialize_twice_is_noop(self, survey_scheduler, mock_apscheduler):
        await survey_scheduler.initialize()
        await survey_scheduler.initialize()

        assert mock_apscheduler.add_job.call_count == len(FIXED_JOBS)
        mock_apscheduler.start.assert_called_once()

    @pytest.mark.asyncio
    async def test_reregisters_scheduled_drafts(self, survey_scheduler, mock_surveys, mock_apscheduler):
        survey_id = ObjectId()
        mock_surveys.list_scheduled_drafts.return_value = [
            {"_id": survey_id, "schedule": {"dayOfWeek": 3, "time": "14:15"}},
        ]

        await survey_scheduler.initialize()

        assert survey_scheduler.scheduled_surveys == {str(survey_id): "15 14 * * 3"}

    @pytest.mark.asyncio
    async def test_shutdown_cancels_dynamic_jobs(self, survey_scheduler, mock_surveys, mock_apscheduler):
        mock_surveys.list_scheduled_drafts.return_value = [{"_id": ObjectId(), "schedule": {}}]
        await survey_scheduler.initialize()
        mock_apscheduler.running = True

        await survey_scheduler.shutdown()

        assert survey_scheduler.scheduled_surveys == {}
        mock_apscheduler.remove_job.assert_called_once()
        mock_apscheduler.shutdown.assert_called_once_with(wait=False)
        assert not survey_scheduler.is_initialized


class TestJobs:
    @pytest.mark.asyncio
    async def test_failing_sweep_is_contained(self, survey_scheduler):
        action = AsyncMock(side_effect=RuntimeError("boom"))

        assert await survey_scheduler._run("survey_closure", action) is None

    @pytest.mark.asyncio
    async def test_cleanup_uses_retention(self, survey_scheduler, mock_sink):
        await survey_scheduler._cleanup_notifications()

        mock_sink.gc.assert_awaited_once_with(30)

    @pytest.mark.asyncio
    async def test_manual_pulse_trigger(self, survey_scheduler, mock_surveys):
        await survey_scheduler.trigger_weekly_pulse()

        mock_surveys.create_weekly_pulse.assert_awaited_once()


class TestCustomSurveys:
    @pytest.mark.asyncio
    async def test_weekly_schedule_registers_job(self, survey_scheduler, mock_surveys):
        survey_id = ObjectId()
        mock_surveys.create_survey.return_value = Outcome.success({"_id": survey_id, "title": "Retro"})

        outcome = await survey_scheduler.schedule_custom_survey(
            {"title": "Retro"}, {"frequency": "weekly", "dayOfWeek": 5, "time": "16:00"}
        )

        assert outcome.ok
        assert survey_scheduler.scheduled_surveys == {str(survey_id): "00 16 * * 5"}

    @pytest.mark.asyncio
    async def test_one_off_schedule_registers_nothing(self, survey_scheduler, mock_surveys):
        mock_surveys.create_survey.return_value = Outcome.success({"_id": ObjectId(), "title": "Once"})

        await survey_scheduler.schedule_custom_survey({"title": "Once"}, {"frequency": "once"})

        assert survey_scheduler.scheduled_surveys == {}

    @pytest.mark.asyncio
    async def test_invalid_schedule(self, survey_scheduler, mock_surveys):
        outcome = await survey_scheduler.schedule_custom_survey({"title": "Bad"}, {"time": "25:00"})

        assert outcome.error.code == "INVALID_SCHEDULE"
        mock_surveys.create_survey.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_activation_removes_job(self, survey_scheduler, mock_surveys):
        survey_id = ObjectId()
        mock_surveys.create_survey.return_value = Outcome.success({"_id": survey_id, "title": "Retro"})
        mock_surveys.activate_survey.return_value = Outcome.success({"_id": survey_id, "title": "Retro"})
        await survey_scheduler.schedule_custom_survey({"title": "Retro"}, {"frequency": "weekly"})

        activated = await survey_scheduler.activate_scheduled_survey(str(survey_id))

        assert activated is True
        assert survey_scheduler.scheduled_surveys == {}

    @pytest.mark.asyncio
    async def test_activation_of_non_draft(self, survey_scheduler, mock_surveys):
        mock_surveys.activate_survey.return_value = Outcome.conflict("nope", code="INVALID_SURVEY_TRANSITION")

        assert await survey_scheduler.activate_scheduled_survey(str(ObjectId())) is False
