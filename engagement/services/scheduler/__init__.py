from engagement.services.scheduler.survey_scheduler import (
    FIXED_JOBS,
    SurveyScheduler,
    build_weekly_cron_pattern,
    cron_trigger,
)

__all__ = ["FIXED_JOBS", "SurveyScheduler", "build_weekly_cron_pattern", "cron_trigger"]
