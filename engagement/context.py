"""
Collaborator wiring for the engagement engine.

``build_context`` constructs every service once at startup. The context is
stored on ``app.state`` and handed to routers through ``engagement.dependencies``.
Event subscriptions are the only coupling between producers and consumers.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.events import EventBus
from common.utils.clock import Clock
from engagement.config import Settings
from engagement.events import CheckInRecorded, RecognitionSent, SurveyCompleted
from engagement.services.achievements import AchievementService
from engagement.services.checkin import CheckInAnalytics, CheckInProcessor, CheckInService
from engagement.services.notifications import NotificationSink
from engagement.services.notifications.channels import (
    EmailChannel,
    NotificationChannel,
    SlackChannel,
    WhatsAppChannel,
)
from engagement.services.rewards import RecognitionService, RewardService
from engagement.services.risk import RiskMonitor
from engagement.services.scheduler import SurveyScheduler
from engagement.services.surveys import SurveyService
from engagement.services.wellness import StreakWarningService, WellnessLedger

logger = logging.getLogger(__name__)


@dataclass
class EngagementContext:
    settings: Settings
    db: AsyncIOMotorDatabase
    clock: Clock
    bus: EventBus
    sink: NotificationSink
    ledger: WellnessLedger
    checkins: CheckInService
    checkin_analytics: CheckInAnalytics
    processor: CheckInProcessor
    achievements: AchievementService
    surveys: SurveyService
    streak_warnings: StreakWarningService
    recognitions: RecognitionService
    rewards: RewardService
    risk: RiskMonitor
    scheduler: SurveyScheduler

    async def aclose(self) -> None:
        """Stop the scheduler and release channel clients."""
        try:
            await self.scheduler.shutdown()
        finally:
            await self.sink.aclose()


def build_channels(settings: Settings) -> List[NotificationChannel]:
    """Email is always present; WhatsApp and Slack only when configured."""
    channels: List[NotificationChannel] = [
        EmailChannel(
            mode=settings.EMAIL_MODE,
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            smtp_password=settings.SMTP_PASSWORD,
            from_email=settings.SMTP_FROM_EMAIL,
            from_name=settings.SMTP_FROM_NAME,
            app_url=settings.FRONTEND_URL,
        )
    ]

    if settings.whatsapp_enabled():
        channels.append(WhatsAppChannel(
            access_token=settings.WHATSAPP_ACCESS_TOKEN,
            phone_number_id=settings.WHATSAPP_PHONE_NUMBER_ID,
            api_version=settings.WHATSAPP_API_VERSION,
            timeout=settings.CHANNEL_TIMEOUT_SECONDS,
        ))
    else:
        logger.info("WhatsApp channel disabled (no credentials)")

    if settings.slack_enabled():
        channels.append(SlackChannel(
            bot_token=settings.SLACK_BOT_TOKEN,
            timeout=settings.CHANNEL_TIMEOUT_SECONDS,
        ))
    else:
        logger.info("Slack channel disabled (no bot token)")

    return channels


def build_context(
    settings: Settings,
    db: AsyncIOMotorDatabase,
    clock: Optional[Clock] = None,
    channels: Optional[List[NotificationChannel]] = None,
) -> EngagementContext:
    """
    Construct every engagement collaborator and subscribe the event consumers.

    Args:
        settings: Application settings
        db: Motor database
        clock: Source of the current instant (tests pass a FixedClock)
        channels: Outbound channels; built from settings when omitted

    Returns:
        The wired EngagementContext
    """
    clock = clock or Clock()
    bus = EventBus()

    sink = NotificationSink(
        db,
        clock=clock,
        channels=channels if channels is not None else build_channels(settings),
        channel_timeout=settings.CHANNEL_TIMEOUT_SECONDS,
    )
    ledger = WellnessLedger(
        db,
        sink,
        clock=clock,
        streak_bonuses=settings.get_streak_bonuses(),
        replay_window_days=settings.CREDIT_REPLAY_WINDOW_DAYS,
    )

    checkins = CheckInService(db, clock=clock)
    checkin_analytics = CheckInAnalytics(checkins, clock=clock)
    processor = CheckInProcessor(
        db,
        checkins,
        checkin_analytics,
        ledger,
        sink,
        bus,
        clock=clock,
        daily_checkin_coins=settings.DAILY_CHECKIN_COINS,
        positive_mood_bonus=settings.POSITIVE_MOOD_BONUS,
    )

    achievements = AchievementService(db, ledger, sink, clock=clock)
    surveys = SurveyService(
        db,
        ledger,
        sink,
        bus,
        clock=clock,
        timezone=settings.SCHEDULER_TIMEZONE,
        company_name=settings.COMPANY_NAME,
        system_email=settings.SYSTEM_EMAIL,
        pulse_coins=settings.PULSE_SURVEY_COINS,
        survey_completion_coins=settings.SURVEY_COMPLETION_COINS,
    )
    streak_warnings = StreakWarningService(db, sink, clock=clock)
    recognitions = RecognitionService(
        db, ledger, sink, bus, clock=clock, recognition_coins=settings.RECOGNITION_COINS
    )
    rewards = RewardService(db, ledger, sink, bus, clock=clock)
    risk = RiskMonitor(
        db,
        sink,
        clock=clock,
        low_mood_threshold=settings.LOW_MOOD_THRESHOLD,
        consecutive_days=settings.CONSECUTIVE_LOW_DAYS,
    )
    scheduler = SurveyScheduler(
        surveys,
        streak_warnings,
        sink,
        timezone=settings.SCHEDULER_TIMEZONE,
        notification_retention_days=settings.NOTIFICATION_RETENTION_DAYS,
    )

    bus.subscribe(CheckInRecorded, achievements.on_check_in)
    bus.subscribe(CheckInRecorded, risk.on_check_in)
    bus.subscribe(RecognitionSent, achievements.on_recognition)
    bus.subscribe(SurveyCompleted, achievements.on_survey_completed)

    logger.info(f"Engagement context built with channels: {', '.join(sink.enabled_channels) or 'none'}")

    return EngagementContext(
        settings=settings,
        db=db,
        clock=clock,
        bus=bus,
        sink=sink,
        ledger=ledger,
        checkins=checkins,
        checkin_analytics=checkin_analytics,
        processor=processor,
        achievements=achievements,
        surveys=surveys,
        streak_warnings=streak_warnings,
        recognitions=recognitions,
        rewards=rewards,
        risk=risk,
        scheduler=scheduler,
    )
