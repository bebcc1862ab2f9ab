"""
WellnessAI application settings.

Extends the base settings with engagement-engine configuration.
"""

from typing import Dict, List, Optional

from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """WellnessAI-specific settings."""

    # ==========================================================================
    # Happy Coins
    # ==========================================================================
    DAILY_CHECKIN_COINS: int = 50
    POSITIVE_MOOD_BONUS: int = 25
    JOURNAL_ENTRY_COINS: int = 25
    SURVEY_COMPLETION_COINS: int = 75
    PULSE_SURVEY_COINS: int = 100
    RECOGNITION_COINS: int = 25

    # Streak length -> bonus coins, e.g. "7:100,30:500,90:1500"
    STREAK_BONUSES: str = "7:100,30:500,90:1500"

    # Credit replay journal retention
    CREDIT_REPLAY_WINDOW_DAYS: int = 7

    # ==========================================================================
    # Risk signals
    # ==========================================================================
    LOW_MOOD_THRESHOLD: float = 2.5
    CONSECUTIVE_LOW_DAYS: int = 3
    RISK_ALERT_THRESHOLD: float = 0.7

    # ==========================================================================
    # Organization
    # ==========================================================================
    COMPANY_NAME: str = "our company"
    SYSTEM_EMAIL: Optional[str] = None

    # ==========================================================================
    # Notification channels
    # ==========================================================================
    # Email: "console" logs messages, "smtp" sends them
    EMAIL_MODE: str = "console"
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: str = "noreply@wellnessai.app"
    SMTP_FROM_NAME: str = "WellnessAI"

    # WhatsApp Cloud API
    WHATSAPP_ACCESS_TOKEN: Optional[str] = None
    WHATSAPP_PHONE_NUMBER_ID: Optional[str] = None
    WHATSAPP_API_VERSION: str = "v18.0"

    # Slack
    SLACK_BOT_TOKEN: Optional[str] = None
    SLACK_CLIENT_ID: Optional[str] = None
    SLACK_CLIENT_SECRET: Optional[str] = None
    SLACK_SIGNING_SECRET: Optional[str] = None

    CHANNEL_TIMEOUT_SECONDS: float = 10.0

    # Read notifications older than this are removed by the cleanup sweep
    NOTIFICATION_RETENTION_DAYS: int = 30

    # ==========================================================================
    # Scheduling
    # ==========================================================================
    SCHEDULER_TIMEZONE: str = "UTC"
    ENABLE_SCHEDULED_JOBS: bool = True
    SEED_DEFAULT_ACHIEVEMENTS: bool = True

    # ==========================================================================
    # Frontend URL (for notification links)
    # ==========================================================================
    FRONTEND_URL: str = "http://localhost:3000"

    def get_streak_bonuses(self) -> Dict[int, int]:
        """Parse STREAK_BONUSES into {streak_length: coins}."""
        bonuses: Dict[int, int] = {}
        for pair in self.STREAK_BONUSES.split(","):
            if not pair.strip():
                continue
            length, coins = pair.split(":")
            bonuses[int(length)] = int(coins)
        return bonuses

    def whatsapp_enabled(self) -> bool:
        return bool(self.WHATSAPP_ACCESS_TOKEN and self.WHATSAPP_PHONE_NUMBER_ID)

    def slack_enabled(self) -> bool:
        return bool(self.SLACK_BOT_TOKEN)

    def collect_errors(self) -> List[str]:
        errors = super().collect_errors()

        try:
            bonuses = self.get_streak_bonuses()
            if any(length <= 0 or coins < 0 for length, coins in bonuses.items()):
                errors.append("STREAK_BONUSES entries must be positive lengths with non-negative coins")
        except ValueError:
            errors.append(f"STREAK_BONUSES is malformed: '{self.STREAK_BONUSES}'")

        if self.EMAIL_MODE not in ("console", "smtp"):
            errors.append("EMAIL_MODE must be 'console' or 'smtp'")

        if self.EMAIL_MODE == "smtp" and not self.SMTP_HOST:
            errors.append("SMTP_HOST is required when EMAIL_MODE=smtp")

        if self.CONSECUTIVE_LOW_DAYS < 1:
            errors.append("CONSECUTIVE_LOW_DAYS must be at least 1")

        return errors


# Global settings instance
settings = Settings()
