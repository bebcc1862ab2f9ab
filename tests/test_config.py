"""Tests for settings parsing and startup validation."""

import pytest

from common.config import ConfigurationError
from engagement.config import Settings


def _settings(**overrides):
    values = {"ENVIRONMENT": "test", "JWT_SECRET": "secret"}
    values.update(overrides)
    return Settings(**values)


class TestStreakBonuses:
    def test_default_bonuses(self):
        assert _settings().get_streak_bonuses() == {7: 100, 30: 500, 90: 1500}

    def test_custom_bonuses(self):
        assert _settings(STREAK_BONUSES="3:10, 14:200").get_streak_bonuses() == {3: 10, 14: 200}

    def test_malformed_bonuses_reported(self):
        errors = _settings(STREAK_BONUSES="seven:100").collect_errors()

        assert any("STREAK_BONUSES is malformed" in e for e in errors)

    def test_negative_coins_reported(self):
        errors = _settings(STREAK_BONUSES="7:-5").collect_errors()

        assert any("non-negative coins" in e for e in errors)


class TestCollectErrors:
    def test_defaults_are_valid(self):
        assert _settings().collect_errors() == []

    def test_unknown_email_mode(self):
        assert "EMAIL_MODE must be 'console' or 'smtp'" in _settings(EMAIL_MODE="fax").collect_errors()

    def test_smtp_requires_host(self):
        assert "SMTP_HOST is required when EMAIL_MODE=smtp" in _settings(EMAIL_MODE="smtp").collect_errors()

    def test_consecutive_low_days(self):
        assert "CONSECUTIVE_LOW_DAYS must be at least 1" in _settings(CONSECUTIVE_LOW_DAYS=0).collect_errors()

    def test_production_requirements(self):
        settings = Settings(ENVIRONMENT="production", JWT_SECRET=None, MONGODB_URI="mongodb://localhost:27017")

        errors = settings.collect_errors()

        assert "JWT_SECRET is required in production" in errors
        assert any("MONGODB_URI" in e for e in errors)

    def test_validate_required_raises(self):
        with pytest.raises(ConfigurationError, match="CONSECUTIVE_LOW_DAYS"):
            _settings(CONSECUTIVE_LOW_DAYS=0).validate_required()


class TestChannelsAndCors:
    def test_channel_toggles(self):
        settings = _settings(SLACK_BOT_TOKEN="xoxb-1", WHATSAPP_ACCESS_TOKEN="token")

        assert settings.slack_enabled() is True
        assert settings.whatsapp_enabled() is False

    def test_cors_origins(self):
        settings = _settings(ALLOWED_ORIGINS="https://a.example, https://b.example,")

        assert settings.get_cors_origins() == ["https://a.example", "https://b.example"]
        assert _settings(ALLOWED_ORIGINS="*").get_cors_origins() == ["*"]

    def test_legacy_mongo_url_alias(self):
        settings = Settings(MONGO_URL="mongodb://db.internal:27017")

        assert settings.MONGODB_URI == "mongodb://db.internal:27017"
