"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from medisync.config import Environment, Settings, get_settings


class TestSettings:
    """Test Settings model and validation."""

    def test_default_settings_load_correctly(self):
        settings = Settings()

        assert settings.environment == Environment.DEV
        assert settings.debug is True  # Auto-set from DEV environment
        assert settings.expiry_sweep_interval_seconds == 60.0
        assert settings.notification_webhook_url is None
        assert settings.jwt_algorithm == "HS256"

    def test_production_rejects_default_jwt_secret(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(environment=Environment.PROD)

        assert "JWT_SECRET" in str(exc_info.value)

    def test_production_rejects_short_secret(self):
        with pytest.raises(ValidationError):
            Settings(environment=Environment.PROD, jwt_secret="x9f2")

    def test_production_accepts_strong_secret(self):
        settings = Settings(
            environment=Environment.PROD,
            jwt_secret="6b1f0c9e4a7d2b8f3e5a1c7d9b0e4f2a",
            debug=False,
        )
        assert settings.is_prod is True
        assert settings.is_dev is False
        assert settings.debug is False

    def test_is_dev_property_returns_true_for_test(self):
        settings = Settings(environment=Environment.TEST)
        assert settings.is_dev is True
        assert settings.is_prod is False

    def test_sweep_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(expiry_sweep_interval_seconds=0)

    def test_environment_variables_are_read(self, monkeypatch):
        monkeypatch.setenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "15")
        monkeypatch.setenv("NOTIFICATION_WEBHOOK_URL", "https://hooks.example.test/x")

        settings = Settings()

        assert settings.expiry_sweep_interval_seconds == 15.0
        assert settings.notification_webhook_url == "https://hooks.example.test/x"

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
