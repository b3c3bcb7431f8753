"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (or a .env file in dev).
The 24 hour grant window is fixed in medisync.access.models and is not a
setting.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Application
    # ------------------------------------------------------------------ #
    environment: Environment = Environment.DEV
    debug: bool = False

    # ------------------------------------------------------------------ #
    # Auth
    # ------------------------------------------------------------------ #
    jwt_secret: SecretStr = Field(
        default=SecretStr("dev-only-jwt-secret-not-for-production"),
        description="Symmetric secret used to validate portal JWTs",
    )
    jwt_algorithm: str = Field(default="HS256")
    jwt_audience: str = Field(
        default="medisync-api",
        description="Expected 'aud' claim in JWT tokens",
    )

    # ------------------------------------------------------------------ #
    # Access registry
    # ------------------------------------------------------------------ #
    expiry_sweep_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How often lapsed grants are relabelled as expired",
    )

    # ------------------------------------------------------------------ #
    # Notifications
    # ------------------------------------------------------------------ #
    notification_webhook_url: str | None = Field(
        default=None,
        description="Webhook receiving access request events. Leave unset to disable.",
    )
    notification_webhook_secret: SecretStr | None = Field(
        default=None,
        description="HMAC secret used to sign webhook deliveries",
    )
    notification_timeout_seconds: float = Field(default=10.0, gt=0)

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    cors_allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:9002"],
        description="Allowed CORS origins. In production, set to the portal URLs.",
    )

    # ------------------------------------------------------------------ #
    # Derived / Computed
    # ------------------------------------------------------------------ #
    @model_validator(mode="after")
    def _set_debug_from_env(self) -> Settings:
        if self.environment == Environment.DEV:
            self.debug = True
        return self

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> Settings:
        """Refuse to start in production with a default JWT secret."""
        if self.environment != Environment.PROD:
            return self

        _insecure_tokens = {"changeme", "secret", "default", "password", "dev-only"}
        jwt_secret = self.jwt_secret.get_secret_value().lower()
        if len(jwt_secret) < 16 or any(token in jwt_secret for token in _insecure_tokens):
            raise ValueError(
                "JWT_SECRET contains an insecure default value. "
                "Set a strong, random secret for production."
            )
        return self

    @property
    def is_dev(self) -> bool:
        return self.environment in (Environment.DEV, Environment.TEST)

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PROD


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings singleton.

    Use Depends(get_settings) in endpoints, or call directly at startup.
    """
    return Settings()
