from decimal import Decimal
from functools import lru_cache
from threading import Lock
from typing import Optional

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Environment Constants
ENV_PRODUCTION = "production"
ENV_STAGING = "staging"
ENV_DEVELOPMENT = "development"
ENV_LOCAL = "local"

# Cost Explorer is a global service served out of us-east-1
DEFAULT_AWS_REGION = "us-east-1"


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the application settings."""
    return Settings()


_settings_reload_lock = Lock()


def reload_settings_from_environment() -> "Settings":
    """
    Atomically rebuild and replace cached settings from environment values.

    This avoids mutating the cached singleton instance in-place.
    """
    logger = structlog.get_logger()
    with _settings_reload_lock:
        logger.info("settings_reload_started")
        get_settings.cache_clear()
        refreshed = get_settings()
        logger.info("settings_reload_completed")
        return refreshed


class Settings(BaseSettings):
    """
    Main configuration for costboard.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """

    APP_NAME: str = "costboard"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    # ENVIRONMENT options: local, development, staging, production
    # Production also serves the compiled frontend from FRONTEND_BUILD_DIR.
    ENVIRONMENT: str = ENV_DEVELOPMENT
    TESTING: bool = False
    PORT: int = 5000

    # AWS credentials. Left unset, the default botocore chain applies
    # (profile, instance role, ...).
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_SESSION_TOKEN: Optional[str] = None
    AWS_REGION: str = DEFAULT_AWS_REGION
    AWS_ENDPOINT_URL: Optional[str] = None  # LocalStack / moto server

    # Dual-currency display (USD -> secondary)
    SECONDARY_CURRENCY: str = "INR"
    SECONDARY_CURRENCY_RATE: Decimal = Field(default=Decimal("83"), gt=0)

    TREND_DEFAULT_MONTHS: int = Field(default=6, ge=2, le=12)
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)
    MAX_COST_EXPLORER_PAGES: int = Field(default=50, ge=1)

    CORS_ORIGINS: list[str] = []
    FRONTEND_BUILD_DIR: str = "frontend/build"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_all_config(self) -> "Settings":
        if self.TESTING and self.ENVIRONMENT in {ENV_PRODUCTION, ENV_STAGING}:
            raise ValueError(
                "TESTING must be false in staging/production runtime environments."
            )

        # Static credentials come in pairs; a lone half is always a typo.
        if bool(self.AWS_ACCESS_KEY_ID) != bool(self.AWS_SECRET_ACCESS_KEY):
            raise ValueError(
                "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be set together."
            )
        if self.AWS_SESSION_TOKEN and not self.AWS_ACCESS_KEY_ID:
            raise ValueError("AWS_SESSION_TOKEN requires static AWS credentials.")

        self.SECONDARY_CURRENCY = self.SECONDARY_CURRENCY.strip().upper()
        if not self.SECONDARY_CURRENCY:
            raise ValueError("SECONDARY_CURRENCY must not be empty.")

        if self.is_production and any(
            "localhost" in o or "127.0.0.1" in o for o in self.CORS_ORIGINS
        ):
            structlog.get_logger().warning("cors_localhost_in_production")

        return self

    @property
    def is_production(self) -> bool:
        """True only when ENVIRONMENT is explicitly set to 'production'."""
        return self.ENVIRONMENT.lower() == ENV_PRODUCTION
