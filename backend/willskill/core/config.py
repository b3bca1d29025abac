"""
Application configuration module.

Provides centralized, environment-safe configuration management
for the assessment admin backend.

All settings can be overridden via environment variables or a
`.env` file in the working directory.
"""

import logging
from functools import lru_cache
from typing import List

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Attributes:
        APP_NAME: Application name.
        APP_VERSION: Application version.
        ENVIRONMENT: development, testing or production.
        DATABASE_URL: SQLAlchemy URL of the session store database.
        SECRET_KEY: Key used to sign JWTs.
        IMPERSONATION_SESSION_HOURS: Lifetime of a user impersonation session.
        ACTIVE_ROLE_COOKIE: Name of the persisted active-role preference.
        LOG_LEVEL: Logging level.
        LOG_FORMAT: "json" or "console".
    """

    # Application metadata
    APP_NAME: str = "WillSkill Assessment Admin API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./willskill.db"
    DB_ECHO: bool = False

    # JWT
    SECRET_KEY: str = "dev-secret-key-change-me"
    ALGORITHM: str = "HS256"
    ISSUER: str = "willskill-api"
    AUDIENCE: str = "willskill-dashboard"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Impersonation
    IMPERSONATION_SESSION_HOURS: int = Field(default=2, ge=1, le=24)

    # Role context
    ACTIVE_ROLE_COOKIE: str = "activeRole"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:8080"
    CORS_ALLOW_CREDENTIALS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_secret_key(self) -> "Settings":
        """Refuse a short signing key outside development and testing."""
        if self.ENVIRONMENT == "production" and len(self.SECRET_KEY) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters in production")
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings instance.
    """
    loaded = Settings()
    logger.info(
        "Settings loaded: app_name=%s environment=%s",
        loaded.APP_NAME,
        loaded.ENVIRONMENT,
    )
    return loaded


settings = get_settings()
