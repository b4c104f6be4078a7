"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (tests, local sqlite); otherwise built from POSTGRES_* parts.
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="coach_chat")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://redis:6379/0")
    CACHE_ENABLED: bool = Field(default=True)

    # JWT Authentication - REQUIRED for token validation
    # Must be set via environment variable, never use default in production
    SECRET_KEY: str = Field(
        default=...,  # Required - no default
        description="JWT signing key shared with the identity provider. Must be 32+ chars."
    )
    JWT_ALGORITHM: str = Field(default="HS256")

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Rate Limiting (transport-level, per minute; independent of the daily free quota)
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    RATE_LIMIT_PER_MINUTE: int = Field(default=60)

    # Language model backend
    ANTHROPIC_API_KEY: Optional[str] = Field(default=None)
    COACH_MODEL_DEFAULT: str = Field(default="claude-3-5-haiku-20241022")
    COACH_MODEL_PRO: str = Field(default="claude-3-5-sonnet-20241022")
    COACH_MAX_OUTPUT_TOKENS: int = Field(default=1000)
    # Generation is never retried; the timeout is the only bound on the call.
    COACH_MODEL_TIMEOUT_S: float = Field(default=30.0, gt=0)
    COACH_HISTORY_LIMIT: int = Field(default=20, ge=1, le=200)

    # Free tier
    FREE_DAILY_MESSAGE_LIMIT: int = Field(default=10, ge=0)
    FREE_CUSTOM_COACH_LIMIT: int = Field(default=1, ge=0)

    # Some mobile HTTP layers only expose the body on 2xx, so AI backend failures
    # are reported with this status and an `error` field in the body.
    AI_ERROR_STATUS_CODE: int = Field(default=200)

    # Cache Configuration
    CACHE_TTL_DEFAULT: int = Field(default=300)  # 5 minutes
    CACHE_TTL_ENTITLEMENT: int = Field(default=300)

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)  # 10% of transactions
    SENTRY_PROFILES_SAMPLE_RATE: float = Field(default=0.1)


# Global settings instance
settings = Settings()
