"""Application Configuration Module.

Implements 12-factor app configuration using pydantic-settings.
All configuration is loaded from environment variables with sensible defaults.

Environment file loading priority:
1. If APP_ENV is set, loads .env.{APP_ENV} (e.g., .env.dev, .env.prod)
2. Falls back to .env if specific file doesn't exist
3. Environment variables always override file values
"""
import os
import warnings
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_env_file() -> str | tuple[str, ...]:
    """
    Determine which .env file(s) to load based on APP_ENV.

    Priority (later files override earlier):
    1. .env (base defaults)
    2. .env.{APP_ENV} (environment-specific overrides)
    """
    app_env = os.getenv("APP_ENV", "").lower()

    env_to_file = {
        "dev": "dev",
        "development": "dev",
        "prod": "prod",
        "production": "prod",
        "staging": "staging",
        "test": "test",
    }

    file_suffix = env_to_file.get(app_env, app_env)

    env_files: list[str] = []

    if Path(".env").exists():
        env_files.append(".env")

    if file_suffix:
        env_specific = f".env.{file_suffix}"
        if Path(env_specific).exists():
            env_files.append(env_specific)

    if env_files:
        return tuple(env_files)
    return ".env"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Follows the 12-factor app methodology for configuration management.
    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Application Settings
    # ========================================
    APP_NAME: str = Field(
        default="staff-provisioning-service",
        description="Application name used in logging and metrics"
    )
    APP_VERSION: str = Field(
        default="1.0.0",
        description="Semantic version of the application"
    )
    APP_ENV: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (never enable in production)"
    )
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level"
    )

    # ========================================
    # Database Configuration (PostgreSQL)
    # ========================================
    DATABASE_URL: str = Field(
        default="",
        description="PostgreSQL database connection URL (SQLAlchemy asyncpg format). Required in production."
    )
    DATABASE_POOL_SIZE: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Database connection pool size"
    )
    DATABASE_MAX_OVERFLOW: int = Field(
        default=10,
        ge=0,
        description="Max overflow connections beyond pool size"
    )
    DATABASE_POOL_TIMEOUT: int = Field(
        default=30,
        ge=1,
        description="Timeout for getting connection from pool (seconds)"
    )
    DATABASE_ECHO: bool = Field(
        default=False,
        description="Echo SQL statements to logs"
    )

    # ========================================
    # Remote Services
    # ========================================
    DEPARTMENTS_SERVICE_URL: str = Field(
        default="",
        description="Base URL of the departments service (find-or-create)"
    )
    SPECIALIZATIONS_SERVICE_URL: str = Field(
        default="",
        description="Base URL of the specializations service (find-or-create)"
    )
    AUTH_SERVICE_URL: str = Field(
        default="",
        description="Base URL of the authentication service (credential sign-up)"
    )
    PATIENTS_SERVICE_URL: str = Field(
        default="",
        description="Base URL of the patients profile service"
    )
    DOCTORS_SERVICE_URL: str = Field(
        default="",
        description="Base URL of the doctors profile service"
    )
    NURSES_SERVICE_URL: str = Field(
        default="",
        description="Base URL of the nurses profile service"
    )
    REMOTE_SERVICE_TIMEOUT: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout for each remote service request (seconds)"
    )
    REMOTE_SERVICE_TOKEN: str = Field(
        default="",
        description="Optional bearer token sent to every remote service"
    )

    # ========================================
    # Bulk Provisioning
    # ========================================
    BULK_MAX_FILE_SIZE_MB: int = Field(
        default=60,
        ge=1,
        le=500,
        description="Maximum size of an uploaded bulk CSV file in MB"
    )
    BULK_MAX_ROWS: int = Field(
        default=5000,
        ge=1,
        description="Maximum number of data rows accepted in one batch"
    )
    BULK_DEFAULT_PASSWORD: str = Field(
        default="",
        description=(
            "Temporary password for rows that carry none. "
            "When empty a random password is generated per row."
        ),
    )
    BULK_DEPENDENCY_FAILURE_POLICY: Literal["continue", "abort"] = Field(
        default="continue",
        description=(
            "What a failed department/specialization resolution does to the row: "
            "'continue' leaves the reference unset, 'abort' fails the row before "
            "the identity record is created."
        ),
    )
    BCRYPT_ROUNDS: int = Field(
        default=10,
        ge=4,
        le=16,
        description="bcrypt cost factor for stored credential digests"
    )

    # Clinician profile schedule defaults
    DOCTOR_CONSULTATION_MINUTES: int = Field(
        default=30,
        ge=5,
        le=240,
        description="Default consultation length sent with new clinician profiles"
    )
    DOCTOR_AVAILABLE_FROM: str = Field(
        default="08:00",
        pattern=r"^\d{2}:\d{2}$",
        description="Default start of clinician availability (HH:MM)"
    )
    DOCTOR_AVAILABLE_TO: str = Field(
        default="17:00",
        pattern=r"^\d{2}:\d{2}$",
        description="Default end of clinician availability (HH:MM)"
    )

    # ========================================
    # Computed Properties
    # ========================================
    @property
    def max_file_size_bytes(self) -> int:
        """Convert MB to bytes."""
        return self.BULK_MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.APP_ENV == "development"

    @property
    def remote_service_urls(self) -> dict[str, str]:
        """Configured base URL per remote service name."""
        return {
            "departments": self.DEPARTMENTS_SERVICE_URL,
            "specializations": self.SPECIALIZATIONS_SERVICE_URL,
            "auth": self.AUTH_SERVICE_URL,
            "patients": self.PATIENTS_SERVICE_URL,
            "doctors": self.DOCTORS_SERVICE_URL,
            "nurses": self.NURSES_SERVICE_URL,
        }

    # ========================================
    # Validators
    # ========================================
    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Require DATABASE_URL; warn (not silently substitute) when absent in dev."""
        if not v:
            warnings.warn(
                "DATABASE_URL is not set. The application will fail on first DB access.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate cross-field and production-only settings."""
        if self.DOCTOR_AVAILABLE_FROM >= self.DOCTOR_AVAILABLE_TO:
            raise ValueError("DOCTOR_AVAILABLE_FROM must be earlier than DOCTOR_AVAILABLE_TO")

        if self.is_production:
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if not self.DATABASE_URL:
                raise ValueError("DATABASE_URL must be set in production")
            missing = sorted(name for name, url in self.remote_service_urls.items() if not url)
            if missing:
                raise ValueError(
                    f"Remote service URLs must be set in production: {', '.join(missing)}"
                )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings instance.

    ``lru_cache`` ensures ``Settings()`` is constructed exactly once.
    Tests override it via ``get_settings.cache_clear()`` or by passing
    an explicit ``Settings`` to the components that accept one.
    """
    return Settings()


