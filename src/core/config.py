"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Settings read from environment variables (or a .env file next to the project root)."""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Shared secrets. Empty means: nobody gets in with that role.
    api_key: str = Field(default="", description="Secret game processes send in x-api-key")
    admin_key: str = Field(default="", description="Secret the admin panel sends in x-admin-key")
    clear_logs_identity: str = Field(
        default="", description="Only identity allowed to wipe the ledger and ban state"
    )
    history_requires_admin: bool = Field(
        default=False, description="Require the admin secret to read the moderation history"
    )

    # Store
    database_url: str = Field(
        default="sqlite:///./presence.db", description="SQLAlchemy URL of the key-value table"
    )
    purge_interval_sec: int = Field(
        default=300, ge=0, description="Period of the sweep removing expired rows, 0 disables it"
    )

    # Presence
    snapshot_ttl_sec: int = Field(default=180, gt=0, description="Lifetime of a server snapshot")
    index_refresh_interval_sec: int = Field(
        default=30, ge=0, description="Minimum age of a server's index entry before it is rewritten"
    )

    # Commands / ledger
    command_ttl_sec: int = Field(default=600, gt=0, description="Lifetime of an unacknowledged command")
    max_log_entries: int = Field(default=900, gt=0, description="Maximum length of the moderation ledger")

    # Lock
    lock_cooldown_sec: int = Field(default=10, gt=0, description="Per-identity cooldown between lock toggles")

    # Write retries on an overloaded store
    retry_attempts: int = Field(default=5, ge=1)
    retry_initial_delay_sec: float = Field(default=0.15, ge=0)
    retry_max_delay_sec: float = Field(default=2.0, ge=0)

    # Input truncation
    reason_max_length: int = Field(default=180, gt=0)
    issued_by_max_length: int = Field(default=60, gt=0)
    name_max_length: int = Field(default=60, gt=0)

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (read once per process)."""
    return Settings()
