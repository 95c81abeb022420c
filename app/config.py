"""Application configuration management."""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.preferences import validate_timezone


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    PROJECT_NAME: str = "FlashStore Push"
    API_V1_STR: str = "/api"

    BACKEND_CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost", "http://localhost:3000"],
        description="Allowed CORS origins",
    )

    VAPID_PUBLIC_KEY: Optional[str] = None
    VAPID_PRIVATE_KEY: Optional[str] = None
    VAPID_SUBJECT: str = Field(
        "mailto:admin@flashstore.com", description="Contact claim sent with every push"
    )

    PUSH_TTL_SECONDS: int = Field(24 * 60 * 60, description="How long the gateway may hold a message")
    PUSH_REQUEST_TIMEOUT_SECONDS: float = Field(10.0, description="Timeout for a single push send")
    # aes128gcm single-record plaintext limit
    PUSH_MAX_PAYLOAD_BYTES: int = Field(3993, ge=256)
    PUSH_MAX_RETRIES: int = Field(0, ge=0, description="Retry attempts for transient push failures")
    PUSH_BROADCAST_CONCURRENCY: int = Field(8, ge=1, description="Parallel sends during a broadcast")
    PRUNE_GONE_SUBSCRIPTIONS: bool = Field(
        True,
        description="If true, a broadcast evicts subscriptions the gateway reports as gone",
    )

    QUIET_HOURS_TIMEZONE: Optional[str] = Field(
        None,
        description="IANA zone used for quiet hours without their own zone (server local time if unset)",
    )

    @field_validator("QUIET_HOURS_TIMEZONE")
    @classmethod
    def check_quiet_hours_timezone(cls, v: Optional[str]) -> Optional[str]:
        return validate_timezone(v or None)

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parent.parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


settings = get_settings()
