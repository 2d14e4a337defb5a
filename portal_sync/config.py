# Portal Sync Configuration
"""Configuration settings loaded from environment variables."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Portal sync settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend connection
    backend_url: str = Field(
        default="http://localhost:54321",
        description="Portal backend (REST) base URL",
    )
    backend_api_key: Optional[str] = Field(
        default=None,
        description="API key sent with every backend request",
    )
    backend_timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for a single backend request attempt",
    )

    # Retry policy for reads
    fetch_max_attempts: int = Field(
        default=3,
        description="Maximum attempts for a read before the failure is surfaced",
    )
    retry_base_delay: float = Field(
        default=1.0,
        description="Backoff delay in seconds before the second attempt",
    )
    retry_max_delay: float = Field(
        default=5.0,
        description="Upper bound in seconds for any backoff delay",
    )

    # Reference data cache
    reference_cache_ttl: float = Field(
        default=300.0,
        description="Cache TTL for users, groups, work locations and positions in seconds",
    )

    # Aggregation behaviour
    default_show_drafts: bool = Field(
        default=False,
        description="Initial draft visibility for every content kind",
    )
    cancel_inflight_requests: bool = Field(
        default=True,
        description="Cancel the tasks of a superseded fetch session instead of only ignoring them",
    )

    log_level: str = Field(default="INFO", description="Logging level")


# Global settings instance
settings = Settings()
