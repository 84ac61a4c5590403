"""Configuration for Flickr Exporter.

Settings are read from environment variables prefixed with ``FLICKR_`` (and
an optional ``.env`` file). Command line flags override them.

Usage:
    from flickr_exporter.utils.config import get_settings

    settings = get_settings()
    delay = settings.item_delay_seconds
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExporterSettings(BaseSettings):
    """Exporter settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="FLICKR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API
    api_key: str = Field(default="")
    api_base_url: str = Field(default="https://api.flickr.com/services/rest/")
    request_timeout: float = Field(default=60.0, gt=0)
    page_size: int = Field(default=500, ge=1, le=500)

    # Retry policy
    max_attempts: int = Field(default=3, ge=1)
    base_wait_seconds: float = Field(default=30.0, ge=0)
    recovery_max_attempts: int = Field(default=5, ge=1)
    recovery_jitter_seconds: float = Field(default=30.0, ge=0)

    # Pacing
    item_delay_seconds: float = Field(default=0.5, ge=0)
    recovery_delay_seconds: float = Field(default=2.0, ge=0)


@lru_cache()
def get_settings() -> ExporterSettings:
    """Get cached settings instance.

    Returns:
        Singleton ExporterSettings instance
    """
    return ExporterSettings()
