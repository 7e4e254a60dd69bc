"""
Recipe Harvest - Configuration and settings.

All values can be overridden with HARVEST_* environment variables or a .env file.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """
    Application settings.

    Storage defaults to the in-memory backend so the engine runs without
    any external service. Supabase credentials are only required when
    storage_backend is "supabase".
    """

    model_config = SettingsConfigDict(
        env_prefix="HARVEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Fetching
    http_timeout_seconds: float = 15.0
    browser_timeout_seconds: float = 30.0
    browser_enabled: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "en-US,en;q=0.5"

    # Jobs
    max_concurrent_extractions: int = 4
    max_bulk_urls: int = 10
    poll_interval_seconds: float = 10.0
    poll_max_attempts: int = 30

    # Storage
    storage_backend: Literal["memory", "supabase"] = "memory"
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    @property
    def is_production(self) -> bool:
        return self.env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: Settings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
