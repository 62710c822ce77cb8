"""
Application settings using Pydantic.

Provides environment-based configuration loading with CONVERGE_ prefix.
The Example Platform URL is also read from the bare ``API_URL`` variable.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

DEFAULT_API_URL = "https://example-third-part-platform.replace-me.workers.dev/api"


class Settings(BaseSettings):
    """Application settings."""

    # Example Platform
    api_url: str = Field(
        default=DEFAULT_API_URL,
        validation_alias=AliasChoices("CONVERGE_API_URL", "API_URL"),
    )

    # HTTP client settings
    http_timeout: float = 30.0
    http_max_retries: int = 3

    # State
    state_dir: str = ".converge"
    default_scope: str = "default"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "CONVERGE_"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
