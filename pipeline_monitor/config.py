"""Application settings from environment variables."""

import logging
from functools import lru_cache

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Monitor settings from environment."""

    # Remote processing-jobs service
    api_base_url: str = "http://localhost:8000"
    api_token: str = ""
    request_timeout_seconds: float = 30.0

    # Polling
    poll_interval_seconds: float = 10.0
    poll_backoff_factor: float = 1.0
    poll_max_interval_seconds: float = 300.0

    # Configuration
    log_level: str = "INFO"
    max_retry_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_notifications: int = 50

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PIPELINE_MONITOR_",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def setup_logging(level: str | None = None) -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
