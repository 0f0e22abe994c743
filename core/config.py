"""
Application configuration using Pydantic Settings
"""

from functools import lru_cache
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str

    # Event source
    API_BASE_URL: str
    TARGET_API_KEY: str
    STREAM_TOKEN: Optional[str] = None
    EVENTS_ENDPOINT: str = "/events"
    STREAM_ENDPOINT: str = "/events/d4ta/x7k9/feed"

    # Status API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Ingestion
    PAGE_SIZE: int = 5000  # source silently caps larger limits at 5000
    BATCH_SIZE: int = 5000
    CHECKPOINT_INTERVAL: Optional[int] = None
    EXPECTED_TOTAL_EVENTS: Optional[int] = None

    # Fetch policy
    REQUEST_TIMEOUT: float = 10.0
    MAX_RETRIES: int = 3
    RETRY_DELAY: float = 1.0
    RATE_LIMIT_PER_MINUTE: int = 10
    RATE_LIMIT_MARGIN: int = 1

    @property
    def privileged(self) -> bool:
        """True when the time-limited stream token is configured"""
        return bool(self.STREAM_TOKEN)

    @property
    def effective_checkpoint_interval(self) -> int:
        return self.CHECKPOINT_INTERVAL or self.BATCH_SIZE


@lru_cache
def get_settings() -> Settings:
    """
    Load settings once per process.

    Raises:
        ConfigurationError: If a required variable is absent or malformed
    """
    try:
        return Settings()
    except PydanticValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            "Invalid or missing configuration",
            context={"fields": fields},
            original_exception=e
        )
