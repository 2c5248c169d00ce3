# Logging adapter for library-wide logging
from bqjob.adapters.logging_adapter import LoggingAdapter

from pydantic import HttpUrl, field_validator
from pydantic_settings import BaseSettings
from rich import print

from bqjob.core.interfaces.logging import LoggingPort

# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class BqJobSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }
    BQJOB_LOG_LEVEL: str = "INFO"
    BQJOB_API_BASE_URL: HttpUrl = HttpUrl("https://bigquery.googleapis.com/bigquery/v2")
    BQJOB_PROJECT_ID: str | None = None
    # Location attached to jobs created without an explicit one (None lets
    # the service resolve it, which only works for the US and EU multi-regions)
    BQJOB_DEFAULT_LOCATION: str | None = None
    # Completion monitor polling (seconds)
    BQJOB_POLL_INTERVAL: float = 0.5
    BQJOB_POLL_MAX_INTERVAL: float = 30.0
    BQJOB_POLL_BACKOFF: float = 1.0
    # Local pause before resubmitting a "still running" results request
    BQJOB_RUNNING_RETRY_DELAY: float = 0.0
    # Transport
    BQJOB_HTTP_TIMEOUT: float = 60.0
    BQJOB_HTTP_CONNECT_TIMEOUT: float = 10.0
    BQJOB_HTTP_RETRY_ATTEMPTS: int = 3
    BQJOB_HTTP_RETRY_WAIT_INITIAL: float = 0.2
    BQJOB_HTTP_RETRY_WAIT_MAX: float = 5.0
    BQJOB_PRINT_SETTINGS: bool = False

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("BQJOB Settings:")
        print(self)

    @field_validator("BQJOB_API_BASE_URL", mode="before")
    def strip_trailing_slash(cls, value: str) -> str:
        """Request paths are joined with a leading slash."""
        if isinstance(value, str):
            value = value.rstrip("/")
        return value


app_settings = BqJobSettings()

logger = LoggingAdapter(log_level=app_settings.BQJOB_LOG_LEVEL)

if app_settings.BQJOB_PRINT_SETTINGS:
    app_settings.print_settings(logger)
