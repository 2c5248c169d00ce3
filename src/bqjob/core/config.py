"""Configuration models for core domain components.

Pydantic-based configuration classes that consolidate settings for the
completion monitor, the result paginator and the HTTP transport, enabling
dependency injection and testability.
"""

from typing import Optional
from pydantic import BaseModel, Field, model_validator


class JobMonitorConfig(BaseModel):
    """Configuration for CompletionMonitor polling.

    The delay before poll `n` (n >= 1) is
    ``min(poll_interval * poll_backoff ** (n - 1), poll_max_interval)``;
    the first poll is issued immediately. A backoff of 1.0 keeps a fixed
    interval.
    """

    poll_interval: float = Field(
        default=0.5,
        gt=0,
        description="Seconds between metadata fetches while a job is not done"
    )

    poll_max_interval: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for the poll interval when backoff is enabled"
    )

    poll_backoff: float = Field(
        default=1.0,
        ge=1.0,
        description="Multiplier applied to the interval after every unfinished poll"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @model_validator(mode="after")
    def check_bounds(self) -> "JobMonitorConfig":
        if self.poll_max_interval < self.poll_interval:
            raise ValueError("poll_max_interval must be >= poll_interval")
        return self

    def next_interval(self, current: float) -> float:
        return min(current * self.poll_backoff, self.poll_max_interval)

    @classmethod
    def from_app_settings(cls, settings) -> "JobMonitorConfig":
        return cls(
            poll_interval=settings.BQJOB_POLL_INTERVAL,
            poll_max_interval=settings.BQJOB_POLL_MAX_INTERVAL,
            poll_backoff=settings.BQJOB_POLL_BACKOFF,
        )


class ResultPaginatorConfig(BaseModel):
    """Configuration for ResultPaginator.

    Attributes:
        running_retry_delay: Local pause in seconds before resubmitting a
            request whose answer was "job still running". Zero resubmits
            immediately and relies on the server side ``timeoutMs`` wait.
    """

    running_retry_delay: float = Field(default=0.0, ge=0)

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @classmethod
    def from_app_settings(cls, settings) -> "ResultPaginatorConfig":
        return cls(running_retry_delay=settings.BQJOB_RUNNING_RETRY_DELAY)


class HttpClientConfig(BaseModel):
    """Timeouts and retry policy of the aiohttp transport."""

    total_timeout: float = Field(default=60.0, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient failures (429, 5xx, timeouts, connection errors)"
    )
    retry_wait_initial: float = Field(default=0.2, gt=0)
    retry_wait_max: float = Field(default=5.0, gt=0)
    default_headers: Optional[dict[str, str]] = None

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @classmethod
    def from_app_settings(cls, settings) -> "HttpClientConfig":
        return cls(
            total_timeout=settings.BQJOB_HTTP_TIMEOUT,
            connect_timeout=settings.BQJOB_HTTP_CONNECT_TIMEOUT,
            retry_attempts=settings.BQJOB_HTTP_RETRY_ATTEMPTS,
            retry_wait_initial=settings.BQJOB_HTTP_RETRY_WAIT_INITIAL,
            retry_wait_max=settings.BQJOB_HTTP_RETRY_WAIT_MAX,
        )
