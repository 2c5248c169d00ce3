from typing import Any, Awaitable, Callable, Optional
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from bqjob.core.exceptions import TransportError
from bqjob.core.settings import logger


def is_transient(exc: BaseException) -> bool:
    """Retry only failures where the identical request may succeed later."""
    return isinstance(exc, TransportError) and exc.transient


class TenacityRetryAdapter:
    """Tenacity-based retry adapter implementing RetryPort.

    Provides exponential backoff and supports async callables. Call-time kwargs can
    override default policy parameters (attempts, wait_initial, wait_max, retry_if).
    """

    def __init__(
        self,
        attempts: int = 3,
        wait_initial: float = 0.2,
        wait_max: float = 5.0,
        retry_if: Callable[[BaseException], bool] = is_transient,
    ) -> None:
        self.attempts = attempts
        self.wait_initial = wait_initial
        self.wait_max = wait_max
        self.retry_if = retry_if

    @classmethod
    def from_config(cls, config) -> "TenacityRetryAdapter":
        return cls(
            attempts=config.retry_attempts,
            wait_initial=config.retry_wait_initial,
            wait_max=config.retry_wait_max,
        )

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        attempts = kwargs.pop("attempts", self.attempts)
        wait_initial = kwargs.pop("wait_initial", self.wait_initial)
        wait_max = kwargs.pop("wait_max", self.wait_max)
        retry_if: Optional[Callable[[BaseException], bool]] = kwargs.pop("retry_if", self.retry_if)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=wait_initial, max=wait_max),
            retry=retry_if_exception(retry_if),
            before_sleep=lambda state: logger.warning(
                "[retry] attempt=%s failed error=%s; retrying",
                state.attempt_number,
                state.outcome.exception() if state.outcome else None,
            ),
            reraise=True,
        )
        async for attempt in retrying:  # pragma: no cover - control flow instrumentation
            with attempt:
                return await func(*args, **kwargs)
