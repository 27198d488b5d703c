from typing import Any, Awaitable, Callable
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from jobtrack.core.interfaces.retry import RetryPredicate


def _always(exc: BaseException) -> bool:
    return isinstance(exc, Exception)


class TenacityRetryAdapter:
    """Tenacity-based retry adapter implementing RetryPort.

    Provides exponential backoff and supports async callables. Call-time kwargs can
    override default policy parameters (attempts, wait_initial, wait_max, retry_if).
    `retry_if` is a predicate deciding whether an exception is worth another try.
    """

    def __init__(
        self,
        attempts: int = 2,
        wait_initial: float = 0.2,
        wait_max: float = 1.0,
        retry_if: RetryPredicate = _always,
    ) -> None:
        self.attempts = attempts
        self.wait_initial = wait_initial
        self.wait_max = wait_max
        self.retry_if = retry_if

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        attempts = kwargs.pop("attempts", self.attempts)
        wait_initial = kwargs.pop("wait_initial", self.wait_initial)
        wait_max = kwargs.pop("wait_max", self.wait_max)
        retry_if = kwargs.pop("retry_if", self.retry_if)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential(multiplier=wait_initial, max=wait_max),
            retry=retry_if_exception(retry_if),
            reraise=True,
        )
        async for attempt in retrying:  # pragma: no cover - control flow instrumentation
            with attempt:
                return await func(*args, **kwargs)
