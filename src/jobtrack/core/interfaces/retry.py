from typing import Any, Awaitable, Callable, Protocol

RetryPredicate = Callable[[BaseException], bool]


class RetryPort(Protocol):
    """Retry wrapper for idempotent jobs API calls (status queries only).

    Keeps the adapter independent of the retry library. Submissions and
    cancel requests must never be routed through it.
    """

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:  # pragma: no cover - protocol
        """Await `func(*args, **kwargs)`, retrying failures accepted by `retry_if`.

        Keyword overrides (consumed, not forwarded): attempts, wait_initial,
        wait_max, retry_if. The last exception is re-raised unchanged once
        attempts run out or the predicate rejects it.
        """
        ...
