from datetime import datetime
from typing import Protocol


class ClockPort(Protocol):
    """Time source for backoff waits, poll intervals and snapshot expiry.

    Injected so tests can simulate elapsed time instead of sleeping.
    """

    def now(self) -> datetime:  # pragma: no cover - protocol
        """Current time, timezone-aware (UTC)."""
        ...

    async def sleep(self, seconds: float) -> None:  # pragma: no cover - protocol
        """Suspend the calling task; must be cancellable."""
        ...
