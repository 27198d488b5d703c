import asyncio
from datetime import datetime, timezone


class AsyncioClock:
    """Wall clock backed by the running asyncio event loop."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
