"""Periodic status check running alongside the event stream.

The poller does not care whether the stream is healthy; it exists so that the
tracker reaches a terminal status even if the stream stalls forever.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from jobtrack.core.interfaces.clock import ClockPort
from jobtrack.core.models.job import JobStatus
from jobtrack.core.settings import logger

StatusQuery = Callable[[str], Awaitable[JobStatus]]
StatusSink = Callable[[JobStatus], Awaitable[None]]


class StatusPoller:
    def __init__(
        self,
        status_query: StatusQuery,
        on_status: StatusSink,
        interval: float,
        clock: ClockPort,
    ) -> None:
        self._status_query = status_query
        self._on_status = on_status
        self._interval = interval
        self._clock = clock
        self._active = False
        self._task: Optional[asyncio.Task] = None
        self.polls = 0

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self, job_id: str) -> asyncio.Task:
        if self._active:
            raise RuntimeError("poller is already running")
        self._active = True
        logger.debug("[poll:start] job_id=%s interval=%s", job_id, self._interval)
        self._task = asyncio.create_task(self._poll_loop(job_id), name=f"jobtrack-poll-{job_id}")
        return self._task

    def stop(self) -> None:
        """Idempotent; safe to call from inside the poll loop's own callback."""
        if not self._active:
            return
        self._active = False
        task = self._task
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not None and not task.done() and task is not current:
            task.cancel()

    async def _poll_loop(self, job_id: str) -> None:
        while self._active:
            await self._clock.sleep(self._interval)
            if not self._active:
                return

            self.polls += 1
            try:
                status = await self._status_query(job_id)
            except Exception as exc:
                logger.warning("[poll:error] status query failed job_id=%s error=%s", job_id, exc)
                continue

            if not self._active:
                return
            logger.debug("[poll:tick] job_id=%s status=%s", job_id, status)
            await self._on_status(status)
