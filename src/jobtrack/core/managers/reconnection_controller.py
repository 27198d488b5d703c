"""ReconnectionController: keeps one job event stream alive.

Phases: Idle -> Connecting -> Connected -> Reconnecting -> Connecting ... -> Stopped.

After every disconnect (transport error or a normal end of stream, which is
ambiguous) the controller asks the jobs API whether the job is still worth
following. A non-processable status stops it without error; a failed query is
treated as "still active". Otherwise it waits `policy.delay_for(attempt)` and
reconnects, up to `policy.max_attempts` times since the last successful
connection.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from enum import StrEnum
from typing import Awaitable, Callable, Optional

from jobtrack.core.config import ReconnectPolicy
from jobtrack.core.exceptions import ReconnectAttemptsExhausted
from jobtrack.core.interfaces.clock import ClockPort
from jobtrack.core.interfaces.event_stream import EventStreamPort
from jobtrack.core.models.events import Connected, Disconnected, Reconnecting, StreamEvent
from jobtrack.core.models.job import ConnectionPhase, JobStatus, is_processable
from jobtrack.core.settings import logger

EventSink = Callable[[StreamEvent], Awaitable[None]]
StatusQuery = Callable[[str], Awaitable[JobStatus]]


class StreamOutcome(StrEnum):
    completed = "completed"  # gating query found the job no longer processable
    cancelled = "cancelled"


class StreamResult:
    """How a controller run ended (exhaustion is raised, not returned).

    Attributes:
        outcome: completed or cancelled
        status: Status returned by the gating query for a completed run
    """

    def __init__(self, outcome: StreamOutcome, status: Optional[JobStatus] = None):
        self.outcome = outcome
        self.status = status

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"StreamResult(outcome={self.outcome!s}, status={self.status!s})"


class ReconnectionController:
    def __init__(
        self,
        connector: EventStreamPort,
        status_query: StatusQuery,
        on_event: EventSink,
        policy: ReconnectPolicy,
        clock: ClockPort,
        on_phase: Optional[Callable[[ConnectionPhase], None]] = None,
    ) -> None:
        self._connector = connector
        self._status_query = status_query
        self._on_event = on_event
        self._policy = policy
        self._clock = clock
        self._on_phase = on_phase
        self._phase = ConnectionPhase.idle
        self._attempt = 0
        self._active = False
        self._task: Optional[asyncio.Task] = None

    @property
    def phase(self) -> ConnectionPhase:
        return self._phase

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self, job_id: str) -> asyncio.Task:
        """Run the controller in a new task and return it."""
        self._begin()
        task = asyncio.create_task(self._run(job_id), name=f"jobtrack-stream-{job_id}")
        self._task = task
        return task

    async def run(self, job_id: str) -> StreamResult:
        """Follow the stream until cancelled or the job stops being processable.

        Raises:
            ReconnectAttemptsExhausted: when no connection could be re-established
        """
        self._begin()
        self._task = asyncio.current_task()
        return await self._run(job_id)

    def _begin(self) -> None:
        if self._active:
            raise RuntimeError("controller is already running")
        self._active = True
        self._attempt = 0

    async def _run(self, job_id: str) -> StreamResult:
        while True:
            self._set_phase(ConnectionPhase.connecting)
            error = await self._consume(job_id)
            if not self._active:
                return StreamResult(StreamOutcome.cancelled)

            reason = f"connection error: {error}" if error else "stream closed by server"
            logger.info("[stream:lost] %s job_id=%s attempt=%s", reason, job_id, self._attempt)
            await self._emit(Disconnected(message=f"Disconnected ({reason})"))
            if not self._active:
                return StreamResult(StreamOutcome.cancelled)

            if self._attempt >= self._policy.max_attempts:
                self._stop()
                logger.warning(
                    "[stream:exhausted] giving up job_id=%s attempts=%s", job_id, self._attempt
                )
                raise ReconnectAttemptsExhausted(job_id, self._attempt, self._policy.max_attempts)

            status = await self._gating_status(job_id)
            if not self._active:
                return StreamResult(StreamOutcome.cancelled)
            if status is not None and not is_processable(status):
                self._stop()
                logger.info("[stream:done] job no longer processable job_id=%s status=%s", job_id, status)
                return StreamResult(StreamOutcome.completed, status)

            self._attempt += 1
            delay = self._policy.delay_for(self._attempt)
            self._set_phase(ConnectionPhase.reconnecting)
            await self._emit(
                Reconnecting(
                    message=(
                        f"Reconnecting in {delay:g}s "
                        f"(attempt {self._attempt}/{self._policy.max_attempts})"
                    ),
                    attempt=self._attempt,
                    max_attempts=self._policy.max_attempts,
                )
            )
            if not self._active:
                return StreamResult(StreamOutcome.cancelled)
            await self._clock.sleep(delay)
            if not self._active:
                return StreamResult(StreamOutcome.cancelled)

    def cancel(self) -> None:
        """Stop following the stream. Safe to call repeatedly and from any task."""
        if not self._active and self._phase in (ConnectionPhase.idle, ConnectionPhase.stopped):
            return
        self._stop()
        task = self._task
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not None and not task.done() and task is not current:
            task.cancel()

    async def _consume(self, job_id: str) -> Optional[Exception]:
        """Relay events of one connection. Returns the transport error, if any."""
        acknowledged = False
        try:
            async with aclosing(self._connector.connect(job_id)) as events:
                async for event in events:
                    if not self._active:
                        break
                    if isinstance(event, Connected):
                        acknowledged = True
                        self._attempt = 0
                        self._set_phase(ConnectionPhase.connected)
                        logger.debug("[stream:connected] job_id=%s", job_id)
                    elif not acknowledged:
                        # Relayed anyway; the phase stays connecting until the ack
                        logger.debug(
                            "[stream:early] event before connected ack kind=%s job_id=%s",
                            event.kind,
                            job_id,
                        )
                    await self._emit(event)
                    if not self._active:
                        break
        except Exception as exc:
            if self._active:
                logger.warning("[stream:error] job_id=%s error=%s", job_id, exc)
            return exc
        return None

    async def _gating_status(self, job_id: str) -> Optional[JobStatus]:
        try:
            status = await self._status_query(job_id)
        except Exception as exc:
            # Unknown is treated as active: a metadata hiccup must not end tracking
            logger.warning("[stream:gate] status query failed, assuming active job_id=%s error=%s", job_id, exc)
            return None
        logger.debug("[stream:gate] job_id=%s status=%s", job_id, status)
        return status

    async def _emit(self, event: StreamEvent) -> None:
        await self._on_event(event)

    def _stop(self) -> None:
        self._active = False
        self._connector.cancel()
        self._set_phase(ConnectionPhase.stopped)

    def _set_phase(self, phase: ConnectionPhase) -> None:
        if phase == self._phase:
            return
        self._phase = phase
        if self._on_phase is not None:
            self._on_phase(phase)
