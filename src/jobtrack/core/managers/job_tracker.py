"""JobTracker: single source of truth for one tracked job.

Responsibilities:
1. Submit a job (or rehydrate one from the recovery snapshot).
2. Run the reconnection controller and the status poller concurrently.
3. Apply stream events and poll results, in arrival order, to the JobState.
4. Persist every meaningful mutation; clear the snapshot once terminal.
5. Stop both channels the moment a terminal status is applied.
6. Notify observers synchronously after each mutation.

Every event is applied as one synchronous step (no await between reading and
writing the state), so the stream task and the poll task never interleave
inside a mutation.

Progress fragments emitted by the server while the stream is down are not
recovered. Reconnecting reconciles the status only.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from jobtrack.adapters.clock_asyncio import AsyncioClock
from jobtrack.core.config import TrackerConfig
from jobtrack.core.exceptions import (
    JobApiError,
    JobCancellationError,
    JobSubmissionError,
    ReconnectAttemptsExhausted,
)
from jobtrack.core.interfaces.clock import ClockPort
from jobtrack.core.interfaces.event_stream import EventStreamPort
from jobtrack.core.interfaces.job_api import JobApiPort
from jobtrack.core.interfaces.observers import JobStateObserver
from jobtrack.core.interfaces.snapshot_store import SnapshotStorePort
from jobtrack.core.logging_config import job_id_var
from jobtrack.core.managers.reconnection_controller import (
    ReconnectionController,
    StreamOutcome,
    StreamResult,
)
from jobtrack.core.managers.status_poller import StatusPoller
from jobtrack.core.models.events import (
    Connected,
    Disconnected,
    Progress,
    Reconnecting,
    StatusChanged,
    StreamEvent,
)
from jobtrack.core.models.job import ConnectionPhase, JobState, JobStatus, JobType
from jobtrack.core.settings import logger


class JobTracker:
    """Tracks one job from submission (or recovery) to a terminal status.

    Attributes:
        config: Immutable configuration (poll interval, reconnect policy, snapshot age)
    """

    def __init__(
        self,
        job_api: JobApiPort,
        connector: EventStreamPort,
        snapshot_store: SnapshotStorePort,
        config: Optional[TrackerConfig] = None,
        clock: Optional[ClockPort] = None,
        observers: Optional[List[JobStateObserver]] = None,
    ) -> None:
        self._api = job_api
        self._store = snapshot_store
        self.config = config or TrackerConfig()
        self._clock = clock or AsyncioClock()
        self._observers = observers or []

        self._state: Optional[JobState] = None
        self._failure: Optional[Exception] = None
        self._finished = asyncio.Event()
        self._stream_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

        self._controller = ReconnectionController(
            connector,
            job_api.get_status,
            self._handle_stream_event,
            self.config.reconnect,
            self._clock,
            on_phase=self._notify_connection_changed,
        )
        self._poller = StatusPoller(
            job_api.get_status,
            self._handle_poll_result,
            self.config.status_poll_interval,
            self._clock,
        )

    @property
    def state(self) -> Optional[JobState]:
        return self._state

    @property
    def phase(self) -> ConnectionPhase:
        return self._controller.phase

    @property
    def failure(self) -> Optional[Exception]:
        return self._failure

    @property
    def is_tracking(self) -> bool:
        return self._controller.is_active or self._poller.is_active

    # ----------------- Observer notification -----------------
    def _notify_state_changed(self) -> None:
        if self._state is None:
            return
        for observer in self._observers:
            try:
                observer.on_state_changed(self._state)
            except Exception as exc:
                logger.error(
                    "[observer:error] on_state_changed failed observer=%s error=%s",
                    type(observer).__name__,
                    exc,
                )

    def _notify_connection_changed(self, phase: ConnectionPhase) -> None:
        logger.debug("[tracker:phase] phase=%s", phase)
        for observer in self._observers:
            try:
                observer.on_connection_changed(phase)
            except Exception as exc:
                logger.error(
                    "[observer:error] on_connection_changed failed observer=%s error=%s",
                    type(observer).__name__,
                    exc,
                )

    def _notify_job_completed(self) -> None:
        for observer in self._observers:
            try:
                observer.on_job_completed(self._state)
            except Exception as exc:
                logger.error(
                    "[observer:error] on_job_completed failed observer=%s error=%s",
                    type(observer).__name__,
                    exc,
                )

    def _notify_tracking_failed(self, error: Exception) -> None:
        for observer in self._observers:
            try:
                observer.on_tracking_failed(self._state, error)
            except Exception as exc:
                logger.error(
                    "[observer:error] on_tracking_failed failed observer=%s error=%s",
                    type(observer).__name__,
                    exc,
                )

    # ----------------- Entry points -----------------
    async def submit(self, input_text: str, job_type: JobType = JobType.ENCODE) -> JobState:
        """Create a job and start tracking it.

        Raises:
            ValueError: blank input, nothing is sent
            JobSubmissionError: the jobs API did not accept the job (not retried)
        """
        if not input_text or not input_text.strip():
            raise ValueError("Please enter some text to process")

        await self.reset()
        logger.info("[job:submit] submitting job job_type=%s input_len=%s", int(job_type), len(input_text))
        try:
            job_id = await self._api.submit(input_text, job_type)
        except JobApiError as exc:
            logger.warning("[job:submit] submission failed error=%s", exc)
            raise JobSubmissionError(f"Failed to create job: {exc.response.detail}", cause=exc) from exc

        job_id_var.set(job_id)
        self._state = JobState(id=job_id, status=JobStatus.created, input_text=input_text)
        logger.info("[job:submit] job created job_id=%s", job_id)
        self._persist()
        self._notify_state_changed()
        self._start_channels(job_id)
        return self._state

    async def resume(self) -> Optional[JobState]:
        """Rehydrate the job recorded in the recovery snapshot, if any.

        A processing job is reconciled first and only reattached if it is
        not terminal yet. A job the previous session already considered
        settled gets one final status check, then its snapshot is discarded.
        """
        snapshot = self._store.load()
        if snapshot is None:
            logger.debug("[job:resume] no snapshot to recover")
            return None

        await self.reset(clear_snapshot=False)
        job_id = snapshot.job_id
        job_id_var.set(job_id)
        self._state = snapshot.to_state()
        logger.info(
            "[job:resume] recovered snapshot job_id=%s status=%s is_processing=%s",
            job_id,
            snapshot.status,
            snapshot.is_processing,
        )
        self._notify_state_changed()

        status = await self._query_status(job_id, purpose="resume")

        if not snapshot.is_processing:
            if status is not None:
                self._apply_status(status, source="final-check", persist=False)
            self._store.clear()
            self._finished.set()
            return self._state

        if status is not None:
            self._apply_status(status, source="resume")
        if self._state.is_in_terminal_state():
            return self._state

        self._start_channels(job_id)
        return self._state

    async def cancel_job(self) -> None:
        """Ask the server to cancel the tracked job.

        The job is not terminal yet: status becomes Cancelling and the final
        Cancelled arrives later through the stream or the poller.

        Raises:
            JobCancellationError: the request failed; tracking continues
        """
        state = self._state
        if state is None:
            return
        try:
            await self._api.cancel(state.id)
        except JobApiError as exc:
            logger.warning("[job:cancel] cancel request failed job_id=%s error=%s", state.id, exc)
            state.error = "Failed to cancel job"
            self._notify_state_changed()
            raise JobCancellationError(state.id, cause=exc) from exc
        logger.info("[job:cancel] cancellation requested job_id=%s", state.id)
        self._apply_status(JobStatus.cancelling, source="cancel")

    async def wait_finished(self) -> Optional[JobState]:
        """Wait until the job is terminal, tracking failed, or the tracker was reset.

        Raises:
            ReconnectAttemptsExhausted: the stream could not be re-established
        """
        await self._finished.wait()
        if self._failure is not None:
            raise self._failure
        return self._state

    async def reset(self, clear_snapshot: bool = True) -> None:
        """Stop tracking and discard the state (and by default the snapshot)."""
        await self.shutdown()
        if clear_snapshot:
            self._store.clear()
        self._state = None
        self._failure = None
        # Release anyone still waiting on the discarded job
        self._finished.set()
        self._finished = asyncio.Event()

    async def shutdown(self) -> None:
        """Stop both channels and wait for their tasks. The snapshot is kept."""
        self._stop_channels()
        tasks = [t for t in (self._stream_task, self._poll_task) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._stream_task = None
        self._poll_task = None

    # ----------------- Channels -----------------
    def _start_channels(self, job_id: str) -> None:
        logger.debug("[tracker:start] starting stream and poller job_id=%s", job_id)
        self._stream_task = self._controller.start(job_id)
        self._stream_task.add_done_callback(self._on_stream_done)
        self._poll_task = self._poller.start(job_id)

    def _stop_channels(self) -> None:
        self._controller.cancel()
        self._poller.stop()

    def _on_stream_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            result: StreamResult = task.result()
            if result.outcome == StreamOutcome.completed and result.status is not None:
                self._apply_status(result.status, source="gate")
            return
        if isinstance(exc, ReconnectAttemptsExhausted):
            self._handle_tracking_failed(exc)
            return
        logger.error("[tracker:stream] stream task crashed error=%r", exc)
        self._handle_tracking_failed(exc)

    def _handle_tracking_failed(self, error: Exception) -> None:
        # Snapshot stays so a later run can resume once the server is reachable
        self._poller.stop()
        self._failure = error
        if self._state is not None:
            self._state.error = str(error)
            self._state.connection_message = "Disconnected"
            self._state.touch()
            self._notify_state_changed()
        self._notify_tracking_failed(error)
        self._finished.set()

    # ----------------- Event application -----------------
    async def _handle_stream_event(self, event: StreamEvent) -> None:
        state = self._state
        if state is None or state.is_in_terminal_state():
            return

        if isinstance(event, Connected):
            state.connection_message = "Connected"
            state.touch()
            self._notify_state_changed()
            status = await self._query_status(state.id, purpose="reconcile")
            if status is not None:
                self._apply_status(status, source="reconcile")
        elif isinstance(event, Progress):
            state.append_progress(event.text)
            self._persist()
            self._notify_state_changed()
        elif isinstance(event, StatusChanged):
            self._apply_status(event.status, source="stream")
        elif isinstance(event, (Reconnecting, Disconnected)):
            state.connection_message = event.message or "Disconnected"
            state.touch()
            self._notify_state_changed()

    async def _handle_poll_result(self, status: JobStatus) -> None:
        self._apply_status(status, source="poll")

    def _apply_status(self, status: JobStatus, source: str, persist: bool = True) -> None:
        state = self._state
        if state is None:
            return
        if state.is_in_terminal_state():
            logger.debug(
                "[tracker:status] ignoring status=%s source=%s, already terminal status=%s",
                status,
                source,
                state.status,
            )
            return

        previous = state.status
        state.apply_status(status)
        if previous != status:
            logger.info("[tracker:status] job_id=%s %s -> %s source=%s", state.id, previous, status, source)

        if state.is_in_terminal_state():
            self._complete()
            return

        if persist:
            self._persist()
        self._notify_state_changed()

    def _complete(self) -> None:
        state = self._state
        self._stop_channels()
        self._store.clear()
        state.connection_message = None
        logger.info("[tracker:done] job_id=%s status=%s", state.id, state.status)
        self._notify_state_changed()
        self._notify_job_completed()
        self._finished.set()

    # ----------------- Helpers -----------------
    def _persist(self) -> None:
        if self._state is not None:
            self._store.save(self._state)

    async def _query_status(self, job_id: str, purpose: str) -> Optional[JobStatus]:
        try:
            return await self._api.get_status(job_id)
        except Exception as exc:
            logger.warning("[tracker:%s] status query failed job_id=%s error=%s", purpose, job_id, exc)
            return None
