"""Shared fakes for tracker tests.

FakeClock makes timing deterministic: sleeps up to `auto_advance_max`
seconds (reconnect backoff) complete at once and are recorded; longer sleeps
(poll intervals in most tests) block until the test calls `advance`.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from jobtrack.adapters.snapshot_store_inmemory import InMemorySnapshotStore
from jobtrack.core.models.job import JobStatus


class FakeClock:
    def __init__(self, start: datetime | None = None, auto_advance_max: float = 60.0):
        self._now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.auto_advance_max = auto_advance_max
        self.sleeps: List[float] = []
        self._waiters: list = []

    def now(self) -> datetime:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds <= self.auto_advance_max:
            self._now += timedelta(seconds=seconds)
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        entry = (self._now + timedelta(seconds=seconds), future)
        self._waiters.append(entry)
        try:
            await future
        finally:
            self._waiters.remove(entry)

    async def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        for deadline, future in list(self._waiters):
            if deadline <= self._now and not future.done():
                future.set_result(None)
        await settle()


HANG = object()


class ScriptedConnector:
    """EventStreamPort fake: each connect() plays the next script.

    Script items are StreamEvents (yielded), exceptions (raised) or HANG
    (block until the consuming task is cancelled). A script that runs out
    ends the stream normally. No scripts left means the connection fails.
    """

    def __init__(self, scripts=None):
        self._scripts = list(scripts or [])
        self.connects = 0
        self.cancels = 0
        self.closed = 0

    def add(self, *items) -> None:
        self._scripts.append(list(items))

    async def connect(self, job_id):
        self.connects += 1
        if not self._scripts:
            raise ConnectionError("connection refused")
        script = self._scripts.pop(0)
        try:
            for item in script:
                if item is HANG:
                    await asyncio.Event().wait()
                elif isinstance(item, BaseException):
                    raise item
                else:
                    yield item
        finally:
            self.closed += 1

    def cancel(self) -> None:
        self.cancels += 1


class RecordingObserver:
    def __init__(self):
        self.states = []
        self.phases = []
        self.completed = []
        self.failures = []

    def on_state_changed(self, state):
        self.states.append(state.model_copy())

    def on_connection_changed(self, phase):
        self.phases.append(phase)

    def on_job_completed(self, state):
        self.completed.append(state.model_copy())

    def on_tracking_failed(self, state, error):
        self.failures.append(error)


class StatusScript:
    """Async status query returning scripted values; the last one repeats.

    Exceptions in the script are raised instead of returned.
    """

    def __init__(self, *results):
        self._results = list(results) or [JobStatus.running]
        self.calls = 0

    async def __call__(self, job_id):
        self.calls += 1
        index = min(self.calls - 1, len(self._results) - 1)
        result = self._results[index]
        if isinstance(result, BaseException):
            raise result
        return result


class FakeJobApi:
    """JobApiPort stand-in for tracker tests (streaming goes through ScriptedConnector)."""

    def __init__(self, job_id: str = "j1", statuses=None):
        self.job_id = job_id
        self.get_status = StatusScript(*(statuses or [JobStatus.running]))
        self.submitted = []
        self.cancelled = []
        self.submit_error = None
        self.cancel_error = None

    async def submit(self, input_text, job_type):
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append((input_text, job_type))
        return self.job_id

    async def cancel(self, job_id):
        if self.cancel_error is not None:
            raise self.cancel_error
        self.cancelled.append(job_id)


async def settle(rounds: int = 20) -> None:
    """Let ready tasks run without advancing fake time."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemorySnapshotStore(clock=clock)


@pytest.fixture
def observer():
    return RecordingObserver()
