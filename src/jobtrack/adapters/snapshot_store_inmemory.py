"""In-memory implementation of SnapshotStorePort.

Keeps the serialized JSON rather than the model so tests exercise the same
encode/decode path as the file store. Suitable for tests and for runs that
do not need crash recovery.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from pydantic import ValidationError

from jobtrack.adapters.clock_asyncio import AsyncioClock
from jobtrack.core.interfaces.clock import ClockPort
from jobtrack.core.interfaces.snapshot_store import SnapshotStorePort
from jobtrack.core.models.job import JobState
from jobtrack.core.models.snapshot import Snapshot
from jobtrack.core.settings import logger


class InMemorySnapshotStore(SnapshotStorePort):
    def __init__(
        self,
        max_age: timedelta = timedelta(hours=24),
        clock: ClockPort | None = None,
    ) -> None:
        self._blob: Optional[str] = None
        self._max_age = max_age
        self._clock = clock or AsyncioClock()
        self.saves = 0

    def save(self, state: JobState) -> None:
        self._blob = Snapshot.from_state(state, now=self._clock.now()).to_json()
        self.saves += 1

    def load(self) -> Optional[Snapshot]:
        if self._blob is None:
            return None
        try:
            snapshot = Snapshot.model_validate_json(self._blob)
        except ValidationError as exc:
            logger.warning("[snapshot:load] discarding invalid snapshot error=%s", exc)
            self._blob = None
            return None
        if snapshot.is_expired(self._clock.now(), self._max_age):
            logger.info("[snapshot:load] discarding expired snapshot job_id=%s", snapshot.job_id)
            self._blob = None
            return None
        return snapshot

    def clear(self) -> None:
        self._blob = None

    # Convenience accessors (not part of port but useful for tests)
    def put_raw(self, blob: str) -> None:  # pragma: no cover simple access
        self._blob = blob

    @property
    def raw(self) -> Optional[str]:  # pragma: no cover simple access
        return self._blob
