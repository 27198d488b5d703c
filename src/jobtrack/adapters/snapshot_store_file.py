"""JSON file implementation of SnapshotStorePort.

The snapshot lives in ``<state_dir>/<key>.json``. Writes go through a
temporary file and ``os.replace`` so a crash mid-write leaves either the old
or the new snapshot, never a truncated one. Every I/O or parse error is logged
and swallowed: the tracker then simply runs without durable recovery.
"""
from __future__ import annotations

import os
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from jobtrack.adapters.clock_asyncio import AsyncioClock
from jobtrack.core.interfaces.clock import ClockPort
from jobtrack.core.interfaces.snapshot_store import SnapshotStorePort
from jobtrack.core.models.job import JobState
from jobtrack.core.models.snapshot import Snapshot
from jobtrack.core.settings import logger


class FileSnapshotStore(SnapshotStorePort):
    def __init__(
        self,
        state_dir: str | os.PathLike,
        key: str = "long-running-job-snapshot",
        max_age: timedelta = timedelta(hours=24),
        clock: ClockPort | None = None,
    ) -> None:
        self._path = Path(state_dir) / f"{key}.json"
        self._max_age = max_age
        self._clock = clock or AsyncioClock()

    @property
    def path(self) -> Path:
        return self._path

    def save(self, state: JobState) -> None:
        snapshot = Snapshot.from_state(state, now=self._clock.now())
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".snapshot-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(snapshot.to_json())
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.warning("[snapshot:save] failed path=%s error=%s", self._path, exc)

    def load(self) -> Optional[Snapshot]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("[snapshot:load] unreadable path=%s error=%s", self._path, exc)
            return None

        try:
            snapshot = Snapshot.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("[snapshot:load] discarding invalid snapshot path=%s error=%s", self._path, exc)
            self.clear()
            return None

        if snapshot.is_expired(self._clock.now(), self._max_age):
            logger.info(
                "[snapshot:load] discarding expired snapshot job_id=%s written=%s",
                snapshot.job_id,
                snapshot.written_at().isoformat(),
            )
            self.clear()
            return None
        return snapshot

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("[snapshot:clear] failed path=%s error=%s", self._path, exc)
