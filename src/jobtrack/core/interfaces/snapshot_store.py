"""SnapshotStorePort: hexagonal port for the job recovery snapshot.

Exactly one snapshot exists per client identity. Implementations never raise
from `save`/`clear`: persistence is a convenience for crash recovery, not a
correctness requirement for a live session.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from jobtrack.core.models.job import JobState
from jobtrack.core.models.snapshot import Snapshot


class SnapshotStorePort(ABC):
	"""Port abstraction for save/load/clear of a single snapshot."""

	@abstractmethod
	def save(self, state: JobState) -> None:
		"""Overwrite the snapshot with `state` stamped with the current time."""
		raise NotImplementedError

	@abstractmethod
	def load(self) -> Optional[Snapshot]:
		"""Return the snapshot, or None if absent, unreadable or expired."""
		raise NotImplementedError

	@abstractmethod
	def clear(self) -> None:
		"""Remove the snapshot. Idempotent."""
		raise NotImplementedError
