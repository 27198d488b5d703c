from datetime import datetime, timezone
from enum import IntEnum, StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class JobStatus(StrEnum):
    created = "Created"
    queued = "Queued"
    taken = "Taken"
    running = "Running"
    retrying = "Retrying"
    cancelling = "Cancelling"
    completed = "Completed"
    failed = "Failed"
    cancelled = "Cancelled"


TERMINAL_STATUSES = frozenset({JobStatus.completed, JobStatus.failed, JobStatus.cancelled})

# Statuses for which the server is still expected to push events; anything
# else (terminal, Created, Cancelling) is not worth reconnecting for.
PROCESSABLE_STATUSES = frozenset(
    {JobStatus.queued, JobStatus.taken, JobStatus.running, JobStatus.retrying}
)


def is_terminal(status: Optional[JobStatus]) -> bool:
    return status in TERMINAL_STATUSES


def is_processable(status: Optional[JobStatus]) -> bool:
    return status in PROCESSABLE_STATUSES


class JobType(IntEnum):
    ENCODE = 1


class ConnectionPhase(StrEnum):
    idle = "Idle"
    connecting = "Connecting"
    connected = "Connected"
    reconnecting = "Reconnecting"
    stopped = "Stopped"


class JobState(BaseModel):
    """Canonical client-side view of the tracked job.

    Notes:
    - Owned exclusively by `JobTracker`; connector and poller only produce
      events, they never touch this object.
    - `progress_text` is append-only. The only way to shrink it is to discard
      the whole state (explicit reset or terminal cleanup).
    - `connection_message` and `error` are display fields. They never feed
      back into `status`.
    """

    id: str
    status: JobStatus = JobStatus.created
    input_text: str = ""
    progress_text: str = ""
    is_processing: bool = True
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    connection_message: Optional[str] = None
    error: Optional[str] = None

    def touch(self) -> None:
        self.last_updated = datetime.now(timezone.utc)

    def append_progress(self, text: str) -> None:
        self.progress_text += text
        self.touch()

    def apply_status(self, status: JobStatus) -> None:
        self.status = status
        if is_terminal(status):
            self.is_processing = False
        self.touch()

    def is_in_terminal_state(self) -> bool:
        return is_terminal(self.status)
