from typing import AsyncIterator, Protocol

from jobtrack.core.models.events import StreamEvent


class EventStreamPort(Protocol):
    """Connector producing typed events from one job event stream.

    `connect` returns a lazy, finite sequence. It ends without an event when
    the server closes the stream normally (an ambiguous end: the job may or may
    not be finished) and raises on transport errors.
    """

    def connect(self, job_id: str) -> AsyncIterator[StreamEvent]:  # pragma: no cover - protocol
        ...

    def cancel(self) -> None:  # pragma: no cover - protocol
        """Abort any in-flight read and release the connection. Idempotent."""
        ...
