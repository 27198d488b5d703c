# jobtrack/core/interfaces/job_api.py
from abc import ABC, abstractmethod
from typing import AsyncIterator

from jobtrack.core.models.job import JobStatus, JobType


class ByteStreamPort(ABC):
    """An open streaming response body.

    `close()` is synchronous so it can be called from any task to abort a
    pending read; it must be safe to call more than once.
    """

    @abstractmethod
    def iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield body chunks as they arrive; ends on normal end of stream."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying connection."""
        pass


class JobApiPort(ABC):
    """Client side of the jobs API.

    Implementations raise `JobApiError` for transport, HTTP and payload
    failures so callers never depend on a specific HTTP library.
    """

    @abstractmethod
    async def __aenter__(self) -> "JobApiPort":
        """Async context manager entry method"""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit method"""
        pass

    @abstractmethod
    async def submit(self, input_text: str, job_type: JobType) -> str:
        """Create a job and return the server-assigned job id."""
        pass

    @abstractmethod
    async def get_status(self, job_id: str) -> JobStatus:
        """Point-in-time status of a job."""
        pass

    @abstractmethod
    async def cancel(self, job_id: str) -> None:
        """Request cancellation. The job moves to Cancelling first."""
        pass

    @abstractmethod
    async def open_stream(self, job_id: str) -> ByteStreamPort:
        """Open the job's event stream. Raises `JobApiError` if it cannot be opened."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client session"""
        pass
