from typing import Optional
from jobtrack.core.models.api_error import ApiErrorResponse


class JobApiError(Exception):
    """Upstream jobs API failure (transport, HTTP status or payload)."""
    def __init__(self, response: ApiErrorResponse):
        self.response = response
        super().__init__(f"{response.title} ({response.status}): {response.detail}")


# Domain-specific tracking exceptions

class JobTrackingError(Exception):
    """Base exception for job tracking failures.

    Attributes:
        message: Human-readable error description
        job_id: Optional job identifier
    """
    def __init__(self, message: str, job_id: Optional[str] = None):
        self.message = message
        self.job_id = job_id
        super().__init__(message)


class JobSubmissionError(JobTrackingError):
    """Raised when the jobs API rejects or fails a submission. Never retried."""
    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(message=message)


class JobCancellationError(JobTrackingError):
    """Raised when a cancel request fails. Tracking of the job continues."""
    def __init__(self, job_id: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(message="Failed to cancel job", job_id=job_id)


class ReconnectAttemptsExhausted(JobTrackingError):
    """Raised when the event stream could not be re-established.

    Attributes:
        attempts: Reconnect attempts made since the last successful connection
        max_attempts: Configured limit
    """
    def __init__(self, job_id: str, attempts: int, max_attempts: int):
        self.attempts = attempts
        self.max_attempts = max_attempts
        message = (
            f"Lost connection to job {job_id}: "
            f"gave up after {attempts} reconnect attempts (limit: {max_attempts})"
        )
        super().__init__(message=message, job_id=job_id)
