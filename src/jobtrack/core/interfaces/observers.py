"""Observer protocol for tracked job state changes.

Observers replace framework-driven change detection: the tracker calls them
synchronously right after each applied mutation, so what they see is always
the state as of that mutation.
"""

from typing import Protocol

from jobtrack.core.models.job import ConnectionPhase, JobState


class JobStateObserver(Protocol):
    """Observer protocol for job tracking events.

    Implementations can react to:
    - on_state_changed: After any mutation of the JobState (progress, status,
      connection message, error)
    - on_connection_changed: After the stream connection phase changes
    - on_job_completed: Once, after the job reaches a terminal status
    - on_tracking_failed: After the stream could not be re-established

    Exceptions raised by an observer are logged and otherwise ignored.
    """

    def on_state_changed(self, state: JobState) -> None:
        """Called after every applied mutation.

        Args:
            state: The tracker's live state (do not mutate)
        """
        ...

    def on_connection_changed(self, phase: ConnectionPhase) -> None:
        """Called after the connection phase changes.

        Args:
            phase: The new phase
        """
        ...

    def on_job_completed(self, state: JobState) -> None:
        """Called once after a terminal status was applied.

        Args:
            state: Final state (is_processing already False)
        """
        ...

    def on_tracking_failed(self, state: JobState, error: Exception) -> None:
        """Called when reconnect attempts are exhausted.

        Args:
            state: State at the time tracking stopped
            error: The `ReconnectAttemptsExhausted` error
        """
        ...
