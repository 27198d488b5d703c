"""Terminal rendering of a tracked job.

Implements JobStateObserver with rich output: progress text is streamed as
it grows, status and connection changes are printed on their own lines.
"""

from typing import Optional

from rich.console import Console

from jobtrack.core.models.job import ConnectionPhase, JobState, JobStatus

_STATUS_STYLES = {
    JobStatus.completed: "bold green",
    JobStatus.failed: "bold red",
    JobStatus.cancelled: "bold yellow",
    JobStatus.cancelling: "yellow",
}


class ConsoleObserver:
    def __init__(self, console: Console, show_connection: bool = False):
        self._console = console
        self._show_connection = show_connection
        self._printed = 0
        self._status: Optional[JobStatus] = None
        self._connection_message: Optional[str] = None
        self._error: Optional[str] = None

    def on_state_changed(self, state: JobState) -> None:
        # A recovered snapshot already carries text printed by an earlier run
        if len(state.progress_text) > self._printed:
            self._console.print(state.progress_text[self._printed:], end="", highlight=False, markup=False)
            self._printed = len(state.progress_text)

        if state.status != self._status:
            self._status = state.status
            style = _STATUS_STYLES.get(state.status, "cyan")
            self._console.print(f"\n[{style}]status: {state.status}[/{style}]")

        if self._show_connection and state.connection_message != self._connection_message:
            self._connection_message = state.connection_message
            if state.connection_message:
                self._console.print(f"[dim]{state.connection_message}[/dim]")

        if state.error and state.error != self._error:
            self._error = state.error
            self._console.print(f"[red]{state.error}[/red]")

    def on_connection_changed(self, phase: ConnectionPhase) -> None:
        if self._show_connection:
            self._console.print(f"[dim]connection: {phase}[/dim]")

    def on_job_completed(self, state: JobState) -> None:
        self._console.print(f"[bold]Job {state.id} finished: {state.status}[/bold]")

    def on_tracking_failed(self, state: JobState, error: Exception) -> None:
        self._console.print(f"[red]Tracking stopped: {error}[/red]")
