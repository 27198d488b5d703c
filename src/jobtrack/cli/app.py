"""Typer command line front end for jobtrack.

Commands:
- submit: create a job from text and follow it to a terminal status
- resume: pick up the job recorded in the recovery snapshot
- cancel: request cancellation of the recovered job and follow it
- reset: forget the recovered job
- settings: print the effective settings

Exit codes: 0 completed (or nothing to do), 1 failed or cancelled,
2 tracking or submission error, 130 interrupted (snapshot kept).
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console

from jobtrack.cli.console_observer import ConsoleObserver
from jobtrack.core.exceptions import JobTrackingError
from jobtrack.core.logging_config import configure_logging
from jobtrack.core.managers.job_tracker import JobTracker
from jobtrack.core.models.job import JobState, JobStatus, JobType
from jobtrack.core.settings import app_settings, logger
from jobtrack.main import tracking_session

_console = Console()

app = typer.Typer(
    name="jobtrack",
    help="Submit a long-running job and follow it to completion",
    no_args_is_help=True,
)

_verbose = False


def _exit_code(state: Optional[JobState]) -> int:
    if state is None or state.status == JobStatus.completed:
        return 0
    if state.is_in_terminal_state():
        return 1
    return 0


async def _follow(tracker: JobTracker) -> int:
    try:
        state = await tracker.wait_finished()
    except JobTrackingError as exc:
        logger.error("[cli] tracking stopped: %s", exc)
        return 2
    except Exception as exc:
        logger.error("[cli] tracking crashed error=%r", exc)
        _console.print(f"[red]Tracking stopped unexpectedly: {exc}[/red]")
        return 2
    return _exit_code(state)


def _run(command) -> None:
    try:
        code = asyncio.run(command())
    except KeyboardInterrupt:
        _console.print("\n[yellow]Interrupted. Run 'jobtrack resume' to pick the job up again.[/yellow]")
        raise typer.Exit(130)
    raise typer.Exit(code)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show connection changes and debug logging",
    ),
) -> None:
    """jobtrack - resilient tracking of a single server-side job."""
    global _verbose
    _verbose = verbose
    configure_logging("DEBUG" if verbose else app_settings.JOBTRACK_LOG_LEVEL)


@app.command()
def submit(
    text: str = typer.Argument(..., help="Input text for the job"),
    job_type: int = typer.Option(int(JobType.ENCODE), "--job-type", "-t", help="Numeric job type"),
) -> None:
    """Submit a job and follow its progress until it finishes.

    Example:
        $ jobtrack submit "Hello world"
    """

    async def command() -> int:
        observer = ConsoleObserver(_console, show_connection=_verbose)
        async with tracking_session(observers=[observer]) as tracker:
            try:
                state = await tracker.submit(text, JobType(job_type))
            except ValueError as exc:
                _console.print(f"[red]{exc}[/red]")
                return 2
            except JobTrackingError as exc:
                _console.print(f"[red]{exc.message}[/red]")
                return 2
            _console.print(f"[bold]Job {state.id} submitted[/bold]")
            return await _follow(tracker)

    _run(command)


@app.command()
def resume() -> None:
    """Resume the job recorded in the recovery snapshot."""

    async def command() -> int:
        observer = ConsoleObserver(_console, show_connection=_verbose)
        async with tracking_session(observers=[observer]) as tracker:
            state = await tracker.resume()
            if state is None:
                _console.print("No job to resume.")
                return 0
            if not tracker.is_tracking:
                return _exit_code(state)
            return await _follow(tracker)

    _run(command)


@app.command()
def cancel() -> None:
    """Request cancellation of the recovered job and follow it."""

    async def command() -> int:
        observer = ConsoleObserver(_console, show_connection=_verbose)
        async with tracking_session(observers=[observer]) as tracker:
            state = await tracker.resume()
            if state is None or not tracker.is_tracking:
                _console.print("No running job to cancel.")
                return _exit_code(state)
            try:
                await tracker.cancel_job()
            except JobTrackingError as exc:
                _console.print(f"[red]{exc.message}[/red]")
                return 2
            return await _follow(tracker)

    _run(command)


@app.command()
def reset() -> None:
    """Forget the recovered job and remove its snapshot."""

    async def command() -> int:
        async with tracking_session() as tracker:
            await tracker.reset()
        _console.print("Snapshot cleared.")
        return 0

    _run(command)


@app.command("settings")
def show_settings() -> None:
    """Print the effective settings."""
    app_settings.print_settings(logger)


if __name__ == "__main__":
    app()
