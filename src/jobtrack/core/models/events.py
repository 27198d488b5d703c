"""Stream events and their wire representation.

`StreamFrame` mirrors the JSON payload carried by a ``data:`` line of the
job event stream. `StreamEvent` is the typed union the rest of the engine
consumes; conversion lives in `StreamFrame.to_event`.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from jobtrack.core.models.job import JobStatus


class Connected(BaseModel):
    kind: Literal["connected"] = "connected"
    job_id: Optional[str] = None


class Progress(BaseModel):
    kind: Literal["progress"] = "progress"
    text: str


class StatusChanged(BaseModel):
    kind: Literal["status"] = "status"
    status: JobStatus


class Reconnecting(BaseModel):
    kind: Literal["reconnecting"] = "reconnecting"
    message: str
    attempt: Optional[int] = None
    max_attempts: Optional[int] = None


class Disconnected(BaseModel):
    kind: Literal["disconnected"] = "disconnected"
    message: Optional[str] = None


StreamEvent = Union[Connected, Progress, StatusChanged, Reconnecting, Disconnected]


class InvalidFrameError(ValueError):
    """Raised for a structurally valid JSON frame that cannot become an event."""


class StreamFrame(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["connected", "progress", "status", "reconnecting", "disconnected"]
    jobId: Optional[str] = None
    payload: Optional[Any] = None
    status: Optional[str] = None
    message: Optional[str] = None

    def to_event(self) -> StreamEvent:
        if self.type == "connected":
            return Connected(job_id=self.jobId)
        if self.type == "progress":
            if self.payload is None or self.payload == "":
                raise InvalidFrameError("progress frame without payload")
            text = self.payload if isinstance(self.payload, str) else str(self.payload)
            return Progress(text=text)
        if self.type == "status":
            if not self.status:
                raise InvalidFrameError("status frame without status")
            try:
                return StatusChanged(status=JobStatus(self.status))
            except ValueError as exc:
                raise InvalidFrameError(f"unknown job status {self.status!r}") from exc
        if self.type == "reconnecting":
            return Reconnecting(message=self.message or "Reconnecting")
        return Disconnected(message=self.message)
