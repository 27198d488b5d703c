from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field

from jobtrack.core.models.job import JobState, JobStatus


# 9999-12-31T23:59:59.999Z, the last instant `datetime` can represent
MAX_TIMESTAMP_MS = 253_402_300_799_999


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class Snapshot(BaseModel):
    """Durable recovery copy of a `JobState`.

    Serialized with the camelCase keys of the snapshot record
    (``jobId``, ``progressText``, ``jobStatus``, ``inputText``,
    ``isProcessing``, ``timestamp``). `timestamp` is the write time in epoch
    milliseconds.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    progress_text: str = Field(default="", alias="progressText")
    status: JobStatus = Field(alias="jobStatus")
    input_text: str = Field(default="", alias="inputText")
    is_processing: bool = Field(alias="isProcessing")
    timestamp: int = Field(default_factory=_now_ms, ge=0, le=MAX_TIMESTAMP_MS)

    @classmethod
    def from_state(cls, state: JobState, now: datetime | None = None) -> "Snapshot":
        written = now or datetime.now(timezone.utc)
        return cls(
            job_id=state.id,
            progress_text=state.progress_text,
            status=state.status,
            input_text=state.input_text,
            is_processing=state.is_processing,
            timestamp=int(written.timestamp() * 1000),
        )

    def written_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)

    def is_expired(self, now: datetime, max_age: timedelta) -> bool:
        return now - self.written_at() > max_age

    def to_state(self) -> JobState:
        return JobState(
            id=self.job_id,
            status=self.status,
            input_text=self.input_text,
            progress_text=self.progress_text,
            is_processing=self.is_processing,
            last_updated=self.written_at(),
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
