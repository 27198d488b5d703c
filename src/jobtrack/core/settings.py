# Logging adapter for application-wide logging
from jobtrack.adapters.logging_adapter import LoggingAdapter

from pathlib import Path

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings
from rich import print

from jobtrack.core.interfaces.logging import LoggingPort

# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class JobTrackSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }
    JOBTRACK_LOG_LEVEL: str = "INFO"
    JOBTRACK_JOBS_API_URL: str = "http://localhost:5000/api/jobs"
    JOBTRACK_USERNAME: str | None = None
    JOBTRACK_PASSWORD: SecretStr | None = None
    # Holds the recovery snapshot and the persisted client id
    JOBTRACK_STATE_DIR: Path = Path.home() / ".jobtrack"
    JOBTRACK_SNAPSHOT_KEY: str = "long-running-job-snapshot"
    JOBTRACK_SNAPSHOT_MAX_AGE_HOURS: float = 24
    JOBTRACK_STATUS_POLL_INTERVAL: float = 10.0
    JOBTRACK_MAX_RECONNECT_ATTEMPTS: int = 10
    JOBTRACK_RECONNECT_BASE_DELAY: float = 1.0  # seconds
    JOBTRACK_RECONNECT_MAX_DELAY: float = 30.0  # seconds
    JOBTRACK_REQUEST_TIMEOUT: float = 10.0  # seconds, not applied to the event stream
    JOBTRACK_STATUS_QUERY_ATTEMPTS: int = 2

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("jobtrack settings:")
        print(self)

    @field_validator("JOBTRACK_JOBS_API_URL", mode="before")
    def strip_trailing_slash(cls, value: str) -> str:
        """Job routes are appended as '/{jobId}/...'."""
        return value.rstrip("/")


app_settings = JobTrackSettings()

logger = LoggingAdapter("jobtrack", app_settings.JOBTRACK_LOG_LEVEL)
