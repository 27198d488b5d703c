"""Configuration models for core tracking components.

This module provides Pydantic-based configuration classes that consolidate
settings for the tracker, the reconnection controller and the poller,
enabling dependency injection and testability.
"""

from datetime import timedelta

from pydantic import BaseModel, Field


class ReconnectPolicy(BaseModel):
    """Backoff policy for re-establishing the event stream.

    Attributes:
        base_delay: Delay in seconds before the first retry
        max_delay: Upper bound for any single delay
        max_attempts: Retries allowed since the last successful connection
    """

    base_delay: float = Field(
        default=1.0,
        gt=0,
        description="Delay in seconds before the first reconnect attempt"
    )

    max_delay: float = Field(
        default=30.0,
        gt=0,
        description="Maximum delay in seconds between reconnect attempts"
    )

    max_attempts: int = Field(
        default=10,
        ge=0,
        description="Maximum reconnect attempts before giving up"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    def delay_for(self, attempt: int) -> float:
        """Backoff delay in seconds for the 1-based `attempt`."""
        if attempt < 1:
            raise ValueError("attempt numbers start at 1")
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


class TrackerConfig(BaseModel):
    """Configuration for JobTracker behavior.

    Attributes:
        status_poll_interval: Seconds between fallback status polls
        snapshot_max_age: Age after which a persisted snapshot is discarded unread
        reconnect: Backoff policy for the event stream
    """

    status_poll_interval: float = Field(
        default=10.0,
        gt=0,
        description="Interval in seconds between fallback status polling requests"
    )

    snapshot_max_age: timedelta = Field(
        default=timedelta(hours=24),
        description="Maximum age of a recovery snapshot"
    )

    reconnect: ReconnectPolicy = Field(default_factory=ReconnectPolicy)

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @classmethod
    def from_app_settings(cls, settings) -> "TrackerConfig":
        """Factory method to construct config from a JobTrackSettings instance."""
        return cls(
            status_poll_interval=settings.JOBTRACK_STATUS_POLL_INTERVAL,
            snapshot_max_age=timedelta(hours=settings.JOBTRACK_SNAPSHOT_MAX_AGE_HOURS),
            reconnect=ReconnectPolicy(
                base_delay=settings.JOBTRACK_RECONNECT_BASE_DELAY,
                max_delay=settings.JOBTRACK_RECONNECT_MAX_DELAY,
                max_attempts=settings.JOBTRACK_MAX_RECONNECT_ATTEMPTS,
            ),
        )
