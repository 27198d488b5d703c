# main.py
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from jobtrack.adapters.aiohttp_job_api_adapter import AioHttpJobApiAdapter
from jobtrack.adapters.clock_asyncio import AsyncioClock
from jobtrack.adapters.retry_tenacity import TenacityRetryAdapter
from jobtrack.adapters.snapshot_store_file import FileSnapshotStore
from jobtrack.adapters.sse_event_stream import SseEventStreamConnector
from jobtrack.adapters.user_identity_file import FileUserIdentityAdapter
from jobtrack.core.config import TrackerConfig
from jobtrack.core.interfaces.observers import JobStateObserver
from jobtrack.core.managers.job_tracker import JobTracker
from jobtrack.core.settings import JobTrackSettings, app_settings


# main lives at the outermost layer (not in core)
# Instantiates all the concrete adapters
# Wires dependencies together

@asynccontextmanager
async def tracking_session(
    settings: Optional[JobTrackSettings] = None,
    observers: Optional[List[JobStateObserver]] = None,
) -> AsyncIterator[JobTracker]:
    """Yield a fully wired JobTracker; the HTTP session closes on exit.

    Leaving the block stops both channels but keeps the recovery snapshot,
    so an interrupted job can be picked up again with `JobTracker.resume`.
    """
    settings = settings or app_settings
    config = TrackerConfig.from_app_settings(settings)
    clock = AsyncioClock()

    identity = FileUserIdentityAdapter(settings.JOBTRACK_STATE_DIR)
    retry_adapter = TenacityRetryAdapter(
        attempts=settings.JOBTRACK_STATUS_QUERY_ATTEMPTS, wait_initial=0.2, wait_max=1.0
    )
    password = settings.JOBTRACK_PASSWORD.get_secret_value() if settings.JOBTRACK_PASSWORD else None
    store = FileSnapshotStore(
        settings.JOBTRACK_STATE_DIR,
        key=settings.JOBTRACK_SNAPSHOT_KEY,
        max_age=config.snapshot_max_age,
        clock=clock,
    )

    async with AioHttpJobApiAdapter(
        settings.JOBTRACK_JOBS_API_URL,
        user_identity=identity,
        username=settings.JOBTRACK_USERNAME,
        password=password,
        retry_port=retry_adapter,
        request_timeout=settings.JOBTRACK_REQUEST_TIMEOUT,
    ) as job_api:
        tracker = JobTracker(
            job_api=job_api,
            connector=SseEventStreamConnector(job_api),
            snapshot_store=store,
            config=config,
            clock=clock,
            observers=observers,
        )
        try:
            yield tracker
        finally:
            await tracker.shutdown()
