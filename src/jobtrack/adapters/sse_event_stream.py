"""Event stream connector over the jobs API streaming endpoint.

One `connect` call opens one connection. The connection is released in the
generator's ``finally`` block, which runs on normal end, on transport error,
when the consumer stops iterating and when the consuming task is cancelled.
`cancel()` additionally closes the body from outside so a read blocked on
the network returns at once.
"""

from typing import AsyncIterator, Optional

from jobtrack.core.interfaces.job_api import ByteStreamPort, JobApiPort
from jobtrack.core.models.events import StreamEvent
from jobtrack.core.settings import logger
from jobtrack.core.utils.frame_decoder import EventFrameDecoder


class SseEventStreamConnector:
    def __init__(self, job_api: JobApiPort):
        self._api = job_api
        self._stream: Optional[ByteStreamPort] = None
        self._cancelled = False

    async def connect(self, job_id: str) -> AsyncIterator[StreamEvent]:
        self._cancelled = False
        stream = await self._api.open_stream(job_id)
        self._stream = stream
        logger.debug("[stream:open] connection opened job_id=%s", job_id)
        decoder = EventFrameDecoder()
        try:
            # cancel() may have run while the connection was being opened
            if self._cancelled:
                logger.debug("[stream:cancel] cancelled during open job_id=%s", job_id)
                return
            async for chunk in stream.iter_chunks():
                if self._cancelled:
                    return
                for event in decoder.feed(chunk):
                    yield event
                    if self._cancelled:
                        return
            decoder.finish()
            logger.debug("[stream:end] server closed stream job_id=%s", job_id)
        except Exception:
            # Closing the body from cancel() surfaces as a read error
            if self._cancelled:
                logger.debug("[stream:cancel] read aborted job_id=%s", job_id)
                return
            raise
        finally:
            stream.close()
            if self._stream is stream:
                self._stream = None

    def cancel(self) -> None:
        self._cancelled = True
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()
