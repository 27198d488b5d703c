"""Incremental decoder for the job event stream.

Turns raw body chunks into `StreamEvent`s. Chunk boundaries are arbitrary:
a chunk may end in the middle of a line or in the middle of a multi-byte
UTF-8 sequence. Both are carried over to the next `feed` call, a line is
only parsed once its terminator has arrived.
"""

import codecs
import json
from typing import List

from pydantic import ValidationError

from jobtrack.core.models.events import InvalidFrameError, StreamEvent, StreamFrame
from jobtrack.core.settings import logger

DATA_MARKER = "data:"


class EventFrameDecoder:
    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self.dropped_frames = 0

    @property
    def pending(self) -> str:
        """Text received after the last line terminator."""
        return self._buffer

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        events: List[StreamEvent] = []
        for line in lines:
            event = self._parse_line(line.rstrip("\r"))
            if event is not None:
                events.append(event)
        return events

    def finish(self) -> None:
        """Signal end of stream. An unterminated trailing fragment is discarded."""
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if tail.strip():
            logger.debug("[stream:decode] discarding unterminated fragment len=%s", len(tail))

    def _parse_line(self, line: str) -> StreamEvent | None:
        if not line:
            return None
        if line.startswith(DATA_MARKER):
            return self._parse_data(line[len(DATA_MARKER):].removeprefix(" "))
        if line.startswith(":") or "keep-alive" in line:
            logger.debug("[stream:decode] keep-alive received")
            return None
        # event:, id:, retry: and anything else carry nothing we use
        logger.debug("[stream:decode] ignoring non-data line %r", line[:80])
        return None

    def _parse_data(self, data: str) -> StreamEvent | None:
        try:
            frame = StreamFrame.model_validate(json.loads(data))
            return frame.to_event()
        except (json.JSONDecodeError, ValidationError, InvalidFrameError) as exc:
            self.dropped_frames += 1
            logger.warning("[stream:decode] dropping malformed frame data=%r error=%s", data[:200], exc)
            return None
