"""Reassembly of sensor frames from arbitrarily chunked serial reads.

The robot answers a QUERY for packet 100 with 80 raw bytes and nothing
else: no start marker, no length, no checksum. The assembler therefore
counts bytes. It writes each incoming byte into a working buffer and,
when 80 have arrived, publishes an immutable :class:`SensorFrame` copy
and starts over at offset 0 in the same buffer.

Lost or extra bytes shift every later frame; the assembler cannot notice.
Callers realign by calling :meth:`FrameAssembler.reset` just before each
request (the session does this) and can tell fresh data from stale data
through ``sequence`` and :meth:`FrameAssembler.frame_age`.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from ..errors import TooFrequent
from .sensors import EMPTY_FRAME, SENSOR_FRAME_SIZE, SensorFrame

logger = logging.getLogger(__name__)

SENSOR_REQUEST_MIN_INTERVAL = 0.050  # seconds between QUERY requests

FrameCallback = Callable[[SensorFrame], None]


class FrameAssembler:
    """Builds sensor frames from a byte stream.

    ``feed`` is meant to be called from the transport's reader thread;
    ``latest`` and ``wait_for_frame`` from any other thread. Published
    frames are immutable copies and need no locking once obtained.
    """

    def __init__(
        self,
        on_frame: Optional[FrameCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._buffer = bytearray(SENSOR_FRAME_SIZE)
        self._cursor = 0
        self._latest = EMPTY_FRAME
        self._on_frame = on_frame
        self._clock = clock
        self._cond = threading.Condition()

    @property
    def cursor(self) -> int:
        """Number of bytes of the current frame received so far."""
        return self._cursor

    @property
    def latest(self) -> SensorFrame:
        """Most recently completed frame, or the all-zero placeholder."""
        return self._latest

    @property
    def frames_completed(self) -> int:
        return self._latest.sequence

    @property
    def has_frame(self) -> bool:
        return self._latest.received

    def frame_age(self, now: Optional[float] = None) -> Optional[float]:
        """Seconds since the latest frame completed, None if none has."""
        if self._latest.received_at is None:
            return None
        if now is None:
            now = self._clock()
        return now - self._latest.received_at

    def feed(self, chunk: bytes) -> list[SensorFrame]:
        """Consume a chunk of received bytes.

        Returns the frames completed by this chunk, oldest first. A chunk
        may complete several frames or none.
        """
        completed: list[SensorFrame] = []
        with self._cond:
            for byte in chunk:
                self._buffer[self._cursor] = byte
                self._cursor += 1
                if self._cursor == SENSOR_FRAME_SIZE:
                    completed.append(self._commit())
            if completed:
                self._cond.notify_all()

        if self._on_frame is not None:
            for frame in completed:
                self._on_frame(frame)
        return completed

    def _commit(self) -> SensorFrame:
        # bytes() copies: the working buffer is overwritten by the next frame
        frame = SensorFrame(
            data=bytes(self._buffer),
            sequence=self._latest.sequence + 1,
            received_at=self._clock(),
        )
        self._latest = frame
        self._cursor = 0
        logger.debug("Received sensor frame #%d", frame.sequence)
        return frame

    def reset(self) -> None:
        """Drop a partially received frame and expect a new one from offset 0."""
        with self._cond:
            if self._cursor:
                logger.debug("Discarding %d bytes of partial sensor frame", self._cursor)
            self._cursor = 0

    def wait_for_frame(self, after_sequence: int, timeout: float) -> Optional[SensorFrame]:
        """Block until a frame newer than ``after_sequence`` is published.

        Returns the latest frame, or None if ``timeout`` seconds pass first.
        """
        with self._cond:
            ready = self._cond.wait_for(
                lambda: self._latest.sequence > after_sequence, timeout
            )
            return self._latest if ready else None


class RequestThrottle:
    """Rejects sensor requests issued less than ``min_interval`` apart.

    A request that arrives too early raises :class:`TooFrequent` instead
    of being delayed. Only :meth:`record` moves the window, so a rejected
    request or one whose write failed leaves it where it was.
    """

    def __init__(
        self,
        min_interval: float = SENSOR_REQUEST_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_interval = min_interval
        self._clock = clock
        self._last_request: Optional[float] = None

    @property
    def last_request(self) -> Optional[float]:
        return self._last_request

    def check(self) -> None:
        """Raise if the previous recorded request is too recent."""
        if self._last_request is None:
            return
        elapsed = self._clock() - self._last_request
        if elapsed < self._min_interval:
            raise TooFrequent(
                f"Sensor update requested {elapsed * 1000:.1f} ms after the "
                f"previous one; wait at least {self._min_interval * 1000:.0f} ms"
            )

    def record(self) -> None:
        """Start a new window at the current time (after a request was sent)."""
        self._last_request = self._clock()
