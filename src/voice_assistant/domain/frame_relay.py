import logging
from collections.abc import AsyncIterator

import janus

logger = logging.getLogger(__name__)


class FrameRelay:
    """Bounded hand-off from the real-time capture thread to the event loop.

    ``push`` never blocks: when the queue is full the oldest frame is
    discarded to make room, since stale audio has no value to a live
    transcription stream.
    """

    def __init__(self, max_frames: int = 50) -> None:
        self._max_frames = max_frames
        self._queue: janus.Queue[bytes] | None = None
        self._dropped_frames = 0

    @property
    def is_open(self) -> bool:
        return self._queue is not None

    @property
    def dropped_frames(self) -> int:
        return self._dropped_frames

    def open(self) -> None:
        if self._queue is not None:
            return
        self._queue = janus.Queue(maxsize=self._max_frames)
        self._dropped_frames = 0

    def push(self, frame: bytes) -> None:
        queue = self._queue
        if queue is None:
            return
        try:
            queue.sync_q.put_nowait(frame)
        except janus.SyncQueueFull:
            try:
                queue.sync_q.get_nowait()
            except janus.SyncQueueEmpty:
                pass
            self._dropped_frames += 1
            try:
                queue.sync_q.put_nowait(frame)
            except janus.SyncQueueFull:
                self._dropped_frames += 1
        except janus.SyncQueueShutDown:
            pass

    async def frames(self) -> AsyncIterator[bytes]:
        queue = self._queue
        if queue is None:
            return
        while True:
            try:
                yield await queue.async_q.get()
            except janus.AsyncQueueShutDown:
                break

    async def close(self) -> None:
        queue = self._queue
        if queue is None:
            return
        self._queue = None
        queue.close()
        await queue.wait_closed()
        if self._dropped_frames:
            logger.debug("Frame relay closed (dropped=%d)", self._dropped_frames)
