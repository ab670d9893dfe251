"""
A single live-channel client.

Frames are never written to the transport from the broadcaster directly.
Each connection buffers frames in its own capacity-limited queue and a dedicated
writer task sends them in order, so a slow or stalled client never delays
delivery to the others.
"""

import asyncio
import logging
import time
from typing import Optional, Protocol
from uuid import uuid4

logger = logging.getLogger("ecotrack.realtime.connection")

# WebSocket close code "Try Again Later", sent to clients dropped for falling behind.
CLOSE_TRY_AGAIN_LATER = 1013


class Transport(Protocol):
    """The bidirectional channel a connection writes frames to."""

    async def send_text(self, data: str) -> None:
        ...

    def is_open(self) -> bool:
        ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        ...


class ClientConnection:
    """Represents a connected live-channel client."""

    def __init__(
        self,
        transport: Transport,
        *,
        queue_size: int = 256,
        send_timeout: float = 5.0,
        connection_id: Optional[str] = None,
    ):
        self.transport = transport
        self.connection_id = connection_id or uuid4().hex[:12]
        self.connected_at = time.time()
        self.frames_sent = 0
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._capacity = queue_size
        self._send_timeout = send_timeout
        self._writer: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def is_writable(self) -> bool:
        """True while frames handed to this connection can still be sent."""
        return not self._closed and self.transport.is_open()

    def start(self) -> None:
        """Start the writer task. Must be called from the event loop."""
        if self._writer is None and not self._closed:
            self._writer = asyncio.create_task(
                self._drain(), name=f"client-writer-{self.connection_id}"
            )

    def replay(self, frames: list[str]) -> int:
        """
        Queue snapshot frames for a newly joined client.

        Replay is not subject to the stall limit: the buffer grows by the
        number of frames replayed, so live events still get the configured
        headroom on top of the snapshot.

        Returns:
            Number of frames queued (0 if the connection is not writable).
        """
        if not self.is_writable():
            return 0
        for frame in frames:
            self._queue.put_nowait(frame)
        self._capacity += len(frames)
        return len(frames)

    def enqueue(self, frame: str) -> bool:
        """
        Hand a frame to this connection without blocking.

        Returns False when the frame was skipped: the connection is closed,
        its transport is no longer open, or its buffer is full. A full
        buffer means the client has stalled; it is closed so that it
        reconnects and resynchronises from a fresh snapshot.
        """
        if not self.is_writable():
            return False
        if self._queue.qsize() >= self._capacity:
            logger.warning(
                "Client %s fell behind (%d frames buffered), closing",
                self.connection_id, self._queue.qsize(),
            )
            self._abort()
            return False
        self._queue.put_nowait(frame)
        return True

    async def flush(self) -> None:
        """Wait until every buffered frame has been written or dropped."""
        await self._queue.join()

    async def close(self) -> None:
        """Stop the writer and drop pending frames. Idempotent."""
        self._closed = True
        self._discard_pending()
        writer, self._writer = self._writer, None
        if writer is not None and writer is not asyncio.current_task():
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)
        if self._close_task is not None:
            await asyncio.gather(self._close_task, return_exceptions=True)
            self._close_task = None

    async def _drain(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                if self._closed:
                    continue
                await asyncio.wait_for(self.transport.send_text(frame), timeout=self._send_timeout)
                self.frames_sent += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(
                    "Write to client %s failed: %s",
                    self.connection_id, str(e) or type(e).__name__,
                )
                self._abort()
                return
            finally:
                self._queue.task_done()

    def _abort(self) -> None:
        """Mark closed after a delivery failure and close the transport in the background."""
        if self._closed:
            return
        self._closed = True
        self._discard_pending()
        if self._writer is not None and self._writer is not asyncio.current_task():
            self._writer.cancel()
        self._close_task = asyncio.create_task(
            self._close_transport(), name=f"client-close-{self.connection_id}"
        )

    async def _close_transport(self) -> None:
        try:
            await asyncio.wait_for(
                self.transport.close(code=CLOSE_TRY_AGAIN_LATER, reason="client fell behind"),
                timeout=self._send_timeout,
            )
        except Exception as e:
            logger.debug("Closing transport for %s failed: %s", self.connection_id, e)

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
