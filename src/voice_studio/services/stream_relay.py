"""Relay an upstream audio stream to a single downstream consumer.

A :class:`StreamRelay` owns exactly one upstream read handle and one
:class:`ChunkSink` for the lifetime of a request. The forwarding loop runs as
its own task so the caller can hand a :class:`StreamHandle` to the HTTP layer
before any audio has arrived. Chunks are copied in arrival order without
accumulation; the sink holds at most ``max_pending`` chunks, so the loop
suspends whenever the consumer falls behind.

Every exit path of the loop (end of stream, upstream failure, consumer
disconnect, cancellation, deadline) runs the same ``finally`` block, which
closes the sink exactly once and releases the upstream response.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Optional, Protocol, Union

from ..errors import StreamInterrupted

logger = logging.getLogger(__name__)


class UpstreamStream(Protocol):
    def iter_chunks(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...


class RelayState(str, Enum):
    OPENING = "opening"
    FORWARDING = "forwarding"
    CLOSED = "closed"


class _EndOfStream:
    pass


class _Failure:
    def __init__(self, error: StreamInterrupted):
        self.error = error


_END = _EndOfStream()

_SinkItem = Union[bytes, _EndOfStream, _Failure]


class ChunkSink:
    """Bounded single-consumer channel for forwarded chunks."""

    def __init__(self, max_pending: int = 1):
        self._queue: asyncio.Queue[_SinkItem] = asyncio.Queue(maxsize=max_pending)
        self._closed = False
        self._detached = False
        self.bytes_written = 0
        self.chunks_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached

    async def write(self, chunk: bytes) -> None:
        if self._closed:
            raise RuntimeError("write() on a closed sink")
        if self._detached:
            raise StreamInterrupted("Downstream consumer disconnected")
        await self._queue.put(chunk)
        self.bytes_written += len(chunk)
        self.chunks_written += 1

    async def close(self, error: Optional[StreamInterrupted] = None) -> None:
        """Finalize the sink, optionally marking the stream as truncated."""

        if self._closed:
            return
        self._closed = True
        if self._detached:
            return
        await self._queue.put(_END if error is None else _Failure(error))

    def detach(self) -> None:
        """Record that the consumer is gone; later writes fail."""

        self._detached = True
        # Drop undelivered chunks so a writer blocked on a full queue resumes.
        while not self._queue.empty():
            self._queue.get_nowait()

    async def read(self) -> Optional[bytes]:
        """Return the next chunk, or ``None`` once the sink is closed."""

        item = await self._queue.get()
        if isinstance(item, _EndOfStream):
            return None
        if isinstance(item, _Failure):
            raise item.error
        return item


class StreamRelay:
    """Forward one upstream stream into one sink."""

    def __init__(
        self,
        upstream: UpstreamStream,
        sink: ChunkSink,
        *,
        timeout: Optional[float] = None,
        label: str = "relay",
    ):
        self._upstream = upstream
        self._sink = sink
        self._timeout = timeout
        self._label = label
        self._task: Optional[asyncio.Task[None]] = None
        self.state = RelayState.OPENING
        self.bytes_read = 0
        self.chunks_read = 0
        self.error: Optional[StreamInterrupted] = None

    @property
    def sink(self) -> ChunkSink:
        return self._sink

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def start(self) -> StreamHandle:
        """Launch the forwarding loop without waiting for it."""

        if self.state is not RelayState.OPENING:
            raise RuntimeError(f"Relay already {self.state.value}")
        self.state = RelayState.FORWARDING
        self._task = asyncio.create_task(self._run(), name=f"stream-relay:{self._label}")
        return StreamHandle(self)

    async def _run(self) -> None:
        error: Optional[StreamInterrupted] = None
        try:
            if self._timeout is not None:
                await asyncio.wait_for(self._forward(), timeout=self._timeout)
            else:
                await self._forward()
        except asyncio.CancelledError:
            error = StreamInterrupted("Stream relay cancelled")
            logger.debug("[%s] Relay cancelled after %d bytes", self._label, self.bytes_read)
            raise
        except asyncio.TimeoutError:
            error = StreamInterrupted(
                f"Stream relay exceeded {self._timeout:g}s deadline"
            )
            logger.warning("[%s] %s", self._label, error)
        except StreamInterrupted as exc:
            error = exc
            logger.info("[%s] %s after %d bytes", self._label, exc, self.bytes_read)
        except Exception as exc:
            error = StreamInterrupted(f"Upstream read failed: {exc}")
            logger.error(
                "[%s] Upstream read failed after %d bytes: %s",
                self._label,
                self.bytes_read,
                exc,
            )
        finally:
            await self._finalize(error)

    async def _forward(self) -> None:
        async for chunk in self._upstream.iter_chunks():
            if not chunk:
                continue
            self.bytes_read += len(chunk)
            self.chunks_read += 1
            await self._sink.write(chunk)

    async def _finalize(self, error: Optional[StreamInterrupted]) -> None:
        self.state = RelayState.CLOSED
        self.error = error
        try:
            await self._sink.close(error)
        finally:
            try:
                await self._upstream.aclose()
            except Exception as exc:
                logger.debug("[%s] Ignoring upstream close failure: %s", self._label, exc)
        if error is None:
            logger.info(
                "[%s] Relay complete: %d chunks, %d bytes",
                self._label,
                self.chunks_read,
                self.bytes_read,
            )

    async def cancel(self) -> None:
        """Stop forwarding and wait until the relay is finalized."""

        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait({task})

    async def wait_closed(self) -> None:
        task = self._task
        if task is not None:
            await asyncio.wait({task})


class StreamHandle:
    """Consumer side of a running relay."""

    media_type = "audio/mpeg"

    def __init__(self, relay: StreamRelay):
        self._relay = relay

    @property
    def state(self) -> RelayState:
        return self._relay.state

    @property
    def relay(self) -> StreamRelay:
        return self._relay

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Transfer-Encoding": "chunked",
            "Cache-Control": "no-cache",
        }

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield forwarded chunks; raises :class:`StreamInterrupted` on truncation."""

        try:
            while True:
                chunk = await self._relay.sink.read()
                if chunk is None:
                    return
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Release the relay when the consumer stops reading."""

        if self._relay.done:
            return
        self._relay.sink.detach()
        if self._relay.state is RelayState.FORWARDING:
            logger.info("Downstream consumer detached; stopping relay")
            await self._relay.cancel()
        else:
            await self._relay.wait_closed()

    async def wait_closed(self) -> None:
        await self._relay.wait_closed()


__all__ = [
    "ChunkSink",
    "RelayState",
    "StreamHandle",
    "StreamRelay",
    "UpstreamStream",
]
