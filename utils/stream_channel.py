from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any, Final, Generic, Self, TypeVar

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import AsyncIterator
    from types import TracebackType

__all__: list[str] = ["StreamChannel"]

T = TypeVar("T")

logger: logging.Logger = LoggerUtils.get_logger(__name__)

_END_OF_STREAM: Final[object] = object()


class StreamChannel(asyncio.Queue[Any], Generic[T]):
    """A queue that carries chunks from a model stream to a single consumer.

    A producer task drains the source iterator into the queue. Consumers iterate the
    channel with ``async for``. Errors raised by the source are logged and end the
    stream; they never reach the consumer. Setting the abort signal closes the channel,
    drops undelivered chunks and cancels the producer.

    ``put`` and ``close`` are mutually exclusive, so no chunk is queued after the
    end-of-stream marker.
    """

    def __init__(self, source: AsyncIterator[T], *, abort_signal: asyncio.Event | None = None) -> None:
        super().__init__()
        self._lock = asyncio.Lock()
        self._source: AsyncIterator[T] = source
        self._abort_signal: asyncio.Event | None = abort_signal
        self._closed: bool = False
        self._producer: asyncio.Task[None] | None = None
        self._watcher: asyncio.Task[None] | None = None
        self.error: BaseException | None = None

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._abort_signal is not None and self._abort_signal.is_set()

    def start(self) -> None:
        """Start the producer task and, if an abort signal was given, its watcher."""
        if self._producer is not None:
            return
        self._producer = asyncio.create_task(self._produce(), name="stream-channel-producer")
        if self._abort_signal is not None:
            self._watcher = asyncio.create_task(self._watch_abort(), name="stream-channel-abort-watcher")

    async def put(self, item: T) -> None:
        """Add a chunk to the channel. Chunks put after close() are dropped.

        Args:
            item (T): The chunk to add.
        """
        async with self._lock:
            if self._closed:
                return
            await super().put(item)

    async def close(self) -> None:
        """Close the channel and stop the producer.

        Chunks already queued stay readable unless the abort signal is set. Calling this
        method more than once is harmless.
        """
        async with self._lock:
            if not self._closed:
                self._closed = True
                if self.aborted:
                    self._drain()
                self.put_nowait(_END_OF_STREAM)

        current: asyncio.Task[Any] | None = asyncio.current_task()
        for task in (self._producer, self._watcher):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> T:
        item: Any = await self.get()
        if item is _END_OF_STREAM:
            # Keep the marker so that later iterations also terminate.
            self.put_nowait(_END_OF_STREAM)
            raise StopAsyncIteration
        return item

    async def _produce(self) -> None:
        try:
            async for item in self._source:
                if self._closed or self.aborted:
                    break
                await self.put(item)
        except asyncio.CancelledError:
            raise
        except Exception as err:  # noqa: BLE001
            self.error = err
            logger.warning("Model stream ended with error: %s", err)
        finally:
            aclose = getattr(self._source, "aclose", None)
            if aclose is not None:
                with contextlib.suppress(Exception):
                    await aclose()
            self._finish()

    async def _watch_abort(self) -> None:
        if self._abort_signal is None:
            return
        await self._abort_signal.wait()
        logger.debug("Abort signal received, closing stream channel")
        await self.close()

    def _finish(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.put_nowait(_END_OF_STREAM)

    def _drain(self) -> None:
        while not self.empty():
            try:
                self.get_nowait()
            except asyncio.QueueEmpty:
                break
