"""Line streams backed by a producer task and a bounded queue.

A LineStream starts consuming its source as soon as it is created. Lines are
handed to the consumer through an ``asyncio.Queue``; when the queue is full
the producer waits, so a slow consumer throttles the scan.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from typing import Any

logger = logging.getLogger(__name__)

# Marks the end of a stream inside the queue
_END = object()


class LineStream:
    """Async iterator over ``bytes`` lines produced in a background task.

    Producer errors are re-raised from ``__anext__`` once the lines queued
    before the failure have been consumed.

    With a ``callback`` the stream collects every line as it is produced
    (the queue is then unbounded so the scan never waits) and calls
    ``callback(lines)`` with the ordered result when the source is
    exhausted. The callback is not called if the source fails.

    Example:
        stream = LineStream(scan_forward(handle, index, 10, 20))
        async for line in stream:
            print(line.decode())
    """

    def __init__(
        self,
        lines: AsyncIterator[bytes] | None = None,
        *,
        queue_size: int = 64,
        callback: Callable[[list[bytes]], Any] | None = None,
        name: str = "slice",
    ):
        self.name = name
        self._source = lines
        self._callback = callback
        self._result: list[bytes] | None = [] if callback is not None else None
        self._queue: asyncio.Queue[Any] = asyncio.Queue(
            maxsize=0 if callback is not None else queue_size
        )
        self._error: BaseException | None = None
        self._end_pending = False
        self._exhausted = False
        self._completed = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def _produce(self) -> AsyncIterator[bytes]:
        """Source of lines; subclasses override this."""
        if self._source is None:
            raise ValueError("LineStream needs a source")
        return self._source

    @property
    def done(self) -> bool:
        """True once the producer has finished, successfully or not."""
        return self._task.done()

    async def wait(self) -> None:
        """Wait for the producer to finish without consuming lines."""
        await asyncio.shield(self._task)

    async def _run(self) -> None:
        try:
            async with aclosing(self._produce()) as lines:
                async for line in lines:
                    if self._result is not None:
                        self._result.append(line)
                    await self._queue.put(line)
            self._completed = True
        except asyncio.CancelledError:
            logger.debug(f"{self.name} stream cancelled")
        except Exception as e:
            logger.error(f"{self.name} stream failed: {e}")
            self._error = e
        finally:
            self._finish()

    def _finish(self) -> None:
        if self._completed and self._callback is not None:
            try:
                self._callback(list(self._result or []))
            except Exception as e:
                logger.error(
                    "Stream callback raised exception",
                    extra={"stream": self.name, "error": str(e), "error_type": type(e).__name__},
                )
        try:
            self._queue.put_nowait(_END)
        except asyncio.QueueFull:
            # Delivered by __anext__ as soon as the consumer frees a slot
            self._end_pending = True

    def __aiter__(self) -> LineStream:
        return self

    async def __anext__(self) -> bytes:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if self._end_pending and not self._queue.full():
            self._end_pending = False
            self._queue.put_nowait(_END)
        if item is _END:
            self._exhausted = True
            if self._error is not None:
                error, self._error = self._error, None
                raise error
            raise StopAsyncIteration
        return item

    async def collect(self) -> list[bytes]:
        """Consume the rest of the stream and return its lines in order."""
        return [line async for line in self]
