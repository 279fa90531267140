"""Continuous delivery of appended lines with truncation detection.

A FollowStream first delivers an initial slice, then watches the file. Each
change notification re-stats the file: growth is read from the previous end
offset through a LineSplitter, a shrink publishes a ``truncate`` signal with
the number of bytes removed. Every emitted line ends with ``b"\\n"``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING

from .errors import AccessorClosedError, ReadError
from .models import FollowState, Signal, SignalHandler, StatSnapshot
from .scanner import TERMINATOR, find_line_start, read_chunks
from .signals import SignalBus
from .stream import LineStream
from .watcher import FileWatcher

if TYPE_CHECKING:
    from .accessor import FileArray

logger = logging.getLogger(__name__)


class LineSplitter:
    """Splits a byte stream on terminators, holding back the unfinished tail.

    A line cut across two reads is returned whole once its terminator
    arrives.
    """

    def __init__(self) -> None:
        self._pending = bytearray()

    @property
    def pending(self) -> bytes:
        return bytes(self._pending)

    def feed(self, data: bytes) -> list[bytes]:
        """Add ``data`` and return the lines it completed, terminators stripped."""
        self._pending += data
        *lines, rest = self._pending.split(TERMINATOR)
        self._pending = bytearray(rest)
        return [bytes(line) for line in lines]

    def flush(self) -> bytes | None:
        """Return and clear the unterminated tail, None if there is none."""
        if not self._pending:
            return None
        rest = bytes(self._pending)
        self._pending.clear()
        return rest


class FollowStream(LineStream):
    """Line stream that keeps delivering lines appended to the file.

    Lifecycle: INITIAL_SLICE -> WATCHING <-> GROWING -> CLOSED.

    An unterminated last line is not part of the initial slice; it is
    emitted once appended bytes complete it, or when the stream closes.

    Offsets cached before a truncation are not invalidated; callers that
    keep using the accessor after a ``truncate`` signal should call
    ``FileArray.reset_offsets()``.

    Attributes:
        signals: Bus publishing ``truncate`` (data: delta, size), ``error`` and ``close``.
        state: Current FollowState.
    """

    def __init__(self, accessor: FileArray, start: int = 0, end: int | None = None):
        self.signals = SignalBus()
        self.state = FollowState.INITIAL_SLICE
        self._accessor = accessor
        self._start = start
        self._end = end
        self._splitter = LineSplitter()
        self._watcher = FileWatcher(accessor.path, accessor.config.poll_interval)
        self._wake = asyncio.Event()
        self._pending = False
        self._closed = False
        self._failure: BaseException | None = None
        self._last: StatSnapshot | None = None
        # Bytes below this offset have been emitted or buffered in the splitter
        self._offset = 0
        super().__init__(queue_size=accessor.config.queue_size, name="follow")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_snapshot(self) -> StatSnapshot | None:
        """Snapshot the next change is compared against."""
        return self._last

    def on_truncate(self, handler: SignalHandler) -> str:
        """Subscribe to ``truncate`` signals; returns the subscription ID."""
        return self.signals.subscribe("truncate", handler)

    def close(self) -> None:
        """Stop watching and end the stream after the lines already queued."""
        if self._closed:
            return
        self._closed = True
        self._wake.set()
        if self._queue.full():
            # Producer is parked on put(); nobody may drain the queue again
            self._task.cancel()
        logger.info(f"Closing follow stream on {self._accessor.path}")

    def _on_change(self, signal: Signal) -> None:
        if self.state is FollowState.GROWING:
            self._pending = True
        else:
            self._wake.set()

    def _on_watch_error(self, signal: Signal) -> None:
        self._failure = signal.data["error"]
        self._wake.set()

    def _on_accessor_close(self, signal: Signal) -> None:
        self.close()

    async def _produce(self) -> AsyncIterator[bytes]:
        close_sub = self._accessor.signals.subscribe("close", self._on_accessor_close)
        try:
            if self._closed:
                return
            # Stat before scanning so bytes appended during the scan show up as growth
            self._last = await self._accessor.stat()
            handle = await self._accessor.ready()
            # An unterminated last line is held back and completed by growth
            self._offset = await find_line_start(handle, self._last.size)

            lines = self._accessor.iter_lines(self._start, self._end, size=self._offset)
            async with aclosing(lines) as initial:
                async for line in initial:
                    if self._closed:
                        return
                    yield line + TERMINATOR
            if self._closed:
                return
            if self._offset < self._last.size:
                async with aclosing(self._grow(self._offset, self._last.size)) as held:
                    async for line in held:
                        yield line

            self._watcher.signals.subscribe("change", self._on_change)
            self._watcher.signals.subscribe("error", self._on_watch_error)
            await self._watcher.start(self._last)
            self.state = FollowState.WATCHING
            logger.info(f"Following {self._accessor.path} from byte {self._offset}")

            while not self._closed:
                await self._wake.wait()
                self._wake.clear()
                if self._failure is not None:
                    raise self._failure
                if self._closed:
                    break
                async with aclosing(self._refresh()) as grown:
                    async for line in grown:
                        yield line

            rest = self._splitter.flush()
            if rest is not None:
                yield rest + TERMINATOR
        except Exception as e:
            self.signals.publish(
                Signal(name="error", source=self._accessor.path, data={"error": e})
            )
            raise
        finally:
            self._accessor.signals.unsubscribe(close_sub)
            await self._watcher.stop()
            self._closed = True
            self.state = FollowState.CLOSED
            self.signals.publish(Signal(name="close", source=self._accessor.path))

    async def _refresh(self) -> AsyncIterator[bytes]:
        while not self._closed:
            snapshot = await self._accessor.stat()
            previous = self._last
            assert previous is not None

            if snapshot.size < previous.size:
                delta = previous.size - snapshot.size
                logger.warning(
                    f"{self._accessor.path} truncated by {delta} bytes "
                    f"(size {previous.size} -> {snapshot.size})"
                )
                if snapshot.size < self._offset:
                    dropped = self._splitter.flush()
                    if dropped is not None:
                        logger.debug(f"Dropping {len(dropped)} buffered bytes cut by truncation")
                    self._offset = snapshot.size
                self.signals.publish(
                    Signal(
                        name="truncate",
                        source=self._accessor.path,
                        data={"delta": delta, "size": snapshot.size},
                    )
                )
            self._last = snapshot

            if snapshot.size > self._offset:
                self.state = FollowState.GROWING
                async with aclosing(self._grow(self._offset, snapshot.size)) as lines:
                    async for line in lines:
                        yield line
                if not self._closed:
                    self.state = FollowState.WATCHING

            if not self._pending:
                return
            self._pending = False
            logger.debug(f"{self._accessor.path} changed during growth read; re-statting")

    async def _grow(self, start: int, stop: int) -> AsyncIterator[bytes]:
        handle = await self._accessor.ready()
        logger.debug(f"Reading {stop - start} appended bytes from {self._accessor.path}")
        try:
            async with aclosing(read_chunks(handle, start, stop=stop)) as chunks:
                async for chunk_offset, chunk in chunks:
                    self._offset = chunk_offset + len(chunk)
                    for line in self._splitter.feed(chunk):
                        yield line + TERMINATOR
                    if self._closed:
                        return
        except (ReadError, AccessorClosedError):
            if self._closed or self._accessor.closed:
                logger.debug(f"Growth read on {self._accessor.path} stopped by close")
                return
            raise
