"""Line-addressed access to a single text file.

FileArray owns the file descriptor and the offset cache shared by every
operation issued on it. Opening is asynchronous: operations issued before
the descriptor is ready wait on the open future, and a failed open raises
OpenError in each of them.

Example:
    >>> async def main():
    ...     fa = open_file("/usr/share/dict/words")
    ...     first = await fa.get(0)
    ...     lines = await fa.slice(104, 108).collect()
    ...     await fa.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from os import PathLike
from typing import Any

import aiofiles.os

from .config import AccessorConfig
from .errors import AccessorClosedError, OpenError, StatError
from .follow import FollowStream
from .models import Signal, StatSnapshot
from .offset_index import OffsetIndex
from .scanner import FileHandle, scan_forward, scan_reverse
from .signals import SignalBus
from .stream import LineStream

logger = logging.getLogger(__name__)


class FileArray:
    """Random access to the lines of one file.

    Ordinals are 0-based; negative ordinals count back from EOF, with -1
    being the last line.

    Attributes:
        path: Path of the file.
        config: Accessor configuration.
        index: Offset cache shared by all scans on this accessor.
        signals: Bus publishing ``open``, ``error``, ``stat`` and ``close``.
    """

    def __init__(self, path: str | PathLike[str], config: AccessorConfig | None = None):
        self.path = str(path)
        self.config = config or AccessorConfig()
        self.index = OffsetIndex(self.config.max_cached_offsets)
        self.signals = SignalBus()
        self._opened: asyncio.Future[FileHandle] | None = None
        self._open_task: asyncio.Task | None = None
        self._snapshot: StatSnapshot | None = None
        self._closed = False

    def __repr__(self) -> str:
        return f"FileArray({self.path!r}, cached_offsets={len(self.index)})"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def snapshot(self) -> StatSnapshot | None:
        """Most recent stat snapshot, None until the first stat."""
        return self._snapshot

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _start_open(self) -> asyncio.Future[FileHandle]:
        if self._opened is None:
            loop = asyncio.get_running_loop()
            self._opened = loop.create_future()
            self._open_task = loop.create_task(self._open())
        return self._opened

    async def _open(self) -> None:
        assert self._opened is not None
        try:
            handle = await FileHandle.open(self.path, self.config)
        except OpenError as e:
            logger.error(f"Could not open {self.path}: {e.cause}")
            self._opened.set_exception(e)
            # Waiters still receive the error; this only silences the unretrieved warning
            self._opened.exception()
            self.signals.publish(Signal(name="error", source=self.path, data={"error": e}))
            return

        self._opened.set_result(handle)
        logger.info(f"Opened {self.path} (fd {handle.fileno()})")
        self.signals.publish(Signal(name="open", source=self.path, data={"fd": handle.fileno()}))

    async def ready(self) -> FileHandle:
        """Wait for the descriptor, starting the open if needed.

        Raises:
            OpenError: If the file could not be opened
            AccessorClosedError: If the accessor was closed
        """
        if self._closed:
            raise AccessorClosedError(f"{self.path} is closed")
        return await asyncio.shield(self._start_open())

    async def open(self) -> int:
        """Open the file (once) and return its descriptor number."""
        handle = await self.ready()
        return handle.fileno()

    async def close(self) -> None:
        """Release the descriptor and publish ``close``.

        A pending open is waited for first. Follow streams on this accessor
        end when ``close`` is published.
        """
        if self._closed:
            return
        self._closed = True

        if self._opened is not None:
            try:
                handle = await asyncio.shield(self._opened)
            except OpenError:
                handle = None
            if handle is not None:
                await handle.close()

        logger.info(f"Closed {self.path}")
        self.signals.publish(Signal(name="close", source=self.path))

    async def __aenter__(self) -> FileArray:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def stat(self) -> StatSnapshot:
        """Refresh and return the stat snapshot, publishing ``stat``.

        Raises:
            StatError: If the file cannot be stat'd
        """
        try:
            st = await aiofiles.os.stat(self.path)
        except OSError as e:
            logger.error(f"Failed to stat {self.path}: {e}")
            raise StatError(self.path, e) from e

        self._snapshot = StatSnapshot.from_stat(st)
        self.signals.publish(
            Signal(name="stat", source=self.path, data={"snapshot": self._snapshot})
        )
        return self._snapshot

    async def iter_lines(
        self,
        start: int | None = 0,
        end: int | None = None,
        *,
        size: int | None = None,
    ) -> AsyncIterator[bytes]:
        """Yield lines ``start`` up to (excluding) ``end``, terminators stripped.

        Negative ``start`` counts from EOF and ``end`` must then be <= 0 or
        None. The file size for negative ranges is stat'd once and reused.
        ``size`` treats the file as ending at that byte in both directions.

        Raises:
            ValueError: If a negative start is paired with a positive end
            OpenError: If the file could not be opened
            ReadError: If a read fails mid-scan
        """
        if start is None:
            start = 0
        if start < 0 and end is not None and end > 0:
            raise ValueError(f"Cannot mix a negative start with a positive end ({start}, {end})")

        handle = await self.ready()
        if start < 0:
            if size is None:
                size = (self._snapshot or await self.stat()).size
            lines = scan_reverse(handle, self.index, size, start, end)
        else:
            lines = scan_forward(handle, self.index, start, end, stop=size)

        async with aclosing(lines) as scanned:
            async for line in scanned:
                yield line

    def slice(
        self,
        start: int | None = 0,
        end: int | None = None,
        callback: Callable[[list[bytes]], Any] | None = None,
    ) -> LineStream:
        """Stream lines ``start`` up to (excluding) ``end``.

        Args:
            start: First ordinal, negative to count from EOF
            end: Ordinal to stop before; None reads to EOF
            callback: Called with every line of the slice once it completes

        Returns:
            LineStream of ``bytes`` lines without terminators
        """
        return LineStream(
            self.iter_lines(start, end),
            queue_size=self.config.queue_size,
            callback=callback,
        )

    async def get(self, line_index: int) -> bytes | None:
        """Return a single line, or None past the end of the file."""
        lines = await self.slice(line_index, line_index + 1).collect()
        return lines[0] if lines else None

    def follow(self, start: int | None = 0, end: int | None = None) -> FollowStream:
        """Stream ``slice(start, end)`` followed by every line appended later.

        Lines carry their ``b"\\n"`` terminator. Truncations are published
        as ``truncate`` signals on the returned stream.
        """
        return FollowStream(self, start, end)

    def reset_offsets(self) -> None:
        """Forget cached offsets, e.g. after the file was truncated."""
        logger.info(f"Resetting {len(self.index)} cached offsets for {self.path}")
        self.index.clear()
        self._snapshot = None


def open_file(
    path: str | PathLike[str],
    config: AccessorConfig | None = None,
    **options: Any,
) -> FileArray:
    """Create a FileArray and start opening it on the running loop.

    Args:
        path: File to open
        config: Base configuration; defaults to AccessorConfig()
        **options: Overrides such as ``buffer_size``, ``flags``, ``mode``, ``fd``

    Returns:
        The accessor; its operations wait for the open to complete
    """
    config = (config or AccessorConfig()).merged(options)
    accessor = FileArray(path, config)
    accessor._start_open()
    return accessor
