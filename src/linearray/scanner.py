"""Chunked forward and reverse line scanning.

Both scanners are async generators over a shared FileHandle. They read the
file in ``buffer_size`` chunks through ``read_chunks`` and locate line
terminators (``b"\\n"``) inside each chunk synchronously, recording every
terminator they fully observe in the OffsetIndex.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections import deque
from collections.abc import AsyncIterator
from contextlib import aclosing
from functools import partial

import aiofiles

from .config import AccessorConfig
from .errors import OpenError, ReadError
from .offset_index import OffsetIndex

logger = logging.getLogger(__name__)

TERMINATOR = b"\n"


def _opener(path: str, _flags: int, *, flags: int, mode: int) -> int:
    return os.open(path, flags, mode)


class FileHandle:
    """Open descriptor plus the settings used to scan it.

    Reads are positional: each ``read_at`` seeks then reads while holding a
    lock, so scans sharing the handle never observe each other's position.

    Attributes:
        path: Path of the file.
        flags: Flags the descriptor was opened with.
        mode: Permission bits used on open.
        buffer_size: Chunk size for scans.
    """

    def __init__(self, path: str, file, *, flags: int, mode: int, buffer_size: int):
        self.path = path
        self.flags = flags
        self.mode = mode
        self.buffer_size = buffer_size
        self._file = file
        self._lock = asyncio.Lock()
        self.closed = False

    @classmethod
    async def open(cls, path: str, config: AccessorConfig) -> FileHandle:
        """Open ``path`` (or adopt ``config.fd``) for unbuffered binary reads.

        Raises:
            OpenError: If the descriptor cannot be obtained
        """
        try:
            if config.fd is not None:
                file = await aiofiles.open(config.fd, "rb", buffering=0, closefd=True)
            else:
                file = await aiofiles.open(
                    path,
                    "rb",
                    buffering=0,
                    opener=partial(_opener, flags=config.flags, mode=config.mode),
                )
        except (OSError, ValueError) as e:
            raise OpenError(path, e) from e

        return cls(
            path,
            file,
            flags=config.flags,
            mode=config.mode,
            buffer_size=config.buffer_size,
        )

    def fileno(self) -> int:
        return self._file.fileno()

    async def read_at(self, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes starting at ``offset``.

        Raises:
            ReadError: On any I/O failure
        """
        async with self._lock:
            try:
                await self._file.seek(offset)
                return await self._file.read(size)
            except (OSError, ValueError) as e:
                raise ReadError(self.path, offset, e) from e

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        async with self._lock:
            await self._file.close()


async def read_chunks(
    handle: FileHandle,
    offset: int,
    *,
    reverse: bool = False,
    stop: int | None = None,
) -> AsyncIterator[tuple[int, bytes]]:
    """Yield ``(chunk_offset, data)`` pairs walking the file from ``offset``.

    Forward reads run from ``offset`` until EOF or ``stop``. Reverse reads
    cover ``[0, offset)`` from the end toward byte 0, each chunk ending where
    the previous one started.
    """
    size = handle.buffer_size
    if not reverse:
        pos = offset
        while stop is None or pos < stop:
            want = size if stop is None else min(size, stop - pos)
            data = await handle.read_at(pos, want)
            if not data:
                return
            yield pos, data
            pos += len(data)
        return

    pos = offset
    while pos > 0:
        start = max(0, pos - size)
        data = await handle.read_at(start, pos - start)
        if len(data) != pos - start:
            raise ReadError(
                handle.path, start, EOFError("file shrank during reverse scan")
            )
        yield start, data
        pos = start


async def scan_forward(
    handle: FileHandle,
    index: OffsetIndex,
    start: int = 0,
    end: int | None = None,
    stop: int | None = None,
) -> AsyncIterator[bytes]:
    """Yield lines ``start`` up to (excluding) ``end``, terminators stripped.

    ``end=None`` reads to EOF, or to byte ``stop`` when given. A final line
    without a terminator is still yielded.
    """
    if start < 0:
        raise ValueError(f"scan_forward() takes a non-negative start, got {start}")
    if end is not None and end <= start:
        return

    ordinal, offset = index.lookup(start)
    logger.debug(f"Forward scan of {handle.path} [{start}, {end}) from line {ordinal} @ {offset}")

    line = bytearray()
    async with aclosing(read_chunks(handle, offset, stop=stop)) as chunks:
        async for chunk_offset, chunk in chunks:
            pos = 0
            while True:
                i = chunk.find(TERMINATOR, pos)
                if i == -1:
                    if ordinal >= start:
                        line += chunk[pos:]
                    break
                if ordinal >= start:
                    line += chunk[pos:i]
                    yield bytes(line)
                    line.clear()
                ordinal += 1
                index.insert(ordinal, chunk_offset + i + 1)
                pos = i + 1
                if end is not None and ordinal >= end:
                    return

    if line:
        yield bytes(line)


async def scan_reverse(
    handle: FileHandle,
    index: OffsetIndex,
    size: int,
    start: int,
    end: int | None = None,
) -> AsyncIterator[bytes]:
    """Yield lines ``start`` up to (excluding) ``end`` counted from EOF.

    Ordinal -1 is the last line and 0 is one past it, so ``(-3, None)``
    yields the last three lines in file order. A trailing terminator at EOF
    closes the last line rather than starting an empty one. The scan stops
    at line ``start`` or at byte 0, whichever comes first; byte 0 always
    begins the first line, so a file starting with ``b"\\n"`` has an empty
    first line.

    Args:
        handle: Open file handle
        index: Offset cache, anchored to ``size`` by this call
        size: File size the ordinals are counted against
        start: First ordinal, negative
        end: Ordinal to stop before, <= 0 (None means 0)
    """
    end = 0 if end is None else end
    if start >= 0 or end > 0:
        raise ValueError(f"scan_reverse() takes negative bounds, got ({start}, {end})")
    if end <= start or size == 0:
        return

    index.anchor_reverse(size)
    ordinal, offset = index.lookup_reverse(end, size)
    if offset == 0:
        # Cached boundary is the first line; nothing precedes it
        return
    logger.debug(f"Reverse scan of {handle.path} [{start}, {end}) from line {ordinal} @ {offset}")

    window: deque[bytes] = deque()
    # Pieces of the line being assembled, nearest EOF first
    parts: list[bytes] = []
    first = True
    async with aclosing(read_chunks(handle, offset, reverse=True)) as chunks:
        async for chunk_offset, chunk in chunks:
            if first:
                first = False
                # The terminator just before the boundary closes the line above it
                if chunk.endswith(TERMINATOR):
                    chunk = chunk[:-1]
            stop = len(chunk)
            while True:
                i = chunk.rfind(TERMINATOR, 0, stop)
                if i == -1:
                    break
                ordinal -= 1
                index.insert(ordinal, chunk_offset + i + 1)
                if ordinal < end:
                    parts.append(chunk[i + 1:stop])
                    window.appendleft(b"".join(reversed(parts)))
                parts.clear()
                stop = i
                if ordinal <= start:
                    break
            if ordinal <= start:
                break
            if ordinal <= end:
                parts.append(chunk[:stop])
        else:
            # Reached byte 0: what is left is the first line of the file
            ordinal -= 1
            index.insert(ordinal, 0)
            if start <= ordinal < end:
                window.appendleft(b"".join(reversed(parts)))

    for line in window:
        yield line


async def find_line_start(handle: FileHandle, offset: int) -> int:
    """Offset just past the last terminator before ``offset``, or 0.

    Equals ``offset`` when the byte before it is a terminator. Only the
    unterminated fragment ending at ``offset`` is read.
    """
    async with aclosing(read_chunks(handle, offset, reverse=True)) as chunks:
        async for chunk_offset, chunk in chunks:
            i = chunk.rfind(TERMINATOR)
            if i != -1:
                return chunk_offset + i + 1
    return 0
