"""Random-access line reading for a single text file.

This package provides line-addressed access to a file: single lines by
ordinal, streams of contiguous line ranges (counted from the start or from
EOF), and a follow mode that keeps delivering appended lines and reports
truncation.

Key Components:
    - accessor: FileArray and open_file(), the public entry points
    - offset_index: Sparse ordinal -> byte offset cache
    - scanner: Forward and reverse chunked line scanning
    - stream: Queue-backed async line streams
    - follow: Follow streams with growth and truncation handling
    - watcher: Polling file change notification
    - config: AccessorConfig and YAML loading

Example:
    >>> from linearray import open_file
    >>> async def main():
    ...     async with open_file("/usr/share/dict/words") as words:
    ...         print(await words.get(100))
    ...         async for line in words.slice(104, 108):
    ...             print(line)
"""

from __future__ import annotations

from .accessor import FileArray, open_file
from .config import AccessorConfig, load_config
from .errors import (
    AccessorClosedError,
    ConfigError,
    LineArrayError,
    OpenError,
    ReadError,
    StatError,
)
from .follow import FollowStream, LineSplitter
from .models import FollowState, Signal, StatSnapshot
from .offset_index import OffsetIndex
from .signals import SignalBus
from .stream import LineStream

__all__ = [
    "AccessorClosedError",
    "AccessorConfig",
    "ConfigError",
    "FileArray",
    "FollowState",
    "FollowStream",
    "LineArrayError",
    "LineSplitter",
    "LineStream",
    "OffsetIndex",
    "OpenError",
    "ReadError",
    "Signal",
    "SignalBus",
    "StatError",
    "StatSnapshot",
    "load_config",
    "open_file",
]

__version__ = "0.1.0"
