"""Data models for line-addressed file access.

This module defines the small value types shared across the package: stat
snapshots used for growth and truncation detection, broadcast signals, and the
follow state machine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class FollowState(str, Enum):
    """Lifecycle of a follow stream.

    Attributes:
        INITIAL_SLICE: Delivering the requested range before watching starts.
        WATCHING: Waiting for change notifications.
        GROWING: Reading bytes appended since the last snapshot.
        CLOSED: Watching stopped, no further output.
    """

    INITIAL_SLICE = "initial_slice"
    WATCHING = "watching"
    GROWING = "growing"
    CLOSED = "closed"


@dataclass(frozen=True)
class StatSnapshot:
    """Point-in-time view of a file's size and timestamps.

    Attributes:
        size: File size in bytes.
        mtime_ns: Modification time in nanoseconds.
        ctime_ns: Status change time in nanoseconds.
        inode: Inode number (0 where the platform does not report one).
    """

    size: int
    mtime_ns: int
    ctime_ns: int
    inode: int = 0

    @classmethod
    def from_stat(cls, st: os.stat_result) -> StatSnapshot:
        return cls(
            size=st.st_size,
            mtime_ns=st.st_mtime_ns,
            ctime_ns=st.st_ctime_ns,
            inode=st.st_ino,
        )

    def changed_from(self, other: StatSnapshot | None) -> bool:
        """True if size or modification time differ from ``other``."""
        if other is None:
            return True
        return self.size != other.size or self.mtime_ns != other.mtime_ns


@dataclass(frozen=True)
class Signal:
    """Immutable notification published on a SignalBus.

    Attributes:
        name: Signal name (e.g., "open", "close", "truncate")
        source: Origin of the signal, usually the file path
        data: Signal-specific payload
        timestamp: When the signal was created
    """

    name: str
    source: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


class SignalHandler(Protocol):
    """Callable that receives a published Signal."""

    def __call__(self, signal: Signal) -> None: ...


# Signals published by a FileArray accessor
ACCESSOR_SIGNALS: dict[str, str] = {
    "open": "Descriptor obtained; data['fd'] holds it",
    "error": "Descriptor could not be obtained; data['error'] holds the OpenError",
    "stat": "Stat snapshot refreshed; data['snapshot'] holds it",
    "close": "Descriptor released",
}

# Signals published by a follow stream
FOLLOW_SIGNALS: dict[str, str] = {
    "truncate": "File shrank; data['delta'] is the number of bytes removed",
    "error": "Follow failed; data['error'] holds the exception",
    "close": "Follow stream ended",
}
