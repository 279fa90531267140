"""Sparse memo of line ordinal -> byte offset.

Forward entries map a 0-based ordinal to the offset where that line starts;
ordinal 0 always maps to offset 0. Reverse entries map a negative ordinal
(-1 is the last line) to the start of that line, and are only valid for the
file size they were computed against.
"""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right, insort

logger = logging.getLogger(__name__)


class OffsetIndex:
    """Write-once cache of line start offsets.

    Entries are pure memoization: a scan records every terminator it fully
    observes and later scans start from the nearest known line instead of
    byte 0 (or EOF). An existing key is never overwritten.

    With ``max_entries`` set, an insert that pushes the cache past the bound
    thins the larger direction by dropping every other entry. Ordinal 0 and
    the entry nearest EOF survive thinning. A dropped key may be recorded
    again by a later scan; its value is the same as long as the file is
    unchanged.

    Attributes:
        max_entries: Upper bound on cached entries, None for unbounded.
    """

    def __init__(self, max_entries: int | None = None):
        if max_entries is not None and max_entries < 2:
            raise ValueError(f"max_entries must be at least 2, got {max_entries}")
        self.max_entries = max_entries
        self._forward: dict[int, int] = {0: 0}
        self._forward_keys: list[int] = [0]
        self._reverse: dict[int, int] = {}
        self._reverse_keys: list[int] = []
        self._reverse_anchor: int | None = None

    def __len__(self) -> int:
        return len(self._forward) + len(self._reverse)

    def __contains__(self, ordinal: int) -> bool:
        return ordinal in (self._forward if ordinal >= 0 else self._reverse)

    def get(self, ordinal: int) -> int | None:
        """Cached offset for exactly ``ordinal``, or None."""
        if ordinal >= 0:
            return self._forward.get(ordinal)
        return self._reverse.get(ordinal)

    def lookup(self, ordinal: int) -> tuple[int, int]:
        """Nearest cached (ordinal, offset) not past ``ordinal``.

        Args:
            ordinal: Non-negative line ordinal

        Returns:
            Tuple of (cached_ordinal, offset) with cached_ordinal <= ordinal
        """
        if ordinal < 0:
            raise ValueError(f"lookup() takes a non-negative ordinal, got {ordinal}")
        key = self._forward_keys[bisect_right(self._forward_keys, ordinal) - 1]
        return key, self._forward[key]

    def lookup_reverse(self, ordinal: int, size: int) -> tuple[int, int]:
        """Nearest cached (ordinal, offset) at or after ``ordinal``, counting from EOF.

        Args:
            ordinal: Line ordinal <= 0
            size: Current file size, returned as the offset of ordinal 0

        Returns:
            Tuple of (cached_ordinal, offset) with ordinal <= cached_ordinal <= 0
        """
        if ordinal > 0:
            raise ValueError(f"lookup_reverse() takes an ordinal <= 0, got {ordinal}")
        if self._reverse_anchor == size:
            i = bisect_left(self._reverse_keys, ordinal)
            if i < len(self._reverse_keys):
                key = self._reverse_keys[i]
                return key, self._reverse[key]
        return 0, size

    def anchor_reverse(self, size: int) -> None:
        """Bind negative entries to ``size``, dropping entries from another size."""
        if self._reverse_anchor == size:
            return
        if self._reverse:
            logger.debug(
                f"Discarding {len(self._reverse)} reverse offsets "
                f"(size {self._reverse_anchor} -> {size})"
            )
        self._reverse.clear()
        self._reverse_keys.clear()
        self._reverse_anchor = size

    def insert(self, ordinal: int, offset: int) -> bool:
        """Record the start offset of a line.

        Returns:
            True if the entry was added, False if the ordinal was already known
        """
        if offset < 0:
            raise ValueError(f"offset must not be negative, got {offset}")
        if ordinal >= 0:
            mapping, keys = self._forward, self._forward_keys
        else:
            if self._reverse_anchor is None:
                raise ValueError("anchor_reverse() must be called before negative inserts")
            mapping, keys = self._reverse, self._reverse_keys

        if ordinal in mapping:
            return False
        mapping[ordinal] = offset
        insort(keys, ordinal)

        if self.max_entries is not None and len(self) > self.max_entries:
            self._enforce_bound()
        return True

    def clear(self) -> None:
        """Drop every entry except ordinal 0."""
        self._forward = {0: 0}
        self._forward_keys = [0]
        self._reverse.clear()
        self._reverse_keys.clear()
        self._reverse_anchor = None

    def _enforce_bound(self) -> None:
        assert self.max_entries is not None
        while len(self) > self.max_entries:
            if len(self._forward) >= len(self._reverse):
                # Keep ordinal 0 and every second entry after it
                self._forward_keys = self._forward_keys[::2]
                self._forward = {k: self._forward[k] for k in self._forward_keys}
            else:
                # Keep the entry nearest EOF and every second entry before it
                self._reverse_keys = self._reverse_keys[::-1][::2][::-1]
                self._reverse = {k: self._reverse[k] for k in self._reverse_keys}
        logger.debug(
            f"Thinned offset index to {len(self)} entries (max {self.max_entries})"
        )
