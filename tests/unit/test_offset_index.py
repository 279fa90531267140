"""Unit tests for OffsetIndex."""

import pytest

from linearray.offset_index import OffsetIndex


class TestForwardLookup:
    """Tests for non-negative ordinals."""

    def test_default_entry(self) -> None:
        """Test ordinal 0 always maps to offset 0."""
        index = OffsetIndex()

        assert index.lookup(0) == (0, 0)
        assert index.lookup(42) == (0, 0)
        assert len(index) == 1
        assert 0 in index

    def test_nearest_not_past(self) -> None:
        """Test lookup returns the closest entry at or before the ordinal."""
        index = OffsetIndex()
        index.insert(5, 50)
        index.insert(10, 100)

        assert index.lookup(4) == (0, 0)
        assert index.lookup(5) == (5, 50)
        assert index.lookup(9) == (5, 50)
        assert index.lookup(10) == (10, 100)
        assert index.lookup(1000) == (10, 100)

    def test_insert_is_write_once(self) -> None:
        """Test a second insert for the same ordinal is a no-op."""
        index = OffsetIndex()

        assert index.insert(3, 30) is True
        assert index.insert(3, 99) is False
        assert index.get(3) == 30

    def test_ordinal_zero_never_overwritten(self) -> None:
        """Test ordinal 0 keeps offset 0."""
        index = OffsetIndex()

        assert index.insert(0, 7) is False
        assert index.lookup(0) == (0, 0)

    def test_lookups_stable_after_insert(self) -> None:
        """Test an observed entry keeps resolving to the same offset."""
        index = OffsetIndex()
        index.insert(8, 80)
        for ordinal in (2, 20, 4, 16, 12):
            index.insert(ordinal, ordinal * 10)
            assert index.lookup(8) == (8, 80)

    def test_invalid_arguments(self) -> None:
        """Test negative lookups and offsets are rejected."""
        index = OffsetIndex()

        with pytest.raises(ValueError):
            index.lookup(-1)
        with pytest.raises(ValueError):
            index.insert(1, -5)


class TestReverseLookup:
    """Tests for negative ordinals anchored to a file size."""

    def test_requires_anchor(self) -> None:
        """Test negative inserts need an anchor size."""
        index = OffsetIndex()

        with pytest.raises(ValueError):
            index.insert(-1, 10)

    def test_default_is_eof(self) -> None:
        """Test an empty reverse map resolves to (0, size)."""
        index = OffsetIndex()
        index.anchor_reverse(100)

        assert index.lookup_reverse(-3, 100) == (0, 100)
        assert index.lookup_reverse(0, 100) == (0, 100)

    def test_nearest_at_or_after(self) -> None:
        """Test lookup returns the cached entry closest to the ordinal from the EOF side."""
        index = OffsetIndex()
        index.anchor_reverse(100)
        index.insert(-1, 90)
        index.insert(-5, 50)

        assert index.lookup_reverse(-1, 100) == (-1, 90)
        assert index.lookup_reverse(-3, 100) == (-1, 90)
        assert index.lookup_reverse(-5, 100) == (-5, 50)
        assert index.lookup_reverse(-7, 100) == (-5, 50)
        assert index.lookup_reverse(0, 100) == (0, 100)

    def test_other_size_ignores_entries(self) -> None:
        """Test entries computed for another size are not used."""
        index = OffsetIndex()
        index.anchor_reverse(100)
        index.insert(-1, 90)

        assert index.lookup_reverse(-1, 120) == (0, 120)

    def test_reanchor_discards_entries(self) -> None:
        """Test anchoring to a new size drops the old negative entries."""
        index = OffsetIndex()
        index.anchor_reverse(100)
        index.insert(-1, 90)
        index.insert(4, 40)

        index.anchor_reverse(120)

        assert -1 not in index
        assert index.get(4) == 40
        index.insert(-1, 110)
        assert index.lookup_reverse(-1, 120) == (-1, 110)

    def test_positive_reverse_lookup_rejected(self) -> None:
        """Test lookup_reverse only takes ordinals <= 0."""
        with pytest.raises(ValueError):
            OffsetIndex().lookup_reverse(1, 10)


class TestBoundedIndex:
    """Tests for the max_entries thinning policy."""

    def test_bound_is_enforced(self) -> None:
        """Test the cache never grows past max_entries."""
        index = OffsetIndex(max_entries=4)

        for ordinal in range(1, 50):
            index.insert(ordinal, ordinal * 10)
            assert len(index) <= 4
            assert index.lookup(0) == (0, 0)

    def test_thinned_entries_stay_correct(self) -> None:
        """Test surviving entries keep their offsets."""
        index = OffsetIndex(max_entries=5)
        for ordinal in range(1, 30):
            index.insert(ordinal, ordinal * 10)

        for ordinal in range(30):
            key, offset = index.lookup(ordinal)
            assert key <= ordinal
            assert offset == key * 10

    def test_reverse_thinning_keeps_entry_nearest_eof(self) -> None:
        """Test reverse thinning preserves the entry closest to EOF."""
        index = OffsetIndex(max_entries=3)
        index.anchor_reverse(1000)
        for k in range(1, 10):
            index.insert(-k, 1000 - k * 10)

        assert len(index) <= 3
        assert index.get(-1) == 990

    def test_thinned_key_can_be_recorded_again(self) -> None:
        """Test a dropped ordinal may be inserted again."""
        index = OffsetIndex(max_entries=2)
        index.insert(1, 10)
        index.insert(2, 20)

        assert 1 not in index
        assert index.insert(1, 10) is True

    def test_minimum_bound(self) -> None:
        """Test bounds below 2 are rejected."""
        with pytest.raises(ValueError):
            OffsetIndex(max_entries=1)


def test_clear_keeps_origin() -> None:
    """Test clear() leaves only ordinal 0."""
    index = OffsetIndex()
    index.insert(3, 30)
    index.anchor_reverse(50)
    index.insert(-1, 40)

    index.clear()

    assert len(index) == 1
    assert index.lookup(3) == (0, 0)
    with pytest.raises(ValueError):
        index.insert(-1, 40)
