"""
Processed Ranges

An immutable set of half-open character intervals [start, end).

The table-anchored item scan records every span it consumed so that a later
anchor cannot re-read the same price tokens. The set is a value: `add()`
returns a new instance and the scan hands the final set back to its caller,
so two extraction calls never share state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

Interval = Tuple[int, int]


@dataclass(frozen=True)
class ProcessedRanges:
    """
    Sorted, non-overlapping intervals.

    Usage:
        ranges = ProcessedRanges()
        ranges = ranges.add(10, 40)
        ranges.overlaps(35, 50)   # True
        ranges.contains(9)        # False
    """

    intervals: Tuple[Interval, ...] = ()

    def add(self, start: int, end: int) -> 'ProcessedRanges':
        """Return a new set that also covers [start, end)."""
        if end <= start:
            return self

        merged = []
        for lo, hi in self.intervals:
            if hi < start or lo > end:
                merged.append((lo, hi))
            else:
                start, end = min(start, lo), max(end, hi)
        merged.append((start, end))
        merged.sort()
        return ProcessedRanges(tuple(merged))

    def overlaps(self, start: int, end: int) -> bool:
        """True if [start, end) shares at least one position with the set."""
        return any(lo < end and start < hi for lo, hi in self.intervals)

    def contains(self, position: int) -> bool:
        return any(lo <= position < hi for lo, hi in self.intervals)

    @property
    def covered(self) -> int:
        """Number of positions covered."""
        return sum(hi - lo for lo, hi in self.intervals)

    def __iter__(self) -> Iterator[Interval]:
        return iter(self.intervals)

    def __len__(self) -> int:
        return len(self.intervals)

    def __bool__(self) -> bool:
        return bool(self.intervals)
