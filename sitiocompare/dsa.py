"""
DSA utilities
=============

Small, explicit algorithm primitives used by the comparison engine.

Included:
- Merge Sort (stable in both directions, O(n log n)); used for ranking and
  multi-key sitio ordering where equal values must keep their input order.
- Floor search on a sorted list (binary search via `bisect`); used to find the
  latest available survey year at or before a requested year.
"""

from __future__ import annotations
from bisect import bisect_right
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


def merge_sort(arr: List[T], key: Callable[[T], object] = lambda x: x, reverse: bool = False) -> List[T]:
    """Stable merge sort. Equal keys keep their relative order even when reversed.

    Each key is computed once.
    """
    keyed = [(key(x), x) for x in arr]
    return [x for _, x in _sort_keyed(keyed, reverse)]


def _sort_keyed(items: List[Tuple[object, T]], reverse: bool) -> List[Tuple[object, T]]:
    if len(items) <= 1:
        return items[:]
    mid = len(items) // 2
    left = _sort_keyed(items[:mid], reverse)
    right = _sort_keyed(items[mid:], reverse)

    merged: List[Tuple[object, T]] = []
    li = ri = 0
    while li < len(left) and ri < len(right):
        # ties go to the left run, which is what keeps the sort stable
        if (left[li][0] >= right[ri][0]) if reverse else (left[li][0] <= right[ri][0]):
            merged.append(left[li])
            li += 1
        else:
            merged.append(right[ri])
            ri += 1
    return merged + left[li:] + right[ri:]


def floor_value(sorted_values: Sequence[int], target: int) -> Optional[int]:
    """Largest value <= target in an ascending sequence, or None."""
    pos = bisect_right(sorted_values, target)
    if pos == 0:
        return None
    return sorted_values[pos - 1]
