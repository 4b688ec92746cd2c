"""Fractional order keys for lane-ordered collections.

Every item carries a float ``order_key`` that is only meaningful relative to
the other items in its lane. Inserting or moving an item computes one new key
from its neighbours, so no sibling is ever rewritten. Ties are legal and are
broken by the insertion sequence (SQLite ``rowid``).

Repeated bisection of the same gap eventually exhausts double precision.
``renormalized`` is the out-of-band maintenance pass for that case; it is
never invoked from a move.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar

from markops.errors import InvalidInputError


class Ordered(Protocol):
    @property
    def order_key(self) -> float: ...

    @property
    def seq(self) -> int: ...


T = TypeVar("T", bound=Ordered)


def sort_key(item: Ordered) -> tuple[float, int]:
    return (item.order_key, item.seq)


def sorted_lane(items: Iterable[T]) -> list[T]:
    """Sort by order key, ties broken by insertion sequence."""
    return sorted(items, key=sort_key)


def append_key(keys: Iterable[float]) -> float:
    """Key strictly greater than every existing key, or 0 for an empty lane."""
    current = list(keys)
    if not current:
        return 0.0
    return max(current) + 1.0


def key_for_index(remaining: Sequence[float], target_index: int) -> float:
    """Key that places an item at *target_index* among *remaining* keys.

    *remaining* must be sorted ascending and must not include the item being
    moved.
    """
    if target_index < 0:
        msg = f"target index must be >= 0, got {target_index}"
        raise InvalidInputError(msg)
    if not remaining:
        return 0.0
    if target_index == 0:
        return remaining[0] - 1.0
    if target_index >= len(remaining):
        return remaining[-1] + 1.0
    return (remaining[target_index - 1] + remaining[target_index]) / 2.0


def sequential_keys(existing: Iterable[float], count: int) -> list[float]:
    """*count* strictly increasing keys appended after *existing*."""
    first = append_key(existing)
    return [first + float(i) for i in range(count)]


def renormalized(items: Iterable[T]) -> list[tuple[T, float]]:
    """Pair each item of a lane with its dense integer key ``0..n-1``."""
    return [(item, float(i)) for i, item in enumerate(sorted_lane(items))]
