"""Unit tests for the pure order-key arithmetic."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from markops import ordering
from markops.errors import InvalidInputError


@dataclass
class _Row:
    name: str
    order_key: float
    seq: int


class TestAppendKey:
    def test_empty_lane(self) -> None:
        assert ordering.append_key([]) == 0.0

    def test_after_max_not_last(self) -> None:
        assert ordering.append_key([3.0, -1.0, 0.5]) == 4.0

    def test_accepts_generator(self) -> None:
        assert ordering.append_key(k for k in (0.0, 1.0)) == 2.0


class TestKeyForIndex:
    @pytest.mark.parametrize(
        ("remaining", "index", "expected"),
        [
            ([], 0, 0.0),
            ([], 7, 0.0),
            ([0.0, 1.0], 0, -1.0),
            ([0.0, 1.0], 2, 2.0),
            ([0.0, 1.0], 50, 2.0),
            ([0.0, 1.0, 2.0], 1, 0.5),
            ([0.0, 1.0, 2.0], 2, 1.5),
            ([-3.0, 10.0], 1, 3.5),
        ],
    )
    def test_midpoint_rule(self, remaining: list[float], index: int, expected: float) -> None:
        assert ordering.key_for_index(remaining, index) == expected

    def test_result_sorts_into_place(self) -> None:
        remaining = [0.0, 0.25, 0.5, 4.0]
        for index in range(len(remaining) + 1):
            key = ordering.key_for_index(remaining, index)
            placed = sorted([*remaining, key])
            assert placed.index(key) == index

    def test_negative_index(self) -> None:
        with pytest.raises(InvalidInputError, match=">= 0"):
            ordering.key_for_index([0.0], -1)


class TestSequentialKeys:
    def test_into_empty_lane(self) -> None:
        assert ordering.sequential_keys([], 3) == [0.0, 1.0, 2.0]

    def test_after_existing(self) -> None:
        assert ordering.sequential_keys([5.5], 2) == [6.5, 7.5]

    def test_zero(self) -> None:
        assert ordering.sequential_keys([1.0], 0) == []


class TestSorting:
    def test_ties_broken_by_seq(self) -> None:
        rows = [_Row("b", 1.0, 2), _Row("a", 1.0, 1), _Row("c", 0.0, 3)]
        assert [r.name for r in ordering.sorted_lane(rows)] == ["c", "a", "b"]

    def test_renormalized_keeps_order(self) -> None:
        rows = [_Row("x", 7.0, 1), _Row("y", -2.0, 2), _Row("z", 0.125, 3)]
        pairs = ordering.renormalized(rows)
        assert [(r.name, k) for r, k in pairs] == [("y", 0.0), ("z", 1.0), ("x", 2.0)]
