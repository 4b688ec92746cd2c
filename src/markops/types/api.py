"""TypedDicts for dashboard route and reactive query responses."""

from __future__ import annotations

from typing import Any, TypedDict

from markops.types.core import DocDict, ItemDict


class SearchResult(TypedDict):
    """Bounded per-collection matches returned by the global search."""

    cards: list[ItemDict]
    docs: list[DocDict]


class ErrorBody(TypedDict):
    message: str
    code: str
    details: dict[str, Any]


class ErrorEnvelope(TypedDict):
    """Standard error envelope returned by dashboard error paths."""

    error: ErrorBody
