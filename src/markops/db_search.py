"""SearchMixin: bounded substring search over cards and docs.

A deliberate linear scan: no index structure, no relevance ranking. Results
keep each collection's natural order (creation order for cards, most
recently updated first for docs) and are capped per collection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from markops.db_base import DBMixinProtocol
from markops.lanes import BOARDS, get_collection
from markops.types.api import SearchResult

if TYPE_CHECKING:
    from markops.core import Doc, Item

SEARCH_LIMIT = 8
MIN_QUERY_LENGTH = 2
DOC_SEARCH_FIELDS = ("title", "path", "content")


def normalize_query(query: str) -> str:
    return query.strip().lower() if isinstance(query, str) else ""


def _contains(values: list[Any], needle: str) -> bool:
    return any(isinstance(v, str) and needle in v.lower() for v in values)


class SearchMixin(DBMixinProtocol):
    """Global search across the card and doc collections of one partition."""

    if TYPE_CHECKING:

        def list_items(
            self,
            collection: str,
            *,
            partition: str | None = None,
            lane: str | None = None,
            tag_id: str | None = None,
        ) -> list[Item]: ...

        def list_docs(self, board: str) -> list[Doc]: ...

    def search(self, query: str, partition: str, *, limit: int = SEARCH_LIMIT) -> SearchResult:
        needle = normalize_query(query)
        if len(needle) < MIN_QUERY_LENGTH:
            return SearchResult(cards=[], docs=[])

        card_fields = get_collection("cards").search_fields
        cards = [
            item.to_dict()
            for item in self._cards_in_creation_order(partition)
            if _contains([item.payload.get(f) for f in card_fields], needle)
        ][:limit]
        docs = [
            doc.to_dict()
            for doc in (self.list_docs(partition) if partition in BOARDS else [])
            if _contains([getattr(doc, f) for f in DOC_SEARCH_FIELDS], needle)
        ][:limit]
        return SearchResult(cards=cards, docs=docs)

    def _cards_in_creation_order(self, partition: str) -> list[Item]:
        # Order keys only compare within one lane; rowid spans the whole board.
        return sorted(self.list_items("cards", partition=partition), key=lambda i: i.seq)
