"""CalendarMixin: the content calendar view over the ``posts`` collection.

Posts are ordinary lane items whose lane is their status; a post is on the
calendar when its payload carries ``scheduled_at`` (epoch milliseconds).
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any

from markops.db_base import DBMixinProtocol
from markops.errors import InvalidInputError
from markops.lanes import validate_board

if TYPE_CHECKING:
    from markops.core import Item

logger = logging.getLogger(__name__)

POSTS = "posts"
BACKLOG_LANES = ("idea", "draft", "ready")
SCHEDULED_LANE = "scheduled"
UNSCHEDULED_LANE = "draft"


def _epoch_ms(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be epoch milliseconds (integer), got {value!r}"
        raise InvalidInputError(msg)
    return value


def scheduled_at(item: Item) -> int | None:
    value = item.payload.get("scheduled_at")
    return value if isinstance(value, int) and not isinstance(value, bool) else None


class CalendarMixin(DBMixinProtocol):
    """Scheduled-range and backlog queries plus schedule/unschedule for posts.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``MarkopsDB`` at composition time via MRO.
    """

    if TYPE_CHECKING:

        def transaction(self) -> AbstractContextManager[sqlite3.Connection]: ...

        def list_items(
            self,
            collection: str,
            *,
            partition: str | None = None,
            lane: str | None = None,
            tag_id: str | None = None,
        ) -> list[Item]: ...

        def list_by_lane(self, collection: str, lane: str, *, partition: str = "") -> list[Item]: ...

        def move_item(self, item_id: str, target_lane: str, target_index: int) -> Item: ...

        def update_item(self, item_id: str, payload: Mapping[str, Any], *, replace: bool = False) -> Item: ...

    def scheduled_posts(self, board: str, start: int, end: int) -> list[Item]:
        """Posts on *board* scheduled in ``[start, end)``, earliest first."""
        validate_board(board)
        start = _epoch_ms(start, "start")
        end = _epoch_ms(end, "end")
        if end < start:
            msg = f"end ({end}) is before start ({start})"
            raise InvalidInputError(msg)
        hits: list[tuple[int, int, Item]] = []
        for post in self.list_items(POSTS, partition=board):
            when = scheduled_at(post)
            if when is not None and start <= when < end:
                hits.append((when, post.seq, post))
        hits.sort(key=lambda h: (h[0], h[1]))
        return [post for _, _, post in hits]

    def backlog_posts(self, board: str) -> list[Item]:
        """Unscheduled idea/draft/ready posts on *board*, newest first."""
        validate_board(board)
        posts = [
            post
            for post in self.list_items(POSTS, partition=board)
            if post.lane in BACKLOG_LANES and scheduled_at(post) is None
        ]
        return sorted(posts, key=lambda p: p.seq, reverse=True)

    def schedule_post(self, post_id: str, when: int) -> Item:
        """Set ``scheduled_at`` and move the post to the end of the scheduled lane."""
        when = _epoch_ms(when, "scheduled_at")
        with self.transaction():
            post = self._require_post(post_id)
            self.update_item(post.id, {"scheduled_at": when})
            if post.lane != SCHEDULED_LANE:
                end = len(self.list_by_lane(POSTS, SCHEDULED_LANE, partition=post.partition))
                self.move_item(post.id, SCHEDULED_LANE, end)
        logger.debug("Scheduled %s at %d", post_id, when)
        return self.get_item(post_id)

    def unschedule_post(self, post_id: str) -> Item:
        """Clear ``scheduled_at`` and return the post to the end of the draft lane."""
        with self.transaction():
            post = self._require_post(post_id)
            self.update_item(post.id, {"scheduled_at": None})
            if post.lane != UNSCHEDULED_LANE:
                end = len(self.list_by_lane(POSTS, UNSCHEDULED_LANE, partition=post.partition))
                self.move_item(post.id, UNSCHEDULED_LANE, end)
        return self.get_item(post_id)

    def _require_post(self, post_id: str) -> Item:
        item = self.get_item(post_id)
        if item.collection != POSTS:
            msg = f"{post_id} is a {item.collection} item, not a post"
            raise InvalidInputError(msg)
        return item
