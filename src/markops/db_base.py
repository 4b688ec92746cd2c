"""Shared utilities, types, and Protocol for DB mixins."""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from markops.core import Item, Tag


def _now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class DBMixinProtocol(Protocol):
    """Shared attributes and methods that DB mixins access via self.

    Mixins inherit this Protocol so mypy can type-check self.conn,
    self.get_item(), etc. without ``type: ignore`` on every call.
    Actual implementations are provided by MarkopsDB at composition time.
    """

    db_path: Path
    prefix: str
    _conn: sqlite3.Connection | None

    @property
    def conn(self) -> sqlite3.Connection: ...

    def get_item(self, item_id: str) -> Item: ...

    def get_tag(self, tag_id: str) -> Tag: ...

    def _generate_unique_id(self, table: str, infix: str = "") -> str: ...
