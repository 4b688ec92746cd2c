"""Active campaign-tag selection shared between URL and local session state.

Resolution order on load: the URL ``campaign`` parameter (a tag *name*,
matched case-insensitively) if it names a known tag; else the persisted tag
*id* if that tag still exists; else no filter.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from markops.core import SESSION_FILENAME, write_atomic

if TYPE_CHECKING:
    from markops.core import Tag

logger = logging.getLogger(__name__)

URL_PARAM = "campaign"
_ACTIVE_KEY = "active_tag_id"


def resolve_active_tag(url_param: str | None, stored_id: str | None, known_tags: Iterable[Tag]) -> str | None:
    """Pick the active tag id from the URL name, then the stored id, else None."""
    tags = list(known_tags)
    if url_param is not None:
        wanted = url_param.strip().casefold()
        if wanted:
            for tag in tags:
                if tag.name.casefold() == wanted:
                    return tag.id
    if stored_id:
        for tag in tags:
            if tag.id == stored_id:
                return tag.id
    return None


def tag_url_param(tag: Tag | None) -> dict[str, str]:
    """Query parameters that share *tag* as the active filter (empty for none)."""
    if tag is None:
        return {}
    return {URL_PARAM: tag.name}


class SessionState:
    """Local persistent fallback for the active tag, kept in .markops/session.json."""

    def __init__(self, markops_dir: Path) -> None:
        self.path = markops_dir / SESSION_FILENAME

    def _read(self) -> dict[str, object]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    @property
    def active_tag_id(self) -> str | None:
        value = self._read().get(_ACTIVE_KEY)
        return value if isinstance(value, str) and value else None

    def set_active_tag(self, tag_id: str | None) -> None:
        data = self._read()
        if tag_id:
            data[_ACTIVE_KEY] = tag_id
        else:
            data.pop(_ACTIVE_KEY, None)
        write_atomic(self.path, json.dumps(data, indent=2) + "\n")

    def forget_if(self, tag_id: str) -> None:
        """Clear the fallback when it points at a tag being archived or deleted."""
        if self.active_tag_id == tag_id:
            self.set_active_tag(None)
