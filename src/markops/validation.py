"""Shared validation functions for all entry points.

Pure functions with no FastAPI or Click dependencies.
"""

from __future__ import annotations

import unicodedata
from typing import Any

_MAX_NAME_LENGTH = 80
_MAX_TITLE_LENGTH = 500
_MAX_AUTHOR_LENGTH = 128


def _check_clean(value: Any, what: str, max_length: int) -> tuple[str, str | None]:
    if not isinstance(value, str):
        return ("", f"{what} must be a string")
    # Control/format chars are checked before strip() so "\nbad" is rejected.
    for ch in value:
        cat = unicodedata.category(ch)
        if cat.startswith("C"):  # Cc (control) and Cf (format)
            return ("", f"{what} must not contain control characters (found U+{ord(ch):04X})")
    cleaned = value.strip()
    if not cleaned:
        return ("", f"{what} must not be empty")
    if len(cleaned) > max_length:
        return ("", f"{what} must be at most {max_length} characters")
    return (cleaned, None)


def sanitize_tag_name(value: Any) -> tuple[str, str | None]:
    """Validate and trim a campaign tag name.

    Returns (cleaned_name, None) on success or ("", error_message) on failure.
    """
    return _check_clean(value, "tag name", _MAX_NAME_LENGTH)


def sanitize_author(value: Any) -> tuple[str, str | None]:
    """Validate and clean a comment author / actor name."""
    return _check_clean(value, "author", _MAX_AUTHOR_LENGTH)


def sanitize_title(value: Any) -> tuple[str, str | None]:
    """Validate an item or doc title.

    Titles may contain newlines pasted from documents, so only emptiness,
    type and length are checked.
    """
    if not isinstance(value, str):
        return ("", "title must be a string")
    cleaned = value.strip()
    if not cleaned:
        return ("", "title must not be empty")
    if len(cleaned) > _MAX_TITLE_LENGTH:
        return ("", f"title must be at most {_MAX_TITLE_LENGTH} characters")
    return (cleaned, None)


def is_hex_color(value: Any) -> bool:
    if not isinstance(value, str) or len(value) not in (4, 7) or not value.startswith("#"):
        return False
    return all(c in "0123456789abcdefABCDEF" for c in value[1:])
