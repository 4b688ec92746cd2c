"""Unit tests for shared input validation."""

from __future__ import annotations

import pytest

from markops.validation import is_hex_color, sanitize_author, sanitize_tag_name, sanitize_title


class TestSanitizeTagName:
    def test_trims(self) -> None:
        assert sanitize_tag_name("  Launch ") == ("Launch", None)

    @pytest.mark.parametrize("value", ["", "   ", None, 5])
    def test_rejects_blank_or_non_string(self, value: object) -> None:
        cleaned, err = sanitize_tag_name(value)
        assert cleaned == ""
        assert err is not None

    def test_rejects_control_characters(self) -> None:
        _, err = sanitize_tag_name("bad\nname")
        assert err is not None
        assert "U+000A" in err

    def test_rejects_overlong(self) -> None:
        _, err = sanitize_tag_name("x" * 81)
        assert err == "tag name must be at most 80 characters"


class TestSanitizeTitle:
    def test_allows_newlines(self) -> None:
        assert sanitize_title(" line one\nline two ") == ("line one\nline two", None)

    def test_rejects_overlong(self) -> None:
        assert sanitize_title("x" * 501)[1] is not None


class TestSanitizeAuthor:
    def test_ok(self) -> None:
        assert sanitize_author("maya") == ("maya", None)

    def test_format_characters_rejected(self) -> None:
        assert sanitize_author("ma\u200bya")[1] is not None


@pytest.mark.parametrize(
    ("value", "ok"),
    [("#abc", True), ("#A1B2C3", True), ("abc", False), ("#abcd", False), ("#ggg", False), (None, False)],
)
def test_is_hex_color(value: object, ok: bool) -> None:
    assert is_hex_color(value) is ok
