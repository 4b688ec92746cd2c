"""Unit tests for active-tag resolution and the session fallback."""

from __future__ import annotations

from pathlib import Path

from markops.core import Tag
from markops.selection import SessionState, resolve_active_tag, tag_url_param

LAUNCH = Tag(id="mk-tag-1", name="Spring Launch", color="#3B82F6")
BRAND = Tag(id="mk-tag-2", name="Brand", color="#EF4444")
TAGS = [LAUNCH, BRAND]


class TestResolveActiveTag:
    def test_url_name_wins_over_stored(self) -> None:
        assert resolve_active_tag("brand", LAUNCH.id, TAGS) == BRAND.id

    def test_url_name_is_trimmed_and_case_insensitive(self) -> None:
        assert resolve_active_tag("  SPRING launch ", None, TAGS) == LAUNCH.id

    def test_url_name_folds_non_ascii_case(self) -> None:
        summer = Tag(id="mk-tag-3", name="Été", color="#22C55E")
        assert resolve_active_tag("ÉTÉ", None, [*TAGS, summer]) == summer.id
        assert resolve_active_tag("STRASSE", None, [Tag(id="mk-tag-4", name="Straße", color="#000")]) == "mk-tag-4"

    def test_unknown_url_name_falls_back_to_stored(self) -> None:
        assert resolve_active_tag("nope", BRAND.id, TAGS) == BRAND.id

    def test_stale_stored_id_ignored(self) -> None:
        assert resolve_active_tag(None, "mk-tag-deleted", TAGS) is None

    def test_nothing(self) -> None:
        assert resolve_active_tag(None, None, TAGS) is None
        assert resolve_active_tag("", None, []) is None

    def test_known_tags_may_be_a_generator(self) -> None:
        assert resolve_active_tag(None, BRAND.id, (t for t in TAGS)) == BRAND.id


def test_tag_url_param() -> None:
    assert tag_url_param(LAUNCH) == {"campaign": "Spring Launch"}
    assert tag_url_param(None) == {}


class TestSessionState:
    def test_roundtrip(self, tmp_path: Path) -> None:
        session = SessionState(tmp_path)
        assert session.active_tag_id is None
        session.set_active_tag(LAUNCH.id)
        assert SessionState(tmp_path).active_tag_id == LAUNCH.id

    def test_clear(self, tmp_path: Path) -> None:
        session = SessionState(tmp_path)
        session.set_active_tag(LAUNCH.id)
        session.set_active_tag(None)
        assert session.active_tag_id is None

    def test_forget_if_only_matching(self, tmp_path: Path) -> None:
        session = SessionState(tmp_path)
        session.set_active_tag(LAUNCH.id)
        session.forget_if(BRAND.id)
        assert session.active_tag_id == LAUNCH.id
        session.forget_if(LAUNCH.id)
        assert session.active_tag_id is None

    def test_corrupt_file_treated_as_empty(self, tmp_path: Path) -> None:
        (tmp_path / "session.json").write_text("{not json")
        assert SessionState(tmp_path).active_tag_id is None
