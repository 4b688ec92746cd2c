"""CLI tests for the ``markops tag`` group."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from markops.cli import cli
from tests.cli.conftest import _extract_id


def _tag_id(runner: CliRunner, name: str) -> str:
    result = runner.invoke(cli, ["tag", "create", name, "--json"])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)["id"]


class TestTagCrud:
    def test_create_and_list(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["tag", "create", "Spring Launch", "--color", "#f0a"])
        assert "Spring Launch (#f0a)" in result.output
        listed = runner.invoke(cli, ["tag", "list"])
        assert "Spring Launch  [0]" in listed.output

    def test_list_empty(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        assert runner.invoke(cli, ["tag", "list"]).output.strip() == "No tags."

    def test_duplicate_name(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring Launch")
        result = runner.invoke(cli, ["tag", "create", "SPRING LAUNCH", "--json"])
        assert result.exit_code == 1
        assert "error" in json.loads(result.output)

    def test_update_by_name(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring")
        result = runner.invoke(cli, ["tag", "update", "spring", "--name", "Spring Launch", "--json"])
        assert json.loads(result.output)["name"] == "Spring Launch"

    def test_archive_and_restore(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        tag_id = _tag_id(runner, "Old")
        assert "Archived tag Old" in runner.invoke(cli, ["tag", "archive", tag_id]).output
        active = json.loads(runner.invoke(cli, ["tag", "list", "--active-only", "--json"]).output)
        assert active == []
        assert "Restored tag Old" in runner.invoke(cli, ["tag", "archive", tag_id, "--restore"]).output

    def test_delete_cascades(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        tag_id = _tag_id(runner, "Spring")
        item_id = _extract_id(runner.invoke(cli, ["add", "A", "-t", "Spring"]).output)
        result = runner.invoke(cli, ["tag", "delete", tag_id, "--json"])
        assert json.loads(result.output) == {"deleted": tag_id, "associations_removed": 1}
        assert "Tags:" not in runner.invoke(cli, ["show", item_id]).output

    def test_unknown_ref(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["tag", "delete", "nope"])
        assert result.exit_code == 1
        assert "tag not found: nope" in result.output


class TestAssociations:
    def test_add_is_idempotent(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring")
        item_id = _extract_id(runner.invoke(cli, ["add", "A"]).output)
        assert "Tagged" in runner.invoke(cli, ["tag", "add", item_id, "Spring"]).output
        assert "already tagged" in runner.invoke(cli, ["tag", "add", item_id, "Spring"]).output

    def test_add_unknown_item(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring")
        result = runner.invoke(cli, ["tag", "add", "test-nope", "Spring"])
        assert result.exit_code == 1

    def test_remove_absent(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring")
        item_id = _extract_id(runner.invoke(cli, ["add", "A"]).output)
        result = runner.invoke(cli, ["tag", "remove", item_id, "Spring"])
        assert result.exit_code == 0
        assert "was not tagged" in result.output

    def test_toggle(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring")
        item_id = _extract_id(runner.invoke(cli, ["add", "A"]).output)
        first = json.loads(runner.invoke(cli, ["tag", "toggle", item_id, "Spring", "--json"]).output)
        second = json.loads(runner.invoke(cli, ["tag", "toggle", item_id, "Spring", "--json"]).output)
        assert (first["tagged"], second["tagged"]) == (True, False)


class TestActiveTag:
    def test_use_filters_lane(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring Launch")
        a = _extract_id(runner.invoke(cli, ["add", "A", "-t", "Spring Launch"]).output)
        _extract_id(runner.invoke(cli, ["add", "B"]).output)
        runner.invoke(cli, ["tag", "use", "Spring Launch"])
        result = runner.invoke(cli, ["lane", "inbox"])
        assert result.output.splitlines()[0] == "inbox (1)  [tag: Spring Launch]"
        assert a in result.output
        everything = json.loads(runner.invoke(cli, ["lane", "inbox", "--all", "--json"]).output)
        assert len(everything) == 2

    def test_unknown_explicit_tag_fails_while_another_is_active(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring Launch")
        runner.invoke(cli, ["add", "A", "-t", "Spring Launch"])
        runner.invoke(cli, ["tag", "use", "Spring Launch"])
        result = runner.invoke(cli, ["lane", "inbox", "--tag", "Nope"])
        assert result.exit_code == 1
        assert "tag not found: Nope" in result.output

    def test_explicit_tag_applies_with_all(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring")
        _tag_id(runner, "Brand")
        b = _extract_id(runner.invoke(cli, ["add", "B", "-t", "Brand"]).output)
        runner.invoke(cli, ["add", "S", "-t", "Spring"])
        runner.invoke(cli, ["tag", "use", "Spring"])
        listed = json.loads(runner.invoke(cli, ["lane", "inbox", "--all", "--tag", "brand", "--json"]).output)
        assert [i["id"] for i in listed] == [b]

    def test_use_shows_share_param(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring Launch")
        runner.invoke(cli, ["tag", "use", "Spring Launch"])
        result = runner.invoke(cli, ["tag", "use"])
        assert "?campaign=Spring+Launch" in result.output

    def test_clear(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        _tag_id(runner, "Spring")
        runner.invoke(cli, ["tag", "use", "Spring"])
        runner.invoke(cli, ["tag", "use", "--clear"])
        assert "No active tag" in runner.invoke(cli, ["tag", "use"]).output

    def test_archived_tag_rejected(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        tag_id = _tag_id(runner, "Old")
        runner.invoke(cli, ["tag", "archive", tag_id])
        result = runner.invoke(cli, ["tag", "use", "Old"])
        assert result.exit_code == 1
        assert "tag is archived: Old" in result.output

    def test_archiving_active_tag_clears_it(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, project = cli_in_project
        tag_id = _tag_id(runner, "Spring")
        runner.invoke(cli, ["tag", "use", "Spring"])
        runner.invoke(cli, ["tag", "archive", tag_id])
        session = json.loads((project / ".markops" / "session.json").read_text())
        assert "active_tag_id" not in session
