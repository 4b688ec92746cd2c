"""CLI tests for docs, tools, comments, search, parse and dashboard wiring."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import httpx
import pytest
from click.testing import CliRunner

from markops.cli import cli
from markops.parsing import DocumentParser
from tests.cli.conftest import _extract_id

RECORDS = [
    {"title": "Write launch email", "description": "Draft it.", "priority": "high", "assignee": "maya"},
    {"title": "Schedule tweets", "description": "", "priority": "medium", "assignee": "leo"},
]


def _use_parser(monkeypatch: pytest.MonkeyPatch, handler: Any) -> None:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    parser = DocumentParser("sk-test", client=client)
    monkeypatch.setattr(DocumentParser, "from_config", classmethod(lambda cls, *args, **kwargs: parser))


def _reply(content: str) -> Any:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    return handler


class TestDocs:
    def test_put_show_list_rm(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, project = cli_in_project
        brief = project / "spring.md"
        brief.write_text("Launch plan for spring")
        result = runner.invoke(cli, ["doc", "put", "briefs/spring.md", "--file", str(brief), "--json"])
        assert result.exit_code == 0, result.output
        doc = json.loads(result.output)
        assert doc["title"] == "spring"
        shown = runner.invoke(cli, ["doc", "show", "briefs/spring.md"])
        assert "Launch plan for spring" in shown.output
        assert doc["id"] in runner.invoke(cli, ["doc", "list"]).output
        assert runner.invoke(cli, ["doc", "rm", doc["id"]]).exit_code == 0
        assert runner.invoke(cli, ["doc", "show", doc["id"]]).exit_code == 1

    def test_put_links_item(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        item_id = _extract_id(runner.invoke(cli, ["add", "Launch email"]).output)
        runner.invoke(cli, ["doc", "put", "emails/launch.md", "--content", "Hi", "--item", item_id])
        assert "Doc:        emails/launch.md" in runner.invoke(cli, ["show", item_id]).output

    def test_put_file_and_content(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, project = cli_in_project
        f = project / "x.md"
        f.write_text("x")
        result = runner.invoke(cli, ["doc", "put", "x.md", "--file", str(f), "--content", "y"])
        assert result.exit_code == 1


class TestTools:
    def test_add_update_list_rm(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["tool", "add", "Plausible", "--category", "analytics", "--cost", "$9", "--json"])
        tool_id = json.loads(result.output)["id"]
        assert "(trial)" in runner.invoke(cli, ["tool", "update", tool_id, "--status", "trial"]).output
        listed = json.loads(runner.invoke(cli, ["tool", "list", "--status", "trial", "--json"]).output)
        assert [t["name"] for t in listed] == ["Plausible"]
        assert runner.invoke(cli, ["tool", "rm", tool_id]).exit_code == 0
        assert runner.invoke(cli, ["tool", "rm", tool_id]).exit_code == 1


class TestComments:
    def test_add_and_list(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        item_id = _extract_id(runner.invoke(cli, ["add", "A"]).output)
        runner.invoke(cli, ["comment", "add", item_id, "Needs a hook"])
        runner.invoke(cli, ["comment", "add", item_id, "Added one", "--author", "writer-bot", "--role", "agent"])
        result = runner.invoke(cli, ["comment", "list", item_id])
        assert result.output.splitlines() == ["[cli/human] Needs a hook", "[writer-bot/agent] Added one"]

    def test_empty_comment(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        item_id = _extract_id(runner.invoke(cli, ["add", "A"]).output)
        result = runner.invoke(cli, ["comment", "add", item_id, "   "])
        assert result.exit_code == 1


class TestSearch:
    def test_matches(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        item_id = _extract_id(runner.invoke(cli, ["add", "Landing page", "-d", "Hero + FAQ"]).output)
        result = runner.invoke(cli, ["search", "faq"])
        assert item_id in result.output
        assert result.output.startswith("card")

    def test_no_matches(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        assert runner.invoke(cli, ["search", "x"]).output.strip() == "No matches."


class TestParse:
    def test_creates_cards(self, cli_in_project: tuple[CliRunner, Path], monkeypatch: pytest.MonkeyPatch) -> None:
        runner, project = cli_in_project
        _use_parser(monkeypatch, _reply(json.dumps(RECORDS)))
        source = project / "brief.html"
        source.write_text("<p>Spring launch: email and tweets next week.</p>")
        result = runner.invoke(cli, ["parse", str(source)])
        assert result.exit_code == 0, result.output
        assert "Created 2 card(s) in inbox" in result.output
        lane = json.loads(runner.invoke(cli, ["lane", "inbox", "--json"]).output)
        assert [i["payload"]["assignee"] for i in lane] == ["maya", "leo"]

    def test_dry_run(self, cli_in_project: tuple[CliRunner, Path], monkeypatch: pytest.MonkeyPatch) -> None:
        runner, project = cli_in_project
        _use_parser(monkeypatch, _reply(json.dumps(RECORDS)))
        source = project / "brief.txt"
        source.write_text("Spring launch: email and tweets next week.")
        result = runner.invoke(cli, ["parse", str(source), "--dry-run"])
        assert "[high] @maya Write launch email" in result.output
        assert json.loads(runner.invoke(cli, ["lane", "inbox", "--json"]).output) == []

    def test_upstream_failure(self, cli_in_project: tuple[CliRunner, Path], monkeypatch: pytest.MonkeyPatch) -> None:
        runner, project = cli_in_project
        _use_parser(monkeypatch, _reply("no tasks here"))
        source = project / "brief.txt"
        source.write_text("Spring launch: email and tweets next week.")
        result = runner.invoke(cli, ["parse", str(source), "--json"])
        assert result.exit_code == 1
        assert json.loads(result.output) == {"error": "Could not extract JSON from response"}


class TestDashboardCommand:
    def test_passes_options(self, cli_runner: CliRunner) -> None:
        with patch("markops.dashboard.main") as mock_main:
            result = cli_runner.invoke(cli, ["dashboard", "--port", "9000", "--no-browser"])
        assert result.exit_code == 0
        mock_main.assert_called_once_with(port=9000, no_browser=True)

    def test_no_project(self, cli_runner: CliRunner) -> None:
        with patch("markops.dashboard.main", side_effect=FileNotFoundError("No .markops/ directory found")):
            result = cli_runner.invoke(cli, ["dashboard"])
        assert result.exit_code == 1
        assert "No .markops/ directory found" in result.output
