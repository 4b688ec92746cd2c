"""CLI commands that span collections: search and document parsing."""

from __future__ import annotations

from pathlib import Path

import click

from markops.cli_common import default_board, echo_json, error_message, fail, get_db
from markops.core import find_markops_root
from markops.errors import TransportError, UpstreamError
from markops.lanes import CARD_LANES


@click.command()
@click.argument("query")
@click.option("--board", "-b", default=None, help="Board (default from config)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def search(query: str, board: str | None, as_json: bool) -> None:
    """Search card and doc text (at least 2 characters)."""
    with get_db() as db:
        result = db.search(query, board or default_board())
        if as_json:
            echo_json(result)
            return
        if not result["cards"] and not result["docs"]:
            click.echo("No matches.")
            return
        for card in result["cards"]:
            click.echo(f"card  {card['id']:<18} [{card['lane']}] {card['payload'].get('title', '')}")
        for d in result["docs"]:
            click.echo(f"doc   {d['id']:<18} {d['path']}  {d['title']}")


@click.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--lane", type=click.Choice(CARD_LANES), default="inbox", help="Lane for created cards (default: inbox)")
@click.option("--board", "-b", default=None, help="Board (default from config)")
@click.option("--dry-run", is_flag=True, help="Print the extracted tasks without creating cards")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def parse(source: Path, lane: str, board: str | None, dry_run: bool, as_json: bool) -> None:
    """Extract tasks from a document and append them as cards."""
    from markops.parsing import DocumentParser

    content = source.read_text(encoding="utf-8", errors="replace")
    with get_db() as db:
        parser = DocumentParser.from_config(find_markops_root())
        try:
            records = parser.parse(content)
        except (UpstreamError, TransportError) as e:
            fail(error_message(e), as_json)
        payloads = [r.to_payload() for r in records]
        if dry_run:
            if as_json:
                echo_json({"records": payloads, "created": []})
            else:
                for r in records:
                    click.echo(f"[{r.priority}] @{r.assignee} {r.title}")
            return
        try:
            items = db.bulk_create("cards", lane, payloads, partition=board or default_board())
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json({"records": payloads, "created": [i.to_dict() for i in items]})
        else:
            click.echo(f"Created {len(items)} card(s) in {lane}")
            for item in items:
                click.echo(f"  {item.id}  {item.title}")
