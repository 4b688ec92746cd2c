"""CLI for markops: lane boards, campaign tags, docs and tools.

Convention-based: discovers .markops/ by walking up from cwd.

Usage:
    markops init                                 # Initialize .markops/ in cwd
    markops add "Write launch email" -a maya     # Append a card to inbox
    markops move <id> review --index 0           # Move to the top of review
    markops lane inbox                           # List a lane in order
    markops show <id>                            # Item details
    markops rm <id> [<id> ...]                   # Remove items
    markops tag create "Spring Launch"           # Campaign tag
    markops tag toggle <id> "Spring Launch"      # Tag / untag an item
    markops tag use "Spring Launch"              # Filter 'lane' by a tag
    markops post schedule <id> 2026-05-04T09:00  # Put a post on the calendar
    markops pipeline create "Acme teardown"      # Start a pipeline run
    markops search "landing"                     # Search cards and docs
    markops parse brief.html                     # Document -> cards
    markops dashboard                            # Web dashboard
"""

from __future__ import annotations

from pathlib import Path

import click

from markops import __version__
from markops.cli_commands import docs as docs_commands
from markops.cli_commands import items as item_commands
from markops.cli_commands import meta as meta_commands
from markops.cli_commands import pipelines as pipeline_commands
from markops.cli_commands import posts as post_commands
from markops.cli_commands import server as server_commands
from markops.cli_commands import tags as tag_commands
from markops.core import (
    DB_FILENAME,
    MARKOPS_DIR_NAME,
    MarkopsDB,
    default_config,
    read_config,
    write_config,
)
from markops.lanes import BOARDS


@click.group()
@click.version_option(version=__version__, prog_name="markops")
def cli() -> None:
    """markops: lane-ordered marketing boards with campaign tags."""


@cli.command()
@click.option("--prefix", default=None, help="ID prefix for items (default: mk)")
@click.option("--board", type=click.Choice(BOARDS), default=None, help="Default board (default: marketing)")
def init(prefix: str | None, board: str | None) -> None:
    """Initialize .markops/ in the current directory."""
    cwd = Path.cwd()
    markops_dir = cwd / MARKOPS_DIR_NAME

    if markops_dir.exists():
        click.echo(f"{MARKOPS_DIR_NAME}/ already exists in {cwd}")
        # Still ensure DB is initialized
        config = read_config(markops_dir)
        db = MarkopsDB(markops_dir / DB_FILENAME, prefix=config.get("prefix", "mk"))
        db.initialize()
        db.close()
        return

    markops_dir.mkdir()
    config = default_config()
    if prefix:
        config["prefix"] = prefix
    if board:
        config["default_board"] = board
    write_config(markops_dir, config)

    db = MarkopsDB(markops_dir / DB_FILENAME, prefix=config["prefix"])
    db.initialize()
    db.close()

    click.echo(f"Initialized {MARKOPS_DIR_NAME}/ in {cwd}")
    click.echo(f"  Prefix: {config['prefix']}")
    click.echo(f"  Database: {markops_dir / DB_FILENAME}")


for _command in (
    item_commands.add,
    item_commands.move,
    item_commands.show,
    item_commands.lane_cmd,
    item_commands.rm,
    item_commands.renormalize,
    tag_commands.tag,
    post_commands.post,
    pipeline_commands.pipeline,
    docs_commands.doc,
    docs_commands.tool,
    docs_commands.comment,
    meta_commands.search,
    meta_commands.parse,
    server_commands.dashboard,
):
    cli.add_command(_command)


if __name__ == "__main__":
    cli()
