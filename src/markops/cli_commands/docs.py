"""CLI commands for docs, the tool registry and item comments."""

from __future__ import annotations

from pathlib import Path

import click

from markops.cli_common import default_board, echo_json, error_message, fail, get_db
from markops.db_meta import BILLING_CYCLES, COMMENT_ROLES, TOOL_CATEGORIES, TOOL_STATUSES

# ---------------------------------------------------------------------------
# doc
# ---------------------------------------------------------------------------


@click.group()
def doc() -> None:
    """Store and read marketing docs."""


@doc.command("put")
@click.argument("path")
@click.option("--title", default=None, help="Title (default: file name)")
@click.option("--file", "source", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None, help="Read content from file")
@click.option("--content", default=None, help="Inline content")
@click.option("--board", "-b", default=None, help="Board (default from config)")
@click.option("--agent", default="", help="Authoring agent")
@click.option("--item", "item_id", default=None, help="Link to an item id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def doc_put(
    path: str,
    title: str | None,
    source: Path | None,
    content: str | None,
    board: str | None,
    agent: str,
    item_id: str | None,
    as_json: bool,
) -> None:
    """Create or refresh the doc stored at PATH."""
    if source is not None and content is not None:
        fail("use either --file or --content, not both", as_json)
    text = source.read_text(encoding="utf-8") if source is not None else (content or "")
    with get_db() as db:
        try:
            with db.transaction():
                d = db.upsert_doc(
                    path,
                    title or Path(path).stem,
                    text,
                    board=board or default_board(),
                    agent=agent,
                    item_id=item_id,
                )
                if item_id is not None:
                    db.attach_doc(item_id, d.path)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(d.to_dict())
        else:
            click.echo(f"Saved {d.id}: {d.path}")


@doc.command("show")
@click.argument("ref")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def doc_show(ref: str, as_json: bool) -> None:
    """Print a doc by id or path."""
    with get_db() as db:
        d = db.get_doc_by_path(ref)
        if d is None:
            try:
                d = db.get_doc(ref)
            except KeyError as e:
                fail(error_message(e), as_json)
        if as_json:
            echo_json(d.to_dict())
            return
        click.echo(f"# {d.title}  ({d.path})")
        click.echo(d.content)


@doc.command("list")
@click.option("--board", "-b", default=None, help="Board (default from config)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def doc_list(board: str | None, as_json: bool) -> None:
    """List docs, most recently updated first."""
    with get_db() as db:
        try:
            docs = db.list_docs(board or default_board())
        except ValueError as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json([d.to_dict() for d in docs])
            return
        for d in docs:
            click.echo(f"{d.id:<20} {d.path}  {d.title}")


@doc.command("rm")
@click.argument("doc_id")
def doc_rm(doc_id: str) -> None:
    """Delete a doc."""
    with get_db() as db:
        try:
            db.remove_doc(doc_id)
        except KeyError as e:
            fail(error_message(e))
        click.echo(f"Removed {doc_id}")


# ---------------------------------------------------------------------------
# tool
# ---------------------------------------------------------------------------


@click.group()
def tool() -> None:
    """Track the tools and accounts the team uses."""


@tool.command("add")
@click.argument("name")
@click.option("--category", type=click.Choice(sorted(TOOL_CATEGORIES)), default="other")
@click.option("--status", type=click.Choice(sorted(TOOL_STATUSES)), default="active")
@click.option("--billing", "billing_cycle", type=click.Choice(sorted(BILLING_CYCLES)), default=None)
@click.option("--url", default="")
@click.option("--cost", default="")
@click.option("--access-notes", default="")
@click.option("--notes", default="")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tool_add(
    name: str,
    category: str,
    status: str,
    billing_cycle: str | None,
    url: str,
    cost: str,
    access_notes: str,
    notes: str,
    as_json: bool,
) -> None:
    """Register a tool."""
    with get_db() as db:
        try:
            t = db.create_tool(
                name,
                category=category,
                status=status,
                billing_cycle=billing_cycle,
                url=url,
                cost=cost,
                access_notes=access_notes,
                notes=notes,
            )
        except ValueError as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(t.to_dict())
        else:
            click.echo(f"Added {t.id}: {t.name}")


@tool.command("list")
@click.option("--status", type=click.Choice(sorted(TOOL_STATUSES)), default=None)
@click.option("--category", type=click.Choice(sorted(TOOL_CATEGORIES)), default=None)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tool_list(status: str | None, category: str | None, as_json: bool) -> None:
    """List registered tools."""
    with get_db() as db:
        tools = db.list_tools(status=status, category=category)
        if as_json:
            echo_json([t.to_dict() for t in tools])
            return
        for t in tools:
            cost = f"  {t.cost}" if t.cost else ""
            click.echo(f"{t.id:<20} {t.name:<24} {t.category:<10} {t.status}{cost}")


@tool.command("update")
@click.argument("tool_id")
@click.option("--name", default=None)
@click.option("--category", type=click.Choice(sorted(TOOL_CATEGORIES)), default=None)
@click.option("--status", type=click.Choice(sorted(TOOL_STATUSES)), default=None)
@click.option("--billing", "billing_cycle", type=click.Choice(sorted(BILLING_CYCLES)), default=None)
@click.option("--url", default=None)
@click.option("--cost", default=None)
@click.option("--access-notes", default=None)
@click.option("--notes", default=None)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tool_update(tool_id: str, as_json: bool, **fields: str | None) -> None:
    """Change fields of a registered tool."""
    with get_db() as db:
        try:
            t = db.update_tool(tool_id, **fields)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(t.to_dict())
        else:
            click.echo(f"Updated {t.id}: {t.name} ({t.status})")


@tool.command("rm")
@click.argument("tool_id")
def tool_rm(tool_id: str) -> None:
    """Remove a tool from the registry."""
    with get_db() as db:
        try:
            db.remove_tool(tool_id)
        except KeyError as e:
            fail(error_message(e))
        click.echo(f"Removed {tool_id}")


# ---------------------------------------------------------------------------
# comment
# ---------------------------------------------------------------------------


@click.group()
def comment() -> None:
    """Discuss an item."""


@comment.command("add")
@click.argument("item_id")
@click.argument("text")
@click.option("--author", default="cli", help="Author name (default: cli)")
@click.option("--role", type=click.Choice(sorted(COMMENT_ROLES)), default="human")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def comment_add(item_id: str, text: str, author: str, role: str, as_json: bool) -> None:
    """Add a comment to an item."""
    with get_db() as db:
        try:
            comment_id = db.add_comment(item_id, text, author=author, role=role)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json({"id": comment_id, "item_id": item_id})
        else:
            click.echo(f"Added comment {comment_id} to {item_id}")


@comment.command("list")
@click.argument("item_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def comment_list(item_id: str, as_json: bool) -> None:
    """List an item's comments, oldest first."""
    with get_db() as db:
        comments = db.get_comments(item_id)
        if as_json:
            echo_json(comments)
            return
        if not comments:
            click.echo("No comments.")
            return
        for c in comments:
            click.echo(f"[{c['author']}/{c['role']}] {c['content']}")
