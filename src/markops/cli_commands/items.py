"""CLI commands for lane items: add, move, show, lane, rm, renormalize."""

from __future__ import annotations

import click

from markops.cli_common import default_board, echo_json, error_message, fail, get_db, parse_fields
from markops.core import Item, MarkopsDB, Tag, find_markops_root
from markops.lanes import COLLECTIONS, get_collection
from markops.selection import SessionState, resolve_active_tag

_COLLECTION_CHOICE = click.Choice(sorted(COLLECTIONS))


def _partition_for(collection: str, board: str | None, pipeline: str | None = None) -> str:
    """Board for board-split collections; the pipeline run id for pipeline cards."""
    if not get_collection(collection).by_board:
        return pipeline or ""
    return board or default_board()


def _item_line(item: Item, tags: list[Tag] | None = None) -> str:
    line = f"{item.id:<18} {item.title or '(untitled)'}"
    assignee = item.payload.get("assignee")
    if assignee:
        line += f"  @{assignee}"
    if tags:
        line += "  " + " ".join(f"#{t.name}" for t in tags)
    return line


@click.command()
@click.argument("title")
@click.option("--collection", "-c", type=_COLLECTION_CHOICE, default="cards", help="Collection (default: cards)")
@click.option("--lane", default=None, help="Lane (default: the collection's first lane)")
@click.option("--board", "-b", default=None, help="Board (default from config; ignored for pipeline cards)")
@click.option("--pipeline", "pipeline_id", default=None, help="Pipeline run id for pipeline cards")
@click.option("--description", "-d", default=None, help="Description")
@click.option("--priority", "-p", type=click.Choice(["high", "medium", "low"]), default=None, help="Priority")
@click.option("--assignee", "-a", default=None, help="Assignee")
@click.option("--field", "-f", multiple=True, help="Extra payload field as key=value (repeatable)")
@click.option("--tag", "-t", "tag_names", multiple=True, help="Campaign tag name (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def add(
    title: str,
    collection: str,
    lane: str | None,
    board: str | None,
    pipeline_id: str | None,
    description: str | None,
    priority: str | None,
    assignee: str | None,
    field: tuple[str, ...],
    tag_names: tuple[str, ...],
    as_json: bool,
) -> None:
    """Append a new item to the end of a lane."""
    payload: dict[str, str] = {"title": title}
    for key, value in (("description", description), ("priority", priority), ("assignee", assignee)):
        if value is not None:
            payload[key] = value
    payload.update(parse_fields(field, as_json))

    with get_db() as db:
        tags: list[Tag] = []
        for name in tag_names:
            tag = db.find_tag_by_name(name)
            if tag is None:
                fail(f"tag not found: {name}", as_json)
            tags.append(tag)
        try:
            with db.transaction():
                item = db.create_item(collection, lane, payload, partition=_partition_for(collection, board, pipeline_id))
                for tag in tags:
                    db.tag_item(item.id, tag.id)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(item.to_dict())
        else:
            click.echo(f"Created {item.id} in {item.lane}: {item.title}")


@click.command()
@click.argument("item_id")
@click.argument("lane")
@click.option("--index", "-i", type=int, default=None, help="Target position (default: end of lane)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def move(item_id: str, lane: str, index: int | None, as_json: bool) -> None:
    """Move an item to LANE at a position (0 = top)."""
    with get_db() as db:
        try:
            if index is None:
                current = db.get_item(item_id)
                index = len(db.list_by_lane(current.collection, lane, partition=current.partition))
            item = db.move_item(item_id, lane, index)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(item.to_dict())
        else:
            click.echo(f"Moved {item.id} to {item.lane}[{index}]")


@click.command()
@click.argument("item_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(item_id: str, as_json: bool) -> None:
    """Show an item with its tags and comments."""
    with get_db() as db:
        try:
            item = db.get_item(item_id)
        except KeyError as e:
            fail(error_message(e), as_json)
        tags = db.item_tags(item_id)
        comments = db.get_comments(item_id)

        if as_json:
            data = dict(item.to_dict())
            data["tags"] = [t.to_dict() for t in tags]
            data["comments"] = comments
            echo_json(data)
            return

        click.echo(f"ID:         {item.id}")
        click.echo(f"Title:      {item.title}")
        click.echo(f"Collection: {item.collection}")
        if item.partition:
            click.echo(f"Board:      {item.partition}")
        click.echo(f"Lane:       {item.lane}")
        for key, value in item.payload.items():
            if key in ("title", "agent_notes", "doc_paths"):
                continue
            click.echo(f"{key.capitalize() + ':':<11} {value}")
        if tags:
            click.echo(f"Tags:       {', '.join(t.name for t in tags)}")
        for path in item.payload.get("doc_paths") or []:
            click.echo(f"Doc:        {path}")
        for note in item.payload.get("agent_notes") or []:
            click.echo(f"  [{note.get('agent', '?')}] {note.get('content', '')}")
        if comments:
            click.echo(f"\nComments ({len(comments)}):")
            for c in comments:
                click.echo(f"  [{c['author']}] {c['content']}")


def _active_tag_id(db: MarkopsDB, tag_name: str | None, *, use_session: bool, as_json: bool) -> str | None:
    """An explicit --tag must name an active tag; only its absence falls back to the session."""
    if tag_name is not None:
        tag = db.find_tag_by_name(tag_name)
        if tag is None:
            fail(f"tag not found: {tag_name}", as_json)
        return tag.id
    if not use_session:
        return None
    try:
        stored = SessionState(find_markops_root()).active_tag_id
    except FileNotFoundError:
        stored = None
    return resolve_active_tag(None, stored, db.list_tags(include_archived=False))


@click.command("lane")
@click.argument("lane_name")
@click.option("--collection", "-c", type=_COLLECTION_CHOICE, default="cards", help="Collection (default: cards)")
@click.option("--board", "-b", default=None, help="Board (default from config; ignored for pipeline cards)")
@click.option("--pipeline", "pipeline_id", default=None, help="Pipeline run id for pipeline cards")
@click.option("--tag", "-t", "tag_name", default=None, help="Only items with this campaign tag")
@click.option("--all", "show_all", is_flag=True, help="Ignore the active tag from 'markops tag use' (an explicit --tag still applies)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def lane_cmd(
    lane_name: str,
    collection: str,
    board: str | None,
    pipeline_id: str | None,
    tag_name: str | None,
    show_all: bool,
    as_json: bool,
) -> None:
    """List the items of a lane in display order."""
    with get_db() as db:
        partition = _partition_for(collection, board, pipeline_id)
        tag_id = _active_tag_id(db, tag_name, use_session=not show_all, as_json=as_json)
        matches = db.items_matching(tag_id)
        try:
            items = [i for i in db.iter_lane(collection, lane_name, partition=partition) if matches(i.id)]
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)

        if as_json:
            echo_json([i.to_dict() for i in items])
            return
        header = f"{lane_name} ({len(items)})"
        if tag_id is not None:
            header += f"  [tag: {db.get_tag(tag_id).name}]"
        click.echo(header)
        for item in items:
            click.echo(f"  {_item_line(item, db.item_tags(item.id))}")


@click.command()
@click.argument("item_ids", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def rm(item_ids: tuple[str, ...], as_json: bool) -> None:
    """Remove one or more items (all or nothing)."""
    with get_db() as db:
        try:
            count = db.remove_many(item_ids)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json({"removed": list(item_ids), "count": count})
        else:
            click.echo(f"Removed {count} item(s)")


@click.command()
@click.argument("lane_name")
@click.option("--collection", "-c", type=_COLLECTION_CHOICE, default="cards", help="Collection (default: cards)")
@click.option("--board", "-b", default=None, help="Board (default from config; ignored for pipeline cards)")
@click.option("--pipeline", "pipeline_id", default=None, help="Pipeline run id for pipeline cards")
def renormalize(lane_name: str, collection: str, board: str | None, pipeline_id: str | None) -> None:
    """Rewrite a lane's order keys to 0..n-1 without changing its order."""
    with get_db() as db:
        try:
            changed = db.renormalize_lane(collection, lane_name, partition=_partition_for(collection, board, pipeline_id))
        except (KeyError, ValueError) as e:
            fail(error_message(e))
        click.echo(f"Renormalized {lane_name}: {changed} key(s) rewritten")
