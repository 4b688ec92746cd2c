"""CLI commands for campaign tags: the ``markops tag`` group."""

from __future__ import annotations

from urllib.parse import urlencode

import click

from markops.cli_common import echo_json, error_message, fail, get_db
from markops.core import MarkopsDB, Tag, find_markops_root
from markops.selection import SessionState, tag_url_param


def _resolve_tag(db: MarkopsDB, ref: str, as_json: bool = False) -> Tag:
    """Look a tag up by id, then by (active) name."""
    try:
        return db.get_tag(ref)
    except KeyError:
        pass
    tag = db.find_tag_by_name(ref, include_archived=True)
    if tag is None:
        fail(f"tag not found: {ref}", as_json)
    return tag


def _session() -> SessionState:
    return SessionState(find_markops_root())


@click.group()
def tag() -> None:
    """Manage campaign tags and their item associations."""


@tag.command("create")
@click.argument("name")
@click.option("--color", default=None, help="Hex colour (default: next palette colour)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tag_create(name: str, color: str | None, as_json: bool) -> None:
    """Create a campaign tag."""
    with get_db() as db:
        try:
            t = db.create_tag(name, color=color)
        except ValueError as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(t.to_dict())
        else:
            click.echo(f"Created tag {t.id}: {t.name} ({t.color})")


@tag.command("list")
@click.option("--active-only", is_flag=True, help="Hide archived tags")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tag_list(active_only: bool, as_json: bool) -> None:
    """List campaign tags."""
    with get_db() as db:
        tags = db.list_tags(include_archived=not active_only)
        if as_json:
            echo_json([t.to_dict() for t in tags])
            return
        if not tags:
            click.echo("No tags.")
            return
        for t in tags:
            count = len(db.tagged_item_ids(t.id))
            suffix = "  (archived)" if t.archived else ""
            click.echo(f"{t.id:<20} {t.color}  {t.name}  [{count}]{suffix}")


@tag.command("update")
@click.argument("ref")
@click.option("--name", default=None, help="New name")
@click.option("--color", default=None, help="New hex colour")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tag_update(ref: str, name: str | None, color: str | None, as_json: bool) -> None:
    """Rename or recolour a tag."""
    with get_db() as db:
        t = _resolve_tag(db, ref, as_json)
        try:
            t = db.update_tag(t.id, name=name, color=color)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(t.to_dict())
        else:
            click.echo(f"Updated tag {t.id}: {t.name} ({t.color})")


@tag.command("archive")
@click.argument("ref")
@click.option("--restore", is_flag=True, help="Un-archive instead")
def tag_archive(ref: str, restore: bool) -> None:
    """Archive a tag (its associations are kept)."""
    with get_db() as db:
        t = _resolve_tag(db, ref)
        try:
            t = db.update_tag(t.id, archived=not restore)
        except (KeyError, ValueError) as e:
            fail(error_message(e))
        if t.archived:
            _session().forget_if(t.id)
        click.echo(f"{'Archived' if t.archived else 'Restored'} tag {t.name}")


@tag.command("delete")
@click.argument("ref")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tag_delete(ref: str, as_json: bool) -> None:
    """Delete a tag and every association to it."""
    with get_db() as db:
        t = _resolve_tag(db, ref, as_json)
        try:
            removed = db.delete_tag(t.id)
        except KeyError as e:
            fail(error_message(e), as_json)
        _session().forget_if(t.id)
        if as_json:
            echo_json({"deleted": t.id, "associations_removed": removed})
        else:
            click.echo(f"Deleted tag {t.name} ({removed} association(s) removed)")


@tag.command("add")
@click.argument("item_id")
@click.argument("ref")
def tag_add(item_id: str, ref: str) -> None:
    """Tag an item. Already tagged is not an error."""
    with get_db() as db:
        t = _resolve_tag(db, ref)
        try:
            db.get_item(item_id)
            changed = db.tag_item(item_id, t.id)
        except (KeyError, ValueError) as e:
            fail(error_message(e))
        click.echo(f"Tagged {item_id} with {t.name}" if changed else f"{item_id} already tagged with {t.name}")


@tag.command("remove")
@click.argument("item_id")
@click.argument("ref")
def tag_remove(item_id: str, ref: str) -> None:
    """Untag an item. Not tagged is not an error."""
    with get_db() as db:
        t = _resolve_tag(db, ref)
        changed = db.untag_item(item_id, t.id)
        click.echo(f"Untagged {item_id} from {t.name}" if changed else f"{item_id} was not tagged with {t.name}")


@tag.command("toggle")
@click.argument("item_id")
@click.argument("ref")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tag_toggle(item_id: str, ref: str, as_json: bool) -> None:
    """Flip an item's association with a tag."""
    with get_db() as db:
        t = _resolve_tag(db, ref, as_json)
        try:
            db.get_item(item_id)
            tagged = db.toggle_tag(item_id, t.id)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json({"item_id": item_id, "tag_id": t.id, "tagged": tagged})
        else:
            click.echo(f"{item_id} {'now' if tagged else 'no longer'} tagged with {t.name}")


@tag.command("use")
@click.argument("ref", required=False)
@click.option("--clear", is_flag=True, help="Clear the active tag")
def tag_use(ref: str | None, clear: bool) -> None:
    """Set (or show) the active tag used to filter 'markops lane'."""
    with get_db() as db:
        session = _session()
        if clear:
            session.set_active_tag(None)
            click.echo("Active tag cleared")
            return
        if ref is None:
            active = session.active_tag_id
            if active is None:
                click.echo("No active tag")
                return
            try:
                current = db.get_tag(active)
            except KeyError:
                session.set_active_tag(None)
                click.echo("No active tag")
                return
            click.echo(f"Active tag: {current.name}  (?{urlencode(tag_url_param(current))})")
            return
        t = _resolve_tag(db, ref)
        if t.archived:
            fail(f"tag is archived: {t.name}")
        session.set_active_tag(t.id)
        click.echo(f"Active tag: {t.name}")
