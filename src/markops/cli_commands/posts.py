"""CLI commands for the content calendar: post schedule, unschedule, calendar, backlog."""

from __future__ import annotations

from datetime import datetime

import click

from markops.cli_common import default_board, echo_json, error_message, fail, get_db
from markops.core import Item
from markops.db_calendar import scheduled_at

# Naive datetimes are local time.
_WHEN = click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M"])


def _epoch_ms(when: datetime) -> int:
    return int(when.timestamp() * 1000)


def _post_line(post: Item) -> str:
    when = scheduled_at(post)
    stamp = datetime.fromtimestamp(when / 1000).strftime("%Y-%m-%d %H:%M") if when is not None else "-"
    platform = post.payload.get("platform")
    line = f"{stamp:<16}  {post.id:<18} [{post.lane}] {post.title}"
    return f"{line}  ({platform})" if platform else line


@click.group()
def post() -> None:
    """Schedule posts on the content calendar."""


@post.command("schedule")
@click.argument("post_id")
@click.argument("when", type=_WHEN)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def post_schedule(post_id: str, when: datetime, as_json: bool) -> None:
    """Schedule POST_ID at WHEN (YYYY-MM-DD or YYYY-MM-DDTHH:MM, local time)."""
    with get_db() as db:
        try:
            item = db.schedule_post(post_id, _epoch_ms(when))
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(item.to_dict())
        else:
            click.echo(f"Scheduled {item.id} for {when:%Y-%m-%d %H:%M}")


@post.command("unschedule")
@click.argument("post_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def post_unschedule(post_id: str, as_json: bool) -> None:
    """Take a post off the calendar and back to draft."""
    with get_db() as db:
        try:
            item = db.unschedule_post(post_id)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(item.to_dict())
        else:
            click.echo(f"Unscheduled {item.id} (now {item.lane})")


@post.command("calendar")
@click.option("--from", "start", type=_WHEN, required=True, help="First day (inclusive)")
@click.option("--to", "end", type=_WHEN, required=True, help="End (exclusive)")
@click.option("--board", "-b", default=None, help="Board (default from config)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def post_calendar(start: datetime, end: datetime, board: str | None, as_json: bool) -> None:
    """List posts scheduled in [--from, --to), earliest first."""
    with get_db() as db:
        try:
            posts = db.scheduled_posts(board or default_board(), _epoch_ms(start), _epoch_ms(end))
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json([p.to_dict() for p in posts])
            return
        if not posts:
            click.echo("Nothing scheduled.")
        for p in posts:
            click.echo(_post_line(p))


@post.command("backlog")
@click.option("--board", "-b", default=None, help="Board (default from config)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def post_backlog(board: str | None, as_json: bool) -> None:
    """Unscheduled idea/draft/ready posts, newest first."""
    with get_db() as db:
        try:
            posts = db.backlog_posts(board or default_board())
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json([p.to_dict() for p in posts])
            return
        for p in posts:
            click.echo(_post_line(p))
