"""Shared CLI helpers.

Provides ``get_db()`` and the error/output helpers so that ``cli.py`` and the
``cli_commands/*.py`` modules can share them without circular imports.
"""

from __future__ import annotations

import json as json_mod
import sys
from typing import Any, NoReturn

import click

from markops.core import (
    DB_FILENAME,
    MARKOPS_DIR_NAME,
    MarkopsDB,
    find_markops_root,
    read_config,
)
from markops.logging import setup_logging


def get_db() -> MarkopsDB:
    """Discover .markops/ and return an initialized MarkopsDB."""
    try:
        markops_dir = find_markops_root()
    except FileNotFoundError:
        click.echo(f"No {MARKOPS_DIR_NAME}/ found. Run 'markops init' first.", err=True)
        sys.exit(1)
    setup_logging(markops_dir)
    config = read_config(markops_dir)
    db = MarkopsDB(markops_dir / DB_FILENAME, prefix=config.get("prefix", "mk"))
    db.initialize()
    return db


def default_board() -> str:
    """Board used when ``--board`` is omitted (from config, else marketing)."""
    try:
        return str(read_config(find_markops_root()).get("default_board", "marketing"))
    except FileNotFoundError:
        return "marketing"


def fail(message: str, as_json: bool = False) -> NoReturn:
    """Report an error the way every command does and exit 1."""
    if as_json:
        click.echo(json_mod.dumps({"error": message}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def error_message(exc: Exception) -> str:
    # KeyError.__str__ quotes its argument; NotFoundError does not.
    if isinstance(exc, KeyError) and exc.args:
        return str(exc.args[0])
    return str(exc)


def echo_json(data: Any) -> None:
    click.echo(json_mod.dumps(data, indent=2, default=str))


def parse_fields(pairs: tuple[str, ...], as_json: bool = False) -> dict[str, str]:
    """Turn repeated ``key=value`` options into a dict."""
    fields: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            fail(f"Invalid field format: {pair} (expected key=value)", as_json)
        key, value = pair.split("=", 1)
        fields[key] = value
    return fields
