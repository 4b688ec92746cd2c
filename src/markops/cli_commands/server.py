"""CLI command for the local web dashboard."""

from __future__ import annotations

import click

from markops.cli_common import fail


@click.command()
@click.option("--port", default=8390, type=int, help="Server port (default 8390)")
@click.option("--no-browser", is_flag=True, help="Don't auto-open browser")
def dashboard(port: int, no_browser: bool) -> None:
    """Launch the web dashboard."""
    from markops.dashboard import main as dashboard_main

    try:
        dashboard_main(port=port, no_browser=no_browser)
    except FileNotFoundError as e:
        fail(str(e))
