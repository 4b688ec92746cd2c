"""CLI commands for pipeline runs: create, list, show, stage, rm."""

from __future__ import annotations

import click

from markops.cli_common import echo_json, error_message, fail, get_db
from markops.core import Pipeline
from markops.db_pipelines import STAGE_STATUSES


def _stage_lines(pipeline: Pipeline) -> list[str]:
    lines = []
    for step in pipeline.stages:
        line = f"  {step.get('stage')}. {step.get('name', ''):<22} {step.get('agent', ''):<14} {step.get('status', '')}"
        if step.get("doc_path"):
            line += f"  -> {step['doc_path']}"
        lines.append(line)
    return lines


@click.group()
def pipeline() -> None:
    """Track multi-stage pipeline runs."""


@pipeline.command("create")
@click.argument("name")
@click.option("--url", "input_url", default="", help="Input URL the run works from")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def pipeline_create(name: str, input_url: str, as_json: bool) -> None:
    """Start a run with the default stages, all idle."""
    with get_db() as db:
        try:
            run = db.create_pipeline(name, input_url)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(run.to_dict())
        else:
            click.echo(f"Created {run.id}: {run.name} ({len(run.stages)} stages)")


@pipeline.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def pipeline_list(as_json: bool) -> None:
    """List runs, newest first."""
    with get_db() as db:
        runs = db.list_pipelines()
        if as_json:
            echo_json([r.to_dict() for r in runs])
            return
        if not runs:
            click.echo("No pipelines.")
        for r in runs:
            done = sum(1 for s in r.stages if s.get("status") == "complete")
            click.echo(f"{r.id:<20} {r.status:<9} {done}/{len(r.stages)}  {r.name}")


@pipeline.command("show")
@click.argument("pipeline_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def pipeline_show(pipeline_id: str, as_json: bool) -> None:
    with get_db() as db:
        try:
            run = db.get_pipeline(pipeline_id)
        except KeyError as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(run.to_dict())
            return
        click.echo(f"{run.id}: {run.name} [{run.status}]")
        if run.input_url:
            click.echo(f"Input: {run.input_url}")
        for line in _stage_lines(run):
            click.echo(line)


@pipeline.command("stage")
@click.argument("pipeline_id")
@click.argument("stage", type=int)
@click.argument("status", type=click.Choice(STAGE_STATUSES))
@click.option("--doc", "doc_path", default=None, help="Doc produced by this stage")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def pipeline_stage(pipeline_id: str, stage: int, status: str, doc_path: str | None, as_json: bool) -> None:
    """Set STAGE of a run to STATUS; the run status follows its stages."""
    with get_db() as db:
        try:
            run = db.update_stage(pipeline_id, stage, status, doc_path=doc_path)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json(run.to_dict())
        else:
            click.echo(f"{run.id} stage {stage}: {status} (run {run.status})")


@pipeline.command("rm")
@click.argument("pipeline_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def pipeline_rm(pipeline_id: str, as_json: bool) -> None:
    """Delete a run and its pipeline cards."""
    with get_db() as db:
        try:
            cards = db.remove_pipeline(pipeline_id)
        except (KeyError, ValueError) as e:
            fail(error_message(e), as_json)
        if as_json:
            echo_json({"removed": pipeline_id, "cards": cards})
        else:
            click.echo(f"Removed {pipeline_id} and {cards} card(s)")
