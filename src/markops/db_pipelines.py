"""PipelinesMixin: multi-stage pipeline runs with stage status rollup.

A run holds an ordered list of stages, each handed to an agent. The run's
own status is derived from its stages on every stage update; it is never
set directly. Cards on a run's board live in the ``pipeline_cards``
collection, partitioned by the run id.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable, Sequence
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING

from markops.db_base import DBMixinProtocol, _now_ms
from markops.errors import InvalidInputError, NotFoundError
from markops.types.core import EpochMillis, StageDict
from markops.validation import sanitize_title

if TYPE_CHECKING:
    from markops.core import Pipeline

logger = logging.getLogger(__name__)

# (stage name, agent)
DEFAULT_STAGES: tuple[tuple[str, str], ...] = (
    ("Competitor Research", "rex-ads"),
    ("Campaign Strategy", "aria"),
    ("Creative Production", "maya + nova"),
    ("Meta Publishing", "leo-meta"),
)
STAGE_STATUSES = ("idle", "running", "complete", "failed")
FINISHED = frozenset({"complete", "failed"})


def rollup_status(stages: Sequence[StageDict]) -> str:
    """failed if any stage failed, complete once every stage is, else running."""
    statuses = [s.get("status") for s in stages]
    if "failed" in statuses:
        return "failed"
    if statuses and all(s == "complete" for s in statuses):
        return "complete"
    return "running"


class PipelinesMixin(DBMixinProtocol):
    """Pipeline run CRUD and stage transitions.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``MarkopsDB`` at composition time via MRO.
    """

    if TYPE_CHECKING:

        def transaction(self) -> AbstractContextManager[sqlite3.Connection]: ...

    @staticmethod
    def _row_to_pipeline(row: sqlite3.Row) -> Pipeline:
        from markops.core import Pipeline

        try:
            stages = json.loads(row["stages"] or "[]")
        except json.JSONDecodeError:
            logger.warning("Corrupt stages JSON on pipeline %s; treating as empty", row["id"])
            stages = []
        return Pipeline(
            id=row["id"],
            name=row["name"],
            status=row["status"],
            input_url=row["input_url"],
            stages=stages,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_pipeline(self, pipeline_id: str) -> Pipeline:
        row = self.conn.execute("SELECT * FROM pipelines WHERE id = ?", (pipeline_id,)).fetchone()
        if row is None:
            raise NotFoundError("Pipeline", pipeline_id)
        return self._row_to_pipeline(row)

    def list_pipelines(self) -> list[Pipeline]:
        """Every run, newest first."""
        rows = self.conn.execute("SELECT * FROM pipelines ORDER BY created_at DESC, rowid DESC").fetchall()
        return [self._row_to_pipeline(r) for r in rows]

    def create_pipeline(
        self,
        name: str,
        input_url: str = "",
        *,
        stages: Iterable[tuple[str, str]] | None = None,
    ) -> Pipeline:
        """Start a run with every stage idle (DEFAULT_STAGES unless *stages* is given)."""
        cleaned, err = sanitize_title(name)
        if err:
            raise InvalidInputError(err.replace("title", "pipeline name"))
        if not isinstance(input_url, str):
            msg = "input_url must be a string"
            raise InvalidInputError(msg)
        steps = [
            StageDict(stage=n, name=stage_name, agent=agent, status="idle")
            for n, (stage_name, agent) in enumerate(DEFAULT_STAGES if stages is None else stages, start=1)
        ]
        if not steps:
            msg = "A pipeline needs at least one stage"
            raise InvalidInputError(msg)
        now = _now_ms()
        with self.transaction() as conn:
            pipeline_id = self._generate_unique_id("pipelines", "pl")
            conn.execute(
                "INSERT INTO pipelines (id, name, status, input_url, stages, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (pipeline_id, cleaned, rollup_status(steps), input_url.strip(), json.dumps(steps), now, now),
            )
        logger.info("Created pipeline %s (%s) with %d stage(s)", cleaned, pipeline_id, len(steps))
        return self.get_pipeline(pipeline_id)

    def update_stage(
        self,
        pipeline_id: str,
        stage: int,
        status: str,
        *,
        doc_path: str | None = None,
    ) -> Pipeline:
        """Set one stage's status and re-derive the run status.

        Entering ``running`` stamps ``started_at``; entering ``complete`` or
        ``failed`` stamps ``completed_at``. A stage's ``doc_path`` is kept
        unless a new one is given.
        """
        if isinstance(stage, bool) or not isinstance(stage, int):
            msg = "stage must be an integer"
            raise InvalidInputError(msg)
        if status not in STAGE_STATUSES:
            msg = f"Invalid stage status '{status}'. Valid values: {', '.join(STAGE_STATUSES)}"
            raise InvalidInputError(msg)
        now = _now_ms()
        with self.transaction() as conn:
            pipeline = self.get_pipeline(pipeline_id)
            step = pipeline.stage(stage)
            if step is None:
                msg = f"Pipeline {pipeline_id} has no stage {stage}"
                raise InvalidInputError(msg)
            step["status"] = status
            if doc_path is not None:
                step["doc_path"] = doc_path
            if status == "running":
                step["started_at"] = EpochMillis(now)
            elif status in FINISHED:
                step["completed_at"] = EpochMillis(now)
            rolled = rollup_status(pipeline.stages)
            conn.execute(
                "UPDATE pipelines SET stages = ?, status = ?, updated_at = ? WHERE id = ?",
                (json.dumps(pipeline.stages), rolled, now, pipeline_id),
            )
        logger.debug("Pipeline %s stage %d -> %s (run %s)", pipeline_id, stage, status, rolled)
        return self.get_pipeline(pipeline_id)

    def remove_pipeline(self, pipeline_id: str) -> int:
        """Delete a run and the pipeline cards filed under it. Returns the card count."""
        with self.transaction() as conn:
            if conn.execute("DELETE FROM pipelines WHERE id = ?", (pipeline_id,)).rowcount == 0:
                raise NotFoundError("Pipeline", pipeline_id)
            card_filter = "SELECT id FROM items WHERE collection = 'pipeline_cards' AND partition = ?"
            conn.execute(f"DELETE FROM tag_links WHERE item_id = ? OR item_id IN ({card_filter})", (pipeline_id, pipeline_id))
            removed: int = conn.execute(
                "DELETE FROM items WHERE collection = 'pipeline_cards' AND partition = ?",
                (pipeline_id,),
            ).rowcount
        logger.info("Removed pipeline %s and %d card(s)", pipeline_id, removed)
        return removed
