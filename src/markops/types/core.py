"""Foundational TypedDicts for dataclass to_dict() returns."""

from __future__ import annotations

from typing import Any, NewType, TypedDict

EpochMillis = NewType("EpochMillis", int)


class ParserConfig(TypedDict, total=False):
    """``parser`` section of .markops/config.json."""

    endpoint: str
    model: str
    max_tokens: int
    timeout: float


class ProjectConfig(TypedDict, total=False):
    """Shape of .markops/config.json."""

    prefix: str
    version: int
    default_board: str
    parser: ParserConfig


class ItemDict(TypedDict):
    id: str
    collection: str
    partition: str
    lane: str
    order_key: float
    payload: dict[str, Any]
    created_at: EpochMillis
    updated_at: EpochMillis


class TagDict(TypedDict):
    id: str
    name: str
    color: str
    archived: bool
    created_at: EpochMillis


class AssociationDict(TypedDict):
    id: int
    item_id: str
    tag_id: str
    created_at: EpochMillis


class DocDict(TypedDict):
    id: str
    path: str
    title: str
    content: str
    agent: str
    board: str
    item_id: str | None
    updated_at: EpochMillis


class ToolDict(TypedDict):
    id: str
    name: str
    category: str
    status: str
    url: str
    cost: str
    billing_cycle: str | None
    access_notes: str
    notes: str
    added_at: EpochMillis
    updated_at: EpochMillis


class CommentRecord(TypedDict):
    id: int
    item_id: str
    author: str
    role: str
    content: str
    created_at: EpochMillis


class StageDict(TypedDict, total=False):
    """One step of a pipeline run; timestamps appear once the step has started/finished."""

    stage: int
    name: str
    agent: str
    status: str
    doc_path: str
    started_at: EpochMillis
    completed_at: EpochMillis


class PipelineDict(TypedDict):
    id: str
    name: str
    status: str
    input_url: str
    stages: list[StageDict]
    created_at: EpochMillis
    updated_at: EpochMillis
