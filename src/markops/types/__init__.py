# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from core.py, db_base.py, or any mixin (circular imports).
"""Typed return-value contracts for markops core and API layers."""

from __future__ import annotations

from markops.types.api import ErrorEnvelope, SearchResult
from markops.types.core import (
    AssociationDict,
    CommentRecord,
    DocDict,
    EpochMillis,
    ItemDict,
    ParserConfig,
    PipelineDict,
    ProjectConfig,
    StageDict,
    TagDict,
    ToolDict,
)

__all__ = [
    "AssociationDict",
    "CommentRecord",
    "DocDict",
    "EpochMillis",
    "ErrorEnvelope",
    "ItemDict",
    "ParserConfig",
    "PipelineDict",
    "ProjectConfig",
    "SearchResult",
    "StageDict",
    "TagDict",
    "ToolDict",
]
