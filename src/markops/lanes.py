"""Registry of the lane-ordered collections stored in the ``items`` table.

A collection fixes which lanes are legal (``None`` means free-form, e.g.
pipeline stages) and which payload fields the global search looks at.
"""

from __future__ import annotations

from dataclasses import dataclass

from markops.errors import InvalidInputError


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    lanes: tuple[str, ...] | None
    default_lane: str
    title_required: bool = True
    # Partition holds a board name; otherwise it is an owner id (e.g. a pipeline run).
    by_board: bool = True
    search_fields: tuple[str, ...] = ()
    # Payload keys that, when present, must hold epoch milliseconds.
    timestamp_fields: tuple[str, ...] = ()


CARD_LANES = ("inbox", "in-progress", "review", "done", "blocked", "junk")
POST_LANES = ("idea", "draft", "ready", "scheduled", "published")
BOARDS = ("marketing", "product")

COLLECTIONS: dict[str, CollectionSpec] = {
    "cards": CollectionSpec(
        name="cards",
        lanes=CARD_LANES,
        default_lane="inbox",
        search_fields=("title", "description", "notes"),
    ),
    "pipeline_cards": CollectionSpec(name="pipeline_cards", lanes=None, default_lane="backlog", by_board=False),
    "posts": CollectionSpec(name="posts", lanes=POST_LANES, default_lane="idea", timestamp_fields=("scheduled_at",)),
    "notes": CollectionSpec(name="notes", lanes=None, default_lane="canvas", title_required=False),
}


def get_collection(name: str) -> CollectionSpec:
    spec = COLLECTIONS.get(name)
    if spec is None:
        msg = f"Unknown collection '{name}'. Valid collections: {', '.join(COLLECTIONS)}"
        raise InvalidInputError(msg)
    return spec


def validate_board(board: str) -> str:
    if board not in BOARDS:
        msg = f"Unknown board '{board}'. Valid boards: {', '.join(BOARDS)}"
        raise InvalidInputError(msg)
    return board


def validate_lane(spec: CollectionSpec, lane: str) -> str:
    """Return the trimmed lane or raise InvalidInputError."""
    if not isinstance(lane, str) or not lane.strip():
        msg = "lane must be a non-empty string"
        raise InvalidInputError(msg)
    lane = lane.strip()
    if spec.lanes is not None and lane not in spec.lanes:
        msg = f"Unknown lane '{lane}' for {spec.name}. Valid lanes: {', '.join(spec.lanes)}"
        raise InvalidInputError(msg)
    return lane
