"""Document parsing bridge: unstructured text in, ordered task records out.

The bridge strips markup, asks an OpenAI-compatible chat-completions endpoint
(OpenRouter by default) to extract actionable tasks, and validates the reply.
Every failure surfaces as a single ``UpstreamError`` (or ``TransportError``
when the network itself is down); partial results are never returned.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, get_args

import httpx

from markops.core import (
    DEFAULT_PARSER_ENDPOINT,
    DEFAULT_PARSER_MODEL,
    find_markops_root,
    read_config,
)
from markops.errors import TransportError, UpstreamError

logger = logging.getLogger(__name__)

Priority = Literal["high", "medium", "low"]
Assignee = Literal["maya", "leo", "sage", "rex"]

PRIORITIES: frozenset[str] = frozenset(get_args(Priority))
ASSIGNEES: frozenset[str] = frozenset(get_args(Assignee))

MAX_INPUT_CHARS = 8000
MIN_TEXT_CHARS = 10
MAX_TITLE_CHARS = 60
API_KEY_ENV_VARS = ("MARKOPS_PARSER_API_KEY", "OPENROUTER_API_KEY")

_STYLE_RE = re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_FENCE_START_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END_RE = re.compile(r"\s*```$")
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)

PROMPT_TEMPLATE = """\
You are the marketing manager. Parse this document and extract all actionable tasks.

For each task, output JSON with these exact fields:
- title: short action-oriented title (max 60 chars)
- description: what needs to be done (1-3 sentences)
- priority: "high" | "medium" | "low"
- assignee: "maya" (copy/landing page/email) | "leo" (social media/Twitter/LinkedIn) | "sage" (SEO/GEO/keywords) | "rex" (paid ads/Meta/Google Ads)

Return ONLY a valid JSON array, no other text, no markdown code fences.

Document:
{text}"""


@dataclass(frozen=True)
class ParsedRecord:
    title: str
    description: str
    priority: Priority
    assignee: Assignee

    def to_payload(self) -> dict[str, Any]:
        """Item payload for ``MarkopsDB.bulk_create``."""
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "assignee": self.assignee,
            "category": "Marketing",
        }


def strip_markup(content: str) -> str:
    """Drop style/script blocks and tags, collapse whitespace, cap the length."""
    text = _STYLE_RE.sub("", content)
    text = _SCRIPT_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = _WS_RE.sub(" ", text).strip()
    return text[:MAX_INPUT_CHARS]


def _record_from(raw: Any, index: int) -> ParsedRecord:
    if not isinstance(raw, dict):
        raise UpstreamError(f"Task {index} is not an object", detail=json.dumps(raw, default=str)[:200])
    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        raise UpstreamError(f"Task {index} has no title")
    description = raw.get("description", "")
    if not isinstance(description, str):
        raise UpstreamError(f"Task {index} has a non-text description")
    priority = raw.get("priority")
    if priority not in PRIORITIES:
        raise UpstreamError(f"Task {index} has invalid priority {priority!r}")
    assignee = raw.get("assignee")
    if assignee not in ASSIGNEES:
        raise UpstreamError(f"Task {index} has invalid assignee {assignee!r}")
    return ParsedRecord(
        title=title.strip()[:MAX_TITLE_CHARS],
        description=description.strip(),
        priority=priority,
        assignee=assignee,
    )


def extract_records(raw: str) -> list[ParsedRecord]:
    """Parse the model's reply into records, all or nothing."""
    cleaned = _FENCE_END_RE.sub("", _FENCE_START_RE.sub("", raw.strip())).strip()
    match = _ARRAY_RE.search(cleaned)
    if match is None:
        raise UpstreamError("Could not extract JSON from response", detail=cleaned[:200])
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise UpstreamError(f"Model returned malformed JSON: {exc}", detail=cleaned[:200]) from exc
    if not isinstance(data, list):
        raise UpstreamError("Model reply is not a JSON array", detail=cleaned[:200])
    return [_record_from(entry, i) for i, entry in enumerate(data)]


def _api_key_from_env() -> str:
    for var in API_KEY_ENV_VARS:
        value = os.environ.get(var, "").strip()
        if value:
            return value
    return ""


class DocumentParser:
    """Client for the LLM extraction call."""

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = DEFAULT_PARSER_ENDPOINT,
        model: str = DEFAULT_PARSER_MODEL,
        max_tokens: int = 2000,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, markops_dir: Path | None = None, *, client: httpx.Client | None = None) -> DocumentParser:
        """Build a parser from .markops/config.json plus environment overrides."""
        parser_cfg: dict[str, Any] = {}
        try:
            root = markops_dir or find_markops_root()
        except FileNotFoundError:
            root = None
        if root is not None:
            parser_cfg = dict(read_config(root).get("parser", {}))
        return cls(
            _api_key_from_env(),
            endpoint=os.environ.get("MARKOPS_PARSER_ENDPOINT") or parser_cfg.get("endpoint", DEFAULT_PARSER_ENDPOINT),
            model=os.environ.get("MARKOPS_PARSER_MODEL") or parser_cfg.get("model", DEFAULT_PARSER_MODEL),
            max_tokens=int(parser_cfg.get("max_tokens", 2000)),
            timeout=float(parser_cfg.get("timeout", 60.0)),
            client=client,
        )

    def _request_body(self, text: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": PROMPT_TEMPLATE.format(text=text)}],
        }

    def _post(self, body: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}", "X-Title": "markops"}
        try:
            if self._client is not None:
                return self._client.post(self.endpoint, json=body, headers=headers, timeout=self.timeout)
            with httpx.Client(timeout=self.timeout) as client:
                return client.post(self.endpoint, json=body, headers=headers)
        except httpx.TransportError as exc:
            msg = f"Parsing service unreachable: {exc}"
            raise TransportError(msg) from exc

    def parse(self, content: str) -> list[ParsedRecord]:
        if not self.api_key:
            raise UpstreamError(f"No API key configured (set {API_KEY_ENV_VARS[0]})")
        if not isinstance(content, str) or not content.strip():
            raise UpstreamError("No content provided")
        text = strip_markup(content)
        if len(text) < MIN_TEXT_CHARS:
            raise UpstreamError("Document appears empty after parsing")

        response = self._post(self._request_body(text))
        if response.status_code >= 400:
            raise UpstreamError(
                f"Parsing service error (HTTP {response.status_code})",
                detail=response.text[:200],
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError("Parsing service returned non-JSON body", detail=response.text[:200]) from exc
        try:
            reply = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("Parsing service reply has no message content", detail=str(data)[:200]) from exc
        if not isinstance(reply, str):
            raise UpstreamError("Parsing service reply content is not text")
        records = extract_records(reply)
        logger.info("Parsed %d task(s) from %d chars of input", len(records), len(text))
        return records
