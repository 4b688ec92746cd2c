"""Dashboard API tests for search, document parsing and the reactive endpoints."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from httpx import AsyncClient

import markops.dashboard_routes.search as search_routes
from markops.parsing import DocumentParser
from tests.conftest import PopulatedDB

RECORDS = [
    {"title": "Write launch email", "description": "Draft it.", "priority": "high", "assignee": "maya"},
    {"title": "Schedule tweets", "description": "", "priority": "medium", "assignee": "leo"},
]


def _install_parser(monkeypatch: pytest.MonkeyPatch, handler: Any) -> None:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    parser = DocumentParser("sk-test", client=client)
    monkeypatch.setattr(search_routes, "_build_parser", lambda _db: parser)


def _reply(content: str) -> Any:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    return handler


class TestSearch:
    async def test_short_query(self, client: AsyncClient) -> None:
        resp = await client.get("/api/search", params={"q": "a"})
        assert resp.json() == {"cards": [], "docs": []}
        assert resp.headers["cache-control"] == "no-cache"

    async def test_matches_cards_and_docs(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        data = (await client.get("/api/search", params={"q": "spring"})).json()
        assert data["cards"] == []
        assert [d["id"] for d in data["docs"]] == [dashboard_db.ids["doc"]]

    async def test_partition(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        data = (await client.get("/api/search", params={"q": "launch", "partition": "product"})).json()
        assert [c["id"] for c in data["cards"]] == [dashboard_db.ids["p"]]


class TestParse:
    async def test_preview_does_not_create(self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
        _install_parser(monkeypatch, _reply(json.dumps(RECORDS)))
        resp = await client.post("/api/parse", json={"content": "Spring launch plan: email and tweets."})
        assert resp.status_code == 200
        data = resp.json()
        assert [r["title"] for r in data["records"]] == ["Write launch email", "Schedule tweets"]
        assert data["records"][0]["category"] == "Marketing"
        assert data["created"] == []

    async def test_create_appends_in_order(self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
        _install_parser(monkeypatch, _reply(json.dumps(RECORDS)))
        resp = await client.post("/api/parse", json={"content": "Spring launch plan: email and tweets.", "create": True})
        assert resp.status_code == 201
        assert [i["order_key"] for i in resp.json()["created"]] == [3.0, 4.0]
        inbox = (await client.get("/api/items", params={"partition": "marketing", "lane": "inbox"})).json()
        assert [i["payload"]["title"] for i in inbox][-2:] == ["Write launch email", "Schedule tweets"]

    async def test_malformed_reply_creates_nothing(self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
        _install_parser(monkeypatch, _reply('[{"title": "ok", "priority": "high"}, {"priority": "urgent"}]'))
        resp = await client.post("/api/parse", json={"content": "Spring launch plan: email and tweets.", "create": True})
        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "UPSTREAM_ERROR"
        inbox = (await client.get("/api/items", params={"partition": "marketing", "lane": "inbox"})).json()
        assert len(inbox) == 3

    async def test_upstream_status(self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
        _install_parser(monkeypatch, lambda request: httpx.Response(429, text="rate limited"))
        resp = await client.post("/api/parse", json={"content": "Spring launch plan: email and tweets."})
        assert resp.status_code == 502
        assert resp.json()["error"]["details"]["detail"] == "rate limited"

    async def test_unreachable(self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        _install_parser(monkeypatch, handler)
        resp = await client.post("/api/parse", json={"content": "Spring launch plan: email and tweets."})
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "TRANSPORT_ERROR"

    async def test_content_must_be_string(self, client: AsyncClient) -> None:
        assert (await client.post("/api/parse", json={"content": 5})).status_code == 400


class TestReactive:
    async def test_registry(self, client: AsyncClient) -> None:
        data = (await client.get("/api/registry")).json()
        assert "items.listByLane" in data["queries"]
        assert "items.move" in data["mutations"]
        assert "mutations" not in (await client.get("/api/registry", params={"mutations": "false"})).json()

    async def test_query(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        args = json.dumps({"collection": "cards", "lane": "inbox", "partition": "marketing"})
        data = (await client.get("/api/query/items.listByLane", params={"args": args})).json()
        assert data["skipped"] is False
        assert [i["id"] for i in data["value"]] == [dashboard_db.ids[k] for k in ("a", "b", "c")]

    async def test_query_skip(self, client: AsyncClient) -> None:
        data = (await client.get("/api/query/items.listByLane", params={"args": "skip"})).json()
        assert data == {"value": None, "skipped": True}

    async def test_query_unknown(self, client: AsyncClient) -> None:
        resp = await client.get("/api/query/items.nope")
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "query not found: items.nope"

    async def test_query_bad_args(self, client: AsyncClient) -> None:
        resp = await client.get("/api/query/tags.list", params={"args": "[1, 2]"})
        assert resp.status_code == 400

    async def test_mutation(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.post("/api/mutation/items.move", json={"id": dashboard_db.ids["c"], "lane": "inbox", "index": 0})
        assert resp.status_code == 200
        assert resp.json()["value"]["order_key"] == -1.0

    async def test_mutation_missing_argument(self, client: AsyncClient) -> None:
        resp = await client.post("/api/mutation/items.move", json={"lane": "inbox", "index": 0})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "missing argument: id"

    async def test_mutation_unknown(self, client: AsyncClient) -> None:
        resp = await client.post("/api/mutation/items.explode", json={})
        assert resp.status_code == 404

    async def test_subscribe_initial_event(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        args = json.dumps({"collection": "cards", "lane": "review", "partition": "marketing"})
        resp = await client.get("/api/subscribe/items.listByLane", params={"args": args, "limit": "1"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        events = [line for line in resp.text.splitlines() if line.startswith("data: ")]
        assert len(events) == 1
        assert [i["id"] for i in json.loads(events[0][len("data: ") :])] == [dashboard_db.ids["d"]]

    async def test_subscribe_skip(self, client: AsyncClient) -> None:
        resp = await client.get("/api/subscribe/items.listByLane", params={"args": "skip", "limit": "1"})
        assert resp.text.strip() == "data: null"

    async def test_subscribe_bad_limit(self, client: AsyncClient) -> None:
        resp = await client.get("/api/subscribe/tags.list", params={"limit": "-1"})
        assert resp.status_code == 400
