"""Dashboard API tests for docs, tools and comments."""

from __future__ import annotations

from httpx import AsyncClient

from tests.conftest import PopulatedDB


class TestDocs:
    async def test_list_by_board(self, client: AsyncClient) -> None:
        assert [d["path"] for d in (await client.get("/api/docs")).json()] == ["briefs/spring.md"]
        assert (await client.get("/api/docs", params={"board": "product"})).json() == []

    async def test_unknown_board(self, client: AsyncClient) -> None:
        assert (await client.get("/api/docs", params={"board": "sales"})).status_code == 400

    async def test_upsert_same_path_updates(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.post("/api/docs", json={"path": "briefs/spring.md", "title": "Spring brief v2", "content": "new"})
        assert resp.status_code == 201
        assert resp.json()["id"] == dashboard_db.ids["doc"]
        assert resp.json()["title"] == "Spring brief v2"

    async def test_create_linked_to_item(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        b = dashboard_db.ids["b"]
        resp = await client.post("/api/docs", json={"path": "social/thread.md", "title": "Thread", "item_id": b})
        assert resp.json()["item_id"] == b

    async def test_save_and_remove(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        doc = dashboard_db.ids["doc"]
        resp = await client.patch(f"/api/doc/{doc}", json={"content": "rewritten"})
        assert resp.json()["content"] == "rewritten"
        assert (await client.delete(f"/api/doc/{doc}")).status_code == 200
        assert (await client.get(f"/api/doc/{doc}")).status_code == 404


class TestTools:
    async def test_crud(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tools", json={"name": "Plausible", "category": "analytics", "url": "https://plausible.io"})
        assert resp.status_code == 201
        tool_id = resp.json()["id"]
        resp = await client.patch(f"/api/tool/{tool_id}", json={"status": "trial"})
        assert resp.json()["status"] == "trial"
        listed = (await client.get("/api/tools", params={"status": "trial"})).json()
        assert [t["name"] for t in listed] == ["Plausible"]
        assert (await client.delete(f"/api/tool/{tool_id}")).status_code == 200
        assert (await client.get("/api/tools")).json() == []

    async def test_bad_category(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tools", json={"name": "Thing", "category": "crypto"})
        assert resp.status_code == 400

    async def test_non_string_field(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tools", json={"name": "Thing", "cost": 9})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "tool fields must be strings"

    async def test_update_missing(self, client: AsyncClient) -> None:
        assert (await client.patch("/api/tool/test-tool-missing", json={"status": "trial"})).status_code == 404


class TestComments:
    async def test_list(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        comments = (await client.get(f"/api/item/{dashboard_db.ids['b']}/comments")).json()
        assert [(c["author"], c["content"]) for c in comments] == [("tester", "Needs a hook")]

    async def test_add_defaults_author(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        a = dashboard_db.ids["a"]
        resp = await client.post(f"/api/item/{a}/comments", json={"content": "Ship it"})
        assert resp.status_code == 201
        comments = (await client.get(f"/api/item/{a}/comments")).json()
        assert comments[-1]["author"] == "dashboard"

    async def test_add_empty(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.post(f"/api/item/{dashboard_db.ids['a']}/comments", json={"content": "  "})
        assert resp.status_code == 400
