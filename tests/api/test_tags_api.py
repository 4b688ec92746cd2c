"""Dashboard API tests for tags, associations and the active tag selection."""

from __future__ import annotations

from httpx import AsyncClient

from tests.conftest import PopulatedDB


class TestTags:
    async def test_list_includes_archived_by_default(self, client: AsyncClient) -> None:
        names = [t["name"] for t in (await client.get("/api/tags")).json()]
        assert set(names) == {"Spring Launch", "Old"}

    async def test_list_active_only(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tags", params={"include_archived": "false"})
        assert [t["name"] for t in resp.json()] == ["Spring Launch"]

    async def test_bad_bool_param(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tags", params={"include_archived": "maybe"})
        assert resp.status_code == 400

    async def test_create(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tags", json={"name": "Q3 Push", "color": "#0af"})
        assert resp.status_code == 201
        assert resp.json()["color"] == "#0af"

    async def test_create_duplicate_name(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tags", json={"name": "spring launch"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_create_bad_color(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tags", json={"name": "Q3", "color": "red"})
        assert resp.status_code == 400

    async def test_archive_rejects_non_bool(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.patch(f"/api/tag/{dashboard_db.ids['spring']}", json={"archived": "yes"})
        assert resp.status_code == 400

    async def test_archive_keeps_associations(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        spring = dashboard_db.ids["spring"]
        resp = await client.patch(f"/api/tag/{spring}", json={"archived": True})
        assert resp.json()["archived"] is True
        assocs = (await client.get("/api/associations", params={"tag": spring})).json()
        assert len(assocs) == 2

    async def test_delete_cascades(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        spring = dashboard_db.ids["spring"]
        resp = await client.delete(f"/api/tag/{spring}")
        assert resp.json() == {"deleted": spring, "associations_removed": 2}
        assert (await client.get("/api/associations", params={"tag": spring})).json() == []
        assert (await client.delete(f"/api/tag/{spring}")).status_code == 404


class TestAssociations:
    async def test_tag_is_idempotent(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        url = f"/api/item/{dashboard_db.ids['b']}/tags/{dashboard_db.ids['spring']}"
        first = (await client.put(url)).json()
        second = (await client.put(url)).json()
        assert first["changed"] is True
        assert second["changed"] is False
        assert len((await client.get("/api/associations", params={"tag": dashboard_db.ids["spring"]})).json()) == 3

    async def test_untag_absent_pair(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.delete(f"/api/item/{dashboard_db.ids['b']}/tags/{dashboard_db.ids['spring']}")
        assert resp.status_code == 200
        assert resp.json()["changed"] is False

    async def test_toggle_scenario(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        url = f"/api/item/{dashboard_db.ids['a']}/tags/{dashboard_db.ids['spring']}/toggle"
        assert (await client.post(url)).json()["tagged"] is False
        assert (await client.post(url)).json()["tagged"] is True

    async def test_tag_unknown_tag(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.put(f"/api/item/{dashboard_db.ids['a']}/tags/test-tag-missing")
        assert resp.status_code == 404
        assert resp.json()["error"]["details"]["kind"] == "Tag"

    async def test_item_tags(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.get(f"/api/item/{dashboard_db.ids['c']}/tags")
        assert [t["id"] for t in resp.json()] == [dashboard_db.ids["spring"]]


class TestSelection:
    async def test_none_by_default(self, client: AsyncClient) -> None:
        assert (await client.get("/api/selection")).json() == {"tag_id": None, "tag": None}

    async def test_url_param_wins(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.get("/api/selection", params={"campaign": "spring launch"})
        assert resp.json()["tag_id"] == dashboard_db.ids["spring"]

    async def test_archived_name_in_url_is_ignored(self, client: AsyncClient) -> None:
        resp = await client.get("/api/selection", params={"campaign": "Old"})
        assert resp.json()["tag_id"] is None

    async def test_session_fallback(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        spring = dashboard_db.ids["spring"]
        assert (await client.put("/api/selection", json={"tag_id": spring})).status_code == 200
        resp = await client.get("/api/selection")
        assert resp.json()["tag"]["name"] == "Spring Launch"

    async def test_set_unknown_tag(self, client: AsyncClient) -> None:
        resp = await client.put("/api/selection", json={"tag_id": "test-tag-missing"})
        assert resp.status_code == 404

    async def test_archiving_clears_fallback(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        spring = dashboard_db.ids["spring"]
        await client.put("/api/selection", json={"tag_id": spring})
        await client.patch(f"/api/tag/{spring}", json={"archived": True})
        assert (await client.get("/api/selection")).json()["tag_id"] is None

    async def test_clear(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        await client.put("/api/selection", json={"tag_id": dashboard_db.ids["spring"]})
        await client.put("/api/selection", json={"tag_id": None})
        assert (await client.get("/api/selection")).json()["tag_id"] is None
