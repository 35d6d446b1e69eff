# @TASK P4-T4.4 - Folder, category and tag endpoints
# @TEST tests/test_api_taxonomy.py

"""Tests for folder/category/tag CRUD and their delete cascades over HTTP."""

import pytest
from httpx import AsyncClient


async def _create(client: AsyncClient, path: str, payload: dict) -> dict:
    response = await client.post(path, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestFolders:
    @pytest.mark.asyncio
    async def test_crud(self, test_client: AsyncClient, user):
        folder = await _create(test_client, "/api/folders", {"name": "Work", "userId": user.id})

        listed = await test_client.get("/api/folders", params={"userId": user.id})
        assert [f["name"] for f in listed.json()] == ["Work"]

        renamed = await test_client.put(f"/api/folders/{folder['id']}", json={"name": "Projects"})
        assert renamed.json()["name"] == "Projects"
        assert (await test_client.get(f"/api/folders/{folder['id']}")).json()["name"] == "Projects"

        assert (await test_client.delete(f"/api/folders/{folder['id']}")).status_code == 204
        assert (await test_client.get(f"/api/folders/{folder['id']}")).status_code == 404
        assert (await test_client.get("/api/folders", params={"userId": user.id})).json() == []

    @pytest.mark.asyncio
    async def test_delete_keeps_notes(self, test_client: AsyncClient, user):
        folder = await _create(test_client, "/api/folders", {"name": "f1", "userId": user.id})
        note = await _create(test_client, "/api/notes", {"title": "n1", "userId": user.id, "folderId": folder["id"]})
        await test_client.get(f"/api/notes/{note['id']}")

        await test_client.delete(f"/api/folders/{folder['id']}")

        fetched = await test_client.get(f"/api/notes/{note['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["folderId"] is None

    @pytest.mark.asyncio
    async def test_errors(self, test_client: AsyncClient, user):
        assert (await test_client.get("/api/folders")).status_code == 400
        assert (await test_client.post("/api/folders", json={"userId": user.id})).status_code == 400
        assert (await test_client.put("/api/folders/999", json={"name": "x"})).status_code == 404
        assert (await test_client.put("/api/folders/999", json={"name": None})).status_code == 400
        assert (await test_client.delete("/api/folders/999")).status_code == 404


class TestCategories:
    @pytest.mark.asyncio
    async def test_crud_and_palette(self, test_client: AsyncClient, user):
        category = await _create(
            test_client, "/api/categories", {"name": "Ideas", "color": "indigo", "userId": user.id}
        )
        assert category["color"] == "indigo"

        bad = await test_client.put(f"/api/categories/{category['id']}", json={"color": "orange"})
        assert bad.status_code == 400

        recolored = await test_client.put(f"/api/categories/{category['id']}", json={"color": "pink"})
        assert recolored.json()["color"] == "pink"
        assert recolored.json()["name"] == "Ideas"

        listed = await test_client.get("/api/categories", params={"userId": user.id})
        assert [c["id"] for c in listed.json()] == [category["id"]]

    @pytest.mark.asyncio
    async def test_delete_uncategorises_notes(self, test_client: AsyncClient, user):
        category = await _create(test_client, "/api/categories", {"name": "c", "color": "red", "userId": user.id})
        note = await _create(
            test_client, "/api/notes", {"title": "n", "userId": user.id, "categoryId": category["id"]}
        )

        assert (await test_client.delete(f"/api/categories/{category['id']}")).status_code == 204
        assert (await test_client.get(f"/api/notes/{note['id']}")).json()["categoryId"] is None


class TestTags:
    @pytest.mark.asyncio
    async def test_list_requires_owner_or_note(self, test_client: AsyncClient):
        response = await test_client.get("/api/tags")
        assert response.status_code == 400
        assert response.json()["detail"] == "Either User ID or Note ID is required"

    @pytest.mark.asyncio
    async def test_crud(self, test_client: AsyncClient, user):
        tag = await _create(test_client, "/api/tags", {"name": "urgent", "userId": user.id})
        renamed = await test_client.put(f"/api/tags/{tag['id']}", json={"name": "later"})
        assert renamed.json()["name"] == "later"
        assert [t["name"] for t in (await test_client.get("/api/tags", params={"userId": user.id})).json()] == ["later"]
        assert (await test_client.get("/api/tags/999")).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_detaches_from_notes(self, test_client: AsyncClient, user):
        tag = await _create(test_client, "/api/tags", {"name": "t1", "userId": user.id})
        note = await _create(test_client, "/api/notes", {"title": "n1", "userId": user.id})
        await test_client.post(f"/api/notes/{note['id']}/tags/{tag['id']}")

        assert (await test_client.delete(f"/api/tags/{tag['id']}")).status_code == 204

        assert (await test_client.get("/api/tags", params={"noteId": note["id"]})).json() == []
        by_tag = await test_client.get("/api/notes", params={"userId": user.id, "tagId": tag["id"]})
        assert by_tag.json() == []
        assert (await test_client.get(f"/api/notes/{note['id']}")).status_code == 200
