"""Unit tests for the category endpoints."""

import pytest
from sqlalchemy import select

from content_api.db.models import CategoryClosure
from tests.conftest import acreate_category, acreate_post

CATEGORIES = "/api/v1/categories"
MISSING_ID = "00000000-0000-0000-0000-000000000000"


def _tree_names(nodes):
    return [(node["name"], _tree_names(node["children"])) for node in nodes]


async def _ancestor_depths(db, category_id):
    result = await db.execute(
        select(CategoryClosure.ancestor_id, CategoryClosure.depth).where(
            CategoryClosure.descendant_id == category_id
        )
    )
    return {row.ancestor_id: row.depth for row in result.all()}


@pytest.fixture
async def tree(db):
    """
    Tech
      Python
        FastAPI
    Life
    """
    tech = await acreate_category(db, "Tech")
    life = await acreate_category(db, "Life", custom_order=1)
    python = await acreate_category(db, "Python", parent=tech)
    fastapi = await acreate_category(db, "FastAPI", parent=python)
    return {"tech": tech, "life": life, "python": python, "fastapi": fastapi}


class TestCreateCategory:
    """POST /categories"""

    @pytest.mark.anyio
    async def test_create_root(self, client):
        response = await client.post(CATEGORIES, json={"name": "News"})

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "News"
        assert data["parent_id"] is None
        assert data["parent"] is None
        assert data["custom_order"] == 0

    @pytest.mark.anyio
    async def test_create_child(self, client, tree):
        response = await client.post(
            CATEGORIES, json={"name": "Rust", "parent": tree["tech"].id, "custom_order": 2}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["parent_id"] == tree["tech"].id
        assert data["parent"]["name"] == "Tech"

    @pytest.mark.anyio
    async def test_unknown_parent_returns_404(self, client):
        response = await client.post(CATEGORIES, json={"name": "Orphan", "parent": MISSING_ID})
        assert response.status_code == 404

    @pytest.mark.anyio
    async def test_duplicate_sibling_name_returns_409(self, client, tree):
        response = await client.post(
            CATEGORIES, json={"name": "Python", "parent": tree["tech"].id}
        )

        assert response.status_code == 409
        assert response.json()["error"] == "ConflictError"

    @pytest.mark.anyio
    async def test_same_name_under_other_parent_allowed(self, client, tree):
        response = await client.post(
            CATEGORIES, json={"name": "Python", "parent": tree["life"].id}
        )
        assert response.status_code == 201

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"name": ""},
            {"name": "n" * 26},
            {"name": "ok", "custom_order": -1},
            {"name": "ok", "parent": "not-a-uuid"},
            {"name": "ok", "color": "red"},
        ],
    )
    async def test_invalid_body_returns_422(self, client, payload):
        response = await client.post(CATEGORIES, json=payload)
        assert response.status_code == 422


class TestReadCategories:
    """GET /categories/tree, GET /categories and GET /categories/{id}"""

    @pytest.mark.anyio
    async def test_tree(self, client, tree):
        response = await client.get(f"{CATEGORIES}/tree")

        assert response.status_code == 200
        assert _tree_names(response.json()) == [
            ("Tech", [("Python", [("FastAPI", [])])]),
            ("Life", []),
        ]

    @pytest.mark.anyio
    async def test_flat_list_with_depth(self, client, tree):
        response = await client.get(CATEGORIES, params={"limit": 3})

        assert response.status_code == 200
        data = response.json()
        assert [(item["name"], item["depth"]) for item in data["items"]] == [
            ("Tech", 0),
            ("Python", 1),
            ("FastAPI", 2),
        ]
        assert "children" not in data["items"][0]
        assert data["meta"]["total_items"] == 4
        assert data["meta"]["total_pages"] == 2

        second = await client.get(CATEGORIES, params={"limit": 3, "page": 2})
        assert [item["name"] for item in second.json()["items"]] == ["Life"]

    @pytest.mark.anyio
    async def test_detail(self, client, tree):
        response = await client.get(f"{CATEGORIES}/{tree['fastapi'].id}")

        assert response.status_code == 200
        assert response.json()["parent"]["name"] == "Python"

    @pytest.mark.anyio
    async def test_detail_not_found(self, client):
        response = await client.get(f"{CATEGORIES}/{MISSING_ID}")
        assert response.status_code == 404


class TestUpdateCategory:
    """PATCH /categories"""

    @pytest.mark.anyio
    async def test_rename(self, client, tree):
        response = await client.patch(
            CATEGORIES, json={"id": tree["python"].id, "name": "Py", "custom_order": 4}
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Py"
        assert response.json()["custom_order"] == 4
        assert response.json()["parent_id"] == tree["tech"].id

    @pytest.mark.anyio
    async def test_move_subtree(self, client, tree):
        response = await client.patch(
            CATEGORIES, json={"id": tree["python"].id, "parent": tree["life"].id}
        )

        assert response.status_code == 200
        assert response.json()["parent"]["name"] == "Life"

        trees = await client.get(f"{CATEGORIES}/tree")
        assert _tree_names(trees.json()) == [
            ("Tech", []),
            ("Life", [("Python", [("FastAPI", [])])]),
        ]

    @pytest.mark.anyio
    async def test_explicit_null_parent_moves_to_root(self, client, tree):
        response = await client.patch(CATEGORIES, json={"id": tree["python"].id, "parent": None})

        assert response.status_code == 200
        assert response.json()["parent_id"] is None

        roots = [node["name"] for node in (await client.get(f"{CATEGORIES}/tree")).json()]
        assert "Python" in roots

    @pytest.mark.anyio
    async def test_omitted_parent_keeps_position(self, client, tree):
        response = await client.patch(CATEGORIES, json={"id": tree["fastapi"].id, "name": "Flask"})
        assert response.json()["parent_id"] == tree["python"].id

    @pytest.mark.anyio
    async def test_move_under_descendant_returns_400(self, client, tree):
        response = await client.patch(
            CATEGORIES, json={"id": tree["tech"].id, "parent": tree["fastapi"].id}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.anyio
    async def test_move_into_name_conflict_returns_409(self, client, db, tree):
        await acreate_category(db, "Python", parent=tree["life"])

        response = await client.patch(
            CATEGORIES, json={"id": tree["python"].id, "parent": tree["life"].id}
        )
        assert response.status_code == 409

    @pytest.mark.anyio
    async def test_rename_to_sibling_name_returns_409(self, client, db, tree):
        await acreate_category(db, "Rust", parent=tree["tech"])

        response = await client.patch(CATEGORIES, json={"id": tree["python"].id, "name": "Rust"})
        assert response.status_code == 409


class TestDeleteAndRestore:
    """DELETE /categories, DELETE /categories/{id} and PATCH /categories/restore"""

    @pytest.mark.anyio
    async def test_delete_promotes_children(self, client, tree):
        response = await client.delete(f"{CATEGORIES}/{tree['python'].id}")

        assert response.status_code == 200
        assert response.json()["name"] == "Python"

        trees = await client.get(f"{CATEGORIES}/tree")
        assert _tree_names(trees.json()) == [("Tech", [("FastAPI", [])]), ("Life", [])]

        fastapi = await client.get(f"{CATEGORIES}/{tree['fastapi'].id}")
        assert fastapi.json()["parent_id"] == tree["tech"].id

    @pytest.mark.anyio
    async def test_delete_root_promotes_children_to_roots(self, client, tree):
        await client.delete(f"{CATEGORIES}/{tree['tech'].id}")

        roots = [node["name"] for node in (await client.get(f"{CATEGORIES}/tree")).json()]
        assert sorted(roots) == ["Life", "Python"]

    @pytest.mark.anyio
    async def test_hard_delete_unlinks_posts(self, client, db, tree):
        post = await acreate_post(db, "Tagged", categories=[tree["life"]])

        await client.request("DELETE", CATEGORIES, json={"ids": [tree["life"].id]})

        response = await client.get(f"/api/v1/posts/{post.id}")
        assert response.status_code == 200
        assert response.json()["categories"] == []

    @pytest.mark.anyio
    async def test_trash_restore_and_purge(self, client, tree):
        trashed = await client.request(
            "DELETE", CATEGORIES, json={"ids": [tree["python"].id], "trash": True}
        )
        assert trashed.status_code == 200
        assert trashed.json()[0]["deleted_at"] is not None

        only = await client.get(f"{CATEGORIES}/tree", params={"trashed": "only"})
        assert [node["name"] for node in only.json()] == []

        flat_trashed = await client.get(CATEGORIES, params={"trashed": "all"})
        assert "Python" in [item["name"] for item in flat_trashed.json()["items"]]

        restored = await client.patch(
            f"{CATEGORIES}/restore", json={"ids": [tree["python"].id]}
        )
        assert restored.status_code == 200
        assert restored.json()[0]["deleted_at"] is None
        assert restored.json()[0]["parent_id"] == tree["tech"].id

        # FastAPI was promoted when Python went to the trash
        tech = (await client.get(f"{CATEGORIES}/tree")).json()[0]
        assert tech["name"] == "Tech"
        assert sorted(child["name"] for child in tech["children"]) == ["FastAPI", "Python"]

    @pytest.mark.anyio
    async def test_trash_twice_removes_permanently(self, client, tree):
        body = {"ids": [tree["life"].id], "trash": True}
        await client.request("DELETE", CATEGORIES, json=body)
        await client.request("DELETE", CATEGORIES, json=body)

        response = await client.get(CATEGORIES, params={"trashed": "all"})
        assert "Life" not in [item["name"] for item in response.json()["items"]]

    @pytest.mark.anyio
    async def test_restore_ignores_live_ids(self, client, tree):
        response = await client.patch(f"{CATEGORIES}/restore", json={"ids": [tree["life"].id]})

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.anyio
    async def test_restore_after_parent_deleted_lands_on_grandparent(self, client, db, tree):
        await client.request(
            "DELETE", CATEGORIES, json={"ids": [tree["fastapi"].id], "trash": True}
        )
        await client.delete(f"{CATEGORIES}/{tree['python'].id}")

        restored = await client.patch(
            f"{CATEGORIES}/restore", json={"ids": [tree["fastapi"].id]}
        )

        assert restored.status_code == 200
        assert restored.json()[0]["parent_id"] == tree["tech"].id
        assert restored.json()[0]["parent"]["name"] == "Tech"
        assert await _ancestor_depths(db, tree["fastapi"].id) == {
            tree["fastapi"].id: 0,
            tree["tech"].id: 1,
        }

    @pytest.mark.anyio
    async def test_restore_after_root_parent_deleted_lands_at_root(self, client, db, tree):
        await client.request(
            "DELETE", CATEGORIES, json={"ids": [tree["python"].id], "trash": True}
        )
        await client.delete(f"{CATEGORIES}/{tree['tech'].id}")

        restored = await client.patch(
            f"{CATEGORIES}/restore", json={"ids": [tree["python"].id]}
        )

        assert restored.json()[0]["parent_id"] is None
        assert await _ancestor_depths(db, tree["python"].id) == {tree["python"].id: 0}

        roots = [node["name"] for node in (await client.get(f"{CATEGORIES}/tree")).json()]
        assert sorted(roots) == ["FastAPI", "Life", "Python"]

    @pytest.mark.anyio
    async def test_delete_parent_and_child_together_promotes_grandchild(
        self, client, db, tree
    ):
        starlette = await acreate_category(db, "Starlette", parent=tree["fastapi"])

        response = await client.request(
            "DELETE", CATEGORIES, json={"ids": [tree["python"].id, tree["fastapi"].id]}
        )

        assert response.status_code == 200
        assert sorted(c["name"] for c in response.json()) == ["FastAPI", "Python"]

        detail = await client.get(f"{CATEGORIES}/{starlette.id}")
        assert detail.json()["parent_id"] == tree["tech"].id
        assert await _ancestor_depths(db, starlette.id) == {
            starlette.id: 0,
            tree["tech"].id: 1,
        }

        trees = await client.get(f"{CATEGORIES}/tree")
        assert _tree_names(trees.json()) == [("Tech", [("Starlette", [])]), ("Life", [])]
