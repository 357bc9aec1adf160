"""
Comment endpoint tests.
Covers: create, reply, validation, identity header, lookups, subtree,
author-only cascade deletion and admin moderation.
"""
from __future__ import annotations

import uuid
from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


def _headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


async def _post(
    client: AsyncClient, user_id: uuid.UUID, body: str, group: str = "book-club"
) -> dict[str, Any]:
    resp = await client.post(
        "/api/v1/comments/",
        json={"body": body, "group": group},
        headers=_headers(user_id),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _reply(
    client: AsyncClient,
    user_id: uuid.UUID,
    parent_id: str,
    body: str,
    group: str = "book-club",
) -> dict[str, Any]:
    resp = await client.post(
        f"/api/v1/comments/{parent_id}/replies",
        json={"body": body, "group": group},
        headers=_headers(user_id),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _index(client: AsyncClient, group: str = "book-club") -> list[str]:
    resp = await client.get(f"/api/v1/groups/{group}")
    assert resp.status_code == 200, resp.text
    return resp.json()["comment_ids"]


class TestCreateComment:
    async def test_create_root(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID
    ) -> None:
        data = await _post(client, alice, "First!")

        assert data["body"] == "First!"
        assert data["parent_id"] is None
        assert data["author_id"] == str(alice)
        assert data["group_id"] == book_club["id"]
        assert await _index(client) == [data["id"]]

    async def test_reply(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, bob: uuid.UUID
    ) -> None:
        root = await _post(client, alice, "Thoughts?")
        reply = await _reply(client, bob, root["id"], "Loved it")

        assert reply["parent_id"] == root["id"]
        assert await _index(client) == [root["id"], reply["id"]]

    @pytest.mark.parametrize("body", ["", "   "])
    async def test_empty_body_rejected(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, body: str
    ) -> None:
        resp = await client.post(
            "/api/v1/comments/",
            json={"body": body, "group": "book-club"},
            headers=_headers(alice),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "INVALID_INPUT"
        assert await _index(client) == []

    async def test_body_too_long(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID
    ) -> None:
        resp = await client.post(
            "/api/v1/comments/",
            json={"body": "x" * 10001, "group": "book-club"},
            headers=_headers(alice),
        )
        assert resp.status_code == 422

    async def test_unknown_group(self, client: AsyncClient, alice: uuid.UUID) -> None:
        resp = await client.post(
            "/api/v1/comments/",
            json={"body": "hello", "group": "nowhere"},
            headers=_headers(alice),
        )
        assert resp.status_code == 404

    async def test_reply_to_missing_parent(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID
    ) -> None:
        resp = await client.post(
            f"/api/v1/comments/{uuid.uuid4()}/replies",
            json={"body": "hello?", "group": "book-club"},
            headers=_headers(alice),
        )
        assert resp.status_code == 404
        assert await _index(client) == []

    async def test_reply_across_groups_rejected(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID
    ) -> None:
        await client.post("/api/v1/groups/", json={"name": "chess"}, headers=_headers(alice))
        root = await _post(client, alice, "Opening move")

        resp = await client.post(
            f"/api/v1/comments/{root['id']}/replies",
            json={"body": "wrong room", "group": "chess"},
            headers=_headers(alice),
        )
        assert resp.status_code == 400

    async def test_missing_identity_header(
        self, client: AsyncClient, book_club: dict
    ) -> None:
        resp = await client.post(
            "/api/v1/comments/", json={"body": "anon", "group": "book-club"}
        )
        assert resp.status_code == 401

    async def test_malformed_identity_header(
        self, client: AsyncClient, book_club: dict
    ) -> None:
        resp = await client.post(
            "/api/v1/comments/",
            json={"body": "anon", "group": "book-club"},
            headers={"X-User-Id": "not-a-uuid"},
        )
        assert resp.status_code == 401


class TestReadComments:
    async def test_get_comment(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID
    ) -> None:
        created = await _post(client, alice, "Hi")
        resp = await client.get(f"/api/v1/comments/{created['id']}")
        assert resp.status_code == 200
        assert resp.json()["body"] == "Hi"

    async def test_get_missing_comment(self, client: AsyncClient) -> None:
        resp = await client.get(f"/api/v1/comments/{uuid.uuid4()}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "NOT_FOUND"

    async def test_subtree(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, bob: uuid.UUID
    ) -> None:
        root = await _post(client, alice, "root")
        a = await _reply(client, bob, root["id"], "a")
        b = await _reply(client, alice, a["id"], "b")
        await _post(client, bob, "unrelated")

        resp = await client.get(f"/api/v1/comments/{root['id']}/subtree")

        assert resp.status_code == 200
        data = resp.json()
        assert data["root_id"] == root["id"]
        assert data["comment_ids"] == [root["id"], a["id"], b["id"]]

    async def test_my_comments(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, bob: uuid.UUID
    ) -> None:
        mine = await _post(client, alice, "mine")
        await _post(client, bob, "theirs")

        resp = await client.get("/api/v1/comments/mine", headers=_headers(alice))

        assert resp.status_code == 200
        assert [c["id"] for c in resp.json()] == [mine["id"]]

    async def test_group_comments_paginated(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID
    ) -> None:
        ids = [(await _post(client, alice, f"c{i}"))["id"] for i in range(3)]

        resp = await client.get("/api/v1/groups/book-club/comments?page=2&size=2")

        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert [c["id"] for c in data["items"]] == ids[2:]

    async def test_group_threads_nested(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, bob: uuid.UUID
    ) -> None:
        root = await _post(client, alice, "root")
        a = await _reply(client, bob, root["id"], "a")
        b = await _reply(client, alice, a["id"], "b")
        other = await _post(client, bob, "other")

        resp = await client.get("/api/v1/groups/book-club/threads")

        assert resp.status_code == 200
        forest = resp.json()
        assert [t["id"] for t in forest] == [root["id"], other["id"]]
        assert forest[0]["replies"][0]["id"] == a["id"]
        assert forest[0]["replies"][0]["replies"][0]["id"] == b["id"]
        assert forest[1]["replies"] == []


class TestDeleteComment:
    async def test_delete_thread_cascades(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, bob: uuid.UUID
    ) -> None:
        root = await _post(client, alice, "R")
        a = await _reply(client, bob, root["id"], "A")
        b = await _reply(client, alice, a["id"], "B")
        survivor = await _post(client, bob, "R2")

        resp = await client.delete(
            f"/api/v1/comments/{root['id']}", headers=_headers(alice)
        )

        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["root_id"] == root["id"]
        assert data["group_id"] == book_club["id"]
        assert sorted(data["deleted_ids"]) == sorted([root["id"], a["id"], b["id"]])
        assert await _index(client) == [survivor["id"]]
        for gone in (root, a, b):
            assert (await client.get(f"/api/v1/comments/{gone['id']}")).status_code == 404

    async def test_delete_leaf(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, bob: uuid.UUID
    ) -> None:
        root = await _post(client, alice, "R")
        leaf = await _reply(client, bob, root["id"], "leaf")

        resp = await client.delete(f"/api/v1/comments/{leaf['id']}", headers=_headers(bob))

        assert resp.status_code == 200
        assert resp.json()["deleted_ids"] == [leaf["id"]]
        assert await _index(client) == [root["id"]]

    async def test_non_author_forbidden(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, bob: uuid.UUID
    ) -> None:
        root = await _post(client, alice, "R")
        reply = await _reply(client, bob, root["id"], "A")

        resp = await client.delete(f"/api/v1/comments/{root['id']}", headers=_headers(bob))

        assert resp.status_code == 403
        assert await _index(client) == [root["id"], reply["id"]]

    async def test_delete_missing(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID
    ) -> None:
        resp = await client.delete(
            f"/api/v1/comments/{uuid.uuid4()}", headers=_headers(alice)
        )
        assert resp.status_code == 404

    async def test_reply_to_deleted_comment(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, bob: uuid.UUID
    ) -> None:
        root = await _post(client, alice, "R")
        await client.delete(f"/api/v1/comments/{root['id']}", headers=_headers(alice))

        resp = await client.post(
            f"/api/v1/comments/{root['id']}/replies",
            json={"body": "too late", "group": "book-club"},
            headers=_headers(bob),
        )
        assert resp.status_code == 404
        assert await _index(client) == []


class TestModerateComment:
    async def test_admin_moderates_any_thread(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, bob: uuid.UUID
    ) -> None:
        spam = await _post(client, bob, "spam")
        await _reply(client, bob, spam["id"], "more spam")

        resp = await client.delete(
            f"/api/v1/comments/{spam['id']}/moderate", headers=_headers(alice)
        )

        assert resp.status_code == 200
        assert len(resp.json()["deleted_ids"]) == 2
        assert await _index(client) == []

    async def test_member_cannot_moderate(
        self, client: AsyncClient, book_club: dict, alice: uuid.UUID, bob: uuid.UUID
    ) -> None:
        post = await _post(client, alice, "rules")

        resp = await client.delete(
            f"/api/v1/comments/{post['id']}/moderate", headers=_headers(bob)
        )

        assert resp.status_code == 403
        assert await _index(client) == [post["id"]]
