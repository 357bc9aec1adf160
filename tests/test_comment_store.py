"""
Comment store tests, run against both the in-memory and the SQL backend.
Covers: create, reply, validation, lookups, single deletes, adjacency.
"""
from __future__ import annotations

import uuid

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.exceptions import InvalidInputException, NotFoundException
from huddle.crud.group import crud_group
from huddle.schemas.group import GroupCreate
from huddle.services.comment_store import (
    CommentStore,
    InMemoryCommentStore,
    SQLCommentStore,
)

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request: pytest.FixtureRequest, db: AsyncSession) -> CommentStore:
    if request.param == "memory":
        return InMemoryCommentStore()
    return SQLCommentStore(db)


@pytest_asyncio.fixture
async def group_ids(db: AsyncSession) -> tuple[uuid.UUID, uuid.UUID]:
    admin = uuid.uuid4()
    first = await crud_group.create_group(db, obj_in=GroupCreate(name="first"), admin_id=admin)
    second = await crud_group.create_group(db, obj_in=GroupCreate(name="second"), admin_id=admin)
    return first.id, second.id


class TestCreate:
    async def test_create_root(self, store: CommentStore, group_ids) -> None:
        author = uuid.uuid4()
        comment = await store.create(author, "hello", group_ids[0])

        assert comment.parent_id is None
        assert comment.is_root
        assert comment.author_id == author
        assert comment.group_id == group_ids[0]
        assert (await store.get(comment.id)).body == "hello"

    @pytest.mark.parametrize("body", ["", "   ", "\n\t"])
    async def test_create_empty_body_persists_nothing(
        self, store: CommentStore, group_ids, body: str
    ) -> None:
        with pytest.raises(InvalidInputException):
            await store.create(uuid.uuid4(), body, group_ids[0])
        assert await store.list_all() == []


class TestReply:
    async def test_reply_links_parent(self, store: CommentStore, group_ids) -> None:
        root = await store.create(uuid.uuid4(), "root", group_ids[0])
        reply = await store.reply(uuid.uuid4(), "reply", root.id, group_ids[0])

        assert reply.parent_id == root.id
        children = await store.children_of([root.id])
        assert [c.id for c in children] == [reply.id]

    async def test_reply_to_missing_parent(self, store: CommentStore, group_ids) -> None:
        with pytest.raises(NotFoundException):
            await store.reply(uuid.uuid4(), "orphan", uuid.uuid4(), group_ids[0])
        assert await store.list_all() == []

    async def test_reply_with_empty_body(self, store: CommentStore, group_ids) -> None:
        root = await store.create(uuid.uuid4(), "root", group_ids[0])
        with pytest.raises(InvalidInputException):
            await store.reply(uuid.uuid4(), "", root.id, group_ids[0])
        assert [c.id for c in await store.list_all()] == [root.id]

    async def test_reply_across_groups_rejected(self, store: CommentStore, group_ids) -> None:
        root = await store.create(uuid.uuid4(), "root", group_ids[0])
        with pytest.raises(InvalidInputException):
            await store.reply(uuid.uuid4(), "elsewhere", root.id, group_ids[1])
        assert await store.list_by_group(group_ids[1]) == []


class TestLookups:
    async def test_get_missing(self, store: CommentStore) -> None:
        with pytest.raises(NotFoundException):
            await store.get(uuid.uuid4())
        assert await store.find(uuid.uuid4()) is None

    async def test_list_by_group(self, store: CommentStore, group_ids) -> None:
        a = await store.create(uuid.uuid4(), "a", group_ids[0])
        await store.create(uuid.uuid4(), "b", group_ids[1])
        a_reply = await store.reply(uuid.uuid4(), "a.1", a.id, group_ids[0])

        ids = {c.id for c in await store.list_by_group(group_ids[0])}
        assert ids == {a.id, a_reply.id}

    async def test_list_by_author_in_group(self, store: CommentStore, group_ids) -> None:
        author, other = uuid.uuid4(), uuid.uuid4()
        mine = await store.create(author, "mine", group_ids[0])
        await store.create(other, "theirs", group_ids[0])
        await store.create(author, "mine elsewhere", group_ids[1])
        my_reply = await store.reply(author, "me again", mine.id, group_ids[0])

        ids = await store.list_by_author_in_group(group_ids[0], author)
        assert set(ids) == {mine.id, my_reply.id}
        assert len(await store.list_by_author(author)) == 3


class TestDeleteOne:
    async def test_delete_removes_exactly_one(self, store: CommentStore, group_ids) -> None:
        root = await store.create(uuid.uuid4(), "root", group_ids[0])
        other = await store.create(uuid.uuid4(), "other", group_ids[0])

        assert await store.delete_one(root.id) is True
        assert await store.find(root.id) is None
        assert [c.id for c in await store.list_all()] == [other.id]

    async def test_delete_absent_is_noop(self, store: CommentStore) -> None:
        assert await store.delete_one(uuid.uuid4()) is False

    async def test_deleted_reply_leaves_adjacency(self, store: CommentStore, group_ids) -> None:
        root = await store.create(uuid.uuid4(), "root", group_ids[0])
        first = await store.reply(uuid.uuid4(), "first", root.id, group_ids[0])
        second = await store.reply(uuid.uuid4(), "second", root.id, group_ids[0])

        await store.delete_one(first.id)

        assert [c.id for c in await store.children_of([root.id])] == [second.id]
