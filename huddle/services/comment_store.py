"""
Comment store: persistence and existence checks for individual comments.

``CommentStore`` is the capability the thread resolver and the cascade
deleter depend on. Two backends implement it:

- ``SQLCommentStore`` wraps one request's ``AsyncSession``; the indexed
  ``comments.parent_id`` column is its parent -> children adjacency.
- ``InMemoryCommentStore`` keeps an explicit parent -> ordered children map,
  updated on every insert and delete.

Both hand out immutable ``CommentRecord`` values. ``delete_one`` on an id
that is already gone is a no-op that returns ``False``.
"""
from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.exceptions import (
    CorruptStateException,
    InvalidInputException,
    NotFoundException,
    StoreError,
)
from huddle.crud.comment import crud_comment
from huddle.models.comment import Comment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommentRecord:
    id: uuid.UUID
    author_id: uuid.UUID
    body: str
    parent_id: uuid.UUID | None
    group_id: uuid.UUID
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @classmethod
    def from_model(cls, comment: Comment) -> "CommentRecord":
        return cls(
            id=comment.id,
            author_id=comment.author_id,
            body=comment.body,
            parent_id=comment.parent_id,
            group_id=comment.group_id,
            created_at=comment.created_at,
        )


def _require_body(body: str | None) -> None:
    if not body or not body.strip():
        raise InvalidInputException("Comment body must be non-empty")


class CommentStore(ABC):

    async def create(
        self, author_id: uuid.UUID, body: str, group_id: uuid.UUID
    ) -> CommentRecord:
        """Persist a new thread root."""
        _require_body(body)
        return await self._insert(
            author_id=author_id, body=body, group_id=group_id, parent_id=None
        )

    async def reply(
        self,
        author_id: uuid.UUID,
        body: str,
        parent_id: uuid.UUID,
        group_id: uuid.UUID,
    ) -> CommentRecord:
        """
        Persist a reply to ``parent_id``.
        The parent must exist and belong to ``group_id``.
        """
        _require_body(body)
        parent = await self.get(parent_id)
        if parent.group_id != group_id:
            raise InvalidInputException(
                f"Parent comment '{parent_id}' belongs to a different group"
            )
        return await self._insert(
            author_id=author_id, body=body, group_id=group_id, parent_id=parent_id
        )

    async def get(self, comment_id: uuid.UUID) -> CommentRecord:
        record = await self.find(comment_id)
        if record is None:
            raise NotFoundException("Comment", str(comment_id))
        return record

    async def list_by_author_in_group(
        self, group_id: uuid.UUID, author_id: uuid.UUID
    ) -> list[uuid.UUID]:
        records = await self.list_by_author(author_id, group_id=group_id)
        return [record.id for record in records]

    async def commit(self) -> None:
        """Make every write so far durable. Backends without transactions need nothing."""
        return None

    @abstractmethod
    async def find(self, comment_id: uuid.UUID) -> CommentRecord | None:
        ...

    @abstractmethod
    async def _insert(
        self,
        *,
        author_id: uuid.UUID,
        body: str,
        group_id: uuid.UUID,
        parent_id: uuid.UUID | None,
    ) -> CommentRecord:
        ...

    @abstractmethod
    async def delete_one(self, comment_id: uuid.UUID) -> bool:
        """Remove exactly one record. Returns False if there was nothing to remove."""

    @abstractmethod
    async def children_of(
        self, parent_ids: Collection[uuid.UUID]
    ) -> list[CommentRecord]:
        """Direct replies of any of ``parent_ids``."""

    @abstractmethod
    async def list_all(self) -> list[CommentRecord]:
        ...

    @abstractmethod
    async def list_by_group(self, group_id: uuid.UUID) -> list[CommentRecord]:
        ...

    @abstractmethod
    async def list_by_author(
        self, author_id: uuid.UUID, *, group_id: uuid.UUID | None = None
    ) -> list[CommentRecord]:
        ...


class SQLCommentStore(CommentStore):

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find(self, comment_id: uuid.UUID) -> CommentRecord | None:
        comment = await crud_comment.get(self.db, comment_id)
        return CommentRecord.from_model(comment) if comment is not None else None

    async def _insert(
        self,
        *,
        author_id: uuid.UUID,
        body: str,
        group_id: uuid.UUID,
        parent_id: uuid.UUID | None,
    ) -> CommentRecord:
        comment = await crud_comment.create_comment(
            self.db,
            author_id=author_id,
            body=body,
            group_id=group_id,
            parent_id=parent_id,
        )
        return CommentRecord.from_model(comment)

    async def delete_one(self, comment_id: uuid.UUID) -> bool:
        # Savepoint per row: a failed delete must not undo earlier deletes
        # of the same cascade.
        try:
            async with self.db.begin_nested():
                return await crud_comment.delete_by_id(self.db, comment_id)
        except SQLAlchemyError as exc:
            logger.warning("Failed to delete comment %s: %s", comment_id, exc)
            raise StoreError(f"Failed to delete comment '{comment_id}'") from exc

    async def children_of(
        self, parent_ids: Collection[uuid.UUID]
    ) -> list[CommentRecord]:
        rows = await crud_comment.list_children(self.db, parent_ids=parent_ids)
        return [CommentRecord.from_model(row) for row in rows]

    async def list_all(self) -> list[CommentRecord]:
        rows = await crud_comment.list_all(self.db)
        return [CommentRecord.from_model(row) for row in rows]

    async def list_by_group(self, group_id: uuid.UUID) -> list[CommentRecord]:
        rows = await crud_comment.list_by_group(self.db, group_id=group_id)
        return [CommentRecord.from_model(row) for row in rows]

    async def list_by_author(
        self, author_id: uuid.UUID, *, group_id: uuid.UUID | None = None
    ) -> list[CommentRecord]:
        rows = await crud_comment.list_by_author(
            self.db, author_id=author_id, group_id=group_id
        )
        return [CommentRecord.from_model(row) for row in rows]

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise StoreError("Failed to commit comment changes") from exc


class InMemoryCommentStore(CommentStore):

    def __init__(self) -> None:
        self._records: dict[uuid.UUID, CommentRecord] = {}
        self._children: dict[uuid.UUID, list[uuid.UUID]] = {}

    @classmethod
    def from_records(cls, records: Iterable[CommentRecord]) -> "InMemoryCommentStore":
        """Load records as-is, without validation (snapshots, fixtures)."""
        store = cls()
        for record in records:
            store._add(record)
        return store

    def _add(self, record: CommentRecord) -> None:
        self._records[record.id] = record
        if record.parent_id is not None:
            self._children.setdefault(record.parent_id, []).append(record.id)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, comment_id: object) -> bool:
        return comment_id in self._records

    async def find(self, comment_id: uuid.UUID) -> CommentRecord | None:
        return self._records.get(comment_id)

    async def _insert(
        self,
        *,
        author_id: uuid.UUID,
        body: str,
        group_id: uuid.UUID,
        parent_id: uuid.UUID | None,
    ) -> CommentRecord:
        record = CommentRecord(
            id=uuid.uuid4(),
            author_id=author_id,
            body=body,
            parent_id=parent_id,
            group_id=group_id,
        )
        self._add(record)
        return record

    async def delete_one(self, comment_id: uuid.UUID) -> bool:
        record = self._records.pop(comment_id, None)
        if record is None:
            return False
        if record.parent_id is not None:
            siblings = self._children.get(record.parent_id, [])
            if comment_id in siblings:
                siblings.remove(comment_id)
            if not siblings:
                self._children.pop(record.parent_id, None)
        return True

    async def children_of(
        self, parent_ids: Collection[uuid.UUID]
    ) -> list[CommentRecord]:
        children = []
        for parent_id in parent_ids:
            for child_id in self._children.get(parent_id, ()):
                record = self._records.get(child_id)
                if record is None:
                    raise CorruptStateException(
                        f"Reply index of comment '{parent_id}' references a missing comment",
                        [parent_id, child_id],
                    )
                children.append(record)
        return children

    async def list_all(self) -> list[CommentRecord]:
        return list(self._records.values())

    async def list_by_group(self, group_id: uuid.UUID) -> list[CommentRecord]:
        return [r for r in self._records.values() if r.group_id == group_id]

    async def list_by_author(
        self, author_id: uuid.UUID, *, group_id: uuid.UUID | None = None
    ) -> list[CommentRecord]:
        return [
            r
            for r in self._records.values()
            if r.author_id == author_id and (group_id is None or r.group_id == group_id)
        ]
