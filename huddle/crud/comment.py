"""
Comment CRUD operations.
"""
from __future__ import annotations

import uuid
from collections.abc import Collection

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.crud.base import CRUDBase
from huddle.models.comment import Comment
from huddle.schemas.comment import CommentCreate


class CRUDComment(CRUDBase[Comment, CommentCreate]):

    async def create_comment(
        self,
        db: AsyncSession,
        *,
        author_id: uuid.UUID,
        body: str,
        group_id: uuid.UUID,
        parent_id: uuid.UUID | None = None,
    ) -> Comment:
        comment = Comment(
            author_id=author_id,
            body=body,
            group_id=group_id,
            parent_id=parent_id,
        )
        db.add(comment)
        await db.flush()
        await db.refresh(comment)
        return comment

    async def list_children(
        self, db: AsyncSession, *, parent_ids: Collection[uuid.UUID]
    ) -> list[Comment]:
        """Direct replies of any of the given comments (uses ix_comments_parent_id)."""
        if not parent_ids:
            return []
        result = await db.execute(
            select(Comment)
            .where(Comment.parent_id.in_(list(parent_ids)))
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        return list(result.scalars().all())

    async def list_by_group(
        self, db: AsyncSession, *, group_id: uuid.UUID
    ) -> list[Comment]:
        result = await db.execute(
            select(Comment)
            .where(Comment.group_id == group_id)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        return list(result.scalars().all())

    async def list_by_author(
        self,
        db: AsyncSession,
        *,
        author_id: uuid.UUID,
        group_id: uuid.UUID | None = None,
    ) -> list[Comment]:
        query = select(Comment).where(Comment.author_id == author_id)
        if group_id is not None:
            query = query.where(Comment.group_id == group_id)
        result = await db.execute(
            query.order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        return list(result.scalars().all())

    async def list_all(self, db: AsyncSession) -> list[Comment]:
        result = await db.execute(
            select(Comment).order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        return list(result.scalars().all())

    async def delete_by_id(self, db: AsyncSession, comment_id: uuid.UUID) -> bool:
        """Delete one row without loading it. Returns False if it was already gone."""
        result = await db.execute(
            delete(Comment)
            .where(Comment.id == comment_id)
        )
        return result.rowcount > 0


crud_comment = CRUDComment(Comment)
