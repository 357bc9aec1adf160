"""
Group CRUD operations: groups, memberships and the group comment index.
"""
from __future__ import annotations

import uuid
from collections.abc import Collection

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from huddle.crud.base import CRUDBase
from huddle.models.group import Group, GroupComment, GroupMember
from huddle.schemas.group import GroupCreate


class CRUDGroup(CRUDBase[Group, GroupCreate]):

    async def create_group(
        self,
        db: AsyncSession,
        *,
        obj_in: GroupCreate,
        admin_id: uuid.UUID,
    ) -> Group:
        group = Group(name=obj_in.name, admin_id=admin_id)
        db.add(group)
        await db.flush()
        await db.refresh(group)
        return group

    async def get_by_name(self, db: AsyncSession, name: str) -> Group | None:
        result = await db.execute(select(Group).where(Group.name == name))
        return result.scalar_one_or_none()

    async def get_for_update(
        self, db: AsyncSession, group_id: uuid.UUID
    ) -> Group | None:
        """Row-lock the group for the rest of the transaction (ignored by SQLite)."""
        result = await db.execute(
            select(Group).where(Group.id == group_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def get_with_members(
        self, db: AsyncSession, group_id: uuid.UUID
    ) -> Group | None:
        result = await db.execute(
            select(Group)
            .options(
                selectinload(Group.members),
                selectinload(Group.comment_index),
            )
            .where(Group.id == group_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_all(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Group], int]:
        count_result = await db.execute(select(func.count()).select_from(Group))
        total = count_result.scalar_one()
        result = await db.execute(
            select(Group).order_by(Group.name.asc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_by_member(
        self, db: AsyncSession, *, user_id: uuid.UUID
    ) -> list[Group]:
        result = await db.execute(
            select(Group)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .where(GroupMember.user_id == user_id)
            .order_by(Group.name.asc())
        )
        return list(result.scalars().all())

    # ── Membership ────────────────────────────────────────────────────────────

    async def get_member(
        self, db: AsyncSession, *, group_id: uuid.UUID, user_id: uuid.UUID
    ) -> GroupMember | None:
        result = await db.execute(
            select(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_member(
        self, db: AsyncSession, *, group_id: uuid.UUID, user_id: uuid.UUID
    ) -> GroupMember:
        member = GroupMember(group_id=group_id, user_id=user_id)
        db.add(member)
        await db.flush()
        await db.refresh(member)
        return member

    async def remove_member(
        self, db: AsyncSession, *, group_id: uuid.UUID, user_id: uuid.UUID
    ) -> GroupMember | None:
        member = await self.get_member(db, group_id=group_id, user_id=user_id)
        if member is None:
            return None
        await db.delete(member)
        await db.flush()
        return member

    async def count_members(self, db: AsyncSession, *, group_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(GroupMember)
            .where(GroupMember.group_id == group_id)
        )
        return result.scalar_one()

    # ── Comment index ─────────────────────────────────────────────────────────

    async def list_comment_ids(
        self, db: AsyncSession, *, group_id: uuid.UUID
    ) -> list[uuid.UUID]:
        result = await db.execute(
            select(GroupComment.comment_id)
            .where(GroupComment.group_id == group_id)
            .order_by(GroupComment.position.asc())
        )
        return [row[0] for row in result.all()]

    async def append_comment(
        self, db: AsyncSession, *, group_id: uuid.UUID, comment_id: uuid.UUID
    ) -> bool:
        """Append ``comment_id`` to the index. Returns False if it was already there."""
        existing = await db.execute(
            select(GroupComment.position).where(
                GroupComment.group_id == group_id,
                GroupComment.comment_id == comment_id,
            )
        )
        if existing.first() is not None:
            return False
        db.add(GroupComment(group_id=group_id, comment_id=comment_id))
        await db.flush()
        return True

    async def prune_comments(
        self,
        db: AsyncSession,
        *,
        group_id: uuid.UUID,
        comment_ids: Collection[uuid.UUID],
    ) -> int:
        if not comment_ids:
            return 0
        result = await db.execute(
            delete(GroupComment)
            .where(
                GroupComment.group_id == group_id,
                GroupComment.comment_id.in_(list(comment_ids)),
            )
        )
        return result.rowcount

    async def delete_group(self, db: AsyncSession, *, group_id: uuid.UUID) -> bool:
        """Drop the group row together with its memberships and index rows."""
        await db.execute(delete(GroupComment).where(GroupComment.group_id == group_id))
        await db.execute(delete(GroupMember).where(GroupMember.group_id == group_id))
        result = await db.execute(delete(Group).where(Group.id == group_id))
        return result.rowcount > 0


crud_group = CRUDGroup(Group)
