"""
Group authority consumed by the thread engine.
Resolves group names, answers admin checks, and owns the group comment index
that must mirror the live comments of each group.
"""
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Collection

from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.exceptions import NotFoundException
from huddle.crud.group import crud_group


class GroupAuthority(ABC):

    @abstractmethod
    async def resolve_group(self, name: str) -> uuid.UUID:
        """Group id for ``name``; NotFoundException if there is none."""

    @abstractmethod
    async def is_group_admin(self, user_id: uuid.UUID, group_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def lock_group(self, group_id: uuid.UUID) -> None:
        """Take the backend lock on the group; NotFoundException if it is gone."""

    @abstractmethod
    async def append_comment(self, group_id: uuid.UUID, comment_id: uuid.UUID) -> None:
        ...

    @abstractmethod
    async def prune_comments(
        self, group_id: uuid.UUID, comment_ids: Collection[uuid.UUID]
    ) -> None:
        ...

    @abstractmethod
    async def comment_ids(self, group_id: uuid.UUID) -> list[uuid.UUID]:
        ...

    @abstractmethod
    async def delete_group(self, group_id: uuid.UUID) -> None:
        ...


class SQLGroupAuthority(GroupAuthority):
    """Shares the request session with SQLCommentStore so both commit together."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def resolve_group(self, name: str) -> uuid.UUID:
        group = await crud_group.get_by_name(self.db, name)
        if group is None:
            raise NotFoundException("Group", name)
        return group.id

    async def is_group_admin(self, user_id: uuid.UUID, group_id: uuid.UUID) -> bool:
        group = await crud_group.get(self.db, group_id)
        return group is not None and group.admin_id == user_id

    async def lock_group(self, group_id: uuid.UUID) -> None:
        group = await crud_group.get_for_update(self.db, group_id)
        if group is None:
            raise NotFoundException("Group", str(group_id))

    async def append_comment(self, group_id: uuid.UUID, comment_id: uuid.UUID) -> None:
        await crud_group.append_comment(self.db, group_id=group_id, comment_id=comment_id)

    async def prune_comments(
        self, group_id: uuid.UUID, comment_ids: Collection[uuid.UUID]
    ) -> None:
        await crud_group.prune_comments(self.db, group_id=group_id, comment_ids=comment_ids)

    async def comment_ids(self, group_id: uuid.UUID) -> list[uuid.UUID]:
        return await crud_group.list_comment_ids(self.db, group_id=group_id)

    async def delete_group(self, group_id: uuid.UUID) -> None:
        await crud_group.delete_group(self.db, group_id=group_id)
