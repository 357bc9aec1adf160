"""
Group management service.
Handles group creation, membership, admin hand-over, renaming and deletion.
Flows that take comments with them (leaving, removal, deletion) go through
the thread service so the comment index stays consistent.
"""
from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidInputException,
    NotFoundException,
)
from huddle.crud.group import crud_group
from huddle.models.group import Group
from huddle.schemas.group import GroupCreate, MembershipResult, ReconcileReport
from huddle.services.thread_service import ThreadService


class GroupService:

    async def create_group(
        self,
        db: AsyncSession,
        *,
        group_in: GroupCreate,
        current_user_id: uuid.UUID,
    ) -> Group:
        name = self._clean_name(group_in.name)
        await self._assert_name_free(db, name)
        group = await crud_group.create_group(
            db, obj_in=GroupCreate(name=name), admin_id=current_user_id
        )
        # The admin is always a member
        await crud_group.add_member(db, group_id=group.id, user_id=current_user_id)
        return group

    async def get_group(self, db: AsyncSession, *, name: str) -> Group:
        group = await self._get_by_name(db, name)
        loaded = await crud_group.get_with_members(db, group.id)
        if loaded is None:
            raise NotFoundException("Group", name)
        return loaded

    async def join_group(
        self, db: AsyncSession, *, name: str, user_id: uuid.UUID
    ) -> MembershipResult:
        group = await self._get_by_name(db, name)
        if await crud_group.get_member(db, group_id=group.id, user_id=user_id) is not None:
            return MembershipResult(
                group_id=group.id, user_id=user_id, message="User is already in group"
            )
        await crud_group.add_member(db, group_id=group.id, user_id=user_id)
        return MembershipResult(
            group_id=group.id, user_id=user_id, message="Successfully added user to group"
        )

    async def leave_group(
        self,
        db: AsyncSession,
        *,
        name: str,
        user_id: uuid.UUID,
        threads: ThreadService,
    ) -> MembershipResult:
        group = await self._get_by_name(db, name)
        await self._assert_member(db, group=group, user_id=user_id)

        if group.admin_id == user_id:
            if await crud_group.count_members(db, group_id=group.id) > 1:
                raise ForbiddenException(
                    "The group admin cannot leave while other members remain"
                )
            deleted = await threads.dissolve_group(group.id)
            return MembershipResult(
                group_id=group.id,
                user_id=user_id,
                message="Last member left; group deleted",
                deleted_comment_ids=sorted(deleted),
            )

        deleted = await threads.purge_author(group.id, user_id)
        await crud_group.remove_member(db, group_id=group.id, user_id=user_id)
        return MembershipResult(
            group_id=group.id,
            user_id=user_id,
            message="Successfully left group",
            deleted_comment_ids=sorted(deleted),
        )

    async def remove_member(
        self,
        db: AsyncSession,
        *,
        name: str,
        user_id: uuid.UUID,
        current_user_id: uuid.UUID,
        threads: ThreadService,
    ) -> MembershipResult:
        group = await self._get_by_name(db, name)
        self._assert_admin(group=group, user_id=current_user_id)
        if user_id == group.admin_id:
            raise ForbiddenException("The group admin cannot be removed")
        await self._assert_member(db, group=group, user_id=user_id)

        deleted = await threads.purge_author(group.id, user_id)
        await crud_group.remove_member(db, group_id=group.id, user_id=user_id)
        return MembershipResult(
            group_id=group.id,
            user_id=user_id,
            message="Successfully removed user from group",
            deleted_comment_ids=sorted(deleted),
        )

    async def change_admin(
        self,
        db: AsyncSession,
        *,
        name: str,
        new_admin_id: uuid.UUID,
        current_user_id: uuid.UUID,
    ) -> Group:
        group = await self._get_by_name(db, name)
        self._assert_admin(group=group, user_id=current_user_id)
        if await crud_group.get_member(db, group_id=group.id, user_id=new_admin_id) is None:
            raise InvalidInputException("The new admin must be a member of the group")
        return await crud_group.update(db, db_obj=group, obj_in={"admin_id": new_admin_id})

    async def rename_group(
        self,
        db: AsyncSession,
        *,
        name: str,
        new_name: str,
        current_user_id: uuid.UUID,
    ) -> Group:
        group = await self._get_by_name(db, name)
        self._assert_admin(group=group, user_id=current_user_id)
        new_name = self._clean_name(new_name)
        if new_name == group.name:
            return group
        await self._assert_name_free(db, new_name)
        return await crud_group.update(db, db_obj=group, obj_in={"name": new_name})

    async def delete_group(
        self,
        db: AsyncSession,
        *,
        name: str,
        current_user_id: uuid.UUID,
        threads: ThreadService,
    ) -> set[uuid.UUID]:
        group = await self._get_by_name(db, name)
        self._assert_admin(group=group, user_id=current_user_id)
        return await threads.dissolve_group(group.id)

    async def reconcile_index(
        self,
        db: AsyncSession,
        *,
        name: str,
        current_user_id: uuid.UUID,
        threads: ThreadService,
    ) -> ReconcileReport:
        group = await self._get_by_name(db, name)
        self._assert_admin(group=group, user_id=current_user_id)
        repair = await threads.reconcile(group.id)
        return ReconcileReport(
            group_id=repair.group_id,
            added_ids=repair.added_ids,
            removed_ids=repair.removed_ids,
        )

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _get_by_name(self, db: AsyncSession, name: str) -> Group:
        group = await crud_group.get_by_name(db, name)
        if group is None:
            raise NotFoundException("Group", name)
        return group

    async def _assert_name_free(self, db: AsyncSession, name: str) -> None:
        if await crud_group.exists(db, name=name):
            raise ConflictException(f"Group with name '{name}' already exists")

    async def _assert_member(
        self, db: AsyncSession, *, group: Group, user_id: uuid.UUID
    ) -> None:
        if await crud_group.get_member(db, group_id=group.id, user_id=user_id) is None:
            raise NotFoundException("GroupMember", str(user_id))

    def _assert_admin(self, *, group: Group, user_id: uuid.UUID) -> None:
        if group.admin_id != user_id:
            raise ForbiddenException("Only the group admin can perform this action")

    @staticmethod
    def _clean_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidInputException("Group name must be non-empty")
        return name


group_service = GroupService()
