"""
Group management routes, plus the group-scoped comment listings.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from huddle.core.dependencies import CurrentUserId, DBSession, Threads
from huddle.crud.group import crud_group
from huddle.schemas.comment import CommentRead, CommentThread
from huddle.schemas.group import (
    GroupAdminChange,
    GroupCreate,
    GroupRead,
    GroupReadWithMembers,
    GroupRename,
    MembershipResult,
    ReconcileReport,
)
from huddle.schemas.pagination import PaginatedResponse
from huddle.services.group_service import group_service

router = APIRouter(prefix="/groups", tags=["Groups"])


@router.post(
    "/",
    response_model=GroupRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new group",
)
async def create_group(
    group_in: GroupCreate,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> GroupRead:
    group = await group_service.create_group(
        db, group_in=group_in, current_user_id=current_user_id
    )
    return GroupRead.model_validate(group)


@router.get(
    "/",
    response_model=PaginatedResponse[GroupRead],
    summary="List all groups",
)
async def list_groups(
    db: DBSession,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
) -> PaginatedResponse[GroupRead]:
    groups, total = await crud_group.list_all(db, skip=(page - 1) * size, limit=size)
    return PaginatedResponse(
        items=[GroupRead.model_validate(g) for g in groups],
        total=total,
        page=page,
        size=size,
    )


@router.get(
    "/mine",
    response_model=list[GroupRead],
    summary="List groups I belong to",
)
async def list_my_groups(
    current_user_id: CurrentUserId,
    db: DBSession,
) -> list[GroupRead]:
    groups = await crud_group.list_by_member(db, user_id=current_user_id)
    return [GroupRead.model_validate(g) for g in groups]


@router.get(
    "/{name}",
    response_model=GroupReadWithMembers,
    summary="Get group details with members and comment index",
)
async def get_group(name: str, db: DBSession) -> GroupReadWithMembers:
    group = await group_service.get_group(db, name=name)
    return GroupReadWithMembers.model_validate(group)


@router.patch(
    "/{name}",
    response_model=GroupRead,
    summary="Rename a group",
)
async def rename_group(
    name: str,
    rename_in: GroupRename,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> GroupRead:
    group = await group_service.rename_group(
        db, name=name, new_name=rename_in.name, current_user_id=current_user_id
    )
    return GroupRead.model_validate(group)


@router.delete(
    "/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a group and all of its comments",
)
async def delete_group(
    name: str,
    current_user_id: CurrentUserId,
    db: DBSession,
    threads: Threads,
) -> None:
    await group_service.delete_group(
        db, name=name, current_user_id=current_user_id, threads=threads
    )


@router.post(
    "/{name}/members",
    response_model=MembershipResult,
    summary="Join a group",
)
async def join_group(
    name: str,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> MembershipResult:
    return await group_service.join_group(db, name=name, user_id=current_user_id)


@router.delete(
    "/{name}/members/me",
    response_model=MembershipResult,
    summary="Leave a group, deleting my threads in it",
)
async def leave_group(
    name: str,
    current_user_id: CurrentUserId,
    db: DBSession,
    threads: Threads,
) -> MembershipResult:
    return await group_service.leave_group(
        db, name=name, user_id=current_user_id, threads=threads
    )


@router.delete(
    "/{name}/members/{user_id}",
    response_model=MembershipResult,
    summary="Remove a member and their threads",
)
async def remove_member(
    name: str,
    user_id: uuid.UUID,
    current_user_id: CurrentUserId,
    db: DBSession,
    threads: Threads,
) -> MembershipResult:
    return await group_service.remove_member(
        db,
        name=name,
        user_id=user_id,
        current_user_id=current_user_id,
        threads=threads,
    )


@router.patch(
    "/{name}/admin",
    response_model=GroupRead,
    summary="Hand the admin role to another member",
)
async def change_admin(
    name: str,
    admin_in: GroupAdminChange,
    current_user_id: CurrentUserId,
    db: DBSession,
) -> GroupRead:
    group = await group_service.change_admin(
        db, name=name, new_admin_id=admin_in.user_id, current_user_id=current_user_id
    )
    return GroupRead.model_validate(group)


@router.post(
    "/{name}/reconcile",
    response_model=ReconcileReport,
    summary="Rebuild the group's comment index from its live comments",
)
async def reconcile_index(
    name: str,
    current_user_id: CurrentUserId,
    db: DBSession,
    threads: Threads,
) -> ReconcileReport:
    return await group_service.reconcile_index(
        db, name=name, current_user_id=current_user_id, threads=threads
    )


@router.get(
    "/{name}/comments",
    response_model=PaginatedResponse[CommentRead],
    summary="List a group's comments in creation order",
)
async def list_group_comments(
    name: str,
    threads: Threads,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=50, ge=1, le=200),
) -> PaginatedResponse[CommentRead]:
    comments = await threads.list_group_comments(name)
    return PaginatedResponse[CommentRead].slice(
        [CommentRead.model_validate(c) for c in comments], page=page, size=size
    )


@router.get(
    "/{name}/threads",
    response_model=list[CommentThread],
    summary="Get a group's comments as nested threads",
)
async def get_group_threads(name: str, threads: Threads) -> list[CommentThread]:
    forest = await threads.thread_tree(name)
    return [CommentThread.model_validate(node.to_dict()) for node in forest]
