"""
Group, membership and comment-index Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class GroupCreate(BaseModel):
    name: str = Field(max_length=200)


class GroupRename(BaseModel):
    name: str = Field(max_length=200)


class GroupAdminChange(BaseModel):
    user_id: uuid.UUID


class GroupRead(BaseModel):
    id: uuid.UUID
    name: str
    admin_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class GroupMemberRead(BaseModel):
    group_id: uuid.UUID
    user_id: uuid.UUID
    joined_at: datetime

    model_config = {"from_attributes": True}


class GroupReadWithMembers(GroupRead):
    members: list[GroupMemberRead] = []
    comment_ids: list[uuid.UUID] = []


class MembershipResult(BaseModel):
    group_id: uuid.UUID
    user_id: uuid.UUID
    message: str
    deleted_comment_ids: list[uuid.UUID] = []


class ReconcileReport(BaseModel):
    group_id: uuid.UUID
    added_ids: list[uuid.UUID]
    removed_ids: list[uuid.UUID]
