"""
Comment Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from huddle.core.config import settings


# Emptiness is checked by the comment store; only the upper bound is enforced here.
class CommentCreate(BaseModel):
    body: str = Field(max_length=settings.COMMENT_MAX_LENGTH)
    group: str = Field(min_length=1, max_length=200, description="Group name")


class CommentReply(BaseModel):
    body: str = Field(max_length=settings.COMMENT_MAX_LENGTH)
    group: str = Field(min_length=1, max_length=200, description="Group name")


class CommentRead(BaseModel):
    id: uuid.UUID
    author_id: uuid.UUID
    body: str
    parent_id: uuid.UUID | None
    group_id: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class CommentThread(CommentRead):
    replies: list["CommentThread"] = []


CommentThread.model_rebuild()


class SubtreeRead(BaseModel):
    root_id: uuid.UUID
    comment_ids: list[uuid.UUID]


class CommentDeleteResult(BaseModel):
    root_id: uuid.UUID
    group_id: uuid.UUID
    deleted_ids: list[uuid.UUID]
