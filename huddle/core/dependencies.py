"""
FastAPI dependency injection functions.
Provides get_db, the caller's user id, and a per-request ThreadService.
"""
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.config import settings
from huddle.core.exceptions import UnauthorizedException
from huddle.db.session import get_db
from huddle.services.comment_store import SQLCommentStore
from huddle.services.group_authority import SQLGroupAuthority
from huddle.services.thread_service import ThreadService

# Re-export get_db so routes can import from one place
__all__ = [
    "get_db",
    "get_current_user_id",
    "get_thread_service",
    "DBSession",
    "CurrentUserId",
    "Threads",
]


async def get_current_user_id(request: Request) -> uuid.UUID:
    """
    Read the caller's id from the identity header set by the upstream gateway.
    Authentication happens before requests reach this service.
    """
    raw = request.headers.get(settings.USER_ID_HEADER)
    if not raw:
        raise UnauthorizedException(f"Missing {settings.USER_ID_HEADER} header")
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise UnauthorizedException(f"Malformed {settings.USER_ID_HEADER} header")


async def get_thread_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ThreadService:
    """Thread engine bound to this request's session."""
    return ThreadService(SQLCommentStore(db), SQLGroupAuthority(db))


# Convenience type aliases for route signatures
DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]
Threads = Annotated[ThreadService, Depends(get_thread_service)]
