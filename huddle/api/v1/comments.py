"""
Comment thread routes.
/api/v1/comments
"""
import uuid

from fastapi import APIRouter, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from huddle.core.config import settings
from huddle.core.dependencies import CurrentUserId, Threads
from huddle.schemas.comment import (
    CommentCreate,
    CommentDeleteResult,
    CommentRead,
    CommentReply,
    SubtreeRead,
)
from huddle.services.thread_service import CascadeResult

router = APIRouter(prefix="/comments", tags=["Comments"])

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


def _delete_result(result: CascadeResult) -> CommentDeleteResult:
    return CommentDeleteResult(
        root_id=result.root_id,
        group_id=result.group_id,
        deleted_ids=sorted(result.deleted_ids),
    )


@router.post(
    "/",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Start a new thread in a group",
)
@limiter.limit(settings.RATE_LIMIT_COMMENTS)
async def create_comment(
    request: Request,
    comment_in: CommentCreate,
    current_user_id: CurrentUserId,
    threads: Threads,
) -> CommentRead:
    comment = await threads.create(current_user_id, comment_in.body, comment_in.group)
    return CommentRead.model_validate(comment)


@router.post(
    "/{comment_id}/replies",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Reply to a comment",
)
@limiter.limit(settings.RATE_LIMIT_COMMENTS)
async def reply_to_comment(
    request: Request,
    comment_id: uuid.UUID,
    reply_in: CommentReply,
    current_user_id: CurrentUserId,
    threads: Threads,
) -> CommentRead:
    comment = await threads.reply(
        current_user_id, reply_in.body, comment_id, reply_in.group
    )
    return CommentRead.model_validate(comment)


@router.get(
    "/mine",
    response_model=list[CommentRead],
    summary="List my comments across all groups",
)
async def list_my_comments(
    current_user_id: CurrentUserId,
    threads: Threads,
) -> list[CommentRead]:
    comments = await threads.list_by_author(current_user_id)
    return [CommentRead.model_validate(c) for c in comments]


@router.get(
    "/{comment_id}",
    response_model=CommentRead,
    summary="Get a comment",
)
async def get_comment(
    comment_id: uuid.UUID,
    threads: Threads,
) -> CommentRead:
    return CommentRead.model_validate(await threads.get(comment_id))


@router.get(
    "/{comment_id}/subtree",
    response_model=SubtreeRead,
    summary="List the ids of a comment and all of its replies",
)
async def get_subtree(
    comment_id: uuid.UUID,
    threads: Threads,
) -> SubtreeRead:
    ids = await threads.subtree(comment_id)
    return SubtreeRead(root_id=comment_id, comment_ids=ids)


@router.delete(
    "/{comment_id}",
    response_model=CommentDeleteResult,
    summary="Delete my comment and every reply below it",
)
async def delete_comment(
    comment_id: uuid.UUID,
    current_user_id: CurrentUserId,
    threads: Threads,
) -> CommentDeleteResult:
    return _delete_result(await threads.delete_thread(comment_id, current_user_id))


@router.delete(
    "/{comment_id}/moderate",
    response_model=CommentDeleteResult,
    summary="Delete any thread in a group I administer",
)
async def moderate_comment(
    comment_id: uuid.UUID,
    current_user_id: CurrentUserId,
    threads: Threads,
) -> CommentDeleteResult:
    return _delete_result(await threads.moderate_thread(comment_id, current_user_id))
