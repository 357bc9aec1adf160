"""
Cascade deleter.
Removes a comment together with every transitive reply. Only the root of
the request is authorized; replies by other users go with it.
"""
from __future__ import annotations

import asyncio
import logging
import uuid

from huddle.core.exceptions import (
    CommentAuthorException,
    PartialCascadeFailureException,
    StoreError,
)
from huddle.services.comment_store import CommentStore
from huddle.services.thread_resolver import ThreadResolver

logger = logging.getLogger(__name__)


class CascadeDeleter:

    def __init__(
        self,
        store: CommentStore,
        resolver: ThreadResolver | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        self.store = store
        self.resolver = resolver or ThreadResolver(store)
        self.timeout = timeout

    async def delete_subtree(
        self, comment_id: uuid.UUID, requester: uuid.UUID
    ) -> set[uuid.UUID]:
        """
        Delete ``comment_id`` and its subtree on behalf of its author.
        Returns the set of deleted ids, which always contains ``comment_id``.
        """
        comment = await self.store.get(comment_id)
        if comment.author_id != requester:
            raise CommentAuthorException(requester, comment_id)
        return await self.delete_authorized(comment_id)

    async def delete_authorized(self, comment_id: uuid.UUID) -> set[uuid.UUID]:
        """
        Delete ``comment_id`` and its subtree; the caller has done authorization.

        Descendants go before ancestors, so the root is removed last and an
        interrupted cascade can be retried on the same id. A timeout or store
        failure part way raises PartialCascadeFailureException carrying the
        ids that are already gone.
        """
        order = await self.resolver.walk(comment_id)
        deleted: list[uuid.UUID] = []
        for target in reversed(order):
            try:
                await asyncio.wait_for(self.store.delete_one(target), self.timeout)
            except (asyncio.TimeoutError, StoreError) as exc:
                done = set(deleted)
                pending = [cid for cid in order if cid not in done]
                logger.error(
                    "Cascade from comment %s stopped at %s after %d of %d deletes: %r",
                    comment_id,
                    target,
                    len(deleted),
                    len(order),
                    exc,
                )
                raise PartialCascadeFailureException(comment_id, deleted, pending) from exc
            # An id that is already gone counts as deleted.
            deleted.append(target)

        logger.info("Deleted comment %s and %d replies", comment_id, len(deleted) - 1)
        return set(deleted)
