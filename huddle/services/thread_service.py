"""
Thread service.
Runs comment creation and cascade deletion against the comment store and
keeps the group comment index in step with it. Every mutation of a group's
comments holds that group's lock from the first read to the commit.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from huddle.core.config import settings
from huddle.core.exceptions import ForbiddenException, PartialCascadeFailureException
from huddle.core.locks import GroupLockRegistry, group_locks
from huddle.services.cascade_deleter import CascadeDeleter
from huddle.services.comment_store import CommentRecord, CommentStore
from huddle.services.group_authority import GroupAuthority
from huddle.services.thread_resolver import ThreadNode, ThreadResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CascadeResult:
    root_id: uuid.UUID
    group_id: uuid.UUID
    deleted_ids: frozenset[uuid.UUID]


@dataclass(frozen=True)
class IndexRepair:
    group_id: uuid.UUID
    added_ids: list[uuid.UUID]
    removed_ids: list[uuid.UUID]


class ThreadService:

    def __init__(
        self,
        store: CommentStore,
        groups: GroupAuthority,
        *,
        locks: GroupLockRegistry = group_locks,
        timeout: float | None = settings.STORE_OPERATION_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store
        self.groups = groups
        self.locks = locks
        self.resolver = ThreadResolver(store)
        self.deleter = CascadeDeleter(store, self.resolver, timeout=timeout)

    # ── Creation ──────────────────────────────────────────────────────────────

    async def create(
        self, author_id: uuid.UUID, body: str, group_name: str
    ) -> CommentRecord:
        group_id = await self.groups.resolve_group(group_name)
        async with self._mutating(group_id):
            comment = await self.store.create(author_id, body, group_id)
            await self.groups.append_comment(group_id, comment.id)
            await self.store.commit()
        return comment

    async def reply(
        self,
        author_id: uuid.UUID,
        body: str,
        parent_id: uuid.UUID,
        group_name: str,
    ) -> CommentRecord:
        group_id = await self.groups.resolve_group(group_name)
        async with self._mutating(group_id):
            # Parent existence is checked under the lock, so a reply can never
            # outlive a concurrent deletion of its parent.
            comment = await self.store.reply(author_id, body, parent_id, group_id)
            await self.groups.append_comment(group_id, comment.id)
            await self.store.commit()
        return comment

    # ── Deletion ──────────────────────────────────────────────────────────────

    async def delete_thread(
        self, comment_id: uuid.UUID, requester: uuid.UUID
    ) -> CascadeResult:
        """Author-initiated deletion of a comment and all of its replies."""
        comment = await self.store.get(comment_id)
        async with self._mutating(comment.group_id):
            deleted = await self._cascade(comment.group_id, comment_id, requester=requester)
            await self.store.commit()
        return CascadeResult(comment_id, comment.group_id, frozenset(deleted))

    async def moderate_thread(
        self, comment_id: uuid.UUID, requester: uuid.UUID
    ) -> CascadeResult:
        """Admin-initiated deletion of any thread in the admin's group."""
        comment = await self.store.get(comment_id)
        if not await self.groups.is_group_admin(requester, comment.group_id):
            raise ForbiddenException("Only the group admin can moderate comments")
        async with self._mutating(comment.group_id):
            deleted = await self._cascade(comment.group_id, comment_id)
            await self.store.commit()
        logger.info(
            "Admin %s moderated comment %s in group %s", requester, comment_id, comment.group_id
        )
        return CascadeResult(comment_id, comment.group_id, frozenset(deleted))

    async def purge_author(
        self, group_id: uuid.UUID, author_id: uuid.UUID
    ) -> set[uuid.UUID]:
        """Delete every thread rooted at a comment ``author_id`` posted in the group."""
        deleted: set[uuid.UUID] = set()
        async with self._mutating(group_id):
            for comment_id in await self.store.list_by_author_in_group(group_id, author_id):
                # Replies to the author's own comments went with their parent.
                if comment_id in deleted:
                    continue
                deleted |= await self._cascade(group_id, comment_id)
            await self.store.commit()
        return deleted

    async def dissolve_group(self, group_id: uuid.UUID) -> set[uuid.UUID]:
        """Delete every comment of the group, then the group itself."""
        deleted: set[uuid.UUID] = set()
        async with self._mutating(group_id):
            for comment in await self.store.list_by_group(group_id):
                if comment.id in deleted:
                    continue
                deleted |= await self._cascade(group_id, comment.id)
            await self.groups.delete_group(group_id)
            await self.store.commit()
        logger.info("Dissolved group %s with %d comments", group_id, len(deleted))
        return deleted

    async def _cascade(
        self,
        group_id: uuid.UUID,
        comment_id: uuid.UUID,
        *,
        requester: uuid.UUID | None = None,
    ) -> set[uuid.UUID]:
        # Phase one removes comments, phase two prunes the index with the
        # exact id set phase one reported. Partial progress is still pruned
        # and committed before the failure propagates.
        try:
            if requester is None:
                deleted = await self.deleter.delete_authorized(comment_id)
            else:
                deleted = await self.deleter.delete_subtree(comment_id, requester)
        except PartialCascadeFailureException as exc:
            await self.groups.prune_comments(group_id, exc.deleted_ids)
            await self.store.commit()
            raise
        await self.groups.prune_comments(group_id, deleted)
        return deleted

    # ── Index maintenance ─────────────────────────────────────────────────────

    async def reconcile(self, group_id: uuid.UUID) -> IndexRepair:
        """Make the group's comment index exactly match its live comments."""
        async with self._mutating(group_id):
            await self.resolver.verify_forest()
            live = [c.id for c in await self.store.list_by_group(group_id)]
            indexed = await self.groups.comment_ids(group_id)
            live_set, indexed_set = set(live), set(indexed)
            missing = [cid for cid in live if cid not in indexed_set]
            stale = [cid for cid in indexed if cid not in live_set]
            for comment_id in missing:
                await self.groups.append_comment(group_id, comment_id)
            await self.groups.prune_comments(group_id, stale)
            await self.store.commit()
        if missing or stale:
            logger.warning(
                "Repaired comment index of group %s: %d added, %d removed",
                group_id,
                len(missing),
                len(stale),
            )
        return IndexRepair(group_id, missing, stale)

    # ── Queries ───────────────────────────────────────────────────────────────

    async def get(self, comment_id: uuid.UUID) -> CommentRecord:
        return await self.store.get(comment_id)

    async def subtree(self, comment_id: uuid.UUID) -> list[uuid.UUID]:
        return await self.resolver.walk(comment_id)

    async def list_group_comments(self, group_name: str) -> list[CommentRecord]:
        group_id = await self.groups.resolve_group(group_name)
        return await self.store.list_by_group(group_id)

    async def thread_tree(self, group_name: str) -> list[ThreadNode]:
        return self.resolver.build_forest(await self.list_group_comments(group_name))

    async def list_by_author(self, author_id: uuid.UUID) -> list[CommentRecord]:
        return await self.store.list_by_author(author_id)

    @asynccontextmanager
    async def _mutating(self, group_id: uuid.UUID) -> AsyncIterator[None]:
        async with self.locks.hold(group_id):
            await self.groups.lock_group(group_id)
            yield
