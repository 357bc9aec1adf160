"""
Thread resolver.
Walks the reply adjacency of the comment store to find a comment's subtree,
builds nested thread views, and checks the forest for structural damage.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

from huddle.core.exceptions import CorruptStateException
from huddle.services.comment_store import CommentRecord, CommentStore


@dataclass
class ThreadNode:
    comment: CommentRecord
    replies: list["ThreadNode"] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.comment.id,
            "author_id": self.comment.author_id,
            "body": self.comment.body,
            "parent_id": self.comment.parent_id,
            "group_id": self.comment.group_id,
            "created_at": self.comment.created_at,
            "replies": [reply.to_dict() for reply in self.replies],
        }


class ThreadResolver:

    def __init__(self, store: CommentStore) -> None:
        self.store = store

    async def subtree_of(self, comment_id: uuid.UUID) -> set[uuid.UUID]:
        """The comment itself plus every transitive reply."""
        return set(await self.walk(comment_id))

    async def walk(self, comment_id: uuid.UUID) -> list[uuid.UUID]:
        """
        Breadth-first order over the subtree rooted at ``comment_id``:
        every comment appears after its parent. Raises NotFoundException if
        the root is missing and CorruptStateException if a comment is
        reached twice, which only a cycle can cause in a forest.
        """
        await self.store.get(comment_id)
        order = [comment_id]
        seen = {comment_id}
        frontier = [comment_id]
        while frontier:
            next_frontier = []
            for child in await self.store.children_of(frontier):
                if child.id in seen:
                    raise CorruptStateException(
                        f"Reply cycle detected below comment '{comment_id}'",
                        [child.id],
                    )
                seen.add(child.id)
                order.append(child.id)
                next_frontier.append(child.id)
            frontier = next_frontier
        return order

    def build_forest(self, comments: Iterable[CommentRecord]) -> list[ThreadNode]:
        """
        Nest a flat list of comments into threads. Input order is kept among
        siblings. Comments whose parent is not in the list are treated as roots.
        """
        nodes = {c.id: ThreadNode(comment=c) for c in comments}
        roots = []
        for node in nodes.values():
            parent = nodes.get(node.comment.parent_id) if node.comment.parent_id else None
            if parent is not None:
                parent.replies.append(node)
            else:
                roots.append(node)
        return roots

    async def verify_forest(self) -> None:
        """
        Check the whole store: every parent exists, lives in the same group,
        and following parent links always ends at a root.
        """
        records = {r.id: r for r in await self.store.list_all()}

        dangling = [
            r.id
            for r in records.values()
            if r.parent_id is not None and r.parent_id not in records
        ]
        if dangling:
            raise CorruptStateException("Comments reference missing parents", dangling)

        cross_group = [
            r.id
            for r in records.values()
            if r.parent_id is not None and records[r.parent_id].group_id != r.group_id
        ]
        if cross_group:
            raise CorruptStateException(
                "Replies belong to a different group than their parent", cross_group
            )

        # Ids already proven to reach a root.
        grounded: set[uuid.UUID] = set()
        for start in records:
            path: list[uuid.UUID] = []
            on_path: set[uuid.UUID] = set()
            current: uuid.UUID | None = start
            while current is not None and current not in grounded:
                if current in on_path:
                    raise CorruptStateException(
                        "Parent links form a cycle", path[path.index(current):]
                    )
                path.append(current)
                on_path.add(current)
                current = records[current].parent_id
            grounded.update(path)
