"""
Group, GroupMember and GroupComment ORM models.
GroupComment is the group comment index: an ordered list of the ids of the
live comments posted in the group, kept in lockstep with the comments table.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from huddle.db.base import Base


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    admin_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    members: Mapped[list["GroupMember"]] = relationship(
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupMember.joined_at",
    )
    comment_index: Mapped[list["GroupComment"]] = relationship(
        "GroupComment",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupComment.position",
    )

    @property
    def comment_ids(self) -> list[uuid.UUID]:
        return [entry.comment_id for entry in self.comment_index]

    def __repr__(self) -> str:
        return f"<Group id={self.id} name={self.name}>"


class GroupMember(Base):
    __tablename__ = "group_members"

    group_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("groups.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    group: Mapped["Group"] = relationship("Group", back_populates="members")

    __table_args__ = (Index("ix_group_members_user_id", "user_id"),)

    def __repr__(self) -> str:
        return f"<GroupMember group_id={self.group_id} user_id={self.user_id}>"


class GroupComment(Base):
    __tablename__ = "group_comments"

    position: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
    )
    comment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        unique=True,
    )

    group: Mapped["Group"] = relationship("Group", back_populates="comment_index")

    __table_args__ = (Index("ix_group_comments_group_id", "group_id"),)

    def __repr__(self) -> str:
        return f"<GroupComment group_id={self.group_id} comment_id={self.comment_id}>"
