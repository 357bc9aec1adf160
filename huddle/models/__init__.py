"""
ORM model package. Import all models here so Alembic autogenerate
can discover every table through the shared Base metadata.
"""
from huddle.models.group import Group, GroupComment, GroupMember  # noqa: F401
from huddle.models.comment import Comment  # noqa: F401
