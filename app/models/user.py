"""
User model holding the derived index of tasks assigned to the user.

``pending_tasks`` is stored as an ordered JSON list but treated as a set: the
handlers never insert an id that is already present.
"""

from sqlalchemy import Column, Index, String
from sqlalchemy.orm import validates

from app.models.base import (
    Base,
    DateCreatedMixin,
    JSONList,
    RecordIdMixin,
    table_args,
)


def dedupe_task_ids(task_ids) -> list[str]:
    """Drop duplicate ids keeping the first occurrence."""
    seen = set()
    result = []
    for task_id in task_ids or []:
        task_id = str(task_id)
        if task_id and task_id not in seen:
            seen.add(task_id)
            result.append(task_id)
    return result


class User(Base, RecordIdMixin, DateCreatedMixin):
    """A person tasks can be assigned to; ``email`` is globally unique."""

    __tablename__ = "users"
    __table_args__ = table_args(
        Index("ix_users_email", "email", unique=True),
    )

    name = Column(String(255), nullable=False, comment="Display name")

    email = Column(String(320), nullable=False, comment="Unique email address")

    pending_tasks = Column(
        JSONList,
        nullable=False,
        default=list,
        comment="Ids of tasks currently assigned to this user",
    )

    @validates("name", "email")
    def _strip_text(self, key, value):
        return value.strip() if isinstance(value, str) else value

    @validates("pending_tasks")
    def _dedupe_pending_tasks(self, key, value):
        return dedupe_task_ids(value)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
