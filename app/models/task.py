"""
Task model for work items that can be assigned to a single user.

Architecture:
    User.pending_tasks  <-->  Task.assigned_user

``assigned_user`` is the authoritative side of the assignment. The assignee's
``pending_tasks`` list is a derived index kept in step by
``app.services.reference_sync``. An unassigned task stores the empty string in
``assigned_user`` and ``"unassigned"`` in ``assigned_user_name``.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text
from sqlalchemy.orm import validates

from app.models.base import Base, DateCreatedMixin, RecordIdMixin, table_args

UNASSIGNED_USER_ID = ""
UNASSIGNED_USER_NAME = "unassigned"


class Task(Base, RecordIdMixin, DateCreatedMixin):
    """A named piece of work with a deadline and an optional assignee."""

    __tablename__ = "tasks"
    __table_args__ = table_args(
        Index("ix_tasks_assigned_user", "assigned_user"),
        Index("ix_tasks_completed", "completed"),
    )

    name = Column(String(255), nullable=False, comment="Task name")

    description = Column(
        Text, nullable=False, default="", comment="Free-form task description"
    )

    deadline = Column(
        DateTime(timezone=True), nullable=False, comment="Task due timestamp"
    )

    completed = Column(
        Boolean, nullable=False, default=False, comment="Whether the task is done"
    )

    assigned_user = Column(
        String(64),
        nullable=False,
        default=UNASSIGNED_USER_ID,
        comment="Id of the assigned user, empty string when unassigned",
    )

    assigned_user_name = Column(
        String(255),
        nullable=False,
        default=UNASSIGNED_USER_NAME,
        comment="Display copy of the assigned user's name",
    )

    @validates("name", "description")
    def _strip_text(self, key, value):
        return value.strip() if isinstance(value, str) else value

    def __repr__(self):
        return (
            f"<Task(id={self.id}, name='{self.name}', "
            f"assigned_user='{self.assigned_user}')>"
        )
