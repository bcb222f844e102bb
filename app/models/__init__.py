"""
Database models for the task assignment service.

Architecture: User.pending_tasks <--> Task.assigned_user two-way reference.
"""

from app.models.task import Task
from app.models.user import User

__all__ = [
    "Task",
    "User",
]
