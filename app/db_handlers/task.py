from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from app.db_handlers.base import BaseDBHandler, check_local_db
from app.models.task import UNASSIGNED_USER_ID, UNASSIGNED_USER_NAME, Task
from app.utils.logger import setup_logger

logger = setup_logger("task_db_handler")


class TaskDBHandler(BaseDBHandler[Task]):
    field_map = {
        "_id": Task.id,
        "name": Task.name,
        "description": Task.description,
        "deadline": Task.deadline,
        "completed": Task.completed,
        "assignedUser": Task.assigned_user,
        "assignedUserName": Task.assigned_user_name,
        "dateCreated": Task.date_created,
    }

    def __init__(self):
        super().__init__(Task)

    @check_local_db
    async def assign_tasks(
        self,
        task_ids: list[str],
        user_id: str,
        user_name: str,
        *,
        db: AsyncSession = None,
    ) -> int:
        """Point every task in ``task_ids`` at the given user."""
        updated = await self.update_many_by_ids(
            task_ids,
            {"assigned_user": user_id, "assigned_user_name": user_name},
            db=db,
        )
        logger.debug(f"Assigned {updated}/{len(task_ids)} tasks to user {user_id}")
        return updated

    @check_local_db
    async def unassign_tasks(
        self, task_ids: list[str], *, db: AsyncSession = None
    ) -> int:
        """Reset every task in ``task_ids`` to the unassigned sentinel."""
        updated = await self.update_many_by_ids(
            task_ids,
            {
                "assigned_user": UNASSIGNED_USER_ID,
                "assigned_user_name": UNASSIGNED_USER_NAME,
            },
            db=db,
        )
        logger.debug(f"Unassigned {updated}/{len(task_ids)} tasks")
        return updated
