from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from app.db_handlers.base import BaseDBHandler, check_local_db
from app.models.user import User
from app.utils.logger import setup_logger

logger = setup_logger("db_handlers.user")


class UserDBHandler(BaseDBHandler[User]):
    # pendingTasks is a JSON list and is not filterable or sortable
    field_map = {
        "_id": User.id,
        "name": User.name,
        "email": User.email,
        "dateCreated": User.date_created,
    }

    def __init__(self):
        super().__init__(User)

    @check_local_db
    async def add_pending_task(
        self, user_id: str, task_id: str, *, db: AsyncSession = None
    ) -> bool | None:
        """Add ``task_id`` to the user's pending tasks if absent.

        Returns True when the list changed, False when the id was already
        present and None when the user does not exist.
        """
        user = await self.get(user_id, db=db)
        if user is None:
            return None
        if task_id in user.pending_tasks:
            return False
        await self.update(user, {"pending_tasks": [*user.pending_tasks, task_id]}, db=db)
        return True

    @check_local_db
    async def remove_pending_task(
        self, user_id: str, task_id: str, *, db: AsyncSession = None
    ) -> bool | None:
        """Remove ``task_id`` from the user's pending tasks if present.

        Same return convention as ``add_pending_task``.
        """
        user = await self.get(user_id, db=db)
        if user is None:
            return None
        if task_id not in user.pending_tasks:
            return False
        remaining = [tid for tid in user.pending_tasks if tid != task_id]
        await self.update(user, {"pending_tasks": remaining}, db=db)
        return True
