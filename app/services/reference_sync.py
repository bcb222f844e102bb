"""
Reference Synchronizer - keeps Task.assigned_user and User.pending_tasks in step.

Task.assigned_user is the authoritative pointer; User.pending_tasks is a derived
index maintained here after every write that changes one side. There is no
multi-record transaction: each step is an independent store write, attempted
in order after the primary write has been committed.

Failure policy:
    - A missing user or task on the derived side is skipped, not an error.
    - A store or connection failure (``SQLAlchemyError``, ``OSError``) on the
      derived side is logged and recorded in the returned ``SyncReport``.
      It is never raised and never rolls back the primary write, so the
      derived index can drift.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from app.db_handlers import TaskDBHandler, UserDBHandler
from app.utils.logger import setup_logger

logger = setup_logger("reference_sync")


class SyncStatus(str, Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class SyncStep:
    action: str
    target: str
    status: SyncStatus
    detail: str = ""


@dataclass
class SyncReport:
    """Outcome of the secondary writes that followed one primary write."""

    operation: str
    steps: list[SyncStep] = field(default_factory=list)

    def record(
        self, action: str, target: str, status: SyncStatus, detail: str = ""
    ) -> None:
        self.steps.append(SyncStep(action, target, status, detail))

    @property
    def failed_steps(self) -> list[SyncStep]:
        return [step for step in self.steps if step.status is SyncStatus.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed_steps

    @property
    def writes(self) -> int:
        return sum(1 for step in self.steps if step.status is SyncStatus.APPLIED)

    def log(self) -> None:
        if self.ok:
            logger.debug(
                f"{self.operation}: {self.writes} reference write(s), "
                f"{len(self.steps)} step(s)"
            )
            return
        for step in self.failed_steps:
            logger.error(
                f"{self.operation}: {step.action} on {step.target} failed: {step.detail}"
            )


def split_changes(
    old_ids: list[str], new_ids: list[str]
) -> tuple[list[str], list[str]]:
    """Return ``(removed, added)`` keeping the order ids first appeared in."""
    old_set, new_set = set(old_ids), set(new_ids)
    removed = list(dict.fromkeys(tid for tid in old_ids if tid not in new_set))
    added = list(dict.fromkeys(tid for tid in new_ids if tid not in old_set))
    return removed, added


class ReferenceSynchronizer:
    def __init__(
        self,
        task_db_handler: TaskDBHandler | None = None,
        user_db_handler: UserDBHandler | None = None,
    ):
        self.task_db_handler = task_db_handler or TaskDBHandler()
        self.user_db_handler = user_db_handler or UserDBHandler()

    async def on_task_assignment_changed(
        self, old_user_id: str, new_user_id: str, task_id: str
    ) -> SyncReport:
        """Move ``task_id`` from the old assignee's pending tasks to the new one's."""
        report = SyncReport("task_assignment_changed")
        old_user_id = old_user_id or ""
        new_user_id = new_user_id or ""

        if old_user_id and old_user_id != new_user_id:
            await self._remove_pending(report, old_user_id, task_id)
        if new_user_id and new_user_id != old_user_id:
            await self._add_pending(report, new_user_id, task_id)

        report.log()
        return report

    async def on_task_deleted(self, assigned_user_id: str, task_id: str) -> SyncReport:
        report = SyncReport("task_deleted")
        if assigned_user_id:
            await self._remove_pending(report, assigned_user_id, task_id)
        report.log()
        return report

    async def on_user_pending_tasks_replaced(
        self,
        old_task_ids: list[str],
        new_task_ids: list[str],
        user_id: str,
        user_name: str,
    ) -> SyncReport:
        """Point added tasks at the user and reset removed ones to unassigned.

        Tasks present in both lists are not written.
        """
        report = SyncReport("user_pending_tasks_replaced")
        removed, added = split_changes(old_task_ids or [], new_task_ids or [])

        if removed:
            await self._unassign(report, removed)
        if added:
            try:
                updated = await self.task_db_handler.assign_tasks(
                    added, user_id, user_name
                )
                report.record(
                    "assign_tasks",
                    ",".join(added),
                    SyncStatus.APPLIED,
                    f"{updated} task(s) now assigned to {user_id}",
                )
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Error adding task assignments for user {user_id}: {e}")
                report.record("assign_tasks", ",".join(added), SyncStatus.FAILED, str(e))

        report.log()
        return report

    async def on_user_deleted(self, pending_task_ids: list[str]) -> SyncReport:
        """Reset every pending task of a user that is about to be removed.

        Callers must run this before deleting the user and check
        ``SyncReport.ok`` before going ahead.
        """
        report = SyncReport("user_deleted")
        if pending_task_ids:
            await self._unassign(report, list(dict.fromkeys(pending_task_ids)))
        report.log()
        return report

    async def _unassign(self, report: SyncReport, task_ids: list[str]) -> None:
        try:
            updated = await self.task_db_handler.unassign_tasks(task_ids)
            report.record(
                "unassign_tasks",
                ",".join(task_ids),
                SyncStatus.APPLIED,
                f"{updated} task(s) unassigned",
            )
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error removing task assignments: {e}")
            report.record("unassign_tasks", ",".join(task_ids), SyncStatus.FAILED, str(e))

    async def _add_pending(self, report: SyncReport, user_id: str, task_id: str) -> None:
        try:
            changed = await self.user_db_handler.add_pending_task(user_id, task_id)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error adding task {task_id} to user {user_id}: {e}")
            report.record("add_pending_task", user_id, SyncStatus.FAILED, str(e))
            return
        report.record("add_pending_task", user_id, _status_for(changed))

    async def _remove_pending(
        self, report: SyncReport, user_id: str, task_id: str
    ) -> None:
        try:
            changed = await self.user_db_handler.remove_pending_task(user_id, task_id)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error removing task {task_id} from user {user_id}: {e}")
            report.record("remove_pending_task", user_id, SyncStatus.FAILED, str(e))
            return
        report.record("remove_pending_task", user_id, _status_for(changed))


def _status_for(changed: bool | None) -> SyncStatus:
    if changed is None:
        return SyncStatus.SKIPPED
    return SyncStatus.APPLIED if changed else SyncStatus.UNCHANGED
