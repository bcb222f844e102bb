"""
Tests for the reference synchronizer against the test database.

The handlers are used directly so the secondary writes can be observed
without going through the HTTP layer.
"""

from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import OperationalError

from app.db_handlers import TaskDBHandler, UserDBHandler
from app.services.reference_sync import (
    ReferenceSynchronizer,
    SyncStatus,
    split_changes,
)

DEADLINE = datetime(2030, 1, 1, 12, tzinfo=UTC)


class BrokenTaskDBHandler(TaskDBHandler):
    async def unassign_tasks(self, task_ids, *, db=None):
        raise OperationalError("UPDATE tasks", {}, Exception("database is locked"))

    async def assign_tasks(self, task_ids, user_id, user_name, *, db=None):
        raise OperationalError("UPDATE tasks", {}, Exception("database is locked"))


async def _new_user(email: str, pending_tasks: list[str] | None = None):
    return await UserDBHandler().create(
        {"name": email.split("@")[0], "email": email, "pending_tasks": pending_tasks or []}
    )


async def _new_task(name: str, user_id: str = "", user_name: str = "unassigned"):
    return await TaskDBHandler().create(
        {
            "name": name,
            "deadline": DEADLINE,
            "assigned_user": user_id,
            "assigned_user_name": user_name,
        }
    )


def test_split_changes_keeps_first_seen_order():
    removed, added = split_changes(["a", "b", "c"], ["c", "d", "b", "e"])
    assert removed == ["a"]
    assert added == ["d", "e"]


@pytest.mark.asyncio
async def test_assignment_moves_task_between_users():
    alice = await _new_user("alice@example.com")
    bob = await _new_user("bob@example.com")
    task = await _new_task("report")
    synchronizer = ReferenceSynchronizer()

    await synchronizer.on_task_assignment_changed("", alice.id, task.id)
    report = await synchronizer.on_task_assignment_changed(alice.id, bob.id, task.id)

    assert report.ok
    assert report.writes == 2
    assert (await UserDBHandler().get(alice.id)).pending_tasks == []
    assert (await UserDBHandler().get(bob.id)).pending_tasks == [task.id]


@pytest.mark.asyncio
async def test_same_assignee_performs_no_write():
    alice = await _new_user("alice@example.com")
    task = await _new_task("report", alice.id, alice.name)

    report = await ReferenceSynchronizer().on_task_assignment_changed(
        alice.id, alice.id, task.id
    )

    assert report.steps == []
    assert (await UserDBHandler().get(alice.id)).pending_tasks == []


@pytest.mark.asyncio
async def test_adding_twice_is_idempotent():
    alice = await _new_user("alice@example.com")
    task = await _new_task("report")
    synchronizer = ReferenceSynchronizer()

    await synchronizer.on_task_assignment_changed("", alice.id, task.id)
    report = await synchronizer.on_task_assignment_changed("", alice.id, task.id)

    assert report.steps[0].status is SyncStatus.UNCHANGED
    assert (await UserDBHandler().get(alice.id)).pending_tasks == [task.id]


@pytest.mark.asyncio
async def test_missing_user_is_skipped():
    task = await _new_task("report")

    report = await ReferenceSynchronizer().on_task_assignment_changed(
        "", "no-such-user", task.id
    )

    assert report.ok
    assert report.steps[0].status is SyncStatus.SKIPPED


@pytest.mark.asyncio
async def test_task_deleted_removes_pending_entry():
    alice = await _new_user("alice@example.com")
    task = await _new_task("report", alice.id, alice.name)
    await UserDBHandler().add_pending_task(alice.id, task.id)

    report = await ReferenceSynchronizer().on_task_deleted(alice.id, task.id)

    assert report.writes == 1
    assert (await UserDBHandler().get(alice.id)).pending_tasks == []


@pytest.mark.asyncio
async def test_pending_tasks_replacement_only_touches_difference():
    alice = await _new_user("alice@example.com")
    t1 = await _new_task("t1", alice.id, alice.name)
    t2 = await _new_task("t2", alice.id, alice.name)
    t3 = await _new_task("t3")

    report = await ReferenceSynchronizer().on_user_pending_tasks_replaced(
        [t1.id, t2.id], [t2.id, t3.id], alice.id, alice.name
    )

    assert report.ok
    assert [step.action for step in report.steps] == ["unassign_tasks", "assign_tasks"]
    assert report.steps[0].target == t1.id
    assert report.steps[1].target == t3.id

    task_db_handler = TaskDBHandler()
    first = await task_db_handler.get(t1.id)
    assert (first.assigned_user, first.assigned_user_name) == ("", "unassigned")
    third = await task_db_handler.get(t3.id)
    assert (third.assigned_user, third.assigned_user_name) == (alice.id, "alice")


@pytest.mark.asyncio
async def test_user_deleted_unassigns_all_pending_tasks():
    alice = await _new_user("alice@example.com")
    t1 = await _new_task("t1", alice.id, alice.name)
    t2 = await _new_task("t2", alice.id, alice.name)

    report = await ReferenceSynchronizer().on_user_deleted([t1.id, t2.id, t1.id])

    assert report.ok
    task_db_handler = TaskDBHandler()
    for task_id in (t1.id, t2.id):
        assert (await task_db_handler.get(task_id)).assigned_user == ""


@pytest.mark.asyncio
async def test_store_failures_are_reported_not_raised():
    alice = await _new_user("alice@example.com")
    synchronizer = ReferenceSynchronizer(task_db_handler=BrokenTaskDBHandler())

    deleted = await synchronizer.on_user_deleted(["t1"])
    replaced = await synchronizer.on_user_pending_tasks_replaced(
        ["t1"], ["t2"], alice.id, alice.name
    )

    assert not deleted.ok
    assert deleted.failed_steps[0].action == "unassign_tasks"
    assert [step.action for step in replaced.failed_steps] == [
        "unassign_tasks",
        "assign_tasks",
    ]


class BrokenUserDBHandler(UserDBHandler):
    async def add_pending_task(self, user_id, task_id, *, db=None):
        raise OperationalError("UPDATE users", {}, Exception("database is locked"))

    async def remove_pending_task(self, user_id, task_id, *, db=None):
        raise ConnectionRefusedError("connection refused")


@pytest.mark.asyncio
async def test_user_side_failures_are_reported_not_raised():
    alice = await _new_user("alice@example.com")
    bob = await _new_user("bob@example.com")
    task = await _new_task("report", alice.id, alice.name)
    synchronizer = ReferenceSynchronizer(user_db_handler=BrokenUserDBHandler())

    moved = await synchronizer.on_task_assignment_changed(alice.id, bob.id, task.id)
    deleted = await synchronizer.on_task_deleted(alice.id, task.id)

    assert not moved.ok
    assert [step.action for step in moved.failed_steps] == [
        "remove_pending_task",
        "add_pending_task",
    ]
    assert not deleted.ok
    assert "connection refused" in deleted.failed_steps[0].detail
