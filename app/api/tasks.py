"""
Task API Routes - CRUD over tasks with assignment bookkeeping.

Every write that changes a task's assignee is followed by the reference
synchronizer so that the assignee's pendingTasks list follows along.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.exc import SQLAlchemyError

from app.api.common import envelope, render_document, render_documents
from app.db_handlers import TaskDBHandler
from app.dependencies import (
    get_item_projection,
    get_reference_synchronizer,
    get_task_list_query,
)
from app.exceptions import NotFoundError, StoreError, ValidationError
from app.models import Task
from app.schemas import TaskDocument, TaskWriteRequest
from app.services.reference_sync import ReferenceSynchronizer
from app.utils.logger import setup_logger
from app.utils.query_parser import ListQuery, Projection

logger = setup_logger("api.tasks")

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])

REQUIRED_FIELDS_MESSAGE = "Name and deadline are required"


async def _load_task(
    task_db_handler: TaskDBHandler, task_id: str, action: str
) -> Task:
    try:
        task = await task_db_handler.get(task_id)
    except SQLAlchemyError as e:
        raise StoreError(f"Error {action} task") from e
    if not task:
        raise NotFoundError("Task not found")
    return task


@router.get("")
async def list_tasks(
    query: ListQuery = Depends(get_task_list_query),
    task_db_handler: TaskDBHandler = Depends(),
):
    """
    List tasks matching ``where``, sorted, projected and paginated.

    With ``count=true`` the payload is the number of tasks matching ``where``;
    skip, limit and select do not apply to the count.
    """
    task_db_handler.check_query(query)

    if query.count_only:
        try:
            total = await task_db_handler.count(query.filter)
        except SQLAlchemyError as e:
            raise StoreError("Error counting tasks") from e
        return envelope("OK", total)

    try:
        tasks = await task_db_handler.find(query)
    except SQLAlchemyError as e:
        raise StoreError("Error retrieving tasks") from e
    logger.debug(f"Found {len(tasks)} tasks matching criteria.")
    return envelope("OK", render_documents(tasks, TaskDocument, query.projection))


@router.post("")
async def create_task(
    task_data: TaskWriteRequest,
    background_tasks: BackgroundTasks,
    task_db_handler: TaskDBHandler = Depends(),
    synchronizer: ReferenceSynchronizer = Depends(get_reference_synchronizer),
):
    """
    Create a task. A pre-assigned task is added to its assignee's pendingTasks
    after the response has been produced.
    """
    if not task_data.is_complete:
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)

    task_dict = task_data.to_record()
    task_dict["completed"] = bool(task_data.completed)
    try:
        task = await task_db_handler.create(task_dict)
    except SQLAlchemyError as e:
        logger.error(f"Error creating task: {e}", exc_info=True)
        raise StoreError("Error creating task") from e

    logger.info(f"Created task {task.id} assigned to '{task.assigned_user}'")
    if task.assigned_user:
        background_tasks.add_task(
            synchronizer.on_task_assignment_changed, "", task.assigned_user, task.id
        )

    return envelope(
        "Task created successfully",
        render_document(task, TaskDocument),
        status.HTTP_201_CREATED,
    )


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    projection: Projection | None = Depends(get_item_projection),
    task_db_handler: TaskDBHandler = Depends(),
):
    task = await _load_task(task_db_handler, task_id, "retrieving")
    return envelope("OK", render_document(task, TaskDocument, projection))


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    task_data: TaskWriteRequest,
    task_db_handler: TaskDBHandler = Depends(),
    synchronizer: ReferenceSynchronizer = Depends(get_reference_synchronizer),
):
    """
    Replace a task. ``completed`` keeps its stored value when omitted; the
    assignee fields fall back to unassigned.
    """
    if not task_data.is_complete:
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)

    task = await _load_task(task_db_handler, task_id, "finding")
    old_assigned_user = task.assigned_user

    update_data = task_data.to_record()
    if task_data.completed is not None:
        update_data["completed"] = task_data.completed
    try:
        updated_task = await task_db_handler.update(task, update_data)
    except SQLAlchemyError as e:
        raise StoreError("Error updating task") from e

    await synchronizer.on_task_assignment_changed(
        old_assigned_user, updated_task.assigned_user, updated_task.id
    )
    logger.info(
        f"Updated task {updated_task.id}: assignee '{old_assigned_user}' -> "
        f"'{updated_task.assigned_user}'"
    )
    return envelope("Task updated successfully", render_document(updated_task, TaskDocument))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: str,
    task_db_handler: TaskDBHandler = Depends(),
    synchronizer: ReferenceSynchronizer = Depends(get_reference_synchronizer),
):
    """Delete a task after removing it from its assignee's pendingTasks."""
    task = await _load_task(task_db_handler, task_id, "finding")

    await synchronizer.on_task_deleted(task.assigned_user, task.id)
    try:
        await task_db_handler.remove(task.id)
    except SQLAlchemyError as e:
        raise StoreError("Error deleting task") from e

    logger.info(f"Deleted task {task.id}")
    # 204 responses carry no body, so the envelope is not sent
    return Response(status_code=status.HTTP_204_NO_CONTENT)
