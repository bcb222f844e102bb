"""
User API Routes - CRUD over users with pendingTasks reconciliation.

Replacing a user's pendingTasks reassigns the affected tasks; deleting a user
first resets every task in its pendingTasks to unassigned.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.api.common import envelope, render_document, render_documents
from app.db_handlers import UserDBHandler
from app.dependencies import (
    get_item_projection,
    get_reference_synchronizer,
    get_user_list_query,
)
from app.exceptions import ConflictError, NotFoundError, StoreError, ValidationError
from app.models import User
from app.schemas import UserDocument, UserWriteRequest
from app.services.reference_sync import ReferenceSynchronizer
from app.utils.logger import setup_logger
from app.utils.query_parser import ListQuery, Projection

logger = setup_logger("api.users")

router = APIRouter(prefix="/api/users", tags=["Users"])

REQUIRED_FIELDS_MESSAGE = "Name and email are required"


async def _load_user(
    user_db_handler: UserDBHandler, user_id: str, action: str
) -> User:
    try:
        user = await user_db_handler.get(user_id)
    except SQLAlchemyError as e:
        raise StoreError(f"Error {action} user") from e
    if not user:
        raise NotFoundError("User not found")
    return user


@router.get("")
async def list_users(
    query: ListQuery = Depends(get_user_list_query),
    user_db_handler: UserDBHandler = Depends(),
):
    """List users matching ``where``; ``count=true`` returns the match count."""
    user_db_handler.check_query(query)

    if query.count_only:
        try:
            total = await user_db_handler.count(query.filter)
        except SQLAlchemyError as e:
            raise StoreError("Error counting users") from e
        return envelope("OK", total)

    try:
        users = await user_db_handler.find(query)
    except SQLAlchemyError as e:
        raise StoreError("Error retrieving users") from e
    return envelope("OK", render_documents(users, UserDocument, query.projection))


@router.post("")
async def create_user(
    user_data: UserWriteRequest,
    user_db_handler: UserDBHandler = Depends(),
):
    """
    Create a user.

    The initial pendingTasks list is stored as given; the referenced tasks are
    not reassigned to the new user.
    """
    if not user_data.is_complete:
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)

    try:
        user = await user_db_handler.create(user_data.to_record())
    except IntegrityError as e:
        raise ConflictError() from e
    except SQLAlchemyError as e:
        raise StoreError("Error creating user") from e

    logger.info(f"Created user {user.id} <{user.email}>")
    return envelope(
        "User created successfully",
        render_document(user, UserDocument),
        status.HTTP_201_CREATED,
    )


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    projection: Projection | None = Depends(get_item_projection),
    user_db_handler: UserDBHandler = Depends(),
):
    user = await _load_user(user_db_handler, user_id, "retrieving")
    return envelope("OK", render_document(user, UserDocument, projection))


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    user_data: UserWriteRequest,
    user_db_handler: UserDBHandler = Depends(),
    synchronizer: ReferenceSynchronizer = Depends(get_reference_synchronizer),
):
    """Replace a user, then reassign tasks added to or dropped from pendingTasks."""
    if not user_data.is_complete:
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)

    user = await _load_user(user_db_handler, user_id, "finding")
    old_pending_tasks = list(user.pending_tasks)

    try:
        updated_user = await user_db_handler.update(user, user_data.to_record())
    except IntegrityError as e:
        raise ConflictError() from e
    except SQLAlchemyError as e:
        raise StoreError("Error updating user") from e

    await synchronizer.on_user_pending_tasks_replaced(
        old_pending_tasks,
        updated_user.pending_tasks,
        updated_user.id,
        updated_user.name,
    )
    logger.info(f"Updated user {updated_user.id}")
    return envelope("User updated successfully", render_document(updated_user, UserDocument))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    user_db_handler: UserDBHandler = Depends(),
    synchronizer: ReferenceSynchronizer = Depends(get_reference_synchronizer),
):
    """Unassign the user's pending tasks, then delete the user.

    If the tasks cannot be unassigned the user is kept and 500 is returned.
    """
    user = await _load_user(user_db_handler, user_id, "finding")

    report = await synchronizer.on_user_deleted(user.pending_tasks)
    if not report.ok:
        raise StoreError("Error unassigning tasks")

    try:
        await user_db_handler.remove(user.id)
    except SQLAlchemyError as e:
        raise StoreError("Error deleting user") from e

    logger.info(f"Deleted user {user.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
