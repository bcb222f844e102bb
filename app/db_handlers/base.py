from __future__ import annotations

import asyncio
from functools import wraps
from typing import Any, Generic, TypeVar

from asyncpg.exceptions import ConnectionDoesNotExistError
from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import AppAsyncSessionLocal
from app.db_handlers.query_compiler import FieldMap, compile_filter, compile_sort
from app.models.base import Base
from app.utils.logger import setup_logger
from app.utils.query_parser import FilterNode, ListQuery

logger = setup_logger("db_handlers")


ModelType = TypeVar("ModelType", bound=Base)


def check_local_db(func):
    """Database session decorator with transaction management and retry logic."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        # A caller that passes 'db' owns the transaction.
        if kwargs.get("db"):
            return await func(*args, **kwargs)

        last_exception = None
        # Retry logic for transient connection errors
        for attempt in range(3):
            async with AppAsyncSessionLocal() as db:
                kwargs["db"] = db
                try:
                    result = await func(*args, **kwargs)
                    await db.commit()
                    return result
                except IntegrityError:
                    await db.rollback()
                    raise
                except DBAPIError as e:
                    await db.rollback()
                    if isinstance(e.orig, ConnectionDoesNotExistError):
                        last_exception = e
                        logger.warning(
                            f"Connection error in {func.__name__} (attempt {attempt + 1}/3): {e}. Retrying..."
                        )
                        await asyncio.sleep(1 + attempt)
                        continue
                    logger.error(
                        f"DBAPIError in {func.__name__} (attempt {attempt + 1}/3): {e}",
                        exc_info=True,
                    )
                    raise
                except Exception as e:
                    await db.rollback()
                    logger.error(
                        f"Transaction failed in {func.__name__} (attempt {attempt + 1}/3): {e}",
                        exc_info=True,
                    )
                    raise

        logger.error(
            f"All retries failed for {func.__name__}. Last error: {last_exception}"
        )
        raise last_exception

    return wrapper


class BaseDBHandler(Generic[ModelType]):
    """Generic handler for database operations with basic CRUD methods.

    ``field_map`` translates the external field names used by list queries
    into model columns.
    """

    field_map: FieldMap = {}

    def __init__(self, model: type[ModelType]):
        self.model = model

    def check_query(self, query: ListQuery) -> None:
        """Raise ValidationError for unknown fields or bad values without any I/O."""
        compile_filter(query.filter, self.field_map)
        compile_sort(query.sort, self.field_map)

    @check_local_db
    async def create(
        self, obj_dict: dict[str, Any], *, db: AsyncSession = None
    ) -> ModelType:
        """Create a new record in the database."""

        db_obj = self.model(**obj_dict)
        try:
            db.add(db_obj)
            await db.commit()
            await db.refresh(db_obj)
            return db_obj
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"IntegrityError creating {self.model.__name__}: {e}")
            # Re-raise IntegrityError so calling code can handle it specifically
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error creating {self.model.__name__}: {e}", exc_info=True)
            raise

    @check_local_db
    async def get(self, id: Any, *, db: AsyncSession = None) -> ModelType | None:
        """Get a single record by its primary key."""
        stmt = select(self.model).where(self.model.id == id)
        result = await db.execute(stmt)
        return result.scalars().first()

    @check_local_db
    async def find(
        self, query: ListQuery, *, db: AsyncSession = None
    ) -> list[ModelType]:
        """Get records matching a list query's filter, sort, skip and limit."""
        stmt = select(self.model).where(compile_filter(query.filter, self.field_map))

        order_by_clauses = compile_sort(query.sort, self.field_map)
        if order_by_clauses:
            stmt = stmt.order_by(*order_by_clauses)
        if query.skip:
            stmt = stmt.offset(query.skip)
        if query.limit:
            stmt = stmt.limit(query.limit)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @check_local_db
    async def count(
        self, filter_node: FilterNode | None = None, *, db: AsyncSession = None
    ) -> int:
        """Count records matching a filter tree."""
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(compile_filter(filter_node, self.field_map))
        )
        result = await db.execute(stmt)
        return result.scalar_one()

    @check_local_db
    async def update(
        self,
        db_obj: ModelType,
        update_data: dict[str, Any],
        *,
        db: AsyncSession = None,
    ) -> ModelType:
        """Update an existing record in the database."""

        record_id = db_obj.id
        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        try:
            db_obj = await db.merge(db_obj)
            await db.commit()
            await db.refresh(db_obj)
            return db_obj
        except IntegrityError as e:
            await db.rollback()
            logger.warning(
                f"IntegrityError updating {self.model.__name__} with id {record_id}: {e}"
            )
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                f"Error updating {self.model.__name__} with id {record_id}: {e}",
                exc_info=True,
            )
            raise

    @check_local_db
    async def update_many_by_ids(
        self,
        ids: list[Any],
        values: dict[str, Any],
        *,
        db: AsyncSession = None,
    ) -> int:
        """Apply the same column values to every record whose id is in ``ids``."""
        if not ids:
            return 0
        stmt = (
            update(self.model)
            .where(self.model.id.in_(list(ids)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await db.execute(stmt)
            await db.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                f"Error bulk updating {len(ids)} {self.model.__name__} records: {e}",
                exc_info=True,
            )
            raise

    @check_local_db
    async def remove(self, id: Any, *, db: AsyncSession = None) -> ModelType | None:
        """Remove a record from the database by its primary key."""
        obj = await self.get(id=id, db=db)
        if obj:
            try:
                await db.delete(obj)
                await db.commit()
                return obj
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(
                    f"Error removing {self.model.__name__} with id {id}: {e}",
                    exc_info=True,
                )
                raise
        return None
