"""
Base configurations and mixins for database models.

Provides the declarative base shared by the Task and User models, the string
identity column they both use, and the creation timestamp column.
"""

import uuid

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql.functions import now as db_now

from app.config import settings

# JSONB on Postgres, plain JSON everywhere else
JSONList = JSON().with_variant(JSONB(), "postgresql")


def new_record_id() -> str:
    return uuid.uuid4().hex


Base = declarative_base()


class RecordIdMixin:
    """
    Opaque string primary key.

    Ids are uuid4 hex strings so that they can be stored verbatim inside the
    JSON ``pending_tasks`` list and in ``Task.assigned_user``.
    """

    id = Column(
        String(32),
        primary_key=True,
        default=new_record_id,
        index=True,
        comment="Opaque record identity",
    )


class DateCreatedMixin:
    """Creation timestamp set once by the database on insert."""

    date_created = Column(
        DateTime(timezone=True),
        server_default=db_now(),
        nullable=False,
        comment="Timestamp when the record was created",
    )


SCHEMA_NAME = settings.schema_name


def table_args(*args) -> tuple:
    """Build ``__table_args__`` honoring the optional configured schema."""
    if SCHEMA_NAME:
        return (*args, {"schema": SCHEMA_NAME})
    return args


__all__ = [
    "Base",
    "DateCreatedMixin",
    "JSONList",
    "RecordIdMixin",
    "SCHEMA_NAME",
    "new_record_id",
    "table_args",
]
