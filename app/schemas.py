from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from app.models.task import UNASSIGNED_USER_ID, UNASSIGNED_USER_NAME
from app.models.user import dedupe_task_ids
from app.utils.timestamps import parse_timestamp


class ApiEnvelope(BaseModel):
    message: str = Field(..., description="Human readable outcome")
    data: Any = Field(default=None, description="Payload, null on errors")


# ===== Request bodies =====
# Required fields are optional here so that a missing field is reported with
# the resource's own 400 message instead of a generic validation error.


class TaskWriteRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    deadline: datetime | None = None
    completed: bool | None = None
    assigned_user: str | None = Field(default=None, alias="assignedUser")
    assigned_user_name: str | None = Field(default=None, alias="assignedUserName")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("deadline", mode="before")
    @classmethod
    def parse_deadline(cls, v: Any) -> datetime | None:
        """Millisecond epochs and ISO strings are both accepted."""
        if v is None or v == "":
            return None
        return parse_timestamp(v)

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @property
    def is_complete(self) -> bool:
        return bool(self.name) and self.deadline is not None

    def to_record(self) -> dict[str, Any]:
        """Column values for a create or full replace."""
        return {
            "name": self.name,
            "description": self.description or "",
            "deadline": self.deadline,
            "assigned_user": self.assigned_user or UNASSIGNED_USER_ID,
            "assigned_user_name": self.assigned_user_name or UNASSIGNED_USER_NAME,
        }


class UserWriteRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    pending_tasks: list[str] | None = Field(default=None, alias="pendingTasks")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("name", "email", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("pending_tasks", mode="after")
    @classmethod
    def drop_duplicates(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else dedupe_task_ids(v)

    @property
    def is_complete(self) -> bool:
        return bool(self.name) and bool(self.email)

    def to_record(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "pending_tasks": self.pending_tasks or [],
        }


# ===== Documents returned in the envelope =====


class _Document(BaseModel):
    id: str = Field(..., serialization_alias="_id")
    date_created: datetime | None = Field(
        default=None, serialization_alias="dateCreated"
    )

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("date_created", check_fields=False)
    def serialize_timestamp(self, value: datetime | None) -> str | None:
        return _isoformat(value)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TaskDocument(_Document):
    name: str
    description: str = ""
    deadline: datetime
    completed: bool = False
    assigned_user: str = Field(
        default=UNASSIGNED_USER_ID, serialization_alias="assignedUser"
    )
    assigned_user_name: str = Field(
        default=UNASSIGNED_USER_NAME, serialization_alias="assignedUserName"
    )

    @field_serializer("deadline")
    def serialize_deadline(self, value: datetime) -> str | None:
        return _isoformat(value)


class UserDocument(_Document):
    name: str
    email: str
    pending_tasks: list[str] = Field(
        default_factory=list, serialization_alias="pendingTasks"
    )


def _isoformat(value: datetime | None) -> str | None:
    """ISO-8601 in UTC with a ``Z`` suffix; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )
