from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum
from datetime import datetime, timezone
from typing import Optional
import uuid

class TaskStatus(str, Enum):
    UPCOMING = "UPCOMING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"

class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def _clean_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("name must not be empty")
    return value


class TaskFields(BaseModel):
    description: Optional[str] = Field(default=None, max_length=4000)
    due_date: Optional[datetime] = None
    assigned_to_name: Optional[str] = Field(default=None, max_length=140)
    assigned_to_avatar: Optional[str] = Field(default=None, max_length=500)

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # naive values are taken as UTC
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class TaskCreate(TaskFields):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=140)
    priority: TaskPriority = TaskPriority.MEDIUM

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _clean_name(value)


class TaskUpdate(TaskFields):
    """Partial update. Only fields present in the payload are applied."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, max_length=140)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None

    @field_validator("name", "status", "priority", mode="before")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _clean_name(value)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class Task(TaskFields):
    id: str
    name: str
    status: TaskStatus = TaskStatus.UPCOMING
    priority: TaskPriority = TaskPriority.MEDIUM
    created_at: datetime
    updated_at: datetime

def new_task_id() -> str:
    return str(uuid.uuid4())
