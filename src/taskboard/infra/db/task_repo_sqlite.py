from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, List

from sqlalchemy import String, Text, DateTime, TypeDecorator, literal_column, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from taskboard.domain.errors import StorageFailure
from taskboard.domain.task_models import Task, TaskCreate, TaskStatus, TaskPriority, new_task_id

logger = logging.getLogger("taskboard.db")


class UTCDateTime(TypeDecorator):
    """SQLite drops tzinfo; store naive UTC and hand back aware datetimes."""
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    pass


class TaskRow(Base):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(140), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False)
    due_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    assigned_to_name: Mapped[Optional[str]] = mapped_column(String(140), nullable=True)
    assigned_to_avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    def apply(self, changes: Dict[str, Any]) -> None:
        for key, value in changes.items():
            if isinstance(value, (TaskStatus, TaskPriority)):
                value = value.value
            setattr(self, key, value)

    def to_domain(self) -> Task:
        return Task(
            id=self.id,
            name=self.name,
            description=self.description,
            status=TaskStatus(self.status),
            priority=TaskPriority(self.priority),
            due_date=self.due_date,
            assigned_to_name=self.assigned_to_name,
            assigned_to_avatar=self.assigned_to_avatar,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def _storage_failure(op: str, exc: SQLAlchemyError, task_id: Optional[str] = None) -> StorageFailure:
    logger.error(
        "db.error",
        exc_info=exc,
        extra={"category": "db", "event": "db.error", "op": op, "task_id": task_id},
    )
    return StorageFailure(f"Storage failure during {op}")


class SQLiteTaskRepo:
    def __init__(self, sessionmaker, engine=None):
        self.sessionmaker = sessionmaker
        self.engine = engine

    async def init(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise _storage_failure("init", e) from e

    async def create(self, data: TaskCreate) -> Task:
        now = datetime.now(timezone.utc)
        row = TaskRow(
            id=new_task_id(),
            status=TaskStatus.UPCOMING.value,
            created_at=now,
            updated_at=now,
        )
        row.apply(data.model_dump())
        try:
            async with self.sessionmaker() as session:
                session.add(row)
                await session.commit()
                return row.to_domain()
        except SQLAlchemyError as e:
            raise _storage_failure("create", e, row.id) from e

    async def get(self, task_id: str) -> Optional[Task]:
        try:
            async with self.sessionmaker() as session:
                row = await session.get(TaskRow, task_id)
                return row.to_domain() if row else None
        except SQLAlchemyError as e:
            raise _storage_failure("get", e, task_id) from e

    async def list(self, status: Optional[TaskStatus] = None) -> List[Task]:
        # creation order; rowid breaks timestamp ties
        stmt = select(TaskRow).order_by(TaskRow.created_at, literal_column("tasks.rowid"))
        if status is not None:
            stmt = stmt.where(TaskRow.status == status.value)
        try:
            async with self.sessionmaker() as session:
                res = await session.execute(stmt)
                rows = res.scalars().all()
                return [r.to_domain() for r in rows]
        except SQLAlchemyError as e:
            raise _storage_failure("list", e) from e

    async def update(self, task_id: str, changes: Dict[str, Any]) -> Optional[Task]:
        try:
            async with self.sessionmaker() as session:
                row = await session.get(TaskRow, task_id)
                if row is None:
                    return None
                row.apply(changes)
                row.updated_at = max(datetime.now(timezone.utc), row.updated_at)
                await session.commit()
                return row.to_domain()
        except SQLAlchemyError as e:
            raise _storage_failure("update", e, task_id) from e

    async def delete(self, task_id: str) -> bool:
        try:
            async with self.sessionmaker() as session:
                row = await session.get(TaskRow, task_id)
                if row is None:
                    return False
                await session.delete(row)
                await session.commit()
                return True
        except SQLAlchemyError as e:
            raise _storage_failure("delete", e, task_id) from e
