import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from taskboard.domain.errors import TaskNotFound, TaskValidationError, describe_validation_error
from taskboard.domain.task_models import Task, TaskCreate, TaskStatus, TaskUpdate

logger = logging.getLogger("taskboard.tasks")

M = TypeVar("M", bound=BaseModel)


class TaskRepo(Protocol):
    async def init(self) -> None: ...
    async def create(self, data: TaskCreate) -> Task: ...
    async def get(self, task_id: str) -> Optional[Task]: ...
    async def list(self, status: Optional[TaskStatus] = None) -> List[Task]: ...
    async def update(self, task_id: str, changes: Dict[str, Any]) -> Optional[Task]: ...
    async def delete(self, task_id: str) -> bool: ...


def _parse(model: Type[M], data: Union[M, Mapping[str, Any]]) -> M:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise TaskValidationError(describe_validation_error(e)) from e


class TaskService:
    def __init__(self, repo: TaskRepo):
        self.repo = repo

    async def create_task(self, data: Union[TaskCreate, Mapping[str, Any]]) -> Task:
        payload = _parse(TaskCreate, data)
        task = await self.repo.create(payload)
        logger.info(
            "task.create",
            extra={"category": "tasks", "event": "task.create", "task_id": task.id, "priority": task.priority.value},
        )
        return task

    async def get_task(self, task_id: str) -> Task:
        task = await self.repo.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    async def list_tasks(self, status: Union[TaskStatus, str, None] = None) -> List[Task]:
        if status is not None and not isinstance(status, TaskStatus):
            try:
                status = TaskStatus(status)
            except ValueError:
                raise TaskValidationError(f"Unknown status: {status}") from None
        return await self.repo.list(status)

    async def update_task(self, task_id: str, data: Union[TaskUpdate, Mapping[str, Any]]) -> Task:
        payload = _parse(TaskUpdate, data)
        changes = payload.changes()
        task = await self.repo.update(task_id, changes)
        if task is None:
            raise TaskNotFound(task_id)
        logger.info(
            "task.update",
            extra={"category": "tasks", "event": "task.update", "task_id": task_id, "fields": sorted(changes)},
        )
        return task

    async def delete_task(self, task_id: str) -> None:
        if not await self.repo.delete(task_id):
            raise TaskNotFound(task_id)
        logger.info("task.delete", extra={"category": "tasks", "event": "task.delete", "task_id": task_id})
