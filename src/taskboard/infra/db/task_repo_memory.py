from __future__ import annotations
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from taskboard.domain.task_models import Task, TaskCreate, TaskStatus, new_task_id

class InMemoryTaskRepo:
    """
    Dict-backed store with the same contract as SQLiteTaskRepo.
    Insertion order doubles as creation order.
    """
    def __init__(self):
        self._tasks: Dict[str, Task] = {}

    async def init(self) -> None:
        return None

    async def create(self, data: TaskCreate) -> Task:
        now = datetime.now(timezone.utc)
        task = Task(
            id=new_task_id(),
            status=TaskStatus.UPCOMING,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        self._tasks[task.id] = task
        return task

    async def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    async def list(self, status: Optional[TaskStatus] = None) -> List[Task]:
        # oldest first
        return [t for t in self._tasks.values() if status is None or t.status == status]

    async def update(self, task_id: str, changes: Dict[str, Any]) -> Optional[Task]:
        current = self._tasks.get(task_id)
        if current is None:
            return None
        now = max(datetime.now(timezone.utc), current.updated_at)
        task = current.model_copy(update={**changes, "updated_at": now})
        self._tasks[task_id] = task
        return task

    async def delete(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None
