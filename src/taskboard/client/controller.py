"""Optimistic state container for a task board client.

The controller owns a local mirror of the server's task list and is the only
thing allowed to mutate it. Each mutation follows the same protocol:

1. Refuse if the task already has a mutation in flight (``TaskBusy``).
2. Snapshot the affected record and apply the change locally, before the
   first ``await``, so no other handler sees a half-applied state.
3. Send the request.
4. Reconcile with the server's answer, or restore the snapshot.

The in-flight id is released in a ``finally`` block, whatever the outcome.
Work on different ids is independent and may interleave on the event loop.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError

from taskboard.client.api import TasksApiClient
from taskboard.domain.errors import TaskError, TaskNotFound, describe_validation_error
from taskboard.domain.task_models import Task, TaskPriority, TaskStatus, TaskUpdate

logger = logging.getLogger("taskboard.client")


class MutationState(str, Enum):
    IDLE = "IDLE"
    PENDING = "PENDING"
    RECONCILED = "RECONCILED"
    ROLLED_BACK = "ROLLED_BACK"


class TaskBusy(TaskError):
    code = "busy"
    status_code = 409

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} already has a change in progress")
        self.task_id = task_id


@dataclass
class CreateForm:
    open: bool = False
    pending: bool = False
    error: Optional[str] = None
    validation_errors: Dict[str, str] = field(default_factory=dict)


@dataclass
class DeleteDialog:
    task_id: Optional[str] = None
    open: bool = False
    pending: bool = False
    error: Optional[str] = None


class TaskBoardController:
    def __init__(self, api: TasksApiClient):
        self.api = api
        self.tasks: List[Task] = []
        self.updating: Set[str] = set()
        self.deleting: Set[str] = set()
        self.errors: Dict[str, str] = {}
        self.loading = False
        self.load_error: Optional[str] = None
        self.notice: Optional[str] = None
        self.create_form = CreateForm()
        self.delete_dialog = DeleteDialog()

    # -- queries --

    def get(self, task_id: str) -> Optional[Task]:
        idx = self._index(task_id)
        return None if idx is None else self.tasks[idx]

    def by_status(self) -> Dict[TaskStatus, List[Task]]:
        return {status: [t for t in self.tasks if t.status == status] for status in TaskStatus}

    def is_busy(self, task_id: str) -> bool:
        return task_id in self.updating or task_id in self.deleting

    # -- loading --

    async def load(self, status: Optional[TaskStatus] = None) -> None:
        self.loading = True
        self.load_error = None
        try:
            fetched = await self.api.list(status)
        except TaskError as e:
            self.load_error = e.message
            self.tasks = []
            return
        finally:
            self.loading = False
        # a pending delete must not reappear
        self.tasks = [t for t in fetched if t.id not in self.deleting]

    # -- create --

    def open_create_form(self) -> None:
        self.create_form = CreateForm(open=True)

    def close_create_form(self) -> None:
        self.create_form = CreateForm()

    async def create_task(
        self,
        name: str,
        priority: TaskPriority = TaskPriority.MEDIUM,
        description: Optional[str] = None,
        **fields: Any,
    ) -> MutationState:
        form = self.create_form
        if form.pending:
            return MutationState.PENDING
        form.open = True
        form.error = None
        name = name.strip()
        if not name:
            form.validation_errors = {"name": "Task name is required"}
            return MutationState.IDLE
        form.validation_errors = {}

        form.pending = True
        try:
            task = await self.api.create(name, priority=priority, description=description, **fields)
        except TaskError as e:
            form.error = e.message
            return MutationState.IDLE
        finally:
            form.pending = False

        self.tasks.append(task)
        self.close_create_form()
        return MutationState.RECONCILED

    # -- update --

    async def change_status(self, task_id: str, status: TaskStatus) -> MutationState:
        return await self.update_task(task_id, status=status)

    async def update_task(self, task_id: str, **changes: Any) -> MutationState:
        self._guard(task_id)
        idx = self._index(task_id)
        if idx is None:
            raise TaskNotFound(task_id)
        try:
            payload = TaskUpdate.model_validate(changes).changes()
        except ValidationError as e:
            self.errors[task_id] = describe_validation_error(e)
            return MutationState.IDLE

        snapshot = self.tasks[idx]
        self.tasks[idx] = snapshot.model_copy(update=payload)
        self.updating.add(task_id)
        self.errors.pop(task_id, None)
        try:
            task = await self.api.update(task_id, payload)
        except TaskError as e:
            self._replace(snapshot)
            self.errors[task_id] = e.message
            logger.info(
                "task.rollback",
                extra={"category": "client", "event": "task.rollback", "task_id": task_id, "op": "update"},
            )
            return MutationState.ROLLED_BACK
        except BaseException:
            self._replace(snapshot)
            raise
        finally:
            self.updating.discard(task_id)

        self._replace(task)
        return MutationState.RECONCILED

    # -- delete --

    def open_delete_dialog(self, task_id: str) -> None:
        self.delete_dialog = DeleteDialog(task_id=task_id, open=True)

    def close_delete_dialog(self) -> None:
        self.delete_dialog = DeleteDialog()

    async def delete_task(self, task_id: str) -> MutationState:
        self._guard(task_id)
        idx = self._index(task_id)
        if idx is None:
            raise TaskNotFound(task_id)

        removed = self.tasks.pop(idx)
        self.deleting.add(task_id)
        self.errors.pop(task_id, None)
        if self.delete_dialog.task_id == task_id:
            self.delete_dialog.pending = True
            self.delete_dialog.error = None
        try:
            await self.api.delete(task_id)
        except TaskNotFound:
            # already gone on the server: keep it removed
            self.notice = f'Task "{removed.name}" had already been deleted.'
            self._close_dialog_for(task_id)
            return MutationState.RECONCILED
        except TaskError as e:
            self._reinsert(removed)
            self.errors[task_id] = e.message
            # the dialog may have been closed or retargeted meanwhile
            if self.delete_dialog.task_id == task_id:
                self.delete_dialog.open = True
                self.delete_dialog.error = e.message
            logger.info(
                "task.rollback",
                extra={"category": "client", "event": "task.rollback", "task_id": task_id, "op": "delete"},
            )
            return MutationState.ROLLED_BACK
        except BaseException:
            self._reinsert(removed)
            raise
        finally:
            self.deleting.discard(task_id)
            if self.delete_dialog.task_id == task_id:
                self.delete_dialog.pending = False

        self._close_dialog_for(task_id)
        return MutationState.RECONCILED

    # -- internals --

    def _guard(self, task_id: str) -> None:
        if self.is_busy(task_id):
            raise TaskBusy(task_id)

    def _index(self, task_id: str) -> Optional[int]:
        for i, task in enumerate(self.tasks):
            if task.id == task_id:
                return i
        return None

    def _replace(self, task: Task) -> None:
        idx = self._index(task.id)
        if idx is not None:
            self.tasks[idx] = task

    def _reinsert(self, task: Task) -> None:
        if self._index(task.id) is not None:
            return
        pos = bisect.bisect_right(self.tasks, task.created_at, key=lambda t: t.created_at)
        self.tasks.insert(pos, task)

    def _close_dialog_for(self, task_id: str) -> None:
        if self.delete_dialog.task_id == task_id:
            self.close_delete_dialog()
