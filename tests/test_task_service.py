"""TaskService against both the in-memory and SQLite stores."""

from datetime import datetime, timezone

import pytest

from taskboard.domain.errors import StorageFailure, TaskNotFound, TaskValidationError
from taskboard.domain.task_models import TaskCreate, TaskPriority, TaskStatus
from taskboard.infra.db.sqlite import make_sqlite_repo
from taskboard.services.task_service import TaskService


class TestCreate:
    async def test_defaults(self, service: TaskService):
        task = await service.create_task({"name": "Write spec"})
        assert task.status == TaskStatus.UPCOMING
        assert task.priority == TaskPriority.MEDIUM
        assert task.created_at == task.updated_at
        assert task.created_at.tzinfo is not None

    async def test_priority_and_description(self, service: TaskService):
        task = await service.create_task(TaskCreate(name="Write spec", priority="HIGH", description="draft"))
        assert task.priority == TaskPriority.HIGH
        assert task.description == "draft"

    async def test_optional_assignment_fields(self, service: TaskService):
        task = await service.create_task(
            {"name": "Review", "assigned_to_name": "Sam", "assigned_to_avatar": "/img/sam.png"}
        )
        assert task.assigned_to_name == "Sam"
        assert (await service.get_task(task.id)).assigned_to_avatar == "/img/sam.png"

    async def test_ids_are_fresh(self, service: TaskService):
        ids = {(await service.create_task({"name": f"t{i}"})).id for i in range(5)}
        assert len(ids) == 5

    @pytest.mark.parametrize("payload", [{}, {"name": ""}, {"name": "   "}, {"name": "x", "priority": "URGENT"}])
    async def test_invalid_input(self, service: TaskService, payload):
        with pytest.raises(TaskValidationError):
            await service.create_task(payload)
        assert await service.list_tasks() == []

    async def test_round_trip(self, service: TaskService):
        created = await service.create_task(
            {"name": "Round trip", "priority": "LOW", "due_date": "2026-03-01T09:00:00"}
        )
        fetched = await service.get_task(created.id)
        assert fetched.model_dump(exclude={"updated_at"}) == created.model_dump(exclude={"updated_at"})
        assert created.due_date == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
        assert fetched.due_date.tzinfo is not None

    async def test_due_date_update_round_trip(self, service: TaskService):
        task = await service.create_task({"name": "x"})
        updated = await service.update_task(task.id, {"due_date": "2026-03-01T11:00:00+02:00"})
        fetched = await service.get_task(task.id)
        assert updated.due_date == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
        assert fetched.due_date == updated.due_date
        assert fetched.due_date.utcoffset() == updated.due_date.utcoffset()


class TestList:
    async def test_creation_order(self, service: TaskService):
        names = ["a", "b", "c", "d"]
        for name in names:
            await service.create_task({"name": name})
        assert [t.name for t in await service.list_tasks()] == names

    async def test_status_filter(self, service: TaskService):
        a = await service.create_task({"name": "a"})
        await service.create_task({"name": "b"})
        await service.update_task(a.id, {"status": "IN_PROGRESS"})

        in_progress = await service.list_tasks("IN_PROGRESS")
        assert [t.id for t in in_progress] == [a.id]
        assert [t.name for t in await service.list_tasks(TaskStatus.UPCOMING)] == ["b"]
        assert await service.list_tasks(TaskStatus.COMPLETED) == []

    async def test_unknown_status_filter(self, service: TaskService):
        with pytest.raises(TaskValidationError):
            await service.list_tasks("DONE")


class TestGet:
    async def test_missing(self, service: TaskService):
        with pytest.raises(TaskNotFound) as info:
            await service.get_task("nope")
        assert info.value.task_id == "nope"


class TestUpdate:
    async def test_partial_merge(self, service: TaskService):
        task = await service.create_task({"name": "Write spec", "description": "draft"})
        updated = await service.update_task(task.id, {"status": "COMPLETED"})
        assert updated.status == TaskStatus.COMPLETED
        assert updated.name == "Write spec"
        assert updated.description == "draft"
        assert updated.updated_at >= task.updated_at
        assert updated.created_at == task.created_at

    async def test_clears_optional_field(self, service: TaskService):
        task = await service.create_task({"name": "x", "description": "draft"})
        updated = await service.update_task(task.id, {"description": None})
        assert updated.description is None

    async def test_empty_name_leaves_record_unchanged(self, service: TaskService):
        task = await service.create_task({"name": "Keep me", "priority": "LOW"})
        with pytest.raises(TaskValidationError):
            await service.update_task(task.id, {"name": "", "priority": "HIGH"})
        stored = await service.get_task(task.id)
        assert stored == task

    @pytest.mark.parametrize("payload", [{"status": "DONE"}, {"priority": "urgent"}, {"colour": "red"}])
    async def test_rejects_bad_fields(self, service: TaskService, payload):
        task = await service.create_task({"name": "x"})
        with pytest.raises(TaskValidationError):
            await service.update_task(task.id, payload)

    async def test_missing(self, service: TaskService):
        with pytest.raises(TaskNotFound):
            await service.update_task("nope", {"status": "COMPLETED"})

    async def test_empty_update_refreshes_timestamp_only(self, service: TaskService):
        task = await service.create_task({"name": "x"})
        updated = await service.update_task(task.id, {})
        assert updated.model_dump(exclude={"updated_at"}) == task.model_dump(exclude={"updated_at"})
        assert updated.updated_at >= task.updated_at


class TestDelete:
    async def test_delete_then_missing(self, service: TaskService):
        task = await service.create_task({"name": "x"})
        await service.delete_task(task.id)
        with pytest.raises(TaskNotFound):
            await service.get_task(task.id)
        assert await service.list_tasks() == []

    async def test_second_delete_is_not_found(self, service: TaskService):
        task = await service.create_task({"name": "x"})
        await service.delete_task(task.id)
        with pytest.raises(TaskNotFound):
            await service.delete_task(task.id)

    async def test_unknown_id(self, service: TaskService):
        with pytest.raises(TaskNotFound):
            await service.delete_task("nope")

    async def test_leaves_other_tasks(self, service: TaskService):
        a = await service.create_task({"name": "a"})
        b = await service.create_task({"name": "b"})
        await service.delete_task(a.id)
        assert [t.id for t in await service.list_tasks()] == [b.id]


async def test_storage_failure_without_schema(tmp_path):
    repo = make_sqlite_repo(str(tmp_path / "empty.db"))
    svc = TaskService(repo)
    try:
        with pytest.raises(StorageFailure):
            await svc.list_tasks()
        with pytest.raises(StorageFailure):
            await svc.create_task({"name": "x"})
    finally:
        await repo.engine.dispose()
