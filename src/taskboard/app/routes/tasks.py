from typing import Any, Optional

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from taskboard.domain.task_models import TaskCreate, TaskUpdate
from taskboard.services.task_service import TaskService

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def get_service() -> TaskService:
    # Overridden per app in main.py:
    # app.dependency_overrides[tasks.get_service] = lambda: svc
    raise RuntimeError("TaskService not wired")


def envelope(
    status_code: int = 200,
    data: Any = None,
    message: Optional[str] = None,
    error: Optional[str] = None,
) -> JSONResponse:
    """Uniform response body: {success, data?, message?, error?}."""
    body: dict[str, Any] = {"success": error is None}
    if data is not None:
        body["data"] = jsonable_encoder(data)
    if message is not None:
        body["message"] = message
    if error is not None:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=body)


@router.get("")
async def list_tasks(status: Optional[str] = None, svc: TaskService = Depends(get_service)):
    return envelope(data=await svc.list_tasks(status))


@router.get("/{task_id}")
async def get_task(task_id: str, svc: TaskService = Depends(get_service)):
    return envelope(data=await svc.get_task(task_id))


@router.post("", status_code=201)
async def create_task(payload: TaskCreate, svc: TaskService = Depends(get_service)):
    task = await svc.create_task(payload)
    return envelope(201, data=task, message="Task created")


@router.put("/{task_id}")
async def update_task(task_id: str, payload: TaskUpdate, svc: TaskService = Depends(get_service)):
    task = await svc.update_task(task_id, payload)
    return envelope(data=task, message="Task updated")


@router.delete("/{task_id}")
async def delete_task(task_id: str, svc: TaskService = Depends(get_service)):
    await svc.delete_task(task_id)
    return envelope(message="Task deleted")
