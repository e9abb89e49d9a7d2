"""Async HTTP client for the task API.

Unwraps the ``{success, data, message, error}`` envelope and turns failures
back into the same exception types the service raises.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

import httpx

from taskboard.domain.errors import TaskError, TaskNotFound, TaskValidationError
from taskboard.domain.task_models import Task, TaskPriority, TaskStatus

logger = logging.getLogger("taskboard.client")

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT_S = 10.0


class ApiError(TaskError):
    """Non-2xx response the client cannot map to a domain error."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: str = "api_error"):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class ApiUnavailable(ApiError):
    """Transport failure or timeout; the server never answered."""

    def __init__(self, message: str):
        super().__init__(message, status_code=None, code="unavailable")


class TasksApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        prefix: str = "/api/tasks",
    ) -> None:
        base_url = base_url or os.getenv("TASKBOARD_API_URL", DEFAULT_BASE_URL)
        if timeout_s is None:
            timeout_s = float(os.getenv("TASKBOARD_API_TIMEOUT", DEFAULT_TIMEOUT_S))
        self._prefix = prefix.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_s),
            transport=transport,
        )

    async def __aenter__(self) -> "TasksApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def list(self, status: Optional[TaskStatus] = None) -> list[Task]:
        params = {"status": TaskStatus(status).value} if status is not None else None
        data = await self._request("GET", "", params=params)
        return [Task.model_validate(item) for item in data or []]

    async def get(self, task_id: str) -> Task:
        return Task.model_validate(await self._request("GET", f"/{task_id}", task_id=task_id))

    async def create(
        self,
        name: str,
        priority: TaskPriority = TaskPriority.MEDIUM,
        description: Optional[str] = None,
        **fields: Any,
    ) -> Task:
        body = {"name": name, "priority": TaskPriority(priority).value, **fields}
        if description is not None:
            body["description"] = description
        return Task.model_validate(await self._request("POST", "", json=body))

    async def update(self, task_id: str, changes: dict[str, Any]) -> Task:
        data = await self._request("PUT", f"/{task_id}", json=changes, task_id=task_id)
        return Task.model_validate(data)

    async def delete(self, task_id: str) -> None:
        await self._request("DELETE", f"/{task_id}", task_id=task_id)

    async def _request(
        self,
        method: str,
        path: str,
        task_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        url = f"{self._prefix}{path}"
        if "json" in kwargs:
            kwargs["json"] = _jsonable(kwargs["json"])
        try:
            resp = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning(
                "api.unavailable",
                extra={"category": "client", "event": "api.unavailable", "method": method, "url": url, "error": str(e)},
            )
            raise ApiUnavailable(f"Task API unreachable: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.is_success:
            return body.get("data")

        message = body.get("message") or resp.reason_phrase or "Request failed"
        logger.info(
            "api.error",
            extra={
                "category": "client",
                "event": "api.error",
                "method": method,
                "url": url,
                "status_code": resp.status_code,
                "task_id": task_id,
            },
        )
        if resp.status_code == 404:
            raise TaskNotFound(task_id or url, message)
        if resp.status_code == 422:
            raise TaskValidationError(message)
        raise ApiError(message, status_code=resp.status_code, code=body.get("error") or "api_error")


def _jsonable(body: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for key, value in body.items():
        if isinstance(value, (TaskStatus, TaskPriority)):
            value = value.value
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        out[key] = value
    return out
