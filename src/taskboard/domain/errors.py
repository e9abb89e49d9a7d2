from __future__ import annotations


class TaskError(Exception):
    """Base for every failure the task service surfaces."""

    code = "task_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TaskValidationError(TaskError):
    code = "validation_error"
    status_code = 422


class TaskNotFound(TaskError):
    code = "not_found"
    status_code = 404

    def __init__(self, task_id: str, message: str | None = None):
        super().__init__(message or f"Task not found: {task_id}")
        self.task_id = task_id


class StorageFailure(TaskError):
    """The backing store could not complete the operation."""

    code = "storage_failure"
    status_code = 500


def describe_validation_error(exc) -> str:
    """Flatten a pydantic/FastAPI validation error into one line."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts) or "Invalid input"
