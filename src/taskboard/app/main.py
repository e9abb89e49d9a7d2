import os
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from taskboard.app.routes import tasks, logs
from taskboard.app.routes.tasks import envelope
from taskboard.domain.errors import TaskError, TaskValidationError, describe_validation_error
from taskboard.infra.db.sqlite import make_sqlite_repo
from taskboard.infra.db.task_repo_memory import InMemoryTaskRepo
from taskboard.services.task_service import TaskRepo, TaskService
from taskboard.observability.logging import setup_logging
from taskboard.app.middleware.access_log import AccessLogMiddleware

logger = logging.getLogger("taskboard.system")


def make_repo(store: str, db_path: str) -> TaskRepo:
    if store == "memory":
        return InMemoryTaskRepo()
    if store == "sqlite":
        return make_sqlite_repo(db_path)
    raise ValueError(f"Unknown TASK_STORE: {store}")


def create_app(
    repo: Optional[TaskRepo] = None,
    db_path: Optional[str] = None,
    log_dir: Optional[str] = None,
) -> FastAPI:
    log_path = setup_logging(log_dir=log_dir)
    logger.info("system.start", extra={"category": "system", "event": "system.start"})

    app = FastAPI(title="Taskboard")
    app.add_middleware(AccessLogMiddleware)
    app.state.log_path = log_path

    # --- storage wiring ---
    db_path = db_path or os.getenv("DB_PATH", "./data/taskboard.db")
    store = os.getenv("TASK_STORE", "sqlite")
    if repo is None:
        repo = make_repo(store, db_path)
    svc = TaskService(repo)
    app.state.repo = repo
    app.state.service = svc
    app.dependency_overrides[tasks.get_service] = lambda: svc

    # Routers
    app.include_router(tasks.router)
    app.include_router(logs.router)

    @app.exception_handler(TaskError)
    async def _task_error(request: Request, exc: TaskError):
        if exc.status_code >= 500:
            logger.error(
                "task.error",
                extra={"category": "tasks", "event": "task.error", "code": exc.code, "path": request.url.path},
            )
        return envelope(exc.status_code, message=exc.message, error=exc.code)

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError):
        message = describe_validation_error(exc)
        return envelope(TaskValidationError.status_code, message=message, error=TaskValidationError.code)

    # Create tables on startup
    @app.on_event("startup")
    async def _startup():
        await repo.init()
        logger.info(
            "db.ready",
            extra={"category": "system", "event": "db.ready", "store": type(repo).__name__, "db_path": db_path},
        )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
