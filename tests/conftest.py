"""Shared fixtures: repos, service, FastAPI app and httpx clients."""

import os
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path

# taskboard.app.main builds a module-level app on import; keep its files out of the cwd
_IMPORT_DIR = tempfile.mkdtemp(prefix="taskboard-tests-")
os.environ.setdefault("LOG_DIR", os.path.join(_IMPORT_DIR, "logs"))
os.environ.setdefault("DB_PATH", os.path.join(_IMPORT_DIR, "import.db"))

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from taskboard.infra.db.sqlite import make_sqlite_repo
from taskboard.infra.db.task_repo_memory import InMemoryTaskRepo
from taskboard.services.task_service import TaskService


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def repo(request, tmp_path: Path):
    """Each service test runs against both store implementations."""
    if request.param == "memory":
        store = InMemoryTaskRepo()
        await store.init()
        yield store
    else:
        store = make_sqlite_repo(str(tmp_path / "tasks.db"))
        await store.init()
        yield store
        await store.engine.dispose()


@pytest_asyncio.fixture
async def service(repo) -> TaskService:
    return TaskService(repo)


@pytest_asyncio.fixture
async def app(tmp_path: Path):
    from taskboard.app.main import create_app

    application = create_app(db_path=str(tmp_path / "app.db"), log_dir=str(tmp_path / "logs"))
    # ASGITransport does not run startup events
    await application.state.repo.init()
    yield application
    await application.state.repo.engine.dispose()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
