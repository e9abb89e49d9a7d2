from __future__ import annotations
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from pathlib import Path

from taskboard.infra.db.task_repo_sqlite import SQLiteTaskRepo

def make_sqlite_url(db_path: str) -> str:
    # db_path like "./data/taskboard.db"
    p = Path(db_path).resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{p.as_posix()}"

def make_engine(sqlite_url: str) -> AsyncEngine:
    return create_async_engine(sqlite_url)

def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)

def make_sqlite_repo(db_path: str) -> SQLiteTaskRepo:
    engine = make_engine(make_sqlite_url(db_path))
    return SQLiteTaskRepo(make_sessionmaker(engine), engine=engine)
