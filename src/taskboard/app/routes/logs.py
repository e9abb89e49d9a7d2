from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Request

from taskboard.app.routes.tasks import envelope
from taskboard.observability.logging import log_path

router = APIRouter(prefix="/api/logs", tags=["logs"])

MAX_TAIL = 5000


def _tail_lines(path: Path, n: int) -> list[str]:
    text = path.read_text(encoding="utf-8", errors="replace")
    return text.splitlines()[-n:]


def _matches(
    obj: dict,
    category: Optional[str],
    level: Optional[str],
    request_id: Optional[str],
    task_id: Optional[str],
    q: Optional[str],
) -> bool:
    if category and obj.get("category") != category:
        return False
    if level and str(obj.get("level", "")).upper() != level.upper():
        return False
    if request_id and obj.get("request_id") != request_id:
        return False
    if task_id and obj.get("task_id") != task_id:
        return False
    if q and q.lower() not in json.dumps(obj).lower():
        return False
    return True


@router.get("")
def get_logs(
    request: Request,
    tail: int = 300,
    category: Optional[str] = None,
    level: Optional[str] = None,
    request_id: Optional[str] = None,
    task_id: Optional[str] = None,
    q: Optional[str] = None,
):
    path: Path = getattr(request.app.state, "log_path", None) or log_path()
    if not path.exists():
        return envelope(404, message=f"Log file not found: {path}", error="not_found")

    tail = max(1, min(tail, MAX_TAIL))

    items = []
    for line in _tail_lines(path, tail):
        try:
            obj = json.loads(line)
        except json.JSONDecodeError:
            continue
        if _matches(obj, category, level, request_id, task_id, q):
            items.append(obj)

    return {"returned": len(items), "tail": tail, "items": items}
