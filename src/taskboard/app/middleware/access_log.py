import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from taskboard.app.routes.tasks import envelope
from taskboard.observability.logging import request_id_var

logger = logging.getLogger("taskboard.access")


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        start = time.perf_counter()

        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        logger.info(
            "request.start",
            extra={
                "category": "http",
                "event": "request.start",
                "method": request.method,
                "path": request.url.path,
                "query": str(request.url.query),
                "client": request.client.host if request.client else None,
            },
        )

        try:
            response: Response = await call_next(request)
        except Exception:
            # answered here so the 500 still carries the request id
            logger.exception(
                "request.error",
                extra={
                    "category": "http",
                    "event": "request.error",
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            response = envelope(500, message="Internal server error", error="internal_error")
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id

        logger.info(
            "request.end",
            extra={
                "category": "http",
                "event": "request.end",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return response
