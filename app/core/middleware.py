"""
Request logging middleware
"""
import time
import uuid
from typing import Callable, List

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.core.logging_config import logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an X-Request-ID and logs method, path, status and duration.
    Health checks and docs are not logged.
    """

    SKIPPED_PREFIXES: List[str] = [
        "/health",
        "/docs",
        "/openapi.json",
        "/redoc",
    ]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id

        if not self._is_skipped(request.url.path):
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"({duration_ms:.1f}ms) request_id={request_id}"
            )
        return response

    def _is_skipped(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.SKIPPED_PREFIXES)
