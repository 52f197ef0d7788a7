# src/squashrank/middleware/logging.py

"""Request/response logging middleware for SquashRank API."""

import logging
import time
import uuid
from collections.abc import Callable
from urllib.parse import urlencode

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("squashrank.api")

# Query parameters carrying signed Telegram credentials
_REDACTED_PARAMS = {"initData"}

# Polled by load balancers; logged at DEBUG only
_QUIET_PATHS = {"/health"}


def _safe_query(request: Request) -> str:
    if not request.query_params:
        return ""
    pairs = [
        (key, "***" if key in _REDACTED_PARAMS else value)
        for key, value in request.query_params.multi_items()
    ]
    return urlencode(pairs)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and its outcome with a short request ID.

    An incoming ``X-Request-ID`` is reused so a chat bot and this API can
    share one trace; otherwise a new ID is generated. The ID is echoed back
    in the response headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        level = logging.DEBUG if request.url.path in _QUIET_PATHS else logging.INFO
        query = _safe_query(request)
        start = time.perf_counter()

        logger.log(
            level,
            "[%s] %s %s%s",
            request_id,
            request.method,
            request.url.path,
            f"?{query}" if query else "",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else "unknown",
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "[%s] %s %s -> ERROR (%.2fms): %s",
                request_id,
                request.method,
                request.url.path,
                duration_ms,
                e,
                extra={"request_id": request_id, "duration_ms": round(duration_ms, 2)},
                exc_info=True,
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        logger.log(
            level,
            "[%s] %s %s -> %d (%.2fms)",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response  # type: ignore[no-any-return]
