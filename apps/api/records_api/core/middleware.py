"""Request ID and structured request logging middleware."""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Callable, Optional

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from records_api.core.otel_metrics import emit_http_request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Probes and docs are not logged or measured
DEFAULT_EXCLUDED_PREFIXES = ("/health", "/api/v1/ping", "/docs", "/openapi.json", "/redoc")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID, reusing the caller's X-Request-ID when sent."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def _request_entry(request: Request, request_id: str, started: float) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "timestamp": started,
        "level": "INFO",
        "type": "http_request",
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "query_params": dict(request.query_params),
        "client_host": request.client.host if request.client else None,
    }
    content_length = request.headers.get("content-length", "")
    if request.method in ("POST", "PUT", "PATCH") and content_length.isdigit():
        entry["request_body_size"] = int(content_length)
    return entry


def _response_entry(
    request: Request,
    request_id: str,
    status_code: int,
    duration_ms: float,
    officer_id: Any,
    error: Optional[str],
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "timestamp": time.time(),
        "level": logging.getLevelName(_level_for(status_code)),
        "type": "http_response",
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
        "officer_id": str(officer_id) if officer_id else None,
    }
    if error:
        entry["error"] = error
    return entry


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request and response as one JSON line apiece and record HTTP metrics.

    Must run inside RequestIDMiddleware so the request ID is already set.
    """

    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths or DEFAULT_EXCLUDED_PREFIXES)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path.startswith(self.exclude_paths):
            return await call_next(request)

        request_id = getattr(request.state, "request_id", "unknown")
        started = time.time()
        logger.info(
            json.dumps(_request_entry(request, request_id, started), default=str),
            extra={"request_id": request_id},
        )

        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        error = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            error = str(e)
            logger.error(
                f"Request processing error: {type(e).__name__}: {e}",
                extra={"request_id": request_id, "error_type": type(e).__name__},
                exc_info=True,
            )
            raise
        finally:
            duration_ms = (time.time() - started) * 1000
            # Set by get_current_officer during the request
            officer_id = getattr(request.state, "officer_id", None)

            emit_http_request(
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=duration_ms,
                officer_id=officer_id,
            )
            logger.log(
                _level_for(status_code),
                json.dumps(
                    _response_entry(
                        request, request_id, status_code, duration_ms, officer_id, error
                    ),
                    default=str,
                ),
                extra={"request_id": request_id},
            )

        response.headers["X-Process-Time"] = f"{duration_ms:.2f}ms"
        return response
