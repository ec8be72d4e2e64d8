"""API error types and the exception handlers that render them.

Every error response has the same envelope::

    {"error": {"code": ..., "message": ..., "request_id": ..., "details": {...}}}
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import DatabaseError, IntegrityError

from records_api.core.otel_metrics import emit_error

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base for errors that map to a specific HTTP response.

    Subclasses set ``status_code`` and ``error_code``; instances carry the
    message and optional structured details.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "internal_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class BadRequestError(APIError):
    """Request rejected before any work was started."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "bad_request"


class UnauthorizedError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "unauthorized"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found: {identifier}" if identifier else f"{resource} not found"
        super().__init__(message, {"resource": resource, "identifier": identifier})


class ConflictError(APIError):
    """Request conflicts with the resource's current state (e.g. cancelling a finished job)."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"


class PayloadTooLargeError(APIError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    error_code = "payload_too_large"

    def __init__(self, max_bytes: int):
        super().__init__(
            f"File size exceeds maximum of {max_bytes} bytes", {"max_bytes": max_bytes}
        )


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _envelope(
    code: str,
    message: str,
    request_id: Optional[str],
    details: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"code": code, "message": message, "request_id": request_id}
    if details is not None:
        body["details"] = details
    return {"error": body}


def _validation_details(error: RequestValidationError | ValidationError) -> dict[str, Any]:
    return {
        "errors": [
            {
                "field": ".".join(str(part) for part in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type", "validation_error"),
            }
            for err in error.errors()
        ]
    }


def format_error_response(
    error: Exception,
    request: Request,
    include_details: bool = False,
) -> dict[str, Any]:
    """Build the error envelope for any exception.

    Args:
        error: The exception that occurred
        request: Current request (for its request ID)
        include_details: Whether to expose details of unexpected errors

    Returns:
        Response body dictionary
    """
    request_id = _request_id(request)

    if isinstance(error, APIError):
        details = error.details if (error.details or include_details) else None
        return _envelope(error.error_code, error.message, request_id, details)

    if isinstance(error, (RequestValidationError, ValidationError)):
        return _envelope(
            "validation_error", "Validation failed", request_id, _validation_details(error)
        )

    details = (
        {"type": type(error).__name__, "message": str(error)} if include_details else None
    )
    return _envelope("internal_error", "An internal error occurred", request_id, details)


def _report(request: Request, error_code: str, status_code: int) -> None:
    emit_error(
        error_code=error_code,
        status_code=status_code,
        path=request.url.path,
        method=request.method,
        request_id=_request_id(request),
    )


def _log_extra(request: Request, **fields: Any) -> dict[str, Any]:
    return {
        "request_id": _request_id(request),
        "path": request.url.path,
        "method": request.method,
        **fields,
    }


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.warning(
        f"API error: {exc.error_code} - {exc.message}",
        extra=_log_extra(request, error_code=exc.error_code, status_code=exc.status_code),
    )
    _report(request, exc.error_code, exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(exc, request, include_details=True),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Client mistakes, logged below warning level
    logger.info(f"Validation error: {exc}", extra=_log_extra(request))
    _report(request, "validation_error", status.HTTP_422_UNPROCESSABLE_CONTENT)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=format_error_response(exc, request),
    )


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error(
        f"Database error: {exc}",
        extra=_log_extra(request, exception_type=type(exc).__name__),
        exc_info=True,
    )
    _report(request, "database_error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    message = (
        "Database integrity constraint violated"
        if isinstance(exc, IntegrityError)
        else "A database error occurred"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope("database_error", message, _request_id(request)),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        extra=_log_extra(request, exception_type=type(exc).__name__),
        exc_info=True,
    )
    _report(request, "internal_error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    details = None
    if getattr(request.app.state, "debug", False):
        details = {
            "type": type(exc).__name__,
            "message": str(exc),
            "traceback": traceback.format_exc().split("\n"),
        }
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope("internal_error", "An internal error occurred", _request_id(request), details),
    )


def setup_error_handlers(app: FastAPI, debug: bool = False) -> None:
    """Register the exception handlers on the application.

    Args:
        app: FastAPI application instance
        debug: Whether unexpected errors include type, message and traceback
    """
    app.state.debug = debug

    handlers = (
        (APIError, api_error_handler),
        (RequestValidationError, validation_error_handler),
        (ValidationError, validation_error_handler),
        (IntegrityError, database_error_handler),
        (DatabaseError, database_error_handler),
        (Exception, generic_exception_handler),
    )
    for exc_class, handler in handlers:
        app.add_exception_handler(exc_class, handler)
