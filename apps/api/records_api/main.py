"""FastAPI application factory, logging setup and health endpoints."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI

from records_api.core.config import settings
from records_api.core.errors import setup_error_handlers
from records_api.core.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from records_api.core.otel_setup import setup_opentelemetry
from records_api.imports.routes import router as bulk_import_router

API_PREFIX = "/api/v1"
API_VERSION = "0.1.0"

# Libraries that log every statement or request at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "rq.worker")

# Optional attributes callers attach through ``extra=``
_EXTRA_FIELDS = ("request_id", "job_id", "officer_id")


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(
            {name: getattr(record, name) for name in _EXTRA_FIELDS if hasattr(record, name)}
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging() -> None:
    """Send all logging to stdout, as JSON unless ``log_format`` is "text"."""
    if settings.log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root.handlers = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


meta_router = APIRouter(tags=["meta"])


@meta_router.get("/health")
async def health() -> dict:
    """Liveness probe."""
    return {"status": "ok", "env": settings.app_env, "version": API_VERSION}


@meta_router.get(f"{API_PREFIX}/ping")
async def ping() -> dict:
    return {"message": "pong"}


def create_app() -> FastAPI:
    """Build the API application.

    Logging and OpenTelemetry are configured before the app exists so
    that startup messages use the final handlers.
    """
    setup_logging()
    setup_opentelemetry()

    application = FastAPI(title=f"{settings.app_name} API", version=API_VERSION)
    setup_error_handlers(application, debug=settings.app_env != "production")

    if settings.enable_request_logging:
        application.add_middleware(RequestLoggingMiddleware)
    # Added last so it runs first
    application.add_middleware(RequestIDMiddleware)

    application.include_router(meta_router)
    application.include_router(bulk_import_router, prefix=API_PREFIX)
    return application


app = create_app()
