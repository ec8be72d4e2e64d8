"""OpenTelemetry metrics emission.

Instruments are created lazily from the global meter provider, so they
are no-ops until otel_setup installs a real provider. Emission never
raises; failures are logged and dropped.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional, Union

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram, Meter

from records_api.core.config import settings

logger = logging.getLogger(__name__)

HTTP_REQUESTS = "http_requests_total"
HTTP_REQUEST_DURATION = "http_request_duration_ms"
ERRORS = "errors_total"
BUSINESS_EVENTS = "business_metrics_total"

# name -> (kind, description, unit)
INSTRUMENTS: dict[str, tuple[str, str, str]] = {
    HTTP_REQUESTS: ("counter", "Total number of HTTP requests", "1"),
    HTTP_REQUEST_DURATION: ("histogram", "HTTP request duration in milliseconds", "ms"),
    ERRORS: ("counter", "Total number of errors", "1"),
    BUSINESS_EVENTS: ("counter", "Total number of business metric events", "1"),
}

_UUID_SEGMENT = re.compile(
    r"/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)
_NUMERIC_SEGMENT = re.compile(r"/\d+")

_meter: Optional[Meter] = None
_instruments: dict[str, Union[Counter, Histogram]] = {}


def get_meter() -> Meter:
    """Get or create the meter used for every instrument in this module."""
    global _meter
    if _meter is None:
        _meter = metrics.get_meter_provider().get_meter(
            name=settings.metrics_namespace or settings.app_name.replace(" ", "/"),
            version="1.0.0",
        )
    return _meter


def _instrument(name: str) -> Union[Counter, Histogram]:
    if name not in _instruments:
        kind, description, unit = INSTRUMENTS[name]
        create = get_meter().create_histogram if kind == "histogram" else get_meter().create_counter
        _instruments[name] = create(name=name, description=description, unit=unit)
    return _instruments[name]


def _normalize_path(path: str) -> str:
    """Replace UUIDs and numeric IDs with placeholders to bound cardinality."""
    return _NUMERIC_SEGMENT.sub("/{id}", _UUID_SEGMENT.sub("/{id}", path))


def _attributes(base: dict[str, str], metadata: dict[str, Any]) -> dict[str, str]:
    base.update({key: str(value) for key, value in metadata.items() if value is not None})
    return base


def emit_http_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **metadata: Any,
) -> None:
    """Count one HTTP request and record its duration.

    Args:
        method: HTTP method
        path: Request path, normalized before use as the route attribute
        status_code: Response status
        duration_ms: Handling time in milliseconds
        **metadata: Extra attributes (officer_id, ...); None values are dropped
    """
    if not settings.enable_metrics:
        return

    attributes = _attributes(
        {
            "http.method": method,
            "http.route": _normalize_path(path),
            "http.status_code": str(status_code),
        },
        metadata,
    )
    try:
        _instrument(HTTP_REQUESTS).add(1, attributes=attributes)
        _instrument(HTTP_REQUEST_DURATION).record(duration_ms, attributes=attributes)
    except Exception as e:
        logger.warning(f"Failed to emit HTTP request metric: {e}", exc_info=True)


def emit_error(
    error_code: str,
    status_code: int,
    path: str,
    method: str,
    **metadata: Any,
) -> None:
    """Count one error response, classified as client or server error."""
    if not settings.enable_metrics:
        return

    severity = "server_error" if status_code >= 500 else "client_error" if status_code >= 400 else "unknown"
    attributes = _attributes(
        {
            "error.code": error_code,
            "error.severity": severity,
            "http.status_code": str(status_code),
            "http.method": method,
            "http.route": _normalize_path(path),
        },
        metadata,
    )
    try:
        _instrument(ERRORS).add(1, attributes=attributes)
    except Exception as e:
        logger.warning(f"Failed to emit error metric: {e}", exc_info=True)


def emit_business_metric(
    metric_name: str,
    value: float,
    unit: str = "Count",
    category: Optional[str] = None,
    **metadata: Any,
) -> None:
    """Record a business event from the BusinessMetric catalog.

    Args:
        metric_name: Name from the BusinessMetric catalog
        value: Amount to add; counters take non-negative integers
        unit: Unit label
        category: Optional grouping, e.g. "import"
        **metadata: Extra attributes; None values are dropped
    """
    if not settings.enable_metrics:
        return

    base = {"metric.name": metric_name, "metric.unit": unit}
    if category:
        base["metric.category"] = category
    attributes = _attributes(base, metadata)
    try:
        _instrument(BUSINESS_EVENTS).add(int(value), attributes=attributes)
    except Exception as e:
        logger.warning(f"Failed to emit business metric: {e}", exc_info=True)
