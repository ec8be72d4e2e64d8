"""OpenTelemetry SDK setup.

Installs meter and tracer providers for the service. OTLP/HTTP exporters
are attached only when ``otel_exporter_otlp_endpoint`` is set; otherwise
instruments record into a provider that exports nowhere.
"""

from __future__ import annotations

import logging

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from records_api.core.config import settings

logger = logging.getLogger(__name__)

METRIC_EXPORT_INTERVAL_MS = 60_000

_initialized = False


def _build_resource() -> Resource:
    return Resource.create(
        {
            "service.name": settings.otel_service_name or settings.app_name,
            "service.namespace": settings.metrics_namespace or settings.app_name.replace(" ", "/"),
            "deployment.environment": settings.app_env,
        }
    )


def _build_meter_provider(resource: Resource, endpoint: str) -> MeterProvider:
    if not endpoint:
        return MeterProvider(resource=resource)

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics"),
        export_interval_millis=METRIC_EXPORT_INTERVAL_MS,
    )
    logger.info(f"OpenTelemetry metrics exporter configured: {endpoint}/v1/metrics")
    return MeterProvider(resource=resource, metric_readers=[reader])


def _build_tracer_provider(resource: Resource, endpoint: str) -> TracerProvider:
    provider = TracerProvider(resource=resource)
    if endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces"))
        )
        logger.info(f"OpenTelemetry traces exporter configured: {endpoint}/v1/traces")
    return provider


def setup_opentelemetry() -> None:
    """Install the global providers once; does nothing when metrics are disabled."""
    global _initialized

    if _initialized:
        return
    if not settings.enable_metrics:
        logger.info("OpenTelemetry metrics disabled via configuration")
        return

    endpoint = settings.otel_exporter_otlp_endpoint.rstrip("/")
    if not endpoint:
        logger.info("OpenTelemetry exporters not configured (no endpoint specified)")

    try:
        resource = _build_resource()
        trace.set_tracer_provider(_build_tracer_provider(resource, endpoint))
        metrics.set_meter_provider(_build_meter_provider(resource, endpoint))
    except Exception as e:
        # Metrics degrade to no-ops
        logger.warning(f"Failed to initialize OpenTelemetry SDK: {e}", exc_info=True)
        return

    _initialized = True
    logger.info("OpenTelemetry SDK initialized")
