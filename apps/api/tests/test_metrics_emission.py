"""Tests for OpenTelemetry metrics emission functionality."""

from __future__ import annotations

from collections import defaultdict
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from records_api.core import otel_metrics
from records_api.core.business_metrics import BusinessMetric
from records_api.core.config import settings
from records_api.core.metrics_service import MetricsService
from records_api.core.otel_metrics import (
    BUSINESS_EVENTS,
    ERRORS,
    HTTP_REQUEST_DURATION,
    HTTP_REQUESTS,
    emit_business_metric,
    emit_error,
    emit_http_request,
)


@pytest.fixture
def metrics_enabled(monkeypatch):
    monkeypatch.setattr(settings, "enable_metrics", True)


@pytest.fixture
def instruments():
    """Replace every instrument with a MagicMock keyed by instrument name."""
    created: dict[str, MagicMock] = defaultdict(MagicMock)
    with patch.object(otel_metrics, "_instrument", side_effect=lambda name: created[name]):
        yield created


@pytest.mark.usefixtures("metrics_enabled")
class TestMetricsEmission:
    """Test OpenTelemetry metrics emission functions."""

    def test_emit_http_request(self, instruments):
        """Test HTTP metrics with normalized route."""
        job_id = uuid4()

        emit_http_request(
            method="GET",
            path=f"/api/v1/bulk-import/jobs/{job_id}",
            status_code=200,
            duration_ms=12.5,
            officer_id=None,
        )

        attributes = instruments[HTTP_REQUESTS].add.call_args[1]["attributes"]
        assert attributes["http.route"] == "/api/v1/bulk-import/jobs/{id}"
        assert attributes["http.status_code"] == "200"
        assert "officer_id" not in attributes
        assert instruments[HTTP_REQUEST_DURATION].record.call_args[0][0] == 12.5

    def test_emit_error_severity(self, instruments):
        """Test error severity follows the status code."""
        emit_error("conflict", 409, "/api/v1/bulk-import/jobs/1", "DELETE")
        emit_error("internal_error", 500, "/x", "GET")

        first, second = instruments[ERRORS].add.call_args_list
        assert first[1]["attributes"]["error.severity"] == "client_error"
        assert first[1]["attributes"]["http.route"] == "/api/v1/bulk-import/jobs/{id}"
        assert second[1]["attributes"]["error.severity"] == "server_error"

    def test_emit_business_metric(self, instruments):
        """Test business metric attributes."""
        emit_business_metric(
            BusinessMetric.IMPORT_ROWS_PROCESSED, 120, category="import", entity_type="persons"
        )

        args, kwargs = instruments[BUSINESS_EVENTS].add.call_args
        assert args[0] == 120
        assert kwargs["attributes"] == {
            "metric.name": "ImportRowsProcessed",
            "metric.unit": "Count",
            "metric.category": "import",
            "entity_type": "persons",
        }

    def test_emission_failures_are_logged_not_raised(self, instruments):
        """Test a broken exporter never breaks the caller."""
        instruments[BUSINESS_EVENTS].add.side_effect = RuntimeError("exporter down")

        emit_business_metric(BusinessMetric.IMPORT_STARTED, 1)

    def test_instruments_are_created_once(self, monkeypatch):
        """Test each instrument is built on first use and then reused."""
        meter = MagicMock()
        monkeypatch.setattr(otel_metrics, "_instruments", {})
        monkeypatch.setattr(otel_metrics, "get_meter", lambda: meter)

        emit_http_request("GET", "/health", 200, 1.0)
        emit_http_request("GET", "/health", 200, 2.0)

        meter.create_counter.assert_called_once_with(
            name=HTTP_REQUESTS, description="Total number of HTTP requests", unit="1"
        )
        meter.create_histogram.assert_called_once()


class TestMetricsDisabled:
    """Test the enable_metrics switch."""

    def test_disabled_metrics_are_skipped(self, instruments):
        """Test nothing is recorded when metrics are off."""
        emit_business_metric(BusinessMetric.IMPORT_STARTED, 1)
        assert not instruments


@pytest.mark.usefixtures("metrics_enabled")
class TestMetricsService:
    """Test MetricsService helpers."""

    @patch("records_api.core.metrics_service.emit_business_metric")
    def test_emit_import_metric(self, mock_emit: MagicMock):
        """Test rows processed becomes the metric value."""
        officer_id = uuid4()

        MetricsService.emit_import_metric(
            BusinessMetric.IMPORT_ROWS_PROCESSED,
            officer_id,
            entity_type="cases",
            rows_processed=42,
        )

        kwargs = mock_emit.call_args.kwargs
        assert kwargs["value"] == 42
        assert kwargs["category"] == "import"
        assert kwargs["officer_id"] == str(officer_id)
        assert kwargs["entity_type"] == "cases"

    @patch("records_api.core.metrics_service.emit_business_metric")
    def test_emit_records_metric(self, mock_emit: MagicMock):
        """Test records metrics carry the station."""
        station_id = uuid4()

        MetricsService.emit_records_metric(BusinessMetric.CASE_CREATED, None, station_id)

        kwargs = mock_emit.call_args.kwargs
        assert kwargs["value"] == 1
        assert kwargs["category"] == "records"
        assert kwargs["station_id"] == str(station_id)
        assert "actor_id" not in kwargs
