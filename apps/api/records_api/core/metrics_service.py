"""Business metric helpers for imports and records changes."""

from typing import Any, Optional
from uuid import UUID

from records_api.core.business_metrics import MetricCategory
from records_api.core.otel_metrics import emit_business_metric


def _ids(**ids: Optional[UUID]) -> dict[str, Any]:
    return {name: str(value) for name, value in ids.items() if value}


class MetricsService:
    """Emit business metrics with consistent categories and attributes."""

    @staticmethod
    def emit_import_metric(
        metric_name: str,
        officer_id: UUID,
        entity_type: Optional[str] = None,
        rows_processed: Optional[int] = None,
        **extra_metadata,
    ) -> None:
        """Emit a bulk import metric.

        The value is ``rows_processed`` when given (ImportRowsProcessed),
        otherwise 1.
        """
        metadata = _ids(officer_id=officer_id)
        if entity_type:
            metadata["entity_type"] = entity_type
        if rows_processed is not None:
            metadata["rows_processed"] = rows_processed

        emit_business_metric(
            metric_name=metric_name,
            value=1 if rows_processed is None else rows_processed,
            category=MetricCategory.IMPORT.value,
            **metadata,
            **extra_metadata,
        )

    @staticmethod
    def emit_records_metric(
        metric_name: str,
        actor_id: Optional[UUID],
        station_id: Optional[UUID] = None,
        **extra_metadata,
    ) -> None:
        """Emit a person, case or evidence change metric."""
        emit_business_metric(
            metric_name=metric_name,
            value=1,
            category=MetricCategory.RECORDS.value,
            **_ids(actor_id=actor_id, station_id=station_id),
            **extra_metadata,
        )
