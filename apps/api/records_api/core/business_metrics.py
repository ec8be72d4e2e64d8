"""Business metrics catalog with standardized naming.

Use these constants so metric names stay consistent across the codebase.
"""

from enum import Enum


class MetricCategory(str, Enum):
    """Categories for grouping business metrics."""

    IMPORT = "import"
    RECORDS = "records"


class BusinessMetric:
    """Catalog of all business metrics with standardized naming."""

    # Bulk import metrics
    IMPORT_STARTED = "ImportStarted"
    IMPORT_COMPLETED = "ImportCompleted"
    IMPORT_FAILED = "ImportFailed"
    IMPORT_CANCELLED = "ImportCancelled"
    IMPORT_ROWS_PROCESSED = "ImportRowsProcessed"
    IMPORT_TEMPLATE_DOWNLOADED = "ImportTemplateDownloaded"

    # Records metrics
    PERSON_CREATED = "PersonCreated"
    PERSON_UPDATED = "PersonUpdated"
    CASE_CREATED = "CaseCreated"
    EVIDENCE_CREATED = "EvidenceCreated"
