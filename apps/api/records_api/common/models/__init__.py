"""Models package - re-exports the shared record models.

Import jobs live in records_api.imports.models, which imports this
package; import that module wherever metadata must include bulk_import_jobs.

Models are organized into:
- base: Base class, metadata, and enums
- records: stations, officers, persons, cases, evidence and audit logs
"""

from __future__ import annotations

from records_api.common.models.base import (
    Base,
    metadata,
    NAMING_CONVENTION,
    Gender,
    CaseSeverity,
    CaseStatus,
    EvidenceType,
)
from records_api.common.models.records import (
    Station,
    Officer,
    Person,
    Case,
    Evidence,
    AuditLog,
)

__all__ = [
    "Base",
    "metadata",
    "NAMING_CONVENTION",
    "Gender",
    "CaseSeverity",
    "CaseStatus",
    "EvidenceType",
    "Station",
    "Officer",
    "Person",
    "Case",
    "Evidence",
    "AuditLog",
]
