"""Bulk import domain models (import jobs and their enums)."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import (
    String,
    Index,
    Integer,
    JSON,
    TIMESTAMP,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from records_api.common.models.base import Base


class ImportEntityType(str, Enum):
    """Entity types that can be bulk imported."""

    PERSONS = "persons"
    CASES = "cases"
    EVIDENCE = "evidence"


class ImportStatus(str, Enum):
    """Import job lifecycle states."""

    PENDING = "pending"
    VALIDATING = "validating"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class DuplicateStrategy(str, Enum):
    """What to do when a row matches an existing record."""

    SKIP = "skip"
    UPDATE = "update"
    FAIL = "fail"


TERMINAL_STATUSES = frozenset({ImportStatus.COMPLETED, ImportStatus.FAILED})

# Legal forward transitions; no state is ever re-entered.
ALLOWED_TRANSITIONS: dict[ImportStatus, frozenset[ImportStatus]] = {
    ImportStatus.PENDING: frozenset({ImportStatus.VALIDATING, ImportStatus.FAILED}),
    ImportStatus.VALIDATING: frozenset({ImportStatus.PROCESSING, ImportStatus.FAILED}),
    ImportStatus.PROCESSING: frozenset({ImportStatus.COMPLETED, ImportStatus.FAILED}),
    ImportStatus.COMPLETED: frozenset(),
    ImportStatus.FAILED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportJob(Base):
    """Bulk import job tracking table."""

    __tablename__ = "bulk_import_jobs"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    entity_type: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # "persons", "cases", "evidence"
    file_key: Mapped[str] = mapped_column(String(1000), nullable=False)  # S3/MinIO key
    file_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    duplicate_strategy: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DuplicateStrategy.SKIP.value
    )  # "skip", "update", "fail"
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=ImportStatus.PENDING.value,
    )  # "pending", "validating", "processing", "completed", "failed"
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[Optional[list]] = mapped_column(
        JSON, nullable=True, default=list
    )  # Array of {row, field, message, value}
    summary: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    officer_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True
    )
    station_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True), nullable=True
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        Index("ix_bulk_import_jobs_status", "status"),
        Index("ix_bulk_import_jobs_entity_type", "entity_type"),
        Index("ix_bulk_import_jobs_created_at", "created_at"),
    )

    @property
    def percent_complete(self) -> int:
        """Share of rows processed, rounded to a whole percent."""
        if not self.total_rows:
            return 0
        return round(self.processed_rows / self.total_rows * 100)
