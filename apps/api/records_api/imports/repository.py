"""Persistence for bulk import jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from records_api.imports.models import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    DuplicateStrategy,
    ImportJob,
    ImportStatus,
)

logger = logging.getLogger(__name__)

PROGRESS_FIELDS = frozenset(
    {
        "status",
        "total_rows",
        "processed_rows",
        "success_count",
        "error_count",
        "skipped_count",
        "errors",
        "summary",
    }
)


class ImportJobNotFoundError(LookupError):
    """No import job has the given id."""

    def __init__(self, job_id: UUID):
        self.job_id = job_id
        super().__init__(f"Import job not found: {job_id}")


class ImportJobStateError(ValueError):
    """The job's current status does not allow the requested change."""


@dataclass
class ImportJobFilters:
    """Optional filters for listing jobs."""

    entity_type: Optional[str] = None
    status: Optional[str] = None
    officer_id: Optional[UUID] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_transition(job_id: UUID, current: str, new: str) -> None:
    if new not in ALLOWED_TRANSITIONS[ImportStatus(current)]:
        raise ImportJobStateError(
            f"Import job {job_id} cannot move from {current} to {new}"
        )


class ImportJobRepository:
    """Job store; the only writer of ImportJob rows."""

    @staticmethod
    def create(
        db: Session,
        entity_type: str,
        file_key: str,
        officer_id: UUID,
        file_name: Optional[str] = None,
        duplicate_strategy: str = DuplicateStrategy.SKIP.value,
        station_id: Optional[UUID] = None,
    ) -> ImportJob:
        job = ImportJob(
            entity_type=entity_type,
            file_key=file_key,
            file_name=file_name,
            duplicate_strategy=duplicate_strategy,
            status=ImportStatus.PENDING.value,
            officer_id=officer_id,
            station_id=station_id,
            errors=[],
        )
        db.add(job)
        db.commit()
        db.refresh(job)
        return job

    @staticmethod
    def find_by_id(db: Session, job_id: UUID) -> Optional[ImportJob]:
        return db.get(ImportJob, job_id)

    @staticmethod
    def get_status(db: Session, job_id: UUID) -> Optional[str]:
        """Read the stored status, bypassing any stale object in the session."""
        return db.execute(
            select(ImportJob.status).where(ImportJob.id == job_id)
        ).scalar_one_or_none()

    @staticmethod
    def update_status(db: Session, job_id: UUID, status: ImportStatus) -> ImportJob:
        return ImportJobRepository.update_progress(db, job_id, status=status)

    @staticmethod
    def update_progress(db: Session, job_id: UUID, **fields: Any) -> ImportJob:
        """
        Merge progress fields into a job and commit.

        Args:
            db: Database session
            job_id: Job to update
            **fields: Any of status, total_rows, processed_rows, success_count,
                error_count, skipped_count, errors, summary

        Returns:
            Updated ImportJob

        Raises:
            ImportJobNotFoundError: If the job does not exist
            ImportJobStateError: If the status change is not a legal transition
        """
        unknown = set(fields) - PROGRESS_FIELDS
        if unknown:
            raise ValueError(f"Unknown import job fields: {', '.join(sorted(unknown))}")

        current_status = ImportJobRepository.get_status(db, job_id)
        if current_status is None:
            raise ImportJobNotFoundError(job_id)
        job = db.get(ImportJob, job_id)

        new_status = fields.pop("status", None)
        if new_status is not None:
            new_status = ImportStatus(new_status).value
            if new_status != current_status:
                _check_transition(job_id, current_status, new_status)
                job.status = new_status
                if new_status == ImportStatus.VALIDATING.value:
                    job.started_at = _utcnow()
                if ImportStatus(new_status) in TERMINAL_STATUSES:
                    job.completed_at = _utcnow()

        processed = fields.pop("processed_rows", None)
        if processed is not None:
            # Never move backwards
            job.processed_rows = max(job.processed_rows or 0, processed)

        for name, value in fields.items():
            setattr(job, name, value)

        db.commit()
        return job

    @staticmethod
    def cancel(db: Session, job_id: UUID) -> ImportJob:
        """
        Cancel a job by marking it failed.

        A running pipeline notices at its next batch boundary.

        Raises:
            ImportJobNotFoundError: If the job does not exist
            ImportJobStateError: If the job is already completed or failed
        """
        status = ImportJobRepository.get_status(db, job_id)
        if status is None:
            raise ImportJobNotFoundError(job_id)
        if ImportStatus(status) in TERMINAL_STATUSES:
            raise ImportJobStateError(f'Cannot cancel a job with status "{status}"')

        job = ImportJobRepository.update_progress(
            db, job_id, status=ImportStatus.FAILED
        )
        logger.info(f"Import job {job_id} cancelled")
        return job

    @staticmethod
    def delete(db: Session, job_id: UUID) -> None:
        job = db.get(ImportJob, job_id)
        if not job:
            raise ImportJobNotFoundError(job_id)
        db.delete(job)
        db.commit()

    @staticmethod
    def list(
        db: Session,
        filters: Optional[ImportJobFilters] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[ImportJob], int]:
        """
        List jobs newest first.

        Returns:
            Tuple of (jobs on the requested page, total matching jobs)
        """
        filters = filters or ImportJobFilters()
        conditions = []
        if filters.entity_type:
            conditions.append(ImportJob.entity_type == filters.entity_type)
        if filters.status:
            conditions.append(ImportJob.status == filters.status)
        if filters.officer_id:
            conditions.append(ImportJob.officer_id == filters.officer_id)

        total = db.execute(
            select(func.count()).select_from(ImportJob).where(*conditions)
        ).scalar_one()
        jobs = (
            db.execute(
                select(ImportJob)
                .where(*conditions)
                .order_by(ImportJob.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return list(jobs), total
