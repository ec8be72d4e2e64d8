"""Bulk import job orchestration: parse, validate, resolve, process, record."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from records_api.common.audit import create_audit_log
from records_api.core.business_metrics import BusinessMetric
from records_api.core.config import settings
from records_api.core.metrics_service import MetricsService
from records_api.imports.lookups import resolve_lookups
from records_api.imports.models import (
    TERMINAL_STATUSES,
    DuplicateStrategy,
    ImportJob,
    ImportStatus,
)
from records_api.imports.parsers import parse_csv
from records_api.imports.processors import (
    EntityProcessor,
    ImportContext,
    ImportRowError,
    RowAction,
    RowResult,
    UpdateMode,
    get_processor,
    row_number,
)
from records_api.imports.repository import ImportJobRepository
from records_api.imports.validators import validate_headers

logger = logging.getLogger(__name__)

AUDIT_ENTITY_TYPE = "bulk-import"


class FileStorage(Protocol):
    def get_bytes(self, key: str) -> bytes: ...


@dataclass
class ImportCounts:
    """Running row counters; success + error + skipped == processed."""

    processed: int = 0
    success: int = 0
    error: int = 0
    skipped: int = 0

    def record(self, result: RowResult) -> None:
        self.processed += 1
        if not result.success:
            self.error += 1
        elif result.action == RowAction.SKIPPED:
            self.skipped += 1
        else:
            self.success += 1

    def as_progress(self) -> dict[str, int]:
        return {
            "processed_rows": self.processed,
            "success_count": self.success,
            "error_count": self.error,
            "skipped_count": self.skipped,
        }


class ImportPipeline:
    """
    Runs one import job from its stored file to a terminal status.

    The pipeline is the only component that moves a job between states.
    Rows are processed in file order, in batches; the stored status is
    re-read before every batch so a cancel (status set to failed by
    another session) stops the run at the next batch boundary.
    """

    def __init__(
        self,
        db: Session,
        storage: FileStorage,
        session_factory: Optional[Callable[[], Session]] = None,
        batch_size: Optional[int] = None,
        max_errors: Optional[int] = None,
        lookup_concurrency: Optional[int] = None,
        update_mode: Optional[str] = None,
    ):
        self.db = db
        self.storage = storage
        self.session_factory = session_factory
        self.batch_size = batch_size or settings.import_batch_size
        self.max_errors = max_errors or settings.import_max_stored_errors
        self.lookup_concurrency = lookup_concurrency or settings.import_lookup_concurrency
        self.update_mode = UpdateMode(update_mode or settings.import_update_mode)

    def run(self, job_id: UUID) -> Optional[ImportJob]:
        """
        Process a queued import job.

        Structural problems (parse errors, no rows, header mismatch) and
        unexpected exceptions end the job as failed with the reason stored
        in its error list; they are not raised. Rows committed before a
        failure stay committed.

        Args:
            job_id: Job to run

        Returns:
            The job in its final state, or None if it does not exist
        """
        job = ImportJobRepository.find_by_id(self.db, job_id)
        if not job:
            logger.warning(f"Import job {job_id} not found")
            return None

        status = ImportStatus(job.status)
        if status in TERMINAL_STATUSES:
            logger.info(f"Import job {job_id} already {status.value}, nothing to do")
            return job
        if status != ImportStatus.PENDING:
            # A worker died mid-run and the queue delivered the job again
            logger.warning(f"Import job {job_id} redelivered while {status.value}")
            return self._fail(
                job,
                [
                    ImportRowError(
                        row=0,
                        field="system",
                        message=f"Import was interrupted while {status.value}",
                    )
                ],
            )

        logger.info(f"Processing import job {job_id} for {job.entity_type}")
        started = time.monotonic()
        try:
            return self._execute(job, started)
        except Exception as exc:
            self.db.rollback()
            current = ImportJobRepository.get_status(self.db, job_id)
            if current and ImportStatus(current) in TERMINAL_STATUSES:
                # Cancelled while validating; the next transition was refused
                logger.info(f"Import job {job_id} ended as {current} during processing: {exc}")
                return ImportJobRepository.find_by_id(self.db, job_id)

            logger.error(f"Import job {job_id} failed: {exc}", exc_info=True)
            return self._fail(
                job,
                [
                    ImportRowError(
                        row=0,
                        field="system",
                        message=str(exc) or exc.__class__.__name__,
                    )
                ],
            )

    def _execute(self, job: ImportJob, started: float) -> ImportJob:
        job_id = job.id
        entity_type = job.entity_type
        officer_id = job.officer_id

        ImportJobRepository.update_status(self.db, job_id, ImportStatus.VALIDATING)
        processor = get_processor(entity_type)

        parsed = parse_csv(self.storage.get_bytes(job.file_key))
        if parsed.errors:
            return self._fail(
                job,
                [ImportRowError(row=0, field="csv", message=m) for m in parsed.errors],
                total_rows=0,
            )
        if not parsed.rows:
            return self._fail(
                job,
                [
                    ImportRowError(
                        row=0, field="csv", message="CSV file contains no data rows"
                    )
                ],
                total_rows=0,
            )

        rows = parsed.rows
        header_errors = self._check_headers(processor, parsed.headers)
        if header_errors:
            return self._fail(job, header_errors, total_rows=len(rows))

        ImportJobRepository.update_progress(
            self.db, job_id, total_rows=len(rows), status=ImportStatus.PROCESSING
        )

        lookups = resolve_lookups(
            self.db,
            processor.extract_lookup_keys(rows),
            session_factory=self.session_factory,
            max_workers=self.lookup_concurrency,
        )
        context = ImportContext(
            officer_id=officer_id,
            station_id=job.station_id,
            duplicate_strategy=DuplicateStrategy(job.duplicate_strategy),
            lookups=lookups,
            update_mode=self.update_mode,
        )

        errors: list[ImportRowError] = []
        valid_indices: list[int] = []
        for index, row in enumerate(rows):
            row_errors = processor.validate_row(row, index, context)
            if row_errors:
                errors.extend(row_errors)
            else:
                valid_indices.append(index)

        invalid = len(rows) - len(valid_indices)
        counts = ImportCounts(processed=invalid, error=invalid)
        logger.info(
            f"Import job {job_id}: {len(valid_indices)} valid rows, {invalid} invalid"
        )
        self._checkpoint(job_id, counts, errors)

        for batch_start in range(0, len(valid_indices), self.batch_size):
            if self._is_cancelled(job_id):
                return self._stop_cancelled(job_id, entity_type, officer_id)

            for index in valid_indices[batch_start : batch_start + self.batch_size]:
                result = self._process_row(processor, rows[index], index, context)
                counts.record(result)
                if result.error:
                    errors.append(result.error)

            self._checkpoint(job_id, counts, errors)

        # A cancel during the last batch still wins over completion
        if self._is_cancelled(job_id):
            return self._stop_cancelled(job_id, entity_type, officer_id)

        counts.processed = len(rows)
        summary = {
            "total_rows": len(rows),
            "success_count": counts.success,
            "error_count": counts.error,
            "skipped_count": counts.skipped,
            "duration_ms": int((time.monotonic() - started) * 1000),
        }
        job = ImportJobRepository.update_progress(
            self.db,
            job_id,
            status=ImportStatus.COMPLETED,
            errors=self._stored_errors(errors),
            summary=summary,
            **counts.as_progress(),
        )

        self._write_audit(job_id, entity_type, officer_id, summary)

        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_COMPLETED,
            officer_id=officer_id,
            entity_type=entity_type,
            success_count=counts.success,
            error_count=counts.error,
            skipped_count=counts.skipped,
        )
        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_ROWS_PROCESSED,
            officer_id=officer_id,
            entity_type=entity_type,
            rows_processed=len(rows),
        )
        logger.info(
            f"Import job {job_id} completed: {counts.success} created/updated, "
            f"{counts.skipped} skipped, {counts.error} errors"
        )
        return job

    @staticmethod
    def _check_headers(
        processor: EntityProcessor, headers: list[str]
    ) -> list[ImportRowError]:
        allowed = processor.get_template_headers()
        result = validate_headers(headers, processor.get_required_headers(), allowed)
        if result.valid:
            return []

        errors = [
            ImportRowError(row=0, field=h, message=f"Missing required column: {h}")
            for h in result.missing
        ]
        expected = ", ".join(allowed)
        errors.extend(
            ImportRowError(
                row=0,
                field=h,
                message=f"Unknown column: {h}. Expected columns: {expected}",
            )
            for h in result.unknown
        )
        return errors

    def _process_row(
        self,
        processor: EntityProcessor,
        row: dict[str, str],
        index: int,
        context: ImportContext,
    ) -> RowResult:
        try:
            return processor.process_row(self.db, row, index, context)
        except Exception as exc:
            logger.warning(
                f"Unexpected error on row {row_number(index)}: {exc}", exc_info=True
            )
            self.db.rollback()
            return RowResult(
                success=False,
                error=ImportRowError(
                    row=row_number(index),
                    field="general",
                    message=str(exc) or "Unexpected error processing row",
                ),
            )

    def _stored_errors(self, errors: list[ImportRowError]) -> list[dict[str, Any]]:
        return [error.to_dict() for error in errors[: self.max_errors]]

    def _checkpoint(
        self, job_id: UUID, counts: ImportCounts, errors: list[ImportRowError]
    ) -> None:
        ImportJobRepository.update_progress(
            self.db,
            job_id,
            errors=self._stored_errors(errors),
            **counts.as_progress(),
        )

    def _is_cancelled(self, job_id: UUID) -> bool:
        return ImportJobRepository.get_status(self.db, job_id) == ImportStatus.FAILED.value

    def _stop_cancelled(
        self, job_id: UUID, entity_type: str, officer_id: UUID
    ) -> Optional[ImportJob]:
        logger.info(f"Import job {job_id} was cancelled, stopping processing")
        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_FAILED,
            officer_id=officer_id,
            entity_type=entity_type,
            reason="cancelled",
        )
        job = ImportJobRepository.find_by_id(self.db, job_id)
        if job:
            self.db.refresh(job)
        return job

    def _fail(
        self,
        job: ImportJob,
        errors: list[ImportRowError],
        total_rows: Optional[int] = None,
    ) -> ImportJob:
        """Mark the job failed with the given structural or system errors."""
        job_id = job.id
        entity_type = job.entity_type
        officer_id = job.officer_id

        fields: dict[str, Any] = {"errors": self._stored_errors(errors)}
        if total_rows is not None:
            fields["total_rows"] = total_rows
        failed = ImportJobRepository.update_progress(
            self.db, job_id, status=ImportStatus.FAILED, **fields
        )

        logger.warning(
            f"Import job {job_id} failed with {len(errors)} error(s): {errors[0].message}"
        )
        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_FAILED,
            officer_id=officer_id,
            entity_type=entity_type,
            reason=errors[0].field,
        )
        return failed

    def _write_audit(
        self,
        job_id: UUID,
        entity_type: str,
        officer_id: UUID,
        summary: dict[str, Any],
    ) -> None:
        """Record the finished import in the audit trail; failures are logged only."""
        details = {
            "total_rows": summary["total_rows"],
            "success_count": summary["success_count"],
            "error_count": summary["error_count"],
            "skipped_count": summary["skipped_count"],
        }
        try:
            create_audit_log(
                self.db,
                officer_id,
                f"bulk_import_{entity_type}",
                AUDIT_ENTITY_TYPE,
                job_id,
                None,
                details,
            )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.warning(
                f"Failed to write audit entry for import job {job_id}: {exc}",
                exc_info=True,
            )
