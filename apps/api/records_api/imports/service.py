"""Import service layer: starting, inspecting and cancelling bulk import jobs."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from records_api.core.business_metrics import BusinessMetric
from records_api.core.config import settings
from records_api.core.metrics_service import MetricsService
from records_api.imports.models import DuplicateStrategy, ImportJob, ImportStatus
from records_api.imports.parsers import generate_template
from records_api.imports.processors import get_processor
from records_api.imports.repository import (
    ImportJobFilters,
    ImportJobNotFoundError,
    ImportJobRepository,
)
from records_api.imports.s3_utils import S3Client, build_upload_key
from records_api.jobs.queue import enqueue_import_job

logger = logging.getLogger(__name__)


class FileTooLargeError(ValueError):
    """Uploaded file exceeds the configured size limit."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"File size {size} bytes exceeds maximum of {max_size} bytes"
        )


class ImportService:
    """Service for managing bulk import jobs."""

    @staticmethod
    def upload_file(entity_type: str, file_name: str, file_content: bytes) -> str:
        """
        Store an uploaded CSV for a later import.

        Args:
            entity_type: Entity type the file will be imported as
            file_name: Original filename
            file_content: File content as bytes

        Returns:
            Object storage key of the stored file

        Raises:
            UnknownEntityTypeError: If the entity type is not importable
            FileTooLargeError: If the file exceeds import_max_file_size
            ValueError: If the file is empty
        """
        get_processor(entity_type)
        if not file_content:
            raise ValueError("Uploaded file is empty")
        if len(file_content) > settings.import_max_file_size:
            raise FileTooLargeError(len(file_content), settings.import_max_file_size)

        key = S3Client().put_bytes(build_upload_key(entity_type), file_content)
        logger.info(f"Stored {entity_type} import file {file_name} as {key}")
        return key

    @staticmethod
    def start_import(
        db: Session,
        entity_type: str,
        file_key: str,
        officer_id: UUID,
        file_name: Optional[str] = None,
        duplicate_strategy: DuplicateStrategy = DuplicateStrategy.SKIP,
        station_id: Optional[UUID] = None,
    ) -> ImportJob:
        """
        Create an import job and queue it for processing.

        Args:
            db: Database session
            entity_type: persons, cases or evidence
            file_key: Object storage key of the uploaded CSV
            officer_id: Submitting officer
            file_name: Original filename
            duplicate_strategy: What to do with rows matching existing records
            station_id: Submitter's station

        Returns:
            The pending ImportJob

        Raises:
            UnknownEntityTypeError: Before anything is stored or queued
        """
        processor = get_processor(entity_type)

        job = ImportJobRepository.create(
            db,
            entity_type=processor.entity_type.value,
            file_key=file_key,
            officer_id=officer_id,
            file_name=file_name,
            duplicate_strategy=DuplicateStrategy(duplicate_strategy).value,
            station_id=station_id,
        )

        try:
            enqueue_import_job(str(job.id))
        except Exception as e:
            logger.error(f"Failed to queue import job {job.id}: {e}", exc_info=True)
            ImportJobRepository.update_progress(
                db,
                job.id,
                status=ImportStatus.FAILED,
                errors=[{"row": 0, "field": "system", "message": "Could not queue import job"}],
            )
            raise

        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_STARTED,
            officer_id=officer_id,
            entity_type=job.entity_type,
            duplicate_strategy=job.duplicate_strategy,
        )
        logger.info(f"Queued {job.entity_type} import job {job.id}")
        return job

    @staticmethod
    def get_job(db: Session, job_id: UUID) -> ImportJob:
        job = ImportJobRepository.find_by_id(db, job_id)
        if not job:
            raise ImportJobNotFoundError(job_id)
        return job

    @staticmethod
    def list_jobs(
        db: Session,
        filters: Optional[ImportJobFilters] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[ImportJob], int]:
        return ImportJobRepository.list(db, filters, page=page, limit=limit)

    @staticmethod
    def cancel_job(db: Session, job_id: UUID, officer_id: UUID) -> ImportJob:
        """
        Cancel a pending or running job.

        Raises:
            ImportJobNotFoundError: If the job does not exist
            ImportJobStateError: If the job already completed or failed
        """
        job = ImportJobRepository.cancel(db, job_id)
        MetricsService.emit_import_metric(
            metric_name=BusinessMetric.IMPORT_CANCELLED,
            officer_id=officer_id,
            entity_type=job.entity_type,
        )
        return job

    @staticmethod
    def get_template(entity_type: str) -> tuple[str, bytes]:
        """
        Build the downloadable CSV template for an entity type.

        Returns:
            Tuple of (filename, CSV bytes)

        Raises:
            UnknownEntityTypeError: If the entity type is not importable
        """
        processor = get_processor(entity_type)
        content = generate_template(
            processor.get_template_headers(), processor.get_template_examples()
        )
        return f"{processor.entity_type.value}-import-template.csv", content
