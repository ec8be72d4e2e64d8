"""Background job tasks for bulk import processing."""

from __future__ import annotations

import logging
from uuid import UUID

from records_api.common.db import SessionLocal
from records_api.core.config import settings
from records_api.imports.pipeline import ImportPipeline
from records_api.imports.s3_utils import S3Client

logger = logging.getLogger(__name__)


def process_import_job(job_id: str) -> bool:
    """
    Run one bulk import job to completion.

    Args:
        job_id: UUID of the import job

    Returns:
        True if the job completed, False otherwise
    """
    db = SessionLocal()  # type: ignore
    try:
        pipeline = ImportPipeline(
            db,
            S3Client(),
            session_factory=SessionLocal,
            batch_size=settings.import_batch_size,
            max_errors=settings.import_max_stored_errors,
            lookup_concurrency=settings.import_lookup_concurrency,
            update_mode=settings.import_update_mode,
        )
        job = pipeline.run(UUID(job_id))
        if not job:
            return False
        return job.status == "completed"

    except Exception as e:
        logger.error(f"Failed to process import job {job_id}: {str(e)}", exc_info=True)
        db.rollback()
        raise

    finally:
        db.close()
