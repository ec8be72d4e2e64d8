"""Bulk import API routes."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from records_api.auth.dependencies import CurrentOfficer, get_current_officer
from records_api.common.db import get_db
from records_api.core.business_metrics import BusinessMetric
from records_api.core.config import settings
from records_api.core.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PayloadTooLargeError,
)
from records_api.core.metrics_service import MetricsService
from records_api.imports import schemas
from records_api.imports.models import TERMINAL_STATUSES, ImportJob, ImportStatus
from records_api.imports.processors import UnknownEntityTypeError
from records_api.imports.repository import (
    ImportJobFilters,
    ImportJobNotFoundError,
    ImportJobStateError,
)
from records_api.imports.service import FileTooLargeError, ImportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bulk-import", tags=["bulk-import"])

STREAM_POLL_SECONDS = 1.0
STREAM_TIMEOUT_SECONDS = 300


def _job_response(job: ImportJob) -> schemas.ImportJobResponse:
    return schemas.ImportJobResponse.model_validate(job)


def _reload_job(db: Session, job_id: UUID) -> ImportJob:
    # Drop cached state so each poll sees the worker's commits
    db.expire_all()
    return ImportService.get_job(db, job_id)


def _get_job_or_404(db: Session, job_id: UUID) -> ImportJob:
    try:
        return ImportService.get_job(db, job_id)
    except ImportJobNotFoundError as e:
        raise NotFoundError("Import job", str(job_id)) from e


@router.post("/uploads", response_model=schemas.UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_import_file(
    file: UploadFile = File(...),
    entity_type: str = Query(..., description="Entity type: persons, cases, evidence"),
    officer: CurrentOfficer = Depends(get_current_officer),
):
    """Store a CSV file in object storage and return its key."""
    # Read one byte past the limit so oversize files are caught without buffering them whole
    file_content = await file.read(settings.import_max_file_size + 1)
    try:
        key = ImportService.upload_file(
            entity_type, file.filename or "upload.csv", file_content
        )
    except FileTooLargeError as e:
        raise PayloadTooLargeError(settings.import_max_file_size) from e
    except ValueError as e:
        raise BadRequestError(str(e)) from e

    return schemas.UploadResponse(
        file_key=key, file_name=file.filename, size=len(file_content)
    )


@router.get("/jobs", response_model=schemas.ImportJobListResponse)
async def list_import_jobs(
    entity_type: Optional[str] = Query(None),
    job_status: Optional[ImportStatus] = Query(None, alias="status"),
    officer_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    officer: CurrentOfficer = Depends(get_current_officer),
    db: Session = Depends(get_db),
):
    """List import jobs, newest first."""
    filters = ImportJobFilters(
        entity_type=entity_type,
        status=job_status.value if job_status else None,
        officer_id=officer_id,
    )
    jobs, total = ImportService.list_jobs(db, filters, page=page, limit=limit)
    return schemas.ImportJobListResponse(
        data=[_job_response(job) for job in jobs],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/jobs/{job_id}", response_model=schemas.ImportJobResponse)
async def get_import_job(
    job_id: UUID,
    officer: CurrentOfficer = Depends(get_current_officer),
    db: Session = Depends(get_db),
):
    """Get import job status and progress."""
    return _job_response(_get_job_or_404(db, job_id))


@router.get("/jobs/{job_id}/stream")
async def stream_import_progress(
    job_id: UUID,
    officer: CurrentOfficer = Depends(get_current_officer),
    db: Session = Depends(get_db),
):
    """
    Stream import job progress via Server-Sent Events (SSE).

    Emits a ``progress`` event whenever the processed count or status
    changes and a final ``complete`` event once the job is completed or
    failed.
    """
    await run_in_threadpool(_get_job_or_404, db, job_id)

    def snapshot(job: ImportJob) -> dict:
        return {
            "job_id": str(job.id),
            "status": job.status,
            "processed_rows": job.processed_rows,
            "total_rows": job.total_rows,
            "success_count": job.success_count,
            "error_count": job.error_count,
            "skipped_count": job.skipped_count,
            "percent_complete": job.percent_complete,
        }

    async def event_generator():
        last_processed = -1
        last_status = None
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        try:
            while True:
                if loop.time() - start_time > STREAM_TIMEOUT_SECONDS:
                    yield f"event: timeout\ndata: {json.dumps({'message': 'Connection timeout'})}\n\n"
                    break

                job = await run_in_threadpool(_reload_job, db, job_id)
                data = snapshot(job)

                if job.processed_rows != last_processed or job.status != last_status:
                    yield f"event: progress\ndata: {json.dumps(data)}\n\n"
                    last_processed = job.processed_rows
                    last_status = job.status

                if ImportStatus(job.status) in TERMINAL_STATUSES:
                    yield f"event: complete\ndata: {json.dumps(data)}\n\n"
                    break

                await asyncio.sleep(STREAM_POLL_SECONDS)

        except asyncio.CancelledError:
            logger.info(f"SSE connection cancelled for import job {job_id}")
        except ImportJobNotFoundError:
            yield f"event: error\ndata: {json.dumps({'message': 'Job not found'})}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.delete("/jobs/{job_id}", response_model=schemas.CancelImportResponse)
async def cancel_import_job(
    job_id: UUID,
    officer: CurrentOfficer = Depends(get_current_officer),
    db: Session = Depends(get_db),
):
    """Cancel a pending or running import job."""
    try:
        ImportService.cancel_job(db, job_id, officer.officer_id)
    except ImportJobNotFoundError as e:
        raise NotFoundError("Import job", str(job_id)) from e
    except ImportJobStateError as e:
        raise ConflictError(str(e), {"job_id": str(job_id)}) from e

    return schemas.CancelImportResponse(cancelled=True, job_id=job_id)


@router.get("/{entity}/template")
async def download_template(
    entity: str,
    officer: CurrentOfficer = Depends(get_current_officer),
):
    """Download a CSV template with headers and example rows."""
    try:
        file_name, content = ImportService.get_template(entity)
    except UnknownEntityTypeError as e:
        raise BadRequestError(str(e)) from e

    MetricsService.emit_import_metric(
        metric_name=BusinessMetric.IMPORT_TEMPLATE_DOWNLOADED,
        officer_id=officer.officer_id,
        entity_type=entity,
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.post("/{entity}", response_model=schemas.ImportJobResponse, status_code=status.HTTP_201_CREATED)
async def start_import(
    entity: str,
    request: schemas.StartImportRequest,
    officer: CurrentOfficer = Depends(get_current_officer),
    db: Session = Depends(get_db),
):
    """Start importing an uploaded CSV file."""
    try:
        job = ImportService.start_import(
            db,
            entity_type=entity,
            file_key=request.file_key,
            officer_id=officer.officer_id,
            file_name=request.file_name,
            duplicate_strategy=request.duplicate_strategy,
            station_id=officer.station_id,
        )
    except UnknownEntityTypeError as e:
        raise BadRequestError(str(e)) from e

    return _job_response(job)
