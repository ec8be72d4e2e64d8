"""Pydantic schemas for the bulk import API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from records_api.imports.models import DuplicateStrategy


class StartImportRequest(BaseModel):
    """Request to start importing an uploaded CSV file."""

    file_key: str = Field(..., min_length=1, max_length=1000, description="Object storage key of the uploaded CSV")
    file_name: Optional[str] = Field(default=None, max_length=500)
    duplicate_strategy: DuplicateStrategy = Field(
        default=DuplicateStrategy.SKIP,
        description="What to do with rows matching an existing record: skip, update or fail",
    )


class ImportRowErrorResponse(BaseModel):
    """One stored import error."""

    row: int
    field: str
    message: str
    value: Optional[str] = None


class ImportJobResponse(BaseModel):
    """Response with import job details."""

    id: UUID
    entity_type: str
    file_key: str
    file_name: Optional[str]
    duplicate_strategy: str
    status: str
    total_rows: int
    processed_rows: int
    success_count: int
    error_count: int
    skipped_count: int
    percent_complete: int
    errors: list[ImportRowErrorResponse] = Field(default_factory=list)
    summary: Optional[dict[str, Any]] = None
    officer_id: UUID
    station_id: Optional[UUID]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("errors", mode="before")
    @classmethod
    def _errors_default(cls, value: Any) -> Any:
        return value or []


class ImportJobListResponse(BaseModel):
    """Paginated list of import jobs."""

    data: list[ImportJobResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class CancelImportResponse(BaseModel):
    cancelled: bool
    job_id: UUID


class UploadResponse(BaseModel):
    """Key of a stored upload, to pass to the start endpoint."""

    file_key: str
    file_name: Optional[str] = None
    size: int
