"""Audit trail writer shared by the records services and the import pipeline."""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from records_api.common.models import AuditLog


def create_audit_log(
    db: Session,
    actor_id: Optional[UUID],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
    before_json: Optional[dict[str, Any]] = None,
    after_json: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit entry to the current transaction.

    Only flushes, so the entry commits or rolls back together with the
    change it describes.

    Args:
        db: Database session
        actor_id: Officer who acted
        action: e.g. "create", "update", "bulk_import_cases"
        entity_type: e.g. "persons", "bulk-import"
        entity_id: Record the action applied to (the job id for imports)
        before_json: State before the change, if any
        after_json: State after the change, or an import summary

    Returns:
        The flushed AuditLog
    """
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        before_json=before_json,
        after_json=after_json,
    )
    db.add(entry)
    db.flush()
    return entry
