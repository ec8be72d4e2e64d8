"""Tests for audit logging utilities."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from records_api.common.audit import create_audit_log
from records_api.common.models import AuditLog


class TestCreateAuditLog:
    """Test audit log creation."""

    def test_create_audit_log_minimal(self, db: Session):
        """Test creating audit log with minimal data."""
        actor_id = uuid4()

        audit_log = create_audit_log(db=db, actor_id=actor_id, action="test_action")

        assert audit_log.id is not None
        assert audit_log.actor_id == actor_id
        assert audit_log.action == "test_action"
        assert audit_log.entity_type is None
        assert audit_log.entity_id is None
        assert audit_log.before_json is None
        assert audit_log.after_json is None

    def test_create_audit_log_full_data(self, db: Session):
        """Test creating audit log with all data."""
        actor_id = uuid4()
        entity_id = uuid4()

        audit_log = create_audit_log(
            db=db,
            actor_id=actor_id,
            action="bulk_import_cases",
            entity_type="bulk-import",
            entity_id=entity_id,
            before_json=None,
            after_json={"total_rows": 3, "success_count": 2},
        )
        db.commit()

        stored = db.execute(
            select(AuditLog).where(AuditLog.entity_id == entity_id)
        ).scalar_one()
        assert stored.id == audit_log.id
        assert stored.entity_type == "bulk-import"
        assert stored.after_json == {"total_rows": 3, "success_count": 2}

    def test_create_audit_log_not_committed(self, db: Session):
        """Test the caller owns the transaction."""
        create_audit_log(db=db, actor_id=uuid4(), action="create")
        db.rollback()

        assert db.execute(select(AuditLog)).scalars().all() == []
