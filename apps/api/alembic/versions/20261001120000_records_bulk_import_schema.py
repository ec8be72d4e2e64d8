"""records and bulk import schema

Revision ID: 20261001120000
Revises:
Create Date: 2026-10-01 12:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261001120000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

gender = postgresql.ENUM("male", "female", "other", "unknown", name="gender", create_type=False)
case_severity = postgresql.ENUM("minor", "major", "critical", name="case_severity", create_type=False)
case_status = postgresql.ENUM(
    "open", "investigating", "charged", "closed", "cold", name="case_status", create_type=False
)
evidence_type = postgresql.ENUM(
    "physical",
    "document",
    "photo",
    "video",
    "audio",
    "digital",
    "biological",
    "other",
    name="evidence_type",
    create_type=False,
)


def upgrade() -> None:
    """Create records and bulk import tables."""
    bind = op.get_bind()
    for enum_type in (gender, case_severity, case_status, evidence_type):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "stations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("region", sa.String(length=100), nullable=True),
        sa.Column("district", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_stations")),
        sa.UniqueConstraint("code", name=op.f("uq_stations_code")),
    )

    op.create_table(
        "officers",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("badge", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("station_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_officers")),
        sa.UniqueConstraint("badge", name=op.f("uq_officers_badge")),
        sa.ForeignKeyConstraint(
            ["station_id"],
            ["stations.id"],
            name=op.f("fk_officers_station_id_stations"),
            ondelete="SET NULL",
        ),
    )
    op.create_index(op.f("ix_officers_station_id"), "officers", ["station_id"], unique=False)

    op.create_table(
        "persons",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("national_id", sa.String(length=50), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("middle_name", sa.String(length=100), nullable=True),
        sa.Column("gender", gender, nullable=False),
        sa.Column("aliases", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("dob", sa.Date(), nullable=True),
        sa.Column("nationality", sa.String(length=3), nullable=True),
        sa.Column("phone", sa.String(length=500), nullable=True),
        sa.Column("email", sa.String(length=500), nullable=True),
        sa.Column("physical_description", sa.Text(), nullable=True),
        sa.Column("station_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("updated_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_persons")),
        sa.UniqueConstraint("national_id", name=op.f("uq_persons_national_id")),
        sa.ForeignKeyConstraint(
            ["station_id"],
            ["stations.id"],
            name=op.f("fk_persons_station_id_stations"),
            ondelete="SET NULL",
        ),
    )
    op.create_index(op.f("ix_persons_station_id"), "persons", ["station_id"], unique=False)
    op.create_index("ix_persons_last_first", "persons", ["last_name", "first_name"], unique=False)

    op.create_table(
        "cases",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("case_number", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("severity", case_severity, nullable=False),
        sa.Column("status", case_status, nullable=False, server_default="open"),
        sa.Column("station_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("officer_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("incident_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("location", sa.String(length=500), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("ward", sa.String(length=100), nullable=True),
        sa.Column("district", sa.String(length=100), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_cases")),
        sa.UniqueConstraint("case_number", name=op.f("uq_cases_case_number")),
        sa.ForeignKeyConstraint(
            ["station_id"],
            ["stations.id"],
            name=op.f("fk_cases_station_id_stations"),
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["officer_id"],
            ["officers.id"],
            name=op.f("fk_cases_officer_id_officers"),
            ondelete="SET NULL",
        ),
    )
    op.create_index(op.f("ix_cases_station_id"), "cases", ["station_id"], unique=False)
    op.create_index(op.f("ix_cases_officer_id"), "cases", ["officer_id"], unique=False)
    op.create_index("ix_cases_station_incident", "cases", ["station_id", "incident_date"], unique=False)

    op.create_table(
        "evidence",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("case_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("station_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", evidence_type, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(length=500), nullable=True),
        sa.Column("tags", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("collected_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("collected_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_evidence")),
        sa.ForeignKeyConstraint(
            ["case_id"],
            ["cases.id"],
            name=op.f("fk_evidence_case_id_cases"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["station_id"],
            ["stations.id"],
            name=op.f("fk_evidence_station_id_stations"),
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["collected_by"],
            ["officers.id"],
            name=op.f("fk_evidence_collected_by_officers"),
            ondelete="RESTRICT",
        ),
    )
    op.create_index(op.f("ix_evidence_case_id"), "evidence", ["case_id"], unique=False)
    op.create_index(op.f("ix_evidence_station_id"), "evidence", ["station_id"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("before_json", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("after_json", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("occurred_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_logs")),
    )

    op.create_table(
        "bulk_import_jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("file_key", sa.String(length=1000), nullable=False),
        sa.Column("file_name", sa.String(length=500), nullable=True),
        sa.Column("duplicate_strategy", sa.String(length=20), nullable=False, server_default="skip"),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="pending"),
        sa.Column("total_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processed_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("success_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("summary", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("officer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("station_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_bulk_import_jobs")),
    )
    op.create_index(op.f("ix_bulk_import_jobs_officer_id"), "bulk_import_jobs", ["officer_id"], unique=False)
    op.create_index("ix_bulk_import_jobs_status", "bulk_import_jobs", ["status"], unique=False)
    op.create_index("ix_bulk_import_jobs_entity_type", "bulk_import_jobs", ["entity_type"], unique=False)
    op.create_index("ix_bulk_import_jobs_created_at", "bulk_import_jobs", ["created_at"], unique=False)


def downgrade() -> None:
    """Drop records and bulk import tables."""
    op.drop_table("bulk_import_jobs")
    op.drop_table("audit_logs")
    op.drop_table("evidence")
    op.drop_table("cases")
    op.drop_table("persons")
    op.drop_table("officers")
    op.drop_table("stations")

    bind = op.get_bind()
    for enum_type in (evidence_type, case_status, case_severity, gender):
        enum_type.drop(bind, checkfirst=True)
