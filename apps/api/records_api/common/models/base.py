"""Base classes and enums shared across all models."""

from __future__ import annotations

from sqlalchemy import Enum, MetaData
from sqlalchemy.orm import DeclarativeBase


NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)


class Base(DeclarativeBase):
    metadata = metadata


# Person Enums
Gender = Enum("male", "female", "other", "unknown", name="gender")

# Case Enums
CaseSeverity = Enum("minor", "major", "critical", name="case_severity")
CaseStatus = Enum(
    "open", "investigating", "charged", "closed", "cold", name="case_status"
)

# Evidence Enums
EvidenceType = Enum(
    "physical",
    "document",
    "photo",
    "video",
    "audio",
    "digital",
    "biological",
    "other",
    name="evidence_type",
)
