"""Records domain services (persons, cases, evidence)."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from records_api.common.audit import create_audit_log
from records_api.common.models import Case, Evidence, Person, Station
from records_api.core.business_metrics import BusinessMetric
from records_api.core.metrics_service import MetricsService

PERSON_UPDATABLE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "middle_name",
        "gender",
        "aliases",
        "dob",
        "nationality",
        "phone",
        "email",
        "physical_description",
    }
)


def _person_snapshot(person: Person) -> dict[str, Any]:
    return {
        "national_id": person.national_id,
        "first_name": person.first_name,
        "last_name": person.last_name,
        "middle_name": person.middle_name,
        "gender": person.gender,
        "dob": person.dob.isoformat() if person.dob else None,
        "nationality": person.nationality,
    }


class PersonService:
    """Service for person records."""

    @staticmethod
    def get_person(db: Session, person_id: UUID) -> Optional[Person]:
        return db.get(Person, person_id)

    @staticmethod
    def create_person(
        db: Session,
        creator_id: UUID,
        first_name: str,
        last_name: str,
        gender: str,
        station_id: Optional[UUID] = None,
        national_id: Optional[str] = None,
        middle_name: Optional[str] = None,
        aliases: Optional[list[str]] = None,
        dob: Optional[date] = None,
        nationality: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        physical_description: Optional[str] = None,
    ) -> Person:
        """Create a new person record.

        Raises:
            ValueError: If another person already holds the national ID
        """
        if national_id:
            existing = db.execute(
                select(Person.id).where(Person.national_id == national_id)
            ).scalar_one_or_none()
            if existing:
                raise ValueError(
                    f'Person with national ID "{national_id}" already exists'
                )

        person = Person(
            id=uuid4(),
            national_id=national_id,
            first_name=first_name,
            last_name=last_name,
            middle_name=middle_name,
            gender=gender,
            aliases=aliases,
            dob=dob,
            nationality=nationality,
            phone=phone,
            email=email.lower() if email else None,
            physical_description=physical_description,
            station_id=station_id,
            created_by=creator_id,
        )
        db.add(person)
        db.flush()

        create_audit_log(
            db,
            creator_id,
            "create",
            "persons",
            person.id,
            None,
            _person_snapshot(person),
        )

        db.commit()
        db.refresh(person)

        MetricsService.emit_records_metric(
            BusinessMetric.PERSON_CREATED, creator_id, station_id
        )
        return person

    @staticmethod
    def update_person(
        db: Session,
        updater_id: UUID,
        person_id: UUID,
        updates: dict[str, Any],
    ) -> Person:
        """Update a person record.

        Every key in ``updates`` is written, including ``None`` values, so
        callers decide which fields to touch.

        Raises:
            ValueError: If the person does not exist or a field is not updatable
        """
        person = PersonService.get_person(db, person_id)
        if not person:
            raise ValueError(f"Person {person_id} not found")

        unknown = set(updates) - PERSON_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        before_json = _person_snapshot(person)

        for key, value in updates.items():
            if key == "email" and value:
                value = value.lower()
            setattr(person, key, value)

        person.updated_by = updater_id
        person.updated_at = datetime.now(timezone.utc)

        create_audit_log(
            db,
            updater_id,
            "update",
            "persons",
            person_id,
            before_json,
            _person_snapshot(person),
        )

        db.commit()
        db.refresh(person)

        MetricsService.emit_records_metric(
            BusinessMetric.PERSON_UPDATED, updater_id, person.station_id
        )
        return person


class CaseService:
    """Service for criminal cases."""

    @staticmethod
    def _generate_case_number(db: Session, station: Station, year: int) -> str:
        """Next case number for a station and year, e.g. FT-CID-2026-000001."""
        prefix = f"{station.code}-{year}-"
        count = db.execute(
            select(func.count(Case.id)).where(Case.case_number.like(f"{prefix}%"))
        ).scalar_one()
        return f"{prefix}{count + 1:06d}"

    @staticmethod
    def create_case(
        db: Session,
        creator_id: UUID,
        title: str,
        category: str,
        severity: str,
        station_id: UUID,
        incident_date: Optional[datetime] = None,
        officer_id: Optional[UUID] = None,
        description: Optional[str] = None,
        location: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        ward: Optional[str] = None,
        district: Optional[str] = None,
    ) -> Case:
        """Create a new case with a generated case number.

        Raises:
            ValueError: If the station does not exist
        """
        station = db.get(Station, station_id)
        if not station:
            raise ValueError(f"Station {station_id} not found")

        now = datetime.now(timezone.utc)
        case = Case(
            id=uuid4(),
            case_number=CaseService._generate_case_number(db, station, now.year),
            title=title,
            category=category,
            severity=severity,
            status="open",
            station_id=station_id,
            officer_id=officer_id or creator_id,
            incident_date=incident_date or now,
            description=description,
            location=location,
            latitude=latitude,
            longitude=longitude,
            ward=ward,
            district=district,
            created_by=creator_id,
        )
        db.add(case)
        db.flush()

        create_audit_log(
            db,
            creator_id,
            "create",
            "cases",
            case.id,
            None,
            {
                "case_number": case.case_number,
                "title": case.title,
                "severity": case.severity,
                "station_id": str(station_id),
            },
        )

        db.commit()
        db.refresh(case)

        MetricsService.emit_records_metric(
            BusinessMetric.CASE_CREATED, creator_id, station_id
        )
        return case


class EvidenceService:
    """Service for evidence items."""

    @staticmethod
    def create_evidence(
        db: Session,
        creator_id: UUID,
        case_id: UUID,
        type: str,
        description: str,
        collected_by: UUID,
        collected_at: Optional[datetime] = None,
        location: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> Evidence:
        """Create an evidence item under a case, filed at the case's station.

        Raises:
            ValueError: If the case does not exist
        """
        case = db.get(Case, case_id)
        if not case:
            raise ValueError(f"Case {case_id} not found")

        evidence = Evidence(
            id=uuid4(),
            case_id=case_id,
            station_id=case.station_id,
            type=type,
            description=description,
            location=location,
            tags=tags,
            collected_by=collected_by,
            collected_at=collected_at or datetime.now(timezone.utc),
            created_by=creator_id,
        )
        db.add(evidence)
        db.flush()

        create_audit_log(
            db,
            creator_id,
            "create",
            "evidence",
            evidence.id,
            None,
            {
                "case_id": str(case_id),
                "type": type,
                "collected_by": str(collected_by),
            },
        )

        db.commit()
        db.refresh(evidence)

        MetricsService.emit_records_metric(
            BusinessMetric.EVIDENCE_CREATED, creator_id, case.station_id
        )
        return evidence
