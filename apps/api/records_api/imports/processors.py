"""Entity-specific row processors for bulk imports."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from records_api.common.models.base import CaseSeverity, EvidenceType, Gender
from records_api.core.config import settings
from records_api.imports.coercers import (
    coerce_phone,
    split_multi_value,
    to_date,
    to_datetime,
    to_float,
)
from records_api.imports.lookups import LookupCache, LookupKeys
from records_api.imports.models import DuplicateStrategy, ImportEntityType
from records_api.imports.parsers import HEADER_OFFSET
from records_api.imports.validators import (
    validate_choice,
    validate_date,
    validate_email_list,
    validate_length,
    validate_max_length,
    validate_number,
    validate_phone_list,
    validate_required,
)
from records_api.records.service import CaseService, EvidenceService, PersonService

logger = logging.getLogger(__name__)

VALID_GENDERS = list(Gender.enums)
VALID_SEVERITIES = list(CaseSeverity.enums)
VALID_EVIDENCE_TYPES = list(EvidenceType.enums)


class UnknownEntityTypeError(ValueError):
    """No processor is registered for the requested entity type."""

    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        supported = ", ".join(t.value for t in ImportEntityType)
        super().__init__(
            f"Unsupported entity type: {entity_type}. Supported types: {supported}"
        )


class RowAction(str, Enum):
    """What a successful row did."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class UpdateMode(str, Enum):
    """How the update duplicate strategy treats blank cells."""

    PARTIAL = "partial"  # blank cells leave the stored value alone
    OVERWRITE = "overwrite"  # blank cells clear the stored value


@dataclass
class ImportRowError:
    """One problem found in a file, located by 1-based file row (0 = whole file)."""

    row: int
    field: str
    message: str
    value: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "row": self.row,
            "field": self.field,
            "message": self.message,
        }
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass
class RowResult:
    """Result of processing a row."""

    success: bool
    action: Optional[RowAction] = None
    error: Optional[ImportRowError] = None


@dataclass(frozen=True)
class ImportContext:
    """Per-job settings shared by every row.

    The context itself is immutable; ``lookups.persons`` is the one map a
    processor extends, so later rows see national IDs created earlier in
    the same file.
    """

    officer_id: UUID
    duplicate_strategy: DuplicateStrategy
    lookups: LookupCache
    station_id: Optional[UUID] = None
    update_mode: UpdateMode = UpdateMode.PARTIAL


def row_number(row_index: int) -> int:
    """File row of a data row index (header is row 1)."""
    return row_index + HEADER_OFFSET


class EntityProcessor(ABC):
    """Abstract base class for entity processors.

    Subclasses declare their columns and implement validation (pure) and
    processing (the only stage that writes, via the records services).
    """

    entity_type: ImportEntityType
    required_headers: tuple[str, ...] = ()
    template_headers: tuple[str, ...] = ()
    template_examples: tuple[tuple[str, ...], ...] = ()

    def get_required_headers(self) -> list[str]:
        return list(self.required_headers)

    def get_template_headers(self) -> list[str]:
        return list(self.template_headers)

    def get_template_examples(self) -> list[list[str]]:
        return [list(example) for example in self.template_examples]

    @abstractmethod
    def extract_lookup_keys(self, rows: list[dict[str, str]]) -> LookupKeys:
        """Collect every natural key the rows reference."""

    @abstractmethod
    def validate_row(
        self, row: dict[str, str], row_index: int, context: ImportContext
    ) -> list[ImportRowError]:
        """Validate one row against field rules and the lookup cache."""

    @abstractmethod
    def process_row(
        self,
        db: Session,
        row: dict[str, str],
        row_index: int,
        context: ImportContext,
    ) -> RowResult:
        """Write one validated row."""

    @staticmethod
    def _error(
        row_index: int, field: str, message: str, value: Optional[str] = None
    ) -> ImportRowError:
        return ImportRowError(
            row=row_number(row_index), field=field, message=message, value=value or None
        )

    def _collect(
        self,
        errors: list[ImportRowError],
        row_index: int,
        field: str,
        message: Optional[str],
        value: Optional[str] = None,
    ) -> None:
        if message:
            errors.append(self._error(row_index, field, message, value))

    def _failed(self, db: Session, row_index: int, exc: Exception) -> RowResult:
        """Roll back the row's transaction and report it as a row error."""
        db.rollback()
        logger.warning(
            f"{self.entity_type.value} row {row_number(row_index)} failed: {exc}"
        )
        return RowResult(
            success=False,
            error=self._error(
                row_index, "general", str(exc) or "Unexpected error processing row"
            ),
        )


def _join_phones(value: str) -> Optional[str]:
    numbers = [coerce_phone(item).coerced_value for item in split_multi_value(value)]
    return ", ".join(numbers) or None


def _join_emails(value: str) -> Optional[str]:
    return ", ".join(item.lower() for item in split_multi_value(value)) or None


def _aliases(value: str) -> Optional[list[str]]:
    return split_multi_value(value) or None


def _nationality(value: str) -> str:
    return value.upper() if value else settings.import_default_nationality


# CSV column -> (person field, converter)
PERSON_FIELDS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "firstName": ("first_name", str),
    "lastName": ("last_name", str),
    "middleName": ("middle_name", str),
    "gender": ("gender", str.lower),
    "aliases": ("aliases", _aliases),
    "dateOfBirth": ("dob", to_date),
    "nationality": ("nationality", _nationality),
    "phoneNumbers": ("phone", _join_phones),
    "emails": ("email", _join_emails),
    "physicalDescription": ("physical_description", str),
}


class PersonImportProcessor(EntityProcessor):
    """Processor for persons; duplicates are matched on national ID (nin)."""

    entity_type = ImportEntityType.PERSONS
    required_headers = ("firstName", "lastName", "gender", "stationCode")
    template_headers = (
        "firstName",
        "lastName",
        "gender",
        "stationCode",
        "nin",
        "middleName",
        "aliases",
        "dateOfBirth",
        "nationality",
        "phoneNumbers",
        "emails",
        "physicalDescription",
    )
    template_examples = (
        (
            "John",
            "Kamara",
            "male",
            "FT-CID",
            "NIN-123456789",
            "Olu",
            "JK|Big John",
            "1990-05-15",
            "SLE",
            "+23276000000|+23277000000",
            "john@example.com",
            "Tall, dark complexion",
        ),
        (
            "Fatima",
            "Sesay",
            "female",
            "BO-HQ",
            "",
            "",
            "",
            "1985-03-22",
            "SLE",
            "",
            "",
            "",
        ),
    )

    def extract_lookup_keys(self, rows: list[dict[str, str]]) -> LookupKeys:
        return LookupKeys(
            station_codes=[row.get("stationCode", "") for row in rows],
            national_ids=[row.get("nin", "") for row in rows],
        )

    def validate_row(
        self, row: dict[str, str], row_index: int, context: ImportContext
    ) -> list[ImportRowError]:
        errors: list[ImportRowError] = []
        first_name = row.get("firstName", "")
        last_name = row.get("lastName", "")
        gender = row.get("gender", "")
        station_code = row.get("stationCode", "")
        dob = row.get("dateOfBirth", "")

        self._collect(errors, row_index, "firstName",
                      validate_length(first_name, "firstName", 2, 100), first_name)
        self._collect(errors, row_index, "lastName",
                      validate_length(last_name, "lastName", 2, 100), last_name)
        self._collect(errors, row_index, "gender",
                      validate_choice(gender, VALID_GENDERS), gender)

        if not station_code:
            self._collect(errors, row_index, "stationCode",
                          validate_required(station_code, "stationCode"))
        elif station_code not in context.lookups.stations:
            self._collect(errors, row_index, "stationCode",
                          f'Station code "{station_code}" not found', station_code)

        self._collect(errors, row_index, "nin",
                      validate_max_length(row.get("nin"), "nin", 50), row.get("nin"))
        self._collect(errors, row_index, "middleName",
                      validate_max_length(row.get("middleName"), "middleName", 100),
                      row.get("middleName"))
        self._collect(errors, row_index, "nationality",
                      validate_max_length(row.get("nationality"), "nationality", 3),
                      row.get("nationality"))

        date_error = validate_date(dob)
        if date_error:
            self._collect(errors, row_index, "dateOfBirth", date_error, dob)
        elif dob and to_date(dob) > date.today():
            self._collect(errors, row_index, "dateOfBirth",
                          "dateOfBirth cannot be in the future", dob)

        self._collect(errors, row_index, "phoneNumbers",
                      validate_phone_list(row.get("phoneNumbers")), row.get("phoneNumbers"))
        self._collect(errors, row_index, "emails",
                      validate_email_list(row.get("emails")), row.get("emails"))
        return errors

    def build_update_data(
        self, row: dict[str, str], update_mode: UpdateMode
    ) -> dict[str, Any]:
        """
        Person fields to write for the update duplicate strategy.

        Args:
            row: Validated CSV row
            update_mode: PARTIAL writes only non-empty cells; OVERWRITE
                writes every column present in the file, blanks as None

        Returns:
            Mapping of person field to new value
        """
        data: dict[str, Any] = {}
        for column, (field_name, convert) in PERSON_FIELDS.items():
            if column not in row:
                continue
            value = row[column]
            if value:
                data[field_name] = convert(value)
            elif update_mode == UpdateMode.OVERWRITE:
                data[field_name] = convert(value) if column == "nationality" else None
        return data

    def process_row(
        self,
        db: Session,
        row: dict[str, str],
        row_index: int,
        context: ImportContext,
    ) -> RowResult:
        nin = row.get("nin", "")

        if nin:
            existing_id = context.lookups.persons.get(nin)
            if existing_id:
                if context.duplicate_strategy == DuplicateStrategy.SKIP:
                    return RowResult(success=True, action=RowAction.SKIPPED)
                if context.duplicate_strategy == DuplicateStrategy.FAIL:
                    return RowResult(
                        success=False,
                        error=self._error(
                            row_index, "nin", f'Duplicate NIN "{nin}" already exists', nin
                        ),
                    )
                try:
                    PersonService.update_person(
                        db,
                        context.officer_id,
                        existing_id,
                        self.build_update_data(row, context.update_mode),
                    )
                except Exception as exc:
                    return self._failed(db, row_index, exc)
                return RowResult(success=True, action=RowAction.UPDATED)

        try:
            person = PersonService.create_person(
                db,
                context.officer_id,
                first_name=row["firstName"],
                last_name=row["lastName"],
                gender=row["gender"].lower(),
                station_id=context.lookups.stations[row["stationCode"]],
                national_id=nin or None,
                middle_name=row.get("middleName") or None,
                aliases=_aliases(row.get("aliases", "")),
                dob=to_date(row.get("dateOfBirth")),
                nationality=_nationality(row.get("nationality", "")),
                phone=_join_phones(row.get("phoneNumbers", "")),
                email=_join_emails(row.get("emails", "")),
                physical_description=row.get("physicalDescription") or None,
            )
        except Exception as exc:
            return self._failed(db, row_index, exc)

        # Later rows in the same file must see this national ID as existing
        if nin:
            context.lookups.persons[nin] = person.id

        return RowResult(success=True, action=RowAction.CREATED)


class CaseImportProcessor(EntityProcessor):
    """Processor for cases; every row creates a new case."""

    entity_type = ImportEntityType.CASES
    required_headers = ("title", "category", "severity", "stationCode")
    template_headers = (
        "title",
        "category",
        "severity",
        "stationCode",
        "officerBadge",
        "incidentDate",
        "description",
        "location",
        "latitude",
        "longitude",
        "ward",
        "district",
    )
    template_examples = (
        (
            "Theft at Market Street",
            "theft",
            "major",
            "FT-CID",
            "B-1234",
            "2026-01-15",
            "Suspect was seen breaking into a shop",
            "Market Street, Freetown",
            "8.484",
            "-13.2299",
            "Ward 1",
            "Western Area Urban",
        ),
        (
            "Assault near Stadium",
            "assault",
            "minor",
            "BO-HQ",
            "",
            "2026-02-01",
            "",
            "Bo Stadium area",
            "",
            "",
            "",
            "Bo",
        ),
    )

    def extract_lookup_keys(self, rows: list[dict[str, str]]) -> LookupKeys:
        return LookupKeys(
            station_codes=[row.get("stationCode", "") for row in rows],
            badges=[row.get("officerBadge", "") for row in rows],
        )

    def validate_row(
        self, row: dict[str, str], row_index: int, context: ImportContext
    ) -> list[ImportRowError]:
        errors: list[ImportRowError] = []
        title = row.get("title", "")
        category = row.get("category", "")
        severity = row.get("severity", "")
        station_code = row.get("stationCode", "")
        badge = row.get("officerBadge", "")

        self._collect(errors, row_index, "title",
                      validate_length(title, "title", 5, 200), title)
        if len(category) < 2:
            self._collect(errors, row_index, "category", "category is required", category)
        else:
            self._collect(errors, row_index, "category",
                          validate_max_length(category, "category", 100), category)
        self._collect(errors, row_index, "severity",
                      validate_choice(severity, VALID_SEVERITIES), severity)

        if not station_code:
            self._collect(errors, row_index, "stationCode",
                          validate_required(station_code, "stationCode"))
        elif station_code not in context.lookups.stations:
            self._collect(errors, row_index, "stationCode",
                          f'Station code "{station_code}" not found', station_code)

        if badge and badge not in context.lookups.officers:
            self._collect(errors, row_index, "officerBadge",
                          f'Officer badge "{badge}" not found', badge)

        self._collect(errors, row_index, "incidentDate",
                      validate_date(row.get("incidentDate")), row.get("incidentDate"))
        self._collect(errors, row_index, "latitude",
                      validate_number(row.get("latitude"), "latitude", -90, 90),
                      row.get("latitude"))
        self._collect(errors, row_index, "longitude",
                      validate_number(row.get("longitude"), "longitude", -180, 180),
                      row.get("longitude"))
        self._collect(errors, row_index, "location",
                      validate_max_length(row.get("location"), "location", 500))
        self._collect(errors, row_index, "ward",
                      validate_max_length(row.get("ward"), "ward", 100), row.get("ward"))
        self._collect(errors, row_index, "district",
                      validate_max_length(row.get("district"), "district", 100),
                      row.get("district"))
        return errors

    def process_row(
        self,
        db: Session,
        row: dict[str, str],
        row_index: int,
        context: ImportContext,
    ) -> RowResult:
        badge = row.get("officerBadge", "")
        # Unassigned cases go to the importing officer
        officer_id = context.lookups.officers.get(badge) if badge else None

        try:
            CaseService.create_case(
                db,
                context.officer_id,
                title=row["title"],
                category=row["category"].lower(),
                severity=row["severity"].lower(),
                station_id=context.lookups.stations[row["stationCode"]],
                incident_date=to_datetime(row.get("incidentDate")),
                officer_id=officer_id or context.officer_id,
                description=row.get("description") or None,
                location=row.get("location") or None,
                latitude=to_float(row.get("latitude")),
                longitude=to_float(row.get("longitude")),
                ward=row.get("ward") or None,
                district=row.get("district") or None,
            )
        except Exception as exc:
            return self._failed(db, row_index, exc)

        return RowResult(success=True, action=RowAction.CREATED)


class EvidenceImportProcessor(EntityProcessor):
    """Processor for evidence; rows attach to existing cases by case number."""

    entity_type = ImportEntityType.EVIDENCE
    required_headers = ("caseNumber", "type", "description", "collectedByBadge")
    template_headers = (
        "caseNumber",
        "type",
        "description",
        "collectedByBadge",
        "collectedAt",
        "location",
        "tags",
    )
    template_examples = (
        (
            "FT-CID-2026-000001",
            "physical",
            "Knife found at the scene near the entrance",
            "B-1234",
            "2026-01-15",
            "Market Street, Freetown",
            "weapon|scene-evidence",
        ),
        (
            "BO-HQ-2026-000001",
            "document",
            "Written statement from witness",
            "B-5678",
            "",
            "",
            "statement",
        ),
    )

    def extract_lookup_keys(self, rows: list[dict[str, str]]) -> LookupKeys:
        return LookupKeys(
            case_numbers=[row.get("caseNumber", "") for row in rows],
            badges=[row.get("collectedByBadge", "") for row in rows],
        )

    def validate_row(
        self, row: dict[str, str], row_index: int, context: ImportContext
    ) -> list[ImportRowError]:
        errors: list[ImportRowError] = []
        case_number = row.get("caseNumber", "")
        evidence_type = row.get("type", "")
        description = row.get("description", "")
        badge = row.get("collectedByBadge", "")

        if not case_number:
            self._collect(errors, row_index, "caseNumber",
                          validate_required(case_number, "caseNumber"))
        elif case_number not in context.lookups.cases:
            self._collect(errors, row_index, "caseNumber",
                          f'Case number "{case_number}" not found', case_number)

        self._collect(errors, row_index, "type",
                      validate_choice(evidence_type, VALID_EVIDENCE_TYPES), evidence_type)

        description_error = validate_length(description, "description", 5, 2000)
        if description_error:
            shown = description if len(description) <= 2000 else description[:50] + "..."
            self._collect(errors, row_index, "description", description_error, shown)

        if not badge:
            self._collect(errors, row_index, "collectedByBadge",
                          validate_required(badge, "collectedByBadge"))
        elif badge not in context.lookups.officers:
            self._collect(errors, row_index, "collectedByBadge",
                          f'Officer badge "{badge}" not found', badge)

        self._collect(errors, row_index, "collectedAt",
                      validate_date(row.get("collectedAt")), row.get("collectedAt"))
        self._collect(errors, row_index, "location",
                      validate_max_length(row.get("location"), "location", 500))
        return errors

    def process_row(
        self,
        db: Session,
        row: dict[str, str],
        row_index: int,
        context: ImportContext,
    ) -> RowResult:
        try:
            EvidenceService.create_evidence(
                db,
                context.officer_id,
                case_id=context.lookups.cases[row["caseNumber"]],
                type=row["type"].lower(),
                description=row["description"],
                collected_by=context.lookups.officers[row["collectedByBadge"]],
                collected_at=to_datetime(row.get("collectedAt")),
                location=row.get("location") or None,
                tags=split_multi_value(row.get("tags")) or None,
            )
        except Exception as exc:
            return self._failed(db, row_index, exc)

        return RowResult(success=True, action=RowAction.CREATED)


PROCESSORS: dict[ImportEntityType, EntityProcessor] = {
    ImportEntityType.PERSONS: PersonImportProcessor(),
    ImportEntityType.CASES: CaseImportProcessor(),
    ImportEntityType.EVIDENCE: EvidenceImportProcessor(),
}


def get_processor(entity_type: str) -> EntityProcessor:
    """
    Get the processor registered for an entity type.

    Raises:
        UnknownEntityTypeError: If no processor handles ``entity_type``
    """
    try:
        return PROCESSORS[ImportEntityType(entity_type)]
    except ValueError as exc:
        raise UnknownEntityTypeError(str(entity_type)) from exc


def supported_entity_types() -> list[str]:
    return [entity_type.value for entity_type in PROCESSORS]
