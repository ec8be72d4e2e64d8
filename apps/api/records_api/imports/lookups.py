"""Batched resolution of natural keys (station codes, badges, ...) to record IDs."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from records_api.common.models import Case, Officer, Person, Station

logger = logging.getLogger(__name__)


class LookupCategory(str, Enum):
    """Kinds of reference a CSV row can carry."""

    STATIONS = "stations"
    OFFICERS = "officers"
    CASES = "cases"
    PERSONS = "persons"


@dataclass
class LookupKeys:
    """Natural keys extracted from a file, per category (duplicates allowed)."""

    station_codes: list[str] = field(default_factory=list)
    badges: list[str] = field(default_factory=list)
    case_numbers: list[str] = field(default_factory=list)
    national_ids: list[str] = field(default_factory=list)

    def by_category(self) -> dict[LookupCategory, list[str]]:
        """Distinct non-empty keys per category, first-seen order kept."""
        return {
            LookupCategory.STATIONS: _distinct(self.station_codes),
            LookupCategory.OFFICERS: _distinct(self.badges),
            LookupCategory.CASES: _distinct(self.case_numbers),
            LookupCategory.PERSONS: _distinct(self.national_ids),
        }


@dataclass
class LookupCache:
    """Job-scoped maps from natural key to internal ID."""

    stations: dict[str, UUID] = field(default_factory=dict)
    officers: dict[str, UUID] = field(default_factory=dict)
    cases: dict[str, UUID] = field(default_factory=dict)
    persons: dict[str, UUID] = field(default_factory=dict)

    def for_category(self, category: LookupCategory) -> dict[str, UUID]:
        return getattr(self, category.value)


def _distinct(keys: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(key for key in keys if key))


def find_stations_by_codes(db: Session, codes: list[str]) -> dict[str, UUID]:
    rows = db.execute(
        select(Station.code, Station.id).where(Station.code.in_(codes))
    ).all()
    return {code: station_id for code, station_id in rows}


def find_officers_by_badges(db: Session, badges: list[str]) -> dict[str, UUID]:
    rows = db.execute(
        select(Officer.badge, Officer.id).where(Officer.badge.in_(badges))
    ).all()
    return {badge: officer_id for badge, officer_id in rows}


def find_cases_by_numbers(db: Session, case_numbers: list[str]) -> dict[str, UUID]:
    rows = db.execute(
        select(Case.case_number, Case.id).where(Case.case_number.in_(case_numbers))
    ).all()
    return {number: case_id for number, case_id in rows}


def find_persons_by_national_ids(
    db: Session, national_ids: list[str]
) -> dict[str, UUID]:
    rows = db.execute(
        select(Person.national_id, Person.id).where(
            Person.national_id.in_(national_ids)
        )
    ).all()
    return {national_id: person_id for national_id, person_id in rows if national_id}


Finder = Callable[[Session, list[str]], dict[str, UUID]]

# One batched query per category
FINDERS: dict[LookupCategory, Finder] = {
    LookupCategory.STATIONS: find_stations_by_codes,
    LookupCategory.OFFICERS: find_officers_by_badges,
    LookupCategory.CASES: find_cases_by_numbers,
    LookupCategory.PERSONS: find_persons_by_national_ids,
}

_CATEGORY_LABELS = {
    LookupCategory.STATIONS: "station codes",
    LookupCategory.OFFICERS: "officer badges",
    LookupCategory.CASES: "case numbers",
    LookupCategory.PERSONS: "national IDs",
}


def _resolve_category(
    db: Session, category: LookupCategory, keys: list[str]
) -> dict[str, UUID]:
    found = FINDERS[category](db, keys)
    logger.info(f"Resolved {len(found)}/{len(keys)} {_CATEGORY_LABELS[category]}")
    return found


def _resolve_in_own_session(
    session_factory: Callable[[], Session],
    category: LookupCategory,
    keys: list[str],
) -> dict[str, UUID]:
    db = session_factory()
    try:
        return _resolve_category(db, category, keys)
    finally:
        db.close()


def resolve_lookups(
    db: Session,
    keys: LookupKeys,
    session_factory: Optional[Callable[[], Session]] = None,
    max_workers: int = 1,
) -> LookupCache:
    """
    Build the lookup cache for a job.

    Each category with at least one key costs exactly one query. With a
    session factory and ``max_workers`` above 1 the categories run
    concurrently, each on its own session; otherwise they run in turn on
    ``db``. Keys that do not resolve are simply absent from the cache.

    Args:
        db: Session used when resolving inline
        keys: Keys extracted from the file's rows
        session_factory: Creates one session per concurrent category
        max_workers: Upper bound on concurrent category lookups

    Returns:
        Populated LookupCache
    """
    cache = LookupCache()
    pending = {
        category: category_keys
        for category, category_keys in keys.by_category().items()
        if category_keys
    }
    if not pending:
        return cache

    if session_factory is None or max_workers <= 1 or len(pending) == 1:
        for category, category_keys in pending.items():
            cache.for_category(category).update(
                _resolve_category(db, category, category_keys)
            )
        return cache

    with ThreadPoolExecutor(
        max_workers=min(max_workers, len(pending)),
        thread_name_prefix="import-lookup",
    ) as executor:
        futures = {
            category: executor.submit(
                _resolve_in_own_session, session_factory, category, category_keys
            )
            for category, category_keys in pending.items()
        }
        # result() re-raises the first lookup failure in the caller
        for category, future in futures.items():
            cache.for_category(category).update(future.result())

    return cache
