"""Tests for batched reference resolution."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from records_api.imports import lookups
from records_api.imports.lookups import LookupCategory, LookupKeys, resolve_lookups
from records_api.records.service import PersonService


class TestLookupKeys:
    """Tests for key extraction helpers."""

    def test_by_category_deduplicates(self):
        """Test keys are de-duplicated and blanks dropped, order kept."""
        keys = LookupKeys(station_codes=["FT-CID", "", "BO-HQ", "FT-CID"])
        assert keys.by_category()[LookupCategory.STATIONS] == ["FT-CID", "BO-HQ"]
        assert keys.by_category()[LookupCategory.OFFICERS] == []


class TestResolveLookups:
    """Tests for resolve_lookups against the database."""

    def test_resolves_all_categories(self, db, station, officer, case):
        """Test each category maps natural keys to ids."""
        person = PersonService.create_person(
            db, officer.id, "John", "Kamara", "male", national_id="NIN-1"
        )
        cache = resolve_lookups(
            db,
            LookupKeys(
                station_codes=["FT-CID"],
                badges=["B-1234"],
                case_numbers=[case.case_number],
                national_ids=["NIN-1"],
            ),
        )
        assert cache.stations == {"FT-CID": station.id}
        assert cache.officers == {"B-1234": officer.id}
        assert cache.cases == {case.case_number: case.id}
        assert cache.persons == {"NIN-1": person.id}

    def test_missing_keys_are_absent(self, db, station):
        """Test unknown keys are left out rather than raising."""
        cache = resolve_lookups(db, LookupKeys(station_codes=["FT-CID", "XX-NONE"]))
        assert "FT-CID" in cache.stations
        assert "XX-NONE" not in cache.stations

    def test_one_query_per_category(self, db, monkeypatch):
        """Test duplicate keys cost one lookup call per category."""
        calls = []

        def fake_finder(session, keys):
            calls.append(list(keys))
            return {}

        monkeypatch.setitem(lookups.FINDERS, LookupCategory.STATIONS, fake_finder)
        resolve_lookups(db, LookupKeys(station_codes=["A", "B", "A", "B", "A"]))
        assert calls == [["A", "B"]]

    def test_no_keys_no_queries(self, db, monkeypatch):
        """Test empty key sets skip the database entirely."""
        finder = MagicMock(return_value={})
        for category in LookupCategory:
            monkeypatch.setitem(lookups.FINDERS, category, finder)
        cache = resolve_lookups(db, LookupKeys())
        finder.assert_not_called()
        assert cache.stations == {}

    def test_concurrent_categories_use_own_sessions(self, db, monkeypatch):
        """Test categories run on worker threads, each with a fresh session."""
        station_id, officer_id = uuid4(), uuid4()
        threads = set()

        def station_finder(session, keys):
            threads.add(threading.current_thread().name)
            return {"FT-CID": station_id}

        def officer_finder(session, keys):
            threads.add(threading.current_thread().name)
            return {"B-1": officer_id}

        monkeypatch.setitem(lookups.FINDERS, LookupCategory.STATIONS, station_finder)
        monkeypatch.setitem(lookups.FINDERS, LookupCategory.OFFICERS, officer_finder)

        sessions = []

        def session_factory():
            session = MagicMock()
            sessions.append(session)
            return session

        cache = resolve_lookups(
            db,
            LookupKeys(station_codes=["FT-CID"], badges=["B-1"]),
            session_factory=session_factory,
            max_workers=4,
        )

        assert cache.stations == {"FT-CID": station_id}
        assert cache.officers == {"B-1": officer_id}
        assert len(sessions) == 2
        for session in sessions:
            session.close.assert_called_once()
        assert all(name.startswith("import-lookup") for name in threads)

    def test_concurrent_failure_propagates(self, db, monkeypatch):
        """Test a failing category lookup raises to the caller."""

        def broken_finder(session, keys):
            raise RuntimeError("database unavailable")

        monkeypatch.setitem(lookups.FINDERS, LookupCategory.STATIONS, broken_finder)
        monkeypatch.setitem(lookups.FINDERS, LookupCategory.OFFICERS, lambda s, k: {})

        with pytest.raises(RuntimeError, match="database unavailable"):
            resolve_lookups(
                db,
                LookupKeys(station_codes=["FT-CID"], badges=["B-1"]),
                session_factory=MagicMock,
                max_workers=2,
            )
