from __future__ import annotations

from typing import Generator
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from records_api.main import app
from records_api.auth.utils import create_access_token
from records_api.common.models import Base, Case, Officer, Station
from records_api.core.config import settings
import records_api.imports.models  # noqa: F401  registers bulk_import_jobs on Base.metadata

# Use in-memory SQLite for tests (faster than Postgres for unit tests)
TEST_DB_URL = "sqlite:///:memory:"
engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeStorage:
    """In-memory stand-in for S3Client."""

    def __init__(self, files: dict[str, bytes] | None = None):
        self.files = dict(files or {})

    def get_bytes(self, key: str) -> bytes:
        if key not in self.files:
            raise KeyError(f"No such object: {key}")
        return self.files[key]

    def put_bytes(self, key: str, data: bytes, content_type: str | None = "text/csv") -> str:
        self.files[key] = data
        return key


@pytest.fixture(autouse=True)
def import_settings(monkeypatch):
    """Keep metrics off and lookups on the test session."""
    monkeypatch.setattr(settings, "enable_metrics", False)
    monkeypatch.setattr(settings, "import_lookup_concurrency", 1)
    monkeypatch.setattr(settings, "import_update_mode", "partial")
    return settings


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Create a fresh database for each test.

    Tables are dropped and recreated after each test (in-memory SQLite).
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with dependency overrides."""

    def get_test_db():
        yield db

    from records_api.common.db import get_db

    app.dependency_overrides[get_db] = get_test_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def station(db: Session) -> Station:
    """Create the Freetown CID station."""
    station = Station(id=uuid4(), code="FT-CID", name="Freetown CID", region="Western")
    db.add(station)
    db.commit()
    db.refresh(station)
    return station


@pytest.fixture
def other_station(db: Session) -> Station:
    """Create the Bo headquarters station."""
    station = Station(id=uuid4(), code="BO-HQ", name="Bo Headquarters", region="Southern")
    db.add(station)
    db.commit()
    db.refresh(station)
    return station


@pytest.fixture
def officer(db: Session, station: Station) -> Officer:
    """Create an officer attached to the Freetown CID station."""
    officer = Officer(id=uuid4(), badge="B-1234", name="Aminata Conteh", station_id=station.id)
    db.add(officer)
    db.commit()
    db.refresh(officer)
    return officer


@pytest.fixture
def other_officer(db: Session, other_station: Station) -> Officer:
    """Create an officer attached to the Bo station."""
    officer = Officer(id=uuid4(), badge="B-5678", name="Mohamed Bangura", station_id=other_station.id)
    db.add(officer)
    db.commit()
    db.refresh(officer)
    return officer


@pytest.fixture
def case(db: Session, station: Station, officer: Officer) -> Case:
    """Create an open case at the Freetown CID station."""
    from records_api.records.service import CaseService

    return CaseService.create_case(
        db,
        officer.id,
        title="Burglary at Kissy Road",
        category="burglary",
        severity="major",
        station_id=station.id,
    )


@pytest.fixture
def auth_headers(officer: Officer, station: Station) -> dict[str, str]:
    """Bearer token headers for the test officer."""
    token = create_access_token(officer.id, station.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()
