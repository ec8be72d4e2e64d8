"""Tests for bulk import API routes."""

from __future__ import annotations

from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from records_api.imports import routes
from records_api.imports.repository import ImportJobRepository

BASE = "/api/v1/bulk-import"


@pytest.fixture
def enqueue(monkeypatch) -> MagicMock:
    mock_enqueue = MagicMock()
    monkeypatch.setattr("records_api.imports.service.enqueue_import_job", mock_enqueue)
    return mock_enqueue


class TestStartImportRoute:
    """Tests for POST /bulk-import/{entity}."""

    def test_start_import(self, client, auth_headers, officer, station, enqueue):
        """Test a job is created for the authenticated officer."""
        response = client.post(
            f"{BASE}/persons",
            json={"file_key": "bulk-imports/persons/a.csv", "file_name": "a.csv"},
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["entity_type"] == "persons"
        assert data["duplicate_strategy"] == "skip"
        assert data["officer_id"] == str(officer.id)
        assert data["station_id"] == str(station.id)
        assert data["percent_complete"] == 0
        assert data["errors"] == []
        enqueue.assert_called_once()

    def test_unknown_entity(self, client, auth_headers, enqueue):
        """Test unknown entity types are a bad request."""
        response = client.post(f"{BASE}/vehicles", json={"file_key": "k"}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "bad_request"
        enqueue.assert_not_called()

    def test_invalid_duplicate_strategy(self, client, auth_headers, enqueue):
        """Test the duplicate strategy is validated."""
        response = client.post(
            f"{BASE}/persons",
            json={"file_key": "k", "duplicate_strategy": "merge"},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_requires_authentication(self, client, enqueue):
        """Test requests without a token are rejected."""
        response = client.post(f"{BASE}/persons", json={"file_key": "k"})
        assert response.status_code == 401


class TestJobRoutes:
    """Tests for job status, listing and cancellation."""

    def test_get_job(self, client, db, auth_headers, officer):
        """Test job status includes percent complete."""
        job = ImportJobRepository.create(db, "cases", "k", officer.id)
        ImportJobRepository.update_progress(db, job.id, total_rows=8, processed_rows=2)

        response = client.get(f"{BASE}/jobs/{job.id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["percent_complete"] == 25

    def test_get_missing_job(self, client, auth_headers):
        """Test unknown jobs are 404."""
        response = client.get(f"{BASE}/jobs/{uuid4()}", headers=auth_headers)
        assert response.status_code == 404

    def test_list_jobs(self, client, db, auth_headers, officer):
        """Test the paginated envelope and filters."""
        for entity_type in ("persons", "persons", "cases"):
            ImportJobRepository.create(db, entity_type, "k", officer.id)

        response = client.get(f"{BASE}/jobs", params={"entity_type": "persons", "limit": 1}, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["page"] == 1
        assert data["limit"] == 1
        assert data["total_pages"] == 2
        assert len(data["data"]) == 1

    def test_list_jobs_by_status(self, client, db, auth_headers, officer):
        """Test filtering on status."""
        job = ImportJobRepository.create(db, "persons", "k", officer.id)
        ImportJobRepository.create(db, "persons", "k", officer.id)
        ImportJobRepository.cancel(db, job.id)

        response = client.get(f"{BASE}/jobs", params={"status": "failed"}, headers=auth_headers)

        assert [j["id"] for j in response.json()["data"]] == [str(job.id)]

    def test_cancel_job(self, client, db, auth_headers, officer):
        """Test cancel, then conflict on a second cancel."""
        job = ImportJobRepository.create(db, "persons", "k", officer.id)

        response = client.delete(f"{BASE}/jobs/{job.id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"cancelled": True, "job_id": str(job.id)}

        response = client.delete(f"{BASE}/jobs/{job.id}", headers=auth_headers)
        assert response.status_code == 409

    def test_cancel_missing_job(self, client, auth_headers):
        """Test cancelling an unknown job is 404."""
        response = client.delete(f"{BASE}/jobs/{uuid4()}", headers=auth_headers)
        assert response.status_code == 404

    def test_stream_finished_job(self, client, db, auth_headers, officer):
        """Test the progress stream ends with a complete event for a finished job."""
        job = ImportJobRepository.create(db, "persons", "k", officer.id)
        ImportJobRepository.cancel(db, job.id)

        response = client.get(f"{BASE}/jobs/{job.id}/stream", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert "event: progress" in response.text
        assert "event: complete" in response.text
        assert '"status": "failed"' in response.text

    def test_stream_reads_jobs_off_the_event_loop(self, client, db, auth_headers, officer, monkeypatch):
        """Test every database read in the progress stream runs in the threadpool."""
        job = ImportJobRepository.create(db, "persons", "k", officer.id)
        ImportJobRepository.cancel(db, job.id)
        offloaded = []

        async def fake_run_in_threadpool(func, *args, **kwargs):
            offloaded.append(func.__name__)
            return func(*args, **kwargs)

        monkeypatch.setattr(routes, "run_in_threadpool", fake_run_in_threadpool)

        response = client.get(f"{BASE}/jobs/{job.id}/stream", headers=auth_headers)

        assert "event: complete" in response.text
        assert offloaded == ["_get_job_or_404", "_reload_job"]


class TestTemplateAndUploadRoutes:
    """Tests for template download and file upload."""

    def test_download_template(self, client, auth_headers):
        """Test the CSV template is served as an attachment."""
        response = client.get(f"{BASE}/cases/template", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert (
            response.headers["content-disposition"]
            == 'attachment; filename="cases-import-template.csv"'
        )
        assert response.text.splitlines()[0].startswith("title,category,severity,stationCode")

    def test_unknown_template(self, client, auth_headers):
        """Test unknown template types are a bad request."""
        response = client.get(f"{BASE}/vehicles/template", headers=auth_headers)
        assert response.status_code == 400

    def test_upload(self, client, auth_headers, monkeypatch):
        """Test uploading a CSV returns its storage key."""
        stored = {}

        class MockS3Client:
            def put_bytes(self, key, data, content_type="text/csv"):
                stored[key] = data
                return key

        monkeypatch.setattr("records_api.imports.service.S3Client", MockS3Client)

        response = client.post(
            f"{BASE}/uploads",
            params={"entity_type": "evidence"},
            files={"file": ("evidence.csv", b"caseNumber\nX\n", "text/csv")},
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["file_key"].startswith("bulk-imports/evidence/")
        assert data["size"] == len(b"caseNumber\nX\n")
        assert stored[data["file_key"]] == b"caseNumber\nX\n"

    def test_upload_too_large(self, client, auth_headers, monkeypatch):
        """Test oversize uploads are rejected with 413."""
        from records_api.core.config import settings

        monkeypatch.setattr(settings, "import_max_file_size", 4)
        response = client.post(
            f"{BASE}/uploads",
            params={"entity_type": "persons"},
            files={"file": ("p.csv", b"0123456789", "text/csv")},
            headers=auth_headers,
        )
        assert response.status_code == 413
