"""Tests for error handling and exception management."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from records_api.core.errors import (
    APIError,
    BadRequestError,
    ConflictError,
    NotFoundError,
    PayloadTooLargeError,
    UnauthorizedError,
    format_error_response,
    setup_error_handlers,
)


class TestAPIError:
    """Test APIError exception classes."""

    def test_api_error_defaults(self):
        """Test a bare APIError is an internal error with empty details."""
        error = APIError("Something broke")

        assert error.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert error.error_code == "internal_error"
        assert error.details == {}
        assert str(error) == "Something broke"

    def test_subclass_carries_details(self):
        """Test details are kept on subclasses."""
        error = BadRequestError("Bad file", {"field": "file_key"})
        assert error.details == {"field": "file_key"}

    def test_not_found_error(self):
        """Test NotFoundError."""
        error = NotFoundError("Import job", "abc")

        assert error.status_code == status.HTTP_404_NOT_FOUND
        assert error.message == "Import job not found: abc"
        assert error.details == {"resource": "Import job", "identifier": "abc"}

    def test_conflict_error(self):
        """Test ConflictError."""
        error = ConflictError('Cannot cancel a job with status "completed"')
        assert error.status_code == status.HTTP_409_CONFLICT
        assert error.error_code == "conflict"

    def test_bad_request_error(self):
        """Test BadRequestError."""
        error = BadRequestError("Unsupported entity type: vehicles")
        assert error.status_code == status.HTTP_400_BAD_REQUEST
        assert error.error_code == "bad_request"

    def test_payload_too_large_error(self):
        """Test PayloadTooLargeError."""
        error = PayloadTooLargeError(1024)
        assert error.status_code == status.HTTP_413_CONTENT_TOO_LARGE
        assert error.details == {"max_bytes": 1024}

    def test_unauthorized_error(self):
        """Test UnauthorizedError defaults."""
        error = UnauthorizedError()
        assert error.status_code == status.HTTP_401_UNAUTHORIZED
        assert error.message == "Unauthorized"


class TestFormatErrorResponse:
    """Test error response formatting."""

    def _request(self, request_id: str | None = "req-1") -> Mock:
        request = Mock()
        request.state.request_id = request_id
        return request

    def test_format_api_error(self):
        """Test APIError formatting includes details when present."""
        response = format_error_response(NotFoundError("Import job", "abc"), self._request())

        assert response["error"]["code"] == "not_found"
        assert response["error"]["request_id"] == "req-1"
        assert response["error"]["details"]["identifier"] == "abc"

    def test_format_generic_error_hides_details(self):
        """Test unexpected errors do not leak details by default."""
        response = format_error_response(RuntimeError("secret"), self._request())

        assert response["error"]["code"] == "internal_error"
        assert "details" not in response["error"]

    def test_format_generic_error_with_details(self):
        """Test details are included when requested."""
        response = format_error_response(
            RuntimeError("boom"), self._request(), include_details=True
        )
        assert response["error"]["details"] == {"type": "RuntimeError", "message": "boom"}


@pytest.fixture
def error_app() -> TestClient:
    app = FastAPI()
    setup_error_handlers(app, debug=False)

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("Job already finished", {"job_id": "j1"})

    @app.get("/integrity")
    async def integrity():
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    @app.get("/crash")
    async def crash():
        raise RuntimeError("unexpected")

    @app.get("/items/{item_id}")
    async def item(item_id: int):
        return {"item_id": item_id}

    return TestClient(app, raise_server_exceptions=False)


class TestErrorHandlers:
    """Test handlers registered by setup_error_handlers."""

    def test_api_error_handler(self, error_app):
        """Test APIError becomes its status and envelope."""
        response = error_app.get("/conflict")

        assert response.status_code == 409
        assert response.json()["error"]["details"] == {"job_id": "j1"}

    def test_validation_error_handler(self, error_app):
        """Test request validation errors list the failing fields."""
        response = error_app.get("/items/not-a-number")

        assert response.status_code == 422
        errors = response.json()["error"]["details"]["errors"]
        assert errors[0]["field"] == "path.item_id"

    def test_database_error_handler(self, error_app):
        """Test integrity errors are reported without SQL."""
        response = error_app.get("/integrity")

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Database integrity constraint violated"

    def test_generic_exception_handler(self, error_app):
        """Test unexpected errors return a generic 500."""
        response = error_app.get("/crash")

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == "internal_error"
        assert "details" not in body["error"]
