"""Tests for S3 utilities."""

from __future__ import annotations

from io import BytesIO
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from records_api.imports.s3_utils import S3Client, build_upload_key


def _patch_boto(monkeypatch, mock_client) -> None:
    monkeypatch.setattr(
        "records_api.imports.s3_utils.boto3.client",
        lambda service, **kwargs: mock_client,
    )


class TestBuildUploadKey:
    """Test upload key generation."""

    def test_key_layout(self):
        """Test keys are namespaced by entity type and unique."""
        first = build_upload_key("cases")
        second = build_upload_key("cases")

        assert first.startswith("bulk-imports/cases/")
        assert first.endswith(".csv")
        assert first != second


class TestS3Client:
    """Test S3 client operations."""

    def test_put_bytes_success(self, monkeypatch, import_settings):
        """Test successful upload with content type."""
        mock_client = MagicMock()
        _patch_boto(monkeypatch, mock_client)

        result = S3Client().put_bytes("bulk-imports/persons/a.csv", b"firstName\n")

        assert result == "bulk-imports/persons/a.csv"
        mock_client.put_object.assert_called_once_with(
            Bucket=import_settings.s3_bucket,
            Key="bulk-imports/persons/a.csv",
            Body=b"firstName\n",
            ContentType="text/csv",
        )

    def test_put_bytes_without_content_type(self, monkeypatch):
        """Test upload without content type omits the header."""
        mock_client = MagicMock()
        _patch_boto(monkeypatch, mock_client)

        S3Client(bucket="other").put_bytes("k", b"x", content_type=None)

        mock_client.put_object.assert_called_once_with(Bucket="other", Key="k", Body=b"x")

    def test_put_bytes_client_error(self, monkeypatch):
        """Test upload errors propagate."""
        mock_client = MagicMock()
        mock_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied"}}, "PutObject"
        )
        _patch_boto(monkeypatch, mock_client)

        with pytest.raises(ClientError):
            S3Client().put_bytes("k", b"x")

    def test_get_bytes_success(self, monkeypatch):
        """Test reading an object's body."""

        class MockS3Client:
            def get_object(self, Bucket, Key):
                return {"Body": BytesIO(b"title\nBurglary\n")}

        _patch_boto(monkeypatch, MockS3Client())

        assert S3Client().get_bytes("k") == b"title\nBurglary\n"

    def test_get_bytes_missing_object(self, monkeypatch):
        """Test missing objects raise ClientError."""

        class MockS3Client:
            def get_object(self, Bucket, Key):
                raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")

        _patch_boto(monkeypatch, MockS3Client())

        with pytest.raises(ClientError):
            S3Client().get_bytes("missing.csv")

    def test_get_bytes_no_credentials(self, monkeypatch):
        """Test credential errors propagate."""

        class MockS3Client:
            def get_object(self, Bucket, Key):
                raise NoCredentialsError()

        _patch_boto(monkeypatch, MockS3Client())

        with pytest.raises(NoCredentialsError):
            S3Client().get_bytes("k")
