"""Object storage for uploaded import files (S3 or MinIO)."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from records_api.core.config import settings

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "bulk-imports"


def build_upload_key(entity_type: str) -> str:
    """Object key for a newly uploaded CSV: bulk-imports/<entity>/<uuid>.csv"""
    return f"{UPLOAD_PREFIX}/{entity_type}/{uuid4()}.csv"


class S3Client:
    """Reads and writes whole objects in the configured bucket.

    Storage errors are logged and re-raised; callers decide whether they
    fail a request or an import job.
    """

    def __init__(self, bucket: Optional[str] = None):
        self.client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
        )
        self.bucket = bucket or settings.s3_bucket

    def put_bytes(self, key: str, data: bytes, content_type: Optional[str] = "text/csv") -> str:
        """Store ``data`` under ``key`` and return the key."""
        params = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        try:
            self.client.put_object(**params)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to store s3://{self.bucket}/{key}: {e}")
            raise
        return key

    def get_bytes(self, key: str) -> bytes:
        """Return the full content of ``key``; missing objects raise ClientError."""
        try:
            return self.client.get_object(Bucket=self.bucket, Key=key)["Body"].read()
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to read s3://{self.bucket}/{key}: {e}")
            raise
