"""
S3 service for KB RAG.

Handles the documents bucket: creation, full key listing and object upload.
"""

import logging
from typing import Optional

import boto3
from botocore.client import BaseClient

from kb_rag.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Bucket visibility wait: 12 x 5s = 60s ceiling
BUCKET_WAIT_DELAY = 5
BUCKET_WAIT_MAX_ATTEMPTS = 12


class S3Service:
    """Service for S3 operations."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize S3 service."""
        self.settings = settings or get_settings()
        self._client: Optional[BaseClient] = None

    @property
    def client(self) -> BaseClient:
        """Lazy-load S3 client."""
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.settings.aws_region)
        return self._client

    def create_bucket(self, bucket_name: str) -> None:
        """Create a bucket in the configured region.

        us-east-1 rejects an explicit LocationConstraint, every other region
        requires one.
        """
        params = {"Bucket": bucket_name}
        if self.settings.aws_region != "us-east-1":
            params["CreateBucketConfiguration"] = {
                "LocationConstraint": self.settings.aws_region
            }
        self.client.create_bucket(**params)
        logger.info(f"Created bucket {bucket_name}")

    def wait_until_exists(self, bucket_name: str) -> None:
        """Block until the bucket is visible (bounded by the waiter config)."""
        waiter = self.client.get_waiter("bucket_exists")
        waiter.wait(
            Bucket=bucket_name,
            WaiterConfig={
                "Delay": BUCKET_WAIT_DELAY,
                "MaxAttempts": BUCKET_WAIT_MAX_ATTEMPTS,
            },
        )

    def list_keys(self, bucket_name: str) -> set[str]:
        """
        List every object key in a bucket.

        Follows continuation tokens until the listing is no longer truncated.

        Args:
            bucket_name: Bucket to list

        Returns:
            Set of object keys present at listing time
        """
        keys: set[str] = set()
        continuation_token: Optional[str] = None
        pages = 0

        while True:
            params = {"Bucket": bucket_name}
            if continuation_token:
                params["ContinuationToken"] = continuation_token

            response = self.client.list_objects_v2(**params)
            pages += 1
            for item in response.get("Contents", []):
                if item.get("Key"):
                    keys.add(item["Key"])

            if response.get("IsTruncated"):
                continuation_token = response.get("NextContinuationToken")
            else:
                continuation_token = None

            if not continuation_token:
                break

        logger.debug(f"Listed {len(keys)} keys in {pages} page(s) from {bucket_name}")
        return keys

    def put_object(self, bucket_name: str, key: str, body: bytes) -> None:
        """Upload bytes under a key."""
        self.client.put_object(Bucket=bucket_name, Key=key, Body=body)
        logger.debug(f"Uploaded {self.get_s3_uri(bucket_name, key)} ({len(body)} bytes)")

    def get_s3_uri(self, bucket_name: str, key: str = "") -> str:
        """Get S3 URI for a bucket or key."""
        return f"s3://{bucket_name}/{key}"
