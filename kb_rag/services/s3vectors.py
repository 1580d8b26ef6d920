"""
S3 Vectors service for KB RAG.

Handles vector buckets, vector indexes and similarity queries.
"""

import logging
from typing import Any, Optional

import boto3
from botocore.client import BaseClient

from kb_rag.config import Settings, get_settings

logger = logging.getLogger(__name__)


class VectorStoreService:
    """Service for S3 Vectors operations."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize S3 Vectors service."""
        self.settings = settings or get_settings()
        self._client: Optional[BaseClient] = None

    @property
    def client(self) -> BaseClient:
        """Lazy-load S3 Vectors client."""
        if self._client is None:
            self._client = boto3.client("s3vectors", region_name=self.settings.aws_region)
        return self._client

    def create_vector_bucket(self, bucket_name: str) -> Optional[str]:
        """Create a vector bucket, returning its ARN when the response carries it."""
        response = self.client.create_vector_bucket(vectorBucketName=bucket_name)
        return response.get("vectorBucketArn")

    def get_vector_bucket_arn(self, bucket_name: str) -> str:
        """Look up the ARN of an existing vector bucket."""
        response = self.client.get_vector_bucket(vectorBucketName=bucket_name)
        return response["vectorBucket"]["vectorBucketArn"]

    def create_index(
        self,
        vector_bucket_arn: str,
        index_name: str,
        dimension: int,
        distance_metric: str,
        non_filterable_keys: list[str],
        data_type: str = "float32",
    ) -> Optional[str]:
        """
        Create a vector index.

        Args:
            vector_bucket_arn: Parent vector bucket ARN
            index_name: Index name
            dimension: Vector dimensionality (must match the embedding model)
            distance_metric: "cosine" or "euclidean"
            non_filterable_keys: Metadata keys stored as payload only
            data_type: Vector element type

        Returns:
            Index ARN when the response carries it
        """
        response = self.client.create_index(
            vectorBucketArn=vector_bucket_arn,
            indexName=index_name,
            dataType=data_type,
            dimension=dimension,
            distanceMetric=distance_metric,
            metadataConfiguration={
                "nonFilterableMetadataKeys": list(non_filterable_keys),
            },
        )
        return response.get("indexArn")

    def query(
        self,
        index_arn: str,
        vector: list[float],
        top_k: int = 5,
    ) -> list[dict[str, Any]]:
        """
        Run a top-k similarity query.

        Args:
            index_arn: Index to query
            vector: Query embedding
            top_k: Number of nearest vectors to return

        Returns:
            Ranked results, each with key, distance and metadata
        """
        response = self.client.query_vectors(
            indexArn=index_arn,
            queryVector={"float32": vector},
            topK=top_k,
            returnMetadata=True,
            returnDistance=True,
        )
        return response.get("vectors", [])
