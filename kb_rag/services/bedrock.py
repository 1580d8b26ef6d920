"""
Bedrock services for KB RAG.

- KnowledgeBaseService: bedrock-agent control plane (knowledge bases,
  data sources, ingestion jobs)
- EmbeddingService: bedrock-runtime text embeddings
"""

import json
import logging
from typing import Any, Optional

import boto3
from botocore.client import BaseClient

from kb_rag.config import Settings, get_settings
from kb_rag.models.resources import IngestionJob

logger = logging.getLogger(__name__)


class KnowledgeBaseService:
    """Service for Bedrock knowledge base operations."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize knowledge base service."""
        self.settings = settings or get_settings()
        self._client: Optional[BaseClient] = None

    @property
    def client(self) -> BaseClient:
        """Lazy-load Bedrock Agent client."""
        if self._client is None:
            self._client = boto3.client("bedrock-agent", region_name=self.settings.aws_region)
        return self._client

    def create_knowledge_base(self, **request: Any) -> dict[str, Any]:
        """Create a knowledge base and return its description."""
        response = self.client.create_knowledge_base(**request)
        return response["knowledgeBase"]

    def get_status(self, knowledge_base_id: str) -> Optional[str]:
        """Get the current lifecycle status of a knowledge base."""
        response = self.client.get_knowledge_base(knowledgeBaseId=knowledge_base_id)
        return response.get("knowledgeBase", {}).get("status")

    def create_data_source(self, **request: Any) -> dict[str, Any]:
        """Create a data source and return its description."""
        response = self.client.create_data_source(**request)
        return response["dataSource"]

    def start_ingestion_job(
        self,
        knowledge_base_id: str,
        data_source_id: str,
        description: str = "",
    ) -> IngestionJob:
        """
        Start an ingestion job for a data source.

        The job runs asynchronously; it is not polled to completion.

        Args:
            knowledge_base_id: Knowledge base identifier
            data_source_id: Data source identifier
            description: Job description

        Returns:
            IngestionJob with id and initial status
        """
        params = {
            "knowledgeBaseId": knowledge_base_id,
            "dataSourceId": data_source_id,
        }
        if description:
            params["description"] = description

        response = self.client.start_ingestion_job(**params)
        job = response["ingestionJob"]
        logger.info(
            f"Started ingestion job {job['ingestionJobId']} for data source {data_source_id}"
        )
        return IngestionJob(
            job_id=job["ingestionJobId"],
            status=job["status"],
            knowledge_base_id=knowledge_base_id,
            data_source_id=data_source_id,
        )


class EmbeddingService:
    """Service for Bedrock text embeddings."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize embedding service."""
        self.settings = settings or get_settings()
        self._client: Optional[BaseClient] = None

    @property
    def client(self) -> BaseClient:
        """Lazy-load Bedrock Runtime client."""
        if self._client is None:
            self._client = boto3.client(
                "bedrock-runtime", region_name=self.settings.aws_region
            )
        return self._client

    def embed(self, text: str) -> list[float]:
        """Compute the embedding vector for a piece of text."""
        response = self.client.invoke_model(
            modelId=self.settings.embedding_model,
            contentType="application/json",
            accept="application/json",
            body=json.dumps({"inputText": text}),
        )
        payload = json.loads(response["body"].read())
        return payload["embedding"]
