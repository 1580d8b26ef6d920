"""Service layer for KB RAG."""

from kb_rag.services.bedrock import EmbeddingService, KnowledgeBaseService
from kb_rag.services.s3 import S3Service
from kb_rag.services.s3vectors import VectorStoreService

__all__ = [
    "EmbeddingService",
    "KnowledgeBaseService",
    "S3Service",
    "VectorStoreService",
]
