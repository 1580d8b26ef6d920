"""
KB RAG - Bedrock knowledge base provisioning and retrieval chat.

This package provides:
- Idempotent provisioning of S3, S3 Vectors and Bedrock knowledge base resources
- Incremental upload of local documents with ingestion job triggering
- A FastAPI chat endpoint backed by vector retrieval and tool calling
"""

__version__ = "0.1.0"
