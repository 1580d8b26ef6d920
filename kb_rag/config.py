"""
Configuration management using Pydantic Settings.

Supports environment variables and .env files for configuration. Variable
names match the deployment scripts (AWS_REGION, S3_BUCKET_NAME, KB_ID, ...),
so no prefix is applied.
"""

import time
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AWS
    aws_region: str = Field(
        default="us-east-1",
        description="AWS region for all clients",
    )

    # S3 documents bucket
    s3_bucket_name: str = Field(
        default="",
        description="S3 bucket holding source documents",
    )

    # S3 Vectors
    s3_vectors_bucket_name: str = Field(
        default="",
        description="S3 Vectors bucket holding embeddings",
    )
    s3_vectors_index_name: str = Field(
        default="kb-index",
        description="Vector index name inside the vectors bucket",
    )
    s3_vectors_index_arn: str = Field(
        default="",
        description="Vector index ARN queried by the chat endpoint",
    )

    # Bedrock knowledge base
    kb_name: str = Field(
        default="",
        description="Knowledge base name",
    )
    embedding_model: str = Field(
        default="amazon.titan-embed-text-v2:0",
        description="Bedrock embedding model ID",
    )
    bedrock_kb_role_arn: str = Field(
        default="",
        description="IAM role assumed by the knowledge base",
    )
    kb_id: str = Field(
        default="",
        description="Existing knowledge base ID (manual upload flow)",
    )
    data_source_id: str = Field(
        default="",
        description="Existing data source ID (manual upload flow)",
    )

    # Local documents
    documents_dir: Path = Field(
        default=Path("documents"),
        description="Local documents root",
    )

    # Chat
    chat_model: str = Field(
        default="eu.amazon.nova-2-lite-v1:0",
        description="Bedrock model used by the chat endpoint",
    )
    chat_max_steps: int = Field(
        default=5,
        description="Maximum model/tool steps per chat request",
    )
    retrieval_top_k: int = Field(
        default=5,
        description="Passages returned by the similarity query",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    @property
    def embedding_model_arn(self) -> str:
        """Foundation model ARN for the embedding model."""
        return f"arn:aws:bedrock:{self.aws_region}::foundation-model/{self.embedding_model}"

    @property
    def documents_path(self) -> Path:
        """Absolute documents root."""
        return self.documents_dir.expanduser().resolve()

    def with_generated_names(self) -> "Settings":
        """Return a copy with timestamped names for unset setup resources."""
        stamp = int(time.time() * 1000)
        updates = {}
        if not self.s3_bucket_name:
            updates["s3_bucket_name"] = f"kb-documents-{stamp}"
        if not self.s3_vectors_bucket_name:
            updates["s3_vectors_bucket_name"] = f"kb-vectors-{stamp}"
        if not self.kb_name:
            updates["kb_name"] = f"my-knowledge-base-{stamp}"
        return self.model_copy(update=updates)

    def validate_for_setup(self) -> list[str]:
        """Validate configuration for the provisioning flow."""
        errors = []
        if not self.bedrock_kb_role_arn:
            errors.append("BEDROCK_KB_ROLE_ARN environment variable is required")
        return errors

    def validate_for_upload(self) -> list[str]:
        """Validate configuration for the manual upload flow."""
        missing = [
            name
            for name, value in (
                ("S3_BUCKET_NAME", self.s3_bucket_name),
                ("KB_ID", self.kb_id),
                ("DATA_SOURCE_ID", self.data_source_id),
            )
            if not value
        ]
        if missing:
            return [f"{', '.join(missing)} environment variable(s) required"]
        return []


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
