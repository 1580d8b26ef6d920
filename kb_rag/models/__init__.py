"""Data models for KB RAG."""

from kb_rag.models.resources import (
    IngestionJob,
    ProvisionOutcome,
    ProvisionResult,
    ResourceKind,
    SetupSummary,
)

__all__ = [
    "IngestionJob",
    "ProvisionOutcome",
    "ProvisionResult",
    "ResourceKind",
    "SetupSummary",
]
