"""
Provisioned resource models.

Each provisioning call returns a ProvisionResult tagged with its outcome:
CREATED, ALREADY_EXISTS (adopted) or FATAL. Callers decide what to do with
a FATAL result instead of inspecting exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from kb_rag.errors import ProvisioningError


class ResourceKind(str, Enum):
    """Kinds of cloud resources managed by the provisioner."""

    DOCUMENTS_BUCKET = "S3 bucket"
    VECTOR_BUCKET = "S3 Vectors bucket"
    VECTOR_INDEX = "vector index"
    KNOWLEDGE_BASE = "knowledge base"
    DATA_SOURCE = "data source"


class ProvisionOutcome(str, Enum):
    """Outcome of a create-or-adopt call."""

    CREATED = "CREATED"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    FATAL = "FATAL"


@dataclass
class ProvisionResult:
    """Result of provisioning a single resource."""

    kind: ResourceKind
    name: str
    outcome: ProvisionOutcome
    identifier: Optional[str] = None
    error: Optional[BaseException] = None

    @classmethod
    def created(cls, kind: ResourceKind, name: str, identifier: str) -> "ProvisionResult":
        return cls(kind=kind, name=name, outcome=ProvisionOutcome.CREATED, identifier=identifier)

    @classmethod
    def already_exists(
        cls, kind: ResourceKind, name: str, identifier: str
    ) -> "ProvisionResult":
        return cls(
            kind=kind,
            name=name,
            outcome=ProvisionOutcome.ALREADY_EXISTS,
            identifier=identifier,
        )

    @classmethod
    def fatal(cls, kind: ResourceKind, name: str, error: BaseException) -> "ProvisionResult":
        return cls(kind=kind, name=name, outcome=ProvisionOutcome.FATAL, error=error)

    @property
    def ok(self) -> bool:
        """True for CREATED and ALREADY_EXISTS."""
        return self.outcome is not ProvisionOutcome.FATAL

    def unwrap(self) -> str:
        """Return the identifier, raising ProvisioningError for FATAL results."""
        if not self.ok or self.identifier is None:
            raise ProvisioningError(self.kind.value, self.name, self.error)
        return self.identifier


@dataclass
class IngestionJob:
    """A started ingestion job. Not polled to completion."""

    job_id: str
    status: str
    knowledge_base_id: str = ""
    data_source_id: str = ""


@dataclass
class SetupSummary:
    """Identifiers of everything created by the setup flow."""

    knowledge_base_id: str
    data_source_id: str
    documents_bucket: str
    vector_bucket_arn: str
    index_arn: str
    role_arn: str
    ingestion_job: Optional[IngestionJob] = None

    def to_rows(self) -> list[tuple[str, str]]:
        """Rows for the summary table."""
        rows = [
            ("Knowledge Base ID", self.knowledge_base_id),
            ("Data Source ID", self.data_source_id),
            ("Documents Bucket", self.documents_bucket),
            ("Vectors Bucket ARN", self.vector_bucket_arn),
            ("Index ARN", self.index_arn),
            ("IAM Role ARN", self.role_arn),
        ]
        if self.ingestion_job:
            rows.append(("Ingestion Job", self.ingestion_job.job_id))
        return rows
