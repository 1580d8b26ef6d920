"""
Setup and upload pipelines.

Setup flow (kb-rag setup):
1. Create S3 bucket for documents
2. Create S3 Vectors bucket
3. Create vector index
4. Create Bedrock knowledge base
5. Wait for the knowledge base to become ACTIVE
6. Create the S3 data source
7. Upload local documents
8. Start the initial ingestion job

Upload flow (kb-rag upload): steps 7-8 against existing resources.
"""

import logging
import threading
from typing import Optional

from rich.console import Console

from kb_rag.config import Settings
from kb_rag.errors import ConfigurationError
from kb_rag.models.resources import IngestionJob, SetupSummary
from kb_rag.provisioning.provisioner import ResourceProvisioner
from kb_rag.services.bedrock import KnowledgeBaseService
from kb_rag.services.s3 import S3Service
from kb_rag.services.s3vectors import VectorStoreService
from kb_rag.sync.uploader import DocumentUploader, UploadResult

console = Console()
logger = logging.getLogger(__name__)


class Pipeline:
    """Orchestrates provisioning, document upload and ingestion."""

    def __init__(
        self,
        settings: Settings,
        s3: Optional[S3Service] = None,
        vectors: Optional[VectorStoreService] = None,
        knowledge_bases: Optional[KnowledgeBaseService] = None,
    ):
        """Initialize pipeline with shared services."""
        self.settings = settings
        self.s3 = s3 or S3Service(settings)
        self.vectors = vectors or VectorStoreService(settings)
        self.knowledge_bases = knowledge_bases or KnowledgeBaseService(settings)
        self.provisioner = ResourceProvisioner(
            settings,
            s3=self.s3,
            vectors=self.vectors,
            knowledge_bases=self.knowledge_bases,
        )
        self.uploader = DocumentUploader(settings, s3=self.s3)

    def start_ingestion(
        self,
        knowledge_base_id: str,
        data_source_id: str,
        description: str,
    ) -> IngestionJob:
        """Start an ingestion job (not polled to completion)."""
        with console.status("Starting ingestion job"):
            job = self.knowledge_bases.start_ingestion_job(
                knowledge_base_id, data_source_id, description
            )
        console.print(f"[green]✓[/green] Ingestion job started: [cyan]{job.job_id}[/cyan]")
        console.print(f"  Status: [dim]{job.status}[/dim]")
        return job

    def run_setup(
        self,
        cancel_event: Optional[threading.Event] = None,
        poll_interval: Optional[float] = None,
        poll_max_attempts: Optional[int] = None,
    ) -> SetupSummary:
        """
        Provision every resource, upload documents and start ingestion.

        Args:
            cancel_event: Cancellation token for the activation wait
            poll_interval: Override for the knowledge base poll interval
            poll_max_attempts: Override for the knowledge base poll budget

        Returns:
            SetupSummary with all resource identifiers

        Raises:
            ConfigurationError: required settings missing
            ProvisioningError: a resource could not be created
            PollError: the knowledge base did not become ACTIVE
        """
        errors = self.settings.validate_for_setup()
        if errors:
            raise ConfigurationError(errors)

        settings = self.settings
        provisioner = self.provisioner

        bucket_name = provisioner.create_documents_bucket(settings.s3_bucket_name).unwrap()
        vector_bucket_arn = provisioner.create_vector_bucket(
            settings.s3_vectors_bucket_name
        ).unwrap()
        index_arn = provisioner.create_vector_index(
            vector_bucket_arn, settings.s3_vectors_index_name
        ).unwrap()
        knowledge_base_id = provisioner.create_knowledge_base(
            vector_bucket_arn, index_arn
        ).unwrap()

        wait_kwargs = {"cancel_event": cancel_event}
        if poll_interval is not None:
            wait_kwargs["interval"] = poll_interval
        if poll_max_attempts is not None:
            wait_kwargs["max_attempts"] = poll_max_attempts
        provisioner.wait_for_knowledge_base(knowledge_base_id, **wait_kwargs)

        data_source_id = provisioner.create_data_source(knowledge_base_id, bucket_name).unwrap()

        self.uploader.upload(bucket_name)

        job = self.start_ingestion(
            knowledge_base_id,
            data_source_id,
            "Initial ingestion of documents from S3",
        )

        return SetupSummary(
            knowledge_base_id=knowledge_base_id,
            data_source_id=data_source_id,
            documents_bucket=bucket_name,
            vector_bucket_arn=vector_bucket_arn,
            index_arn=index_arn,
            role_arn=settings.bedrock_kb_role_arn,
            ingestion_job=job,
        )

    def run_upload(self) -> tuple[UploadResult, IngestionJob]:
        """
        Upload missing documents to an existing bucket and start ingestion.

        Raises:
            ConfigurationError: bucket, knowledge base or data source ID missing
        """
        errors = self.settings.validate_for_upload()
        if errors:
            raise ConfigurationError(errors)

        result = self.uploader.upload(self.settings.s3_bucket_name)
        job = self.start_ingestion(
            self.settings.kb_id,
            self.settings.data_source_id,
            "Manual ingestion of documents from S3",
        )
        return result, job
