"""
Resource provisioner for the knowledge base stack.

Creates, in order: documents bucket, S3 Vectors bucket, vector index,
knowledge base, data source. Creation calls return a ProvisionResult:
an "already exists" error from the service adopts the existing resource,
any other error yields a FATAL result.
"""

import logging
import threading
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console

from kb_rag.config import Settings
from kb_rag.models.resources import ProvisionResult, ResourceKind
from kb_rag.provisioning.poller import (
    DEFAULT_INTERVAL_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    classify_knowledge_base_status,
    poll_until_done,
)
from kb_rag.services.bedrock import KnowledgeBaseService
from kb_rag.services.s3 import S3Service
from kb_rag.services.s3vectors import VectorStoreService

console = Console()
logger = logging.getLogger(__name__)

# Titan Embed Text v2. Index and knowledge base must change together.
EMBEDDING_DIMENSION = 1024
DISTANCE_METRIC = "cosine"
VECTOR_DATA_TYPE = "float32"

# Payload-only metadata written by Bedrock ingestion
TEXT_METADATA_KEY = "AMAZON_BEDROCK_TEXT"
NON_FILTERABLE_METADATA_KEYS = [TEXT_METADATA_KEY, "AMAZON_BEDROCK_METADATA"]

# Fixed-size chunking policy for the data source
CHUNK_MAX_TOKENS = 512
CHUNK_OVERLAP_PERCENTAGE = 20

# Error codes that mean the resource is already there
BUCKET_EXISTS_CODES = {"BucketAlreadyOwnedByYou"}
VECTOR_BUCKET_EXISTS_CODES = {"ConflictException", "VectorBucketAlreadyExists"}
INDEX_EXISTS_CODES = {"ConflictException", "IndexAlreadyExists"}


def error_code(error: ClientError) -> str:
    """Extract the service error code from a botocore ClientError."""
    return error.response.get("Error", {}).get("Code", "")


def bucket_arn_for(bucket_name: str) -> str:
    """ARN of a general purpose S3 bucket."""
    return f"arn:aws:s3:::{bucket_name}"


def index_arn_for(vector_bucket_arn: str, index_name: str) -> str:
    """Index ARN derived from its parent vector bucket ARN."""
    return f"{vector_bucket_arn}/index/{index_name}"


class ResourceProvisioner:
    """Create-or-adopt provisioning of the knowledge base resources."""

    def __init__(
        self,
        settings: Settings,
        s3: Optional[S3Service] = None,
        vectors: Optional[VectorStoreService] = None,
        knowledge_bases: Optional[KnowledgeBaseService] = None,
    ):
        """Initialize provisioner.

        Args:
            settings: Application settings (names already resolved)
            s3: S3 service
            vectors: S3 Vectors service
            knowledge_bases: Bedrock knowledge base service
        """
        self.settings = settings
        self.s3 = s3 or S3Service(settings)
        self.vectors = vectors or VectorStoreService(settings)
        self.knowledge_bases = knowledge_bases or KnowledgeBaseService(settings)

    def create_documents_bucket(self, bucket_name: str) -> ProvisionResult:
        """Create the documents bucket and wait until it is reachable."""
        kind = ResourceKind.DOCUMENTS_BUCKET
        try:
            with console.status(f"Creating S3 bucket for documents: {bucket_name}"):
                self.s3.create_bucket(bucket_name)
                self.s3.wait_until_exists(bucket_name)
        except ClientError as e:
            if error_code(e) in BUCKET_EXISTS_CODES:
                console.print(f"[green]✓[/green] S3 bucket already exists: [cyan]{bucket_name}[/cyan]")
                return ProvisionResult.already_exists(kind, bucket_name, bucket_name)
            console.print("[red]✗ Failed to create S3 bucket[/red]")
            return ProvisionResult.fatal(kind, bucket_name, e)
        except Exception as e:
            console.print("[red]✗ Failed to create S3 bucket[/red]")
            return ProvisionResult.fatal(kind, bucket_name, e)

        console.print(f"[green]✓[/green] S3 bucket ready: [cyan]{bucket_name}[/cyan]")
        return ProvisionResult.created(kind, bucket_name, bucket_name)

    def create_vector_bucket(self, bucket_name: str) -> ProvisionResult:
        """Create the S3 Vectors bucket, adopting an existing one by ARN lookup."""
        kind = ResourceKind.VECTOR_BUCKET
        try:
            with console.status(f"Creating S3 Vectors bucket: {bucket_name}"):
                arn = self.vectors.create_vector_bucket(bucket_name)
                if not arn:
                    arn = self.vectors.get_vector_bucket_arn(bucket_name)
        except ClientError as e:
            if error_code(e) not in VECTOR_BUCKET_EXISTS_CODES:
                console.print("[red]✗ Failed to create S3 Vectors bucket[/red]")
                return ProvisionResult.fatal(kind, bucket_name, e)
            try:
                arn = self.vectors.get_vector_bucket_arn(bucket_name)
            except (ClientError, BotoCoreError) as lookup_error:
                return ProvisionResult.fatal(kind, bucket_name, lookup_error)
            console.print(
                f"[green]✓[/green] S3 Vectors bucket already exists: [cyan]{bucket_name}[/cyan]"
            )
            console.print(f"  ARN: [dim]{arn}[/dim]")
            return ProvisionResult.already_exists(kind, bucket_name, arn)
        except BotoCoreError as e:
            console.print("[red]✗ Failed to create S3 Vectors bucket[/red]")
            return ProvisionResult.fatal(kind, bucket_name, e)

        console.print(f"[green]✓[/green] S3 Vectors bucket created: [cyan]{bucket_name}[/cyan]")
        console.print(f"  ARN: [dim]{arn}[/dim]")
        return ProvisionResult.created(kind, bucket_name, arn)

    def create_vector_index(self, vector_bucket_arn: str, index_name: str) -> ProvisionResult:
        """
        Create the vector index.

        The create call does not return the ARN on conflict, so an existing
        index is adopted with an ARN derived from the bucket ARN.
        """
        kind = ResourceKind.VECTOR_INDEX
        try:
            with console.status(f"Creating vector index: {index_name}"):
                arn = self.vectors.create_index(
                    vector_bucket_arn,
                    index_name,
                    dimension=EMBEDDING_DIMENSION,
                    distance_metric=DISTANCE_METRIC,
                    non_filterable_keys=NON_FILTERABLE_METADATA_KEYS,
                    data_type=VECTOR_DATA_TYPE,
                )
        except ClientError as e:
            if error_code(e) in INDEX_EXISTS_CODES:
                arn = index_arn_for(vector_bucket_arn, index_name)
                console.print(f"[green]✓[/green] Vector index already exists: [cyan]{index_name}[/cyan]")
                console.print(f"  ARN: [dim]{arn}[/dim]")
                return ProvisionResult.already_exists(kind, index_name, arn)
            console.print("[red]✗ Failed to create vector index[/red]")
            return ProvisionResult.fatal(kind, index_name, e)
        except BotoCoreError as e:
            console.print("[red]✗ Failed to create vector index[/red]")
            return ProvisionResult.fatal(kind, index_name, e)

        arn = arn or index_arn_for(vector_bucket_arn, index_name)
        console.print(f"[green]✓[/green] Vector index created: [cyan]{index_name}[/cyan]")
        console.print(
            f"  Dimensions: [dim]{EMBEDDING_DIMENSION}[/dim] | "
            f"Similarity: [dim]{DISTANCE_METRIC.upper()}[/dim]"
        )
        console.print(f"  ARN: [dim]{arn}[/dim]")
        return ProvisionResult.created(kind, index_name, arn)

    def knowledge_base_request(self, vector_bucket_arn: str, index_arn: str) -> dict:
        """Request body for create_knowledge_base."""
        return {
            "name": self.settings.kb_name,
            "description": "Knowledge base using S3 Vectors for embeddings storage",
            "roleArn": self.settings.bedrock_kb_role_arn,
            "knowledgeBaseConfiguration": {
                "type": "VECTOR",
                "vectorKnowledgeBaseConfiguration": {
                    "embeddingModelArn": self.settings.embedding_model_arn,
                    "embeddingModelConfiguration": {
                        "bedrockEmbeddingModelConfiguration": {
                            "dimensions": EMBEDDING_DIMENSION,
                        }
                    },
                },
            },
            "storageConfiguration": {
                "type": "S3_VECTORS",
                "s3VectorsConfiguration": {
                    "vectorBucketArn": vector_bucket_arn,
                    "indexArn": index_arn,
                },
            },
        }

    def create_knowledge_base(self, vector_bucket_arn: str, index_arn: str) -> ProvisionResult:
        """Create the Bedrock knowledge base."""
        kind = ResourceKind.KNOWLEDGE_BASE
        name = self.settings.kb_name
        console.print(f"\n[bold]Creating Bedrock Knowledge Base:[/bold] {name}")
        try:
            kb = self.knowledge_bases.create_knowledge_base(
                **self.knowledge_base_request(vector_bucket_arn, index_arn)
            )
        except (ClientError, BotoCoreError) as e:
            console.print(f"[red]✗ Failed to create knowledge base: {e}[/red]")
            return ProvisionResult.fatal(kind, name, e)

        kb_id = kb["knowledgeBaseId"]
        console.print(f"[green]✓[/green] Knowledge Base created: {kb_id}")
        console.print(f"  Name: {kb.get('name', name)}")
        console.print(f"  ARN: {kb.get('knowledgeBaseArn', '')}")
        console.print(f"  Status: {kb.get('status', 'UNKNOWN')}")
        return ProvisionResult.created(kind, name, kb_id)

    def data_source_request(self, knowledge_base_id: str, bucket_name: str) -> dict:
        """Request body for create_data_source."""
        return {
            "knowledgeBaseId": knowledge_base_id,
            "name": f"{bucket_name}-datasource",
            "description": "S3 data source for document ingestion",
            "dataSourceConfiguration": {
                "type": "S3",
                "s3Configuration": {
                    "bucketArn": bucket_arn_for(bucket_name),
                },
            },
            "vectorIngestionConfiguration": {
                "chunkingConfiguration": {
                    "chunkingStrategy": "FIXED_SIZE",
                    "fixedSizeChunkingConfiguration": {
                        "maxTokens": CHUNK_MAX_TOKENS,
                        "overlapPercentage": CHUNK_OVERLAP_PERCENTAGE,
                    },
                }
            },
        }

    def create_data_source(self, knowledge_base_id: str, bucket_name: str) -> ProvisionResult:
        """Create the S3 data source feeding the knowledge base."""
        kind = ResourceKind.DATA_SOURCE
        name = f"{bucket_name}-datasource"
        console.print("\n[bold]Creating Data Source for S3 bucket[/bold]")
        try:
            data_source = self.knowledge_bases.create_data_source(
                **self.data_source_request(knowledge_base_id, bucket_name)
            )
        except (ClientError, BotoCoreError) as e:
            console.print(f"[red]✗ Failed to create data source: {e}[/red]")
            return ProvisionResult.fatal(kind, name, e)

        data_source_id = data_source["dataSourceId"]
        console.print(f"[green]✓[/green] Data Source created: {data_source_id}")
        console.print(f"  Name: {data_source.get('name', name)}")
        console.print(f"  Status: {data_source.get('status', 'UNKNOWN')}")
        return ProvisionResult.created(kind, name, data_source_id)

    def wait_for_knowledge_base(
        self,
        knowledge_base_id: str,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Block until the knowledge base is ACTIVE.

        Raises:
            ResourceFailedError: knowledge base reported FAILED
            PollTimeoutError: not ACTIVE within max_attempts
        """
        with console.status("Waiting for Knowledge Base to become active...") as status:

            def on_attempt(attempt: int, state: Optional[str]) -> None:
                status.update(f"Status: {state or 'UNKNOWN'} ({attempt}/{max_attempts})")

            final = poll_until_done(
                lambda: self.knowledge_bases.get_status(knowledge_base_id),
                classify_knowledge_base_status,
                interval=interval,
                max_attempts=max_attempts,
                cancel_event=cancel_event,
                describe=f"Knowledge Base {knowledge_base_id}",
                on_attempt=on_attempt,
            )
        console.print(f"[green]✓[/green] Knowledge Base is [green]{final}[/green]")
        return final
