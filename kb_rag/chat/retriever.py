"""Knowledge base retrieval for the chat tool.

Embeds the question with Bedrock, runs a top-k similarity query against the
S3 Vectors index and joins the passages' text metadata. Retrieval never
raises: an unconfigured index and a failed query both yield empty context,
but carry distinct statuses and log lines.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from kb_rag.config import Settings
from kb_rag.provisioning.provisioner import TEXT_METADATA_KEY
from kb_rag.services.bedrock import EmbeddingService
from kb_rag.services.s3vectors import VectorStoreService

logger = logging.getLogger(__name__)

PASSAGE_SEPARATOR = "\n\n---\n\n"


class RetrievalStatus(str, Enum):
    """Outcome of a retrieval call."""

    OK = "OK"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    FAILED = "FAILED"


@dataclass
class Passage:
    """A passage returned by the similarity query."""

    key: str
    text: str
    distance: Optional[float] = None


@dataclass
class RetrievalResult:
    """Result of a retrieval operation."""

    question: str
    status: RetrievalStatus
    passages: list[Passage] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def text(self) -> str:
        """Tool output: passage texts joined by the separator, or empty."""
        if self.status is not RetrievalStatus.OK:
            return ""
        return PASSAGE_SEPARATOR.join(p.text for p in self.passages)


def _passage_from_vector(vector: dict[str, Any]) -> Passage:
    # Metadata is arbitrary JSON written at ingestion time
    metadata = vector.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    text = metadata.get(TEXT_METADATA_KEY)
    return Passage(
        key=str(vector.get("key", "")),
        text="" if text is None else str(text),
        distance=vector.get("distance"),
    )


class ContextRetriever:
    """Retrieves knowledge base passages for a question."""

    def __init__(
        self,
        settings: Settings,
        embeddings: Optional[EmbeddingService] = None,
        vectors: Optional[VectorStoreService] = None,
    ):
        self.settings = settings
        self.embeddings = embeddings or EmbeddingService(settings)
        self.vectors = vectors or VectorStoreService(settings)

    def retrieve(self, question: str) -> RetrievalResult:
        """Run retrieval for a question, capturing failures in the result."""
        index_arn = self.settings.s3_vectors_index_arn
        if not index_arn:
            logger.warning("S3 Vectors index ARN not configured, skipping retrieval")
            return RetrievalResult(question=question, status=RetrievalStatus.NOT_CONFIGURED)

        try:
            query_vector = self.embeddings.embed(question)
            vectors = self.vectors.query(
                index_arn,
                query_vector,
                top_k=self.settings.retrieval_top_k,
            )
            passages = [_passage_from_vector(v) for v in vectors]
        except Exception as e:
            logger.error(f"Error retrieving context from S3 Vectors: {e}")
            return RetrievalResult(
                question=question,
                status=RetrievalStatus.FAILED,
                error=str(e),
            )

        logger.info(f"Retrieved {len(passages)} passages for question ({len(question)} chars)")
        return RetrievalResult(question=question, status=RetrievalStatus.OK, passages=passages)

    def find_relevant_content(self, question: str) -> str:
        """Tool entry point: joined passage text, empty when nothing is available."""
        return self.retrieve(question).text
