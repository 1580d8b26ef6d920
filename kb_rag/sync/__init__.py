"""Document synchronization: local tree to S3 by key presence."""

from kb_rag.sync.differ import LocalFile, document_key, partition, plan_uploads
from kb_rag.sync.uploader import DocumentUploader, UploadResult

__all__ = [
    "DocumentUploader",
    "LocalFile",
    "UploadResult",
    "document_key",
    "partition",
    "plan_uploads",
]
