"""Incremental document upload to the knowledge base source bucket.

Handles:
1. Ensuring the local documents directory exists
2. Scanning it recursively in a deterministic order
3. Listing keys already in the bucket (all pages)
4. Uploading only the files whose key is missing

Uploads are sequential and fail-fast: the first read or put error aborts
the remaining batch.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rich.console import Console

from kb_rag.config import Settings
from kb_rag.services.s3 import S3Service
from kb_rag.sync.differ import LocalFile, partition

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """Result of a document upload run."""

    total: int = 0
    uploaded: int = 0
    skipped: int = 0
    uploaded_keys: list[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return self.total == 0


class DocumentUploader:
    """Uploads local documents that are not yet present in the bucket."""

    def __init__(
        self,
        settings: Settings,
        s3: Optional[S3Service] = None,
        documents_dir: Optional[Path] = None,
    ):
        """Initialize uploader.

        Args:
            settings: Application settings
            s3: S3 service (created from settings if omitted)
            documents_dir: Documents root override (default: settings.documents_path)
        """
        self.settings = settings
        self.s3 = s3 or S3Service(settings)
        self.documents_dir = documents_dir or settings.documents_path

    def ensure_documents_dir(self) -> Path:
        """Create the documents root if it does not exist."""
        self.documents_dir.mkdir(parents=True, exist_ok=True)
        return self.documents_dir

    def scan_documents(self) -> list[LocalFile]:
        """Recursively list regular files under the documents root, sorted by key."""
        files = [
            LocalFile.from_path(path, self.documents_dir)
            for path in self.documents_dir.rglob("*")
            if path.is_file()
        ]
        return sorted(files, key=lambda f: f.key)

    def upload(self, bucket_name: str) -> UploadResult:
        """
        Upload missing documents to a bucket.

        Args:
            bucket_name: Target bucket

        Returns:
            UploadResult with uploaded and skipped counts
        """
        result = UploadResult()

        self.ensure_documents_dir()
        local_files = self.scan_documents()
        result.total = len(local_files)

        if not local_files:
            console.print(
                f"[blue]No files found in [cyan]{self.documents_dir}[/cyan] to upload.[/blue]"
            )
            return result

        existing_keys = self.s3.list_keys(bucket_name)
        to_upload, present = partition(local_files, existing_keys)
        result.skipped = len(present)
        logger.info(
            f"{len(to_upload)} of {len(local_files)} files missing from {bucket_name}"
        )

        with console.status(
            f"Uploading {len(to_upload)} files to {self.s3.get_s3_uri(bucket_name)}"
        ) as status:
            for i, local_file in enumerate(to_upload, 1):
                status.update(f"Uploading {i}/{len(to_upload)}: {local_file.key}")
                body = local_file.path.read_bytes()
                self.s3.put_object(bucket_name, local_file.key, body)
                result.uploaded += 1
                result.uploaded_keys.append(local_file.key)

        console.print(
            f"[green]✓[/green] Upload complete. "
            f"Uploaded: [cyan]{result.uploaded}[/cyan], "
            f"Skipped: [dim]{result.skipped}[/dim]"
        )
        return result
