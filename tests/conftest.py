"""Pytest fixtures for KB RAG tests."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from kb_rag.config import Settings


@pytest.fixture
def mock_settings(tmp_path):
    """Provide test settings."""
    return Settings(
        _env_file=None,
        aws_region="us-east-1",
        s3_bucket_name="test-docs-bucket",
        s3_vectors_bucket_name="test-vectors-bucket",
        s3_vectors_index_name="test-index",
        s3_vectors_index_arn="arn:aws:s3vectors:us-east-1:123456789012:bucket/test-vectors-bucket/index/test-index",
        kb_name="test-kb",
        bedrock_kb_role_arn="arn:aws:iam::123456789012:role/test-kb-role",
        kb_id="KB123",
        data_source_id="DS456",
        documents_dir=tmp_path / "documents",
    )


@pytest.fixture
def documents_dir(mock_settings):
    """Create the documents root with a small tree."""
    root = mock_settings.documents_dir
    (root / "guides").mkdir(parents=True)
    (root / "readme.txt").write_text("top level")
    (root / "guides" / "setup.md").write_text("# Setup")
    (root / "guides" / "usage.md").write_text("# Usage")
    return root


@pytest.fixture
def mock_s3_client():
    """Mock S3 client."""
    with patch("kb_rag.services.s3.boto3.client") as mock:
        client = MagicMock()
        mock.return_value = client
        yield client


@pytest.fixture
def mock_s3vectors_client():
    """Mock S3 Vectors client."""
    with patch("kb_rag.services.s3vectors.boto3.client") as mock:
        client = MagicMock()
        mock.return_value = client
        yield client


@pytest.fixture
def mock_bedrock_client():
    """Mock Bedrock Agent / Runtime client."""
    with patch("kb_rag.services.bedrock.boto3.client") as mock:
        client = MagicMock()
        mock.return_value = client
        yield client


@pytest.fixture
def make_client_error():
    """Factory for botocore ClientErrors with a given error code."""

    def _make(code: str, operation: str = "Operation") -> ClientError:
        return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)

    return _make
