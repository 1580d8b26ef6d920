"""Tests for CLI commands."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError
from typer.testing import CliRunner

from kb_rag.chat.retriever import Passage, RetrievalResult, RetrievalStatus
from kb_rag.cli import app
from kb_rag.config import Settings
from kb_rag.errors import PollTimeoutError, ProvisioningError, ResourceFailedError

runner = CliRunner()


class TestSetupCommand:
    """Tests for kb-rag setup."""

    def test_missing_role_exits_with_error(self):
        with patch("kb_rag.cli.get_settings", return_value=Settings(_env_file=None)), patch(
            "kb_rag.cli.Pipeline"
        ) as pipeline:
            result = runner.invoke(app, ["setup"])

        assert result.exit_code == 1
        assert "BEDROCK_KB_ROLE_ARN" in result.output
        pipeline.assert_not_called()

    def test_poll_timeout_exits_with_error(self, mock_settings):
        with patch("kb_rag.cli.get_settings", return_value=mock_settings), patch(
            "kb_rag.cli.Pipeline"
        ) as pipeline:
            pipeline.return_value.run_setup.side_effect = PollTimeoutError("Knowledge Base KB1", 30)
            result = runner.invoke(app, ["setup"])

        assert result.exit_code == 1
        assert "Timeout waiting for" in result.output

    def test_failed_status_is_reported_distinctly(self, mock_settings):
        """An explicit FAILED status is reported differently from a timeout."""
        with patch("kb_rag.cli.get_settings", return_value=mock_settings), patch(
            "kb_rag.cli.Pipeline"
        ) as pipeline:
            pipeline.return_value.run_setup.side_effect = ResourceFailedError("Knowledge Base KB1", "FAILED")
            result = runner.invoke(app, ["setup"])

        assert result.exit_code == 1
        assert "Setup failed" in result.output
        assert "creation failed (status: FAILED)" in result.output
        assert "Timeout" not in result.output

    def test_provisioning_error_exits_with_error(self, mock_settings):
        with patch("kb_rag.cli.get_settings", return_value=mock_settings), patch(
            "kb_rag.cli.Pipeline"
        ) as pipeline:
            pipeline.return_value.run_setup.side_effect = ProvisioningError(
                "vector index", "test-index", RuntimeError("AccessDenied")
            )
            result = runner.invoke(app, ["setup"])

        assert result.exit_code == 1
        assert "Setup failed" in result.output
        assert "Failed to create vector index" in result.output


class TestUploadCommand:
    """Tests for kb-rag upload."""

    def test_missing_ids_exit_with_error(self):
        settings = Settings(_env_file=None, s3_bucket_name="docs")
        with patch("kb_rag.cli.get_settings", return_value=settings):
            result = runner.invoke(app, ["upload"])

        assert result.exit_code == 1
        assert "KB_ID" in result.output

    def test_upload_success(self, mock_settings):
        with patch("kb_rag.cli.get_settings", return_value=mock_settings), patch(
            "kb_rag.cli.Pipeline"
        ) as pipeline:
            result = runner.invoke(app, ["upload"])

        assert result.exit_code == 0
        pipeline.return_value.run_upload.assert_called_once()

    @pytest.mark.parametrize(
        "error",
        [
            OSError("Permission denied"),
            ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"),
        ],
    )
    def test_upload_error_exits_with_error(self, mock_settings, error):
        """Read and network errors abort the upload with exit code 1."""
        with patch("kb_rag.cli.get_settings", return_value=mock_settings), patch(
            "kb_rag.cli.Pipeline"
        ) as pipeline:
            pipeline.return_value.run_upload.side_effect = error
            result = runner.invoke(app, ["upload"])

        assert result.exit_code == 1
        assert "Upload failed" in result.output


class TestStatusCommand:
    """Tests for kb-rag status."""

    def test_status(self, mock_settings):
        service = MagicMock()
        service.get_status.return_value = "ACTIVE"
        with patch("kb_rag.cli.get_settings", return_value=mock_settings), patch(
            "kb_rag.cli.KnowledgeBaseService", return_value=service
        ):
            result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "ACTIVE" in result.output
        service.get_status.assert_called_once_with("KB123")


class TestRetrieveCommand:
    """Tests for kb-rag retrieve."""

    def test_prints_passages(self, mock_settings):
        retriever = MagicMock()
        retriever.retrieve.return_value = RetrievalResult(
            question="q",
            status=RetrievalStatus.OK,
            passages=[Passage(key="doc-1", text="Passage text", distance=0.12)],
        )
        with patch("kb_rag.cli.get_settings", return_value=mock_settings), patch(
            "kb_rag.cli.ContextRetriever", return_value=retriever
        ):
            result = runner.invoke(app, ["retrieve", "q"])

        assert result.exit_code == 0
        assert "Passage text" in result.output

    def test_not_configured_exits_with_error(self, mock_settings):
        retriever = MagicMock()
        retriever.retrieve.return_value = RetrievalResult(
            question="q", status=RetrievalStatus.NOT_CONFIGURED
        )
        with patch("kb_rag.cli.get_settings", return_value=mock_settings), patch(
            "kb_rag.cli.ContextRetriever", return_value=retriever
        ):
            result = runner.invoke(app, ["retrieve", "q"])

        assert result.exit_code == 1
        assert "S3_VECTORS_INDEX_ARN" in result.output
