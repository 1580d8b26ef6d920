"""Tests for resource provisioning and activation polling."""

import threading
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ParamValidationError

from kb_rag.errors import (
    PollCancelledError,
    PollTimeoutError,
    ProvisioningError,
    ResourceFailedError,
)
from kb_rag.models.resources import ProvisionOutcome, ProvisionResult, ResourceKind
from kb_rag.provisioning.poller import (
    PollState,
    classify_knowledge_base_status,
    poll_until_done,
)
from kb_rag.provisioning.provisioner import ResourceProvisioner, bucket_arn_for, index_arn_for
from kb_rag.services.bedrock import KnowledgeBaseService
from kb_rag.services.s3 import S3Service
from kb_rag.services.s3vectors import VectorStoreService

VECTOR_BUCKET_ARN = "arn:aws:s3vectors:us-east-1:123456789012:bucket/test-vectors-bucket"


# =============================================================================
# Poller Tests
# =============================================================================

class TestClassifyKnowledgeBaseStatus:
    """Tests for knowledge base status classification."""

    @pytest.mark.parametrize(
        "status,expected",
        [
            ("ACTIVE", PollState.SUCCEEDED),
            ("FAILED", PollState.FAILED),
            ("CREATING", PollState.PENDING),
            ("UPDATING", PollState.PENDING),
            (None, PollState.PENDING),
        ],
    )
    def test_classify(self, status, expected):
        assert classify_knowledge_base_status(status) is expected


class TestPollUntilDone:
    """Tests for poll_until_done."""

    def test_succeeds_on_third_check(self):
        check = MagicMock(side_effect=["CREATING", "CREATING", "ACTIVE"])

        result = poll_until_done(check, classify_knowledge_base_status, interval=0)

        assert result == "ACTIVE"
        assert check.call_count == 3

    def test_times_out_after_budget(self):
        """A status that never turns terminal exhausts exactly max_attempts checks."""
        check = MagicMock(return_value="CREATING")

        with pytest.raises(PollTimeoutError) as exc_info:
            poll_until_done(
                check,
                classify_knowledge_base_status,
                interval=0,
                max_attempts=30,
                describe="Knowledge Base KB1",
            )

        assert check.call_count == 30
        assert exc_info.value.last_status == "CREATING"
        assert str(exc_info.value).startswith("Timeout waiting for Knowledge Base KB1")

    def test_failed_status_stops_immediately(self):
        check = MagicMock(return_value="FAILED")

        with pytest.raises(ResourceFailedError) as exc_info:
            poll_until_done(check, classify_knowledge_base_status, interval=0)

        assert check.call_count == 1
        assert exc_info.value.status == "FAILED"

    def test_check_errors_are_transient(self):
        """An exception from the check consumes an attempt but does not abort."""
        check = MagicMock(side_effect=[RuntimeError("throttled"), "CREATING", "ACTIVE"])

        assert poll_until_done(check, classify_knowledge_base_status, interval=0) == "ACTIVE"
        assert check.call_count == 3

    def test_check_errors_count_against_budget(self):
        check = MagicMock(side_effect=RuntimeError("throttled"))

        with pytest.raises(PollTimeoutError):
            poll_until_done(check, classify_knowledge_base_status, interval=0, max_attempts=3)

        assert check.call_count == 3

    def test_cancelled_before_first_check(self):
        cancel = threading.Event()
        cancel.set()
        check = MagicMock(return_value="CREATING")

        with pytest.raises(PollCancelledError):
            poll_until_done(check, classify_knowledge_base_status, interval=0, cancel_event=cancel)

        check.assert_not_called()

    def test_cancelled_between_checks(self):
        cancel = threading.Event()

        def check():
            cancel.set()
            return "CREATING"

        with pytest.raises(PollCancelledError):
            poll_until_done(check, classify_knowledge_base_status, interval=0, cancel_event=cancel)

    def test_on_attempt_reports_progress(self):
        check = MagicMock(side_effect=["CREATING", "ACTIVE"])
        on_attempt = MagicMock()

        poll_until_done(check, classify_knowledge_base_status, interval=0, on_attempt=on_attempt)

        on_attempt.assert_called_once_with(1, "CREATING")


# =============================================================================
# Provision Result Tests
# =============================================================================

class TestProvisionResult:
    """Tests for ProvisionResult."""

    def test_unwrap_returns_identifier(self):
        result = ProvisionResult.already_exists(ResourceKind.DOCUMENTS_BUCKET, "b", "b")
        assert result.ok
        assert result.unwrap() == "b"

    def test_unwrap_fatal_raises(self):
        cause = RuntimeError("denied")
        result = ProvisionResult.fatal(ResourceKind.VECTOR_INDEX, "idx", cause)

        with pytest.raises(ProvisioningError) as exc_info:
            result.unwrap()

        assert exc_info.value.cause is cause
        assert "vector index 'idx'" in str(exc_info.value)


# =============================================================================
# Provisioner Tests
# =============================================================================

class TestResourceProvisioner:
    """Tests for ResourceProvisioner."""

    @pytest.fixture
    def s3(self):
        return MagicMock(spec=S3Service)

    @pytest.fixture
    def vectors(self):
        return MagicMock(spec=VectorStoreService)

    @pytest.fixture
    def knowledge_bases(self):
        return MagicMock(spec=KnowledgeBaseService)

    @pytest.fixture
    def provisioner(self, mock_settings, s3, vectors, knowledge_bases):
        return ResourceProvisioner(
            mock_settings, s3=s3, vectors=vectors, knowledge_bases=knowledge_bases
        )

    def test_documents_bucket_created(self, provisioner, s3):
        result = provisioner.create_documents_bucket("docs")

        assert result.outcome is ProvisionOutcome.CREATED
        assert result.identifier == "docs"
        s3.create_bucket.assert_called_once_with("docs")
        s3.wait_until_exists.assert_called_once_with("docs")

    def test_documents_bucket_already_owned(self, provisioner, s3, make_client_error):
        """An owned bucket is adopted under the requested name."""
        s3.create_bucket.side_effect = make_client_error("BucketAlreadyOwnedByYou", "CreateBucket")

        result = provisioner.create_documents_bucket("docs")

        assert result.outcome is ProvisionOutcome.ALREADY_EXISTS
        assert result.unwrap() == "docs"
        s3.wait_until_exists.assert_not_called()

    def test_documents_bucket_other_error_is_fatal(self, provisioner, s3, make_client_error):
        s3.create_bucket.side_effect = make_client_error("AccessDenied", "CreateBucket")

        result = provisioner.create_documents_bucket("docs")

        assert result.outcome is ProvisionOutcome.FATAL
        with pytest.raises(ProvisioningError):
            result.unwrap()

    def test_documents_bucket_wait_timeout_is_fatal(self, provisioner, s3):
        s3.wait_until_exists.side_effect = RuntimeError("Waiter BucketExists failed")
        assert provisioner.create_documents_bucket("docs").outcome is ProvisionOutcome.FATAL

    def test_vector_bucket_created(self, provisioner, vectors):
        vectors.create_vector_bucket.return_value = VECTOR_BUCKET_ARN

        result = provisioner.create_vector_bucket("vb")

        assert result.outcome is ProvisionOutcome.CREATED
        assert result.identifier == VECTOR_BUCKET_ARN
        vectors.get_vector_bucket_arn.assert_not_called()

    def test_vector_bucket_created_without_arn_looks_it_up(self, provisioner, vectors):
        vectors.create_vector_bucket.return_value = None
        vectors.get_vector_bucket_arn.return_value = VECTOR_BUCKET_ARN

        assert provisioner.create_vector_bucket("vb").identifier == VECTOR_BUCKET_ARN

    @pytest.mark.parametrize("code", ["ConflictException", "VectorBucketAlreadyExists"])
    def test_vector_bucket_already_exists(self, provisioner, vectors, code, make_client_error):
        vectors.create_vector_bucket.side_effect = make_client_error(code, "CreateVectorBucket")
        vectors.get_vector_bucket_arn.return_value = VECTOR_BUCKET_ARN

        result = provisioner.create_vector_bucket("vb")

        assert result.outcome is ProvisionOutcome.ALREADY_EXISTS
        assert result.identifier == VECTOR_BUCKET_ARN

    def test_vector_bucket_other_error_is_fatal(self, provisioner, vectors, make_client_error):
        vectors.create_vector_bucket.side_effect = make_client_error(
            "ValidationException", "CreateVectorBucket"
        )
        assert provisioner.create_vector_bucket("vb").outcome is ProvisionOutcome.FATAL

    def test_vector_index_created(self, provisioner, vectors):
        vectors.create_index.return_value = None

        result = provisioner.create_vector_index(VECTOR_BUCKET_ARN, "idx")

        assert result.outcome is ProvisionOutcome.CREATED
        assert result.identifier == f"{VECTOR_BUCKET_ARN}/index/idx"
        call_kwargs = vectors.create_index.call_args.kwargs
        assert call_kwargs["dimension"] == 1024
        assert call_kwargs["distance_metric"] == "cosine"
        assert "AMAZON_BEDROCK_TEXT" in call_kwargs["non_filterable_keys"]

    @pytest.mark.parametrize("code", ["ConflictException", "IndexAlreadyExists"])
    def test_vector_index_already_exists(self, provisioner, vectors, code, make_client_error):
        """An existing index is adopted with an ARN derived from the bucket ARN."""
        vectors.create_index.side_effect = make_client_error(code, "CreateIndex")

        result = provisioner.create_vector_index(VECTOR_BUCKET_ARN, "idx")

        assert result.outcome is ProvisionOutcome.ALREADY_EXISTS
        assert result.identifier == index_arn_for(VECTOR_BUCKET_ARN, "idx")
        assert result.identifier == f"{VECTOR_BUCKET_ARN}/index/idx"

    def test_vector_index_other_error_is_fatal(self, provisioner, vectors, make_client_error):
        vectors.create_index.side_effect = make_client_error("AccessDeniedException", "CreateIndex")

        result = provisioner.create_vector_index(VECTOR_BUCKET_ARN, "idx")

        assert result.outcome is ProvisionOutcome.FATAL
        assert result.identifier is None

    def test_knowledge_base_request(self, provisioner, mock_settings):
        request = provisioner.knowledge_base_request(VECTOR_BUCKET_ARN, "arn:index")

        assert request["name"] == "test-kb"
        assert request["roleArn"] == mock_settings.bedrock_kb_role_arn
        vector_config = request["knowledgeBaseConfiguration"]["vectorKnowledgeBaseConfiguration"]
        assert vector_config["embeddingModelArn"] == (
            "arn:aws:bedrock:us-east-1::foundation-model/amazon.titan-embed-text-v2:0"
        )
        assert (
            vector_config["embeddingModelConfiguration"]["bedrockEmbeddingModelConfiguration"]["dimensions"]
            == 1024
        )
        assert request["storageConfiguration"] == {
            "type": "S3_VECTORS",
            "s3VectorsConfiguration": {
                "vectorBucketArn": VECTOR_BUCKET_ARN,
                "indexArn": "arn:index",
            },
        }

    def test_create_knowledge_base(self, provisioner, knowledge_bases):
        knowledge_bases.create_knowledge_base.return_value = {
            "knowledgeBaseId": "KB1",
            "status": "CREATING",
        }

        result = provisioner.create_knowledge_base(VECTOR_BUCKET_ARN, "arn:index")

        assert result.unwrap() == "KB1"

    def test_create_knowledge_base_error_is_fatal(self, provisioner, knowledge_bases, make_client_error):
        knowledge_bases.create_knowledge_base.side_effect = make_client_error(
            "ValidationException", "CreateKnowledgeBase"
        )
        assert provisioner.create_knowledge_base(VECTOR_BUCKET_ARN, "arn:index").outcome is (
            ProvisionOutcome.FATAL
        )

    def test_data_source_request(self, provisioner):
        request = provisioner.data_source_request("KB1", "docs")

        assert request["knowledgeBaseId"] == "KB1"
        assert request["name"] == "docs-datasource"
        assert request["dataSourceConfiguration"]["s3Configuration"]["bucketArn"] == "arn:aws:s3:::docs"
        chunking = request["vectorIngestionConfiguration"]["chunkingConfiguration"]
        assert chunking["chunkingStrategy"] == "FIXED_SIZE"
        assert chunking["fixedSizeChunkingConfiguration"] == {
            "maxTokens": 512,
            "overlapPercentage": 20,
        }

    def test_create_data_source(self, provisioner, knowledge_bases):
        knowledge_bases.create_data_source.return_value = {"dataSourceId": "DS1"}
        assert provisioner.create_data_source("KB1", "docs").unwrap() == "DS1"

    def test_wait_for_knowledge_base(self, provisioner, knowledge_bases):
        knowledge_bases.get_status.side_effect = ["CREATING", "ACTIVE"]

        assert provisioner.wait_for_knowledge_base("KB1", interval=0) == "ACTIVE"
        assert knowledge_bases.get_status.call_count == 2

    def test_wait_for_failed_knowledge_base(self, provisioner, knowledge_bases):
        knowledge_bases.get_status.return_value = "FAILED"

        with pytest.raises(ResourceFailedError):
            provisioner.wait_for_knowledge_base("KB1", interval=0)

    def test_bucket_arn_for(self):
        assert bucket_arn_for("docs") == "arn:aws:s3:::docs"

    @pytest.mark.parametrize(
        "service,method,call",
        [
            ("vectors", "create_vector_bucket", lambda p: p.create_vector_bucket("vb")),
            ("vectors", "create_index", lambda p: p.create_vector_index(VECTOR_BUCKET_ARN, "idx")),
            (
                "knowledge_bases",
                "create_knowledge_base",
                lambda p: p.create_knowledge_base(VECTOR_BUCKET_ARN, "arn:index"),
            ),
            ("knowledge_bases", "create_data_source", lambda p: p.create_data_source("KB1", "docs")),
        ],
    )
    def test_sdk_errors_are_fatal_results(self, provisioner, vectors, knowledge_bases, service, method, call):
        """Client-side SDK failures become FATAL results rather than escaping."""
        mocks = {"vectors": vectors, "knowledge_bases": knowledge_bases}
        getattr(mocks[service], method).side_effect = ParamValidationError(report="bad parameter")

        result = call(provisioner)

        assert result.outcome is ProvisionOutcome.FATAL
        assert isinstance(result.error, ParamValidationError)
        with pytest.raises(ProvisioningError):
            result.unwrap()

    def test_vector_bucket_lookup_sdk_error_is_fatal(self, provisioner, vectors, make_client_error):
        vectors.create_vector_bucket.side_effect = make_client_error("ConflictException", "CreateVectorBucket")
        vectors.get_vector_bucket_arn.side_effect = ParamValidationError(report="bad parameter")

        assert provisioner.create_vector_bucket("vb").outcome is ProvisionOutcome.FATAL
