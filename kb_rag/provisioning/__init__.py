"""Provisioning of the S3 / S3 Vectors / Bedrock knowledge base stack."""

from kb_rag.provisioning.poller import PollState, classify_knowledge_base_status, poll_until_done
from kb_rag.provisioning.provisioner import ResourceProvisioner, index_arn_for

__all__ = [
    "PollState",
    "ResourceProvisioner",
    "classify_knowledge_base_status",
    "index_arn_for",
    "poll_until_done",
]
