"""Retrieval-augmented chat: message conversion, retrieval tool and agent loop."""

from kb_rag.chat.agent import ChatAgent
from kb_rag.chat.messages import ChatRequest, UIMessage, convert_to_model_messages
from kb_rag.chat.retriever import ContextRetriever, RetrievalResult, RetrievalStatus

__all__ = [
    "ChatAgent",
    "ChatRequest",
    "ContextRetriever",
    "RetrievalResult",
    "RetrievalStatus",
    "UIMessage",
    "convert_to_model_messages",
]
