from functools import lru_cache

from kb_rag.chat.agent import ChatAgent
from kb_rag.config import get_settings


@lru_cache
def get_chat_agent() -> ChatAgent:
    """Get a ChatAgent built from the process settings."""
    return ChatAgent(get_settings())
