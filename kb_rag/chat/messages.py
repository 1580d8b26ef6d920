"""
Chat message models.

UIMessage mirrors the message format sent by the chat UI: a role plus a
list of typed parts. convert_to_model_messages() turns a UI history into
Bedrock Converse messages.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MessagePart(BaseModel):
    """One part of a UI message (text, tool invocation, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None


class UIMessage(BaseModel):
    """A chat message as sent by the UI."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    role: Literal["system", "user", "assistant"]
    parts: list[MessagePart] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _content_as_text_part(cls, data: Any) -> Any:
        """Accept {"role", "content"} messages by turning content into a text part."""
        if isinstance(data, dict) and "parts" not in data and isinstance(data.get("content"), str):
            data = {**data, "parts": [{"type": "text", "text": data["content"]}]}
        return data

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text or "" for p in self.parts if p.type == "text")


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""

    model_config = ConfigDict(extra="allow")

    messages: list[UIMessage]


def convert_to_model_messages(messages: list[UIMessage]) -> list[dict[str, Any]]:
    """
    Convert UI messages to Bedrock Converse messages.

    System messages are dropped (the server owns the system prompt), empty
    messages are skipped, and consecutive messages with the same role are
    merged because Converse requires alternating roles.

    Args:
        messages: UI message history, oldest first

    Returns:
        List of {"role": ..., "content": [{"text": ...}]} dicts
    """
    converted: list[dict[str, Any]] = []
    for message in messages:
        if message.role == "system":
            continue
        text = message.text
        if not text:
            continue
        if converted and converted[-1]["role"] == message.role:
            converted[-1]["content"].append({"text": text})
        else:
            converted.append({"role": message.role, "content": [{"text": text}]})
    return converted
