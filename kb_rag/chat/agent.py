"""
Retrieval-augmented chat agent.

Runs a bounded tool-calling loop over Bedrock's Converse streaming API:
each step streams one model turn; if the model asks for the retrieval
tool, the tool runs and its result is fed back for the next step. The loop
ends when the model stops without tool use or after max_steps steps.

stream() yields UI message stream events (dicts with a "type" key) that the
HTTP layer serializes as server-sent events.
"""

import json
import logging
import uuid
from typing import Any, Iterator, Optional

import boto3
from botocore.client import BaseClient

from kb_rag.chat.prompts import RETRIEVAL_TOOL_NAME, RETRIEVAL_TOOL_SPEC, SYSTEM_PROMPT
from kb_rag.chat.retriever import ContextRetriever
from kb_rag.config import Settings

logger = logging.getLogger(__name__)


def parse_tool_input(raw_input: str) -> dict[str, Any]:
    """Decode streamed tool input; anything but a JSON object becomes {}."""
    if not raw_input:
        return {}
    try:
        value = json.loads(raw_input)
    except ValueError:
        logger.warning(f"Discarding malformed tool input: {raw_input!r}")
        return {}
    return value if isinstance(value, dict) else {}


class ChatAgent:
    """Bounded agent loop with a single knowledge base retrieval tool."""

    def __init__(
        self,
        settings: Settings,
        retriever: Optional[ContextRetriever] = None,
        client: Optional[BaseClient] = None,
    ):
        """Initialize chat agent.

        Args:
            settings: Application settings
            retriever: Retrieval backend for the getInformation tool
            client: Bedrock Runtime client (lazy-loaded if omitted)
        """
        self.settings = settings
        self.retriever = retriever or ContextRetriever(settings)
        self.max_steps = settings.chat_max_steps
        self._client = client

    @property
    def client(self) -> BaseClient:
        """Lazy-load Bedrock Runtime client."""
        if self._client is None:
            self._client = boto3.client(
                "bedrock-runtime", region_name=self.settings.aws_region
            )
        return self._client

    def execute_tool(self, name: str, tool_input: Any) -> str:
        """Run a tool requested by the model."""
        if name != RETRIEVAL_TOOL_NAME:
            logger.warning(f"Model requested unknown tool: {name}")
            return f"Unknown tool: {name}"
        question = tool_input.get("question") if isinstance(tool_input, dict) else None
        return self.retriever.find_relevant_content("" if question is None else str(question))

    def _converse(self, messages: list[dict[str, Any]]) -> Iterator[dict[str, Any]]:
        response = self.client.converse_stream(
            modelId=self.settings.chat_model,
            messages=messages,
            system=[{"text": SYSTEM_PROMPT}],
            toolConfig={"tools": [RETRIEVAL_TOOL_SPEC]},
        )
        return response["stream"]

    def _run_step(
        self,
        messages: list[dict[str, Any]],
        message_id: str,
        step: int,
        blocks: dict[int, dict[str, Any]],
    ) -> Iterator[dict[str, Any]]:
        """Stream one model turn, collecting content blocks into ``blocks``.

        Yields text events as they arrive and finally a private
        {"type": "_stop", "stopReason": ...} marker.
        """
        stop_reason = None
        for event in self._converse(messages):
            if "contentBlockStart" in event:
                start = event["contentBlockStart"]
                tool_use = start.get("start", {}).get("toolUse")
                if tool_use:
                    blocks[start["contentBlockIndex"]] = {
                        "toolUse": {
                            "toolUseId": tool_use["toolUseId"],
                            "name": tool_use["name"],
                            "input": "",
                        }
                    }
            elif "contentBlockDelta" in event:
                index = event["contentBlockDelta"]["contentBlockIndex"]
                delta = event["contentBlockDelta"]["delta"]
                if "text" in delta:
                    if index not in blocks:
                        blocks[index] = {"text": ""}
                        yield {"type": "text-start", "id": f"{message_id}-{step}-{index}"}
                    blocks[index]["text"] += delta["text"]
                    yield {
                        "type": "text-delta",
                        "id": f"{message_id}-{step}-{index}",
                        "delta": delta["text"],
                    }
                elif "toolUse" in delta and index in blocks:
                    blocks[index]["toolUse"]["input"] += delta["toolUse"].get("input", "")
            elif "contentBlockStop" in event:
                index = event["contentBlockStop"]["contentBlockIndex"]
                if "text" in blocks.get(index, {}):
                    yield {"type": "text-end", "id": f"{message_id}-{step}-{index}"}
            elif "messageStop" in event:
                stop_reason = event["messageStop"].get("stopReason")
        yield {"type": "_stop", "stopReason": stop_reason}

    def stream(self, messages: list[dict[str, Any]]) -> Iterator[dict[str, Any]]:
        """
        Run the agent loop and yield UI stream events.

        Args:
            messages: Converse-format history (see convert_to_model_messages)

        Yields:
            Event dicts: start, start-step, text-*, tool-input-available,
            tool-output-available, finish-step, finish, or error
        """
        history = list(messages)
        message_id = f"msg-{uuid.uuid4().hex[:16]}"
        yield {"type": "start", "messageId": message_id}

        try:
            for step in range(1, self.max_steps + 1):
                yield {"type": "start-step"}

                blocks: dict[int, dict[str, Any]] = {}
                stop_reason = None
                for event in self._run_step(history, message_id, step, blocks):
                    if event["type"] == "_stop":
                        stop_reason = event["stopReason"]
                    else:
                        yield event

                content: list[dict[str, Any]] = []
                tool_calls: list[dict[str, Any]] = []
                for index in sorted(blocks):
                    block = blocks[index]
                    if "text" in block:
                        if block["text"]:
                            content.append({"text": block["text"]})
                        continue
                    raw_input = block["toolUse"]["input"]
                    tool_call = {
                        "toolUseId": block["toolUse"]["toolUseId"],
                        "name": block["toolUse"]["name"],
                        "input": parse_tool_input(raw_input),
                    }
                    content.append({"toolUse": tool_call})
                    tool_calls.append(tool_call)

                if content:
                    history.append({"role": "assistant", "content": content})

                if stop_reason != "tool_use" or not tool_calls:
                    yield {"type": "finish-step"}
                    break

                results = []
                for tool_call in tool_calls:
                    yield {
                        "type": "tool-input-available",
                        "toolCallId": tool_call["toolUseId"],
                        "toolName": tool_call["name"],
                        "input": tool_call["input"],
                    }
                    output = self.execute_tool(tool_call["name"], tool_call["input"])
                    yield {
                        "type": "tool-output-available",
                        "toolCallId": tool_call["toolUseId"],
                        "output": output,
                    }
                    results.append(
                        {
                            "toolResult": {
                                "toolUseId": tool_call["toolUseId"],
                                "content": [{"json": {"result": output}}],
                            }
                        }
                    )
                history.append({"role": "user", "content": results})
                yield {"type": "finish-step"}
            else:
                logger.info(f"Chat stopped after reaching {self.max_steps} steps")

            yield {"type": "finish"}
        except Exception as e:
            logger.exception("Error while streaming chat response")
            yield {"type": "error", "errorText": str(e)}
