"""
KB RAG chat API.

POST /api/chat streams a retrieval-augmented answer as server-sent events
in the UI message stream format. Any failure while reading the request or
preparing the stream becomes a JSON 500 response; failures after streaming
has started are sent as an "error" event.
"""

import json
import logging
from typing import Any, Iterator

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from kb_rag import __version__
from kb_rag.chat.agent import ChatAgent
from kb_rag.chat.messages import ChatRequest, convert_to_model_messages
from kb_rag.server.deps import get_chat_agent

logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "x-vercel-ai-ui-message-stream": "v1",
}

app = FastAPI(
    title="KB RAG",
    description="Retrieval-augmented chat over a Bedrock knowledge base",
    version=__version__,
)


def encode_events(events: Iterator[dict[str, Any]]) -> Iterator[str]:
    """Serialize stream events as SSE data lines, terminated by [DONE]."""
    for event in events:
        yield f"data: {json.dumps(event)}\n\n"
    yield "data: [DONE]\n\n"


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "kb-rag"}


@app.post("/api/chat")
async def chat(request: Request, agent: ChatAgent = Depends(get_chat_agent)):
    """Stream a chat answer for the posted message history."""
    try:
        body = await request.json()
        chat_request = ChatRequest.model_validate(body)
        model_messages = convert_to_model_messages(chat_request.messages)
        events = agent.stream(model_messages)
        return StreamingResponse(
            encode_events(events),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )
    except Exception as e:
        logger.error(f"Error in chat API: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to process chat request",
                "details": str(e),
            },
        )
