"""Prompts and tool definitions for the knowledge base chat."""

FALLBACK_ANSWER = "Sorry, I don't know."

SYSTEM_PROMPT = (
    "You are a helpful assistant. Check your knowledge base before answering any questions.\n"
    "Only respond to questions using information from tool calls.\n"
    f'If no relevant information is found in the tool calls, respond, "{FALLBACK_ANSWER}"'
)

RETRIEVAL_TOOL_NAME = "getInformation"

RETRIEVAL_TOOL_SPEC = {
    "toolSpec": {
        "name": RETRIEVAL_TOOL_NAME,
        "description": "get information from your knowledge base to answer questions.",
        "inputSchema": {
            "json": {
                "type": "object",
                "properties": {
                    "question": {
                        "type": "string",
                        "description": "the users question",
                    },
                },
                "required": ["question"],
            }
        },
    }
}
