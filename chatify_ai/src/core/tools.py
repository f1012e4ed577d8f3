"""
Chatify AI - Tool Definitions
==============================
The closed set of tools the assistant may call, their JSON-schema
declarations (OpenAI function format, accepted by LangChain's
``bind_tools``), and argument parsing.

The wire names (``webSearch``, ``searchChats``) are what the LLM sees;
inside the service every call is resolved to a ``ToolKind`` member and
dispatched on that, never on the raw string.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class ToolKind(str, Enum):
    WEB_SEARCH = "webSearch"
    SEARCH_CHATS = "searchChats"

    @classmethod
    def resolve(cls, wire_name: str) -> ToolKind | None:
        """Map an LLM-supplied tool name to a member, ``None`` if unknown."""
        try:
            return cls(wire_name)
        except ValueError:
            return None


class ToolDefinition(BaseModel):
    """A capability exposed to the LLM."""

    model_config = ConfigDict(frozen=True)

    kind: ToolKind
    description: str
    parameters: dict[str, Any]

    @property
    def name(self) -> str:
        return self.kind.value


    def to_openai_tool(self) -> dict[str, Any]:
        return {"type": "function", "function": {"name": self.name, "description": self.description, "parameters": self.parameters}}


WEB_SEARCH_TOOL = ToolDefinition(
    kind=ToolKind.WEB_SEARCH,
    description="Search the web for latest information, news, or current events. Use when chat history doesn't have the answer.",
    parameters={
        "type": "object",
        "properties": {"query": {"type": "string", "description": "The search query for web search"}},
        "required": ["query"],
    },
)

CHAT_SEARCH_TOOL = ToolDefinition(
    kind=ToolKind.SEARCH_CHATS,
    description="Search the user's chat history for relevant messages. Use to find past conversations, messages, or information discussed in chats.",
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "What to search for in chat history"},
            "conversationType": {"type": "string", "enum": ["private", "group", "all"], "description": "Type of chats to search (default: all)"},
        },
        "required": ["query"],
    },
)


def query_argument(arguments: dict[str, Any]) -> str | None:
    """Return the non-blank ``query`` argument of a tool call, else ``None``."""
    query = arguments.get("query")
    if isinstance(query, str) and query.strip():
        return query.strip()
    return None
