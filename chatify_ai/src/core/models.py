"""
Chatify AI - Domain Models
===========================
Pydantic models for everything that crosses a component boundary.

``ChatTurn`` / ``ToolCall``
    One entry of a thread transcript and an LLM-issued tool request.
``IndexedMessage`` / ``MessageMetadata``
    A chat message as submitted for indexing, and the metadata stored
    next to its vector.
``SearchResult``
    Read-only projection returned by Message Search.
``TimeRange``
    Symbolic (``today`` / ``week`` / ``month``) or explicit date window.
``Persona``
    Immutable system-prompt configuration selected by a trigger prefix.
``AskResult`` / ``SummaryResult`` / ``IndexResult`` / ``DeleteResult`` /
``ClearResult`` / ``SuggestedReplies``
    Result payloads of the core-exposed operations.  They serialise to
    camelCase with ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Role = Literal["system", "user", "assistant", "tool"]
ConversationType = Literal["private", "group"]
SymbolicRange = Literal["today", "week", "month"]


class _WireModel(BaseModel):
    """Base for payloads handed to the HTTP layer (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ══════════════════════════════════════════════════════════════════════
#  TRANSCRIPT
# ══════════════════════════════════════════════════════════════════════


class ToolCall(BaseModel):
    """A single tool invocation requested by the assistant."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ChatTurn(BaseModel):
    """
    One exchange unit of a transcript.

    ``tool_call_id`` and ``name`` are set on ``tool`` turns;
    ``tool_calls`` is set on ``assistant`` turns that request tools.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_call_id: str | None = None
    name: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()

    @classmethod
    def system(cls, content: str) -> ChatTurn:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> ChatTurn:
        return cls(role="user", content=content)

    @classmethod
    def tool_result(cls, call: ToolCall, content: str) -> ChatTurn:
        return cls(role="tool", content=content, tool_call_id=call.id, name=call.name)


Transcript = list[ChatTurn]


# ══════════════════════════════════════════════════════════════════════
#  INDEXED MESSAGES & SEARCH
# ══════════════════════════════════════════════════════════════════════


class IndexedMessage(_WireModel):
    """A chat message submitted for indexing."""

    message_id: str
    text: str | None = None
    sender_id: str
    receiver_id: str | None = None
    group_id: str | None = None
    conversation_type: ConversationType = "private"
    timestamp: str | None = None

    @field_validator("message_id", "sender_id", "receiver_id", "group_id", mode="before")
    @classmethod
    def _ids_as_strings(cls, v: Any) -> Any:
        # Upstream ids are often ObjectIds or ints
        return str(v) if v is not None and not isinstance(v, str) else v

    @field_validator("conversation_type", mode="before")
    @classmethod
    def _default_conversation_type(cls, v: Any) -> Any:
        return v or "private"


class MessageMetadata(_WireModel):
    """Metadata stored next to each vector (the IndexedMessage minus the vector)."""

    message_id: str
    sender_id: str
    receiver_id: str | None = None
    group_id: str | None = None
    conversation_type: ConversationType = "private"
    timestamp: str


class SearchResult(_WireModel):
    """A ranked chat-history match.  Higher ``score`` = more relevant."""

    model_config = ConfigDict(frozen=True)

    text: str
    metadata: MessageMetadata
    score: float


class TimeRange(_WireModel):
    """Either a symbolic ``range`` or an explicit ``date_from``/``date_to`` pair."""

    range: SymbolicRange | None = None
    date_from: str | None = None
    date_to: str | None = None


# ══════════════════════════════════════════════════════════════════════
#  PERSONAS
# ══════════════════════════════════════════════════════════════════════


class Persona(BaseModel):
    """Named system-prompt configuration.  ``trigger=None`` only for ``default``."""

    model_config = ConfigDict(frozen=True)

    name: str
    trigger: str | None = None
    system_prompt: str


    def render_system_prompt(self, current_time: str) -> str:
        """Fill the ``{current_time}`` placeholder some prompts carry."""
        return self.system_prompt.replace("{current_time}", current_time)


# ══════════════════════════════════════════════════════════════════════
#  RESULT PAYLOADS
# ══════════════════════════════════════════════════════════════════════


class Source(_WireModel):
    """A grounding message cited in an answer."""

    text: str
    sender: str
    timestamp: str
    type: ConversationType

    @classmethod
    def from_result(cls, result: SearchResult) -> Source:
        meta = result.metadata
        return cls(text=result.text, sender=meta.sender_id, timestamp=meta.timestamp, type=meta.conversation_type)


class AskResult(_WireModel):
    answer: str
    persona: str
    sources: list[Source] = Field(default_factory=list)


class SummaryResult(_WireModel):
    summary: str
    message_count: int


class IndexResult(_WireModel):
    indexed: bool
    message_id: str | None = None
    reason: str | None = None


class DeleteResult(_WireModel):
    deleted: bool
    message_id: str


class ClearResult(_WireModel):
    cleared: bool
    thread_id: str


class RecentMessage(_WireModel):
    """One line of the conversation shown to the reply helper."""

    text: str
    is_own: bool = False


class SuggestedReplies(_WireModel):
    suggestions: list[str] = Field(default_factory=list)
