"""
Chatify AI - Error Taxonomy
============================
``ValidationError``
    A request is missing a required field.  Raised at the service
    boundary before any provider is called.
``ProviderError``
    An external collaborator (embeddings, vector index, LLM, web search,
    memory store) failed.  The original exception is always chained.
``SearchFailure``
    Message Search could not complete.  Never replaced by an empty result.

Loop exhaustion in the RAG orchestrator is *not* an error: it returns a
degraded answer.
"""

from __future__ import annotations


class ChatifyAIError(Exception):
    """Base class for every error raised by the service core."""


class ValidationError(ChatifyAIError):
    """A request was rejected at the boundary."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing: list[str] = missing or []


    @classmethod
    def for_missing(cls, fields: list[str]) -> ValidationError:
        return cls(f"Missing required fields: {', '.join(fields)}", missing=fields)


class ProviderError(ChatifyAIError):
    """An external provider call failed (transport, auth, or bad response)."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class SearchFailure(ProviderError):
    """Embedding or vector-index failure during a chat-history search."""

    def __init__(self, message: str) -> None:
        super().__init__("message-search", message)
