"""
Chatify AI - LLM Provider
==========================
Stateless chat completion over Gemini via ``langchain-google-genai``,
with optional tool binding.

The service speaks ``ChatTurn``; LangChain speaks ``BaseMessage``.  The
two converters below are the only place that mapping lives:

    system    ↔ SystemMessage
    user      ↔ HumanMessage
    assistant ↔ AIMessage   (tool_calls carried as LangChain tool-call dicts)
    tool      ↔ ToolMessage (tool_call_id + name)

Temperature defaults to ``settings.LLM_TEMPERATURE`` (0 → deterministic).
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from chatify_ai.config.settings import settings
from chatify_ai.src.core.errors import ProviderError
from chatify_ai.src.core.models import ChatTurn, ToolCall, Transcript
from chatify_ai.src.core.tools import ToolDefinition
from chatify_ai.src.utils.logger import elapsed_ms, get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  MESSAGE CONVERSION
# ══════════════════════════════════════════════════════════════════════


def to_langchain_messages(transcript: Transcript) -> list[BaseMessage]:
    """Convert a transcript to LangChain messages (order preserved)."""
    messages: list[BaseMessage] = []
    for turn in transcript:
        if turn.role == "system":
            messages.append(SystemMessage(content=turn.content))
        elif turn.role == "user":
            messages.append(HumanMessage(content=turn.content))
        elif turn.role == "assistant":
            tool_calls = [{"name": call.name, "args": call.arguments, "id": call.id, "type": "tool_call"} for call in turn.tool_calls]
            messages.append(AIMessage(content=turn.content, tool_calls=tool_calls))
        else:
            messages.append(ToolMessage(content=turn.content, tool_call_id=turn.tool_call_id or "", name=turn.name))
    return messages


def _content_text(content: str | list[Any]) -> str:
    # Gemini may answer with a list of content parts
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(str(part.get("text", "")))
    return "".join(parts)


def from_ai_message(message: AIMessage) -> ChatTurn:
    """Convert an ``AIMessage`` to an assistant ``ChatTurn``."""
    calls = tuple(ToolCall(id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}", name=call["name"], arguments=dict(call.get("args") or {})) for call in message.tool_calls)
    return ChatTurn(role="assistant", content=_content_text(message.content), tool_calls=calls)


# ══════════════════════════════════════════════════════════════════════
#  PROVIDER
# ══════════════════════════════════════════════════════════════════════


class GeminiChatProvider:
    """
    Chat-completion adapter.

    Parameters
    ----------
    llm
        A LangChain chat model exposing ``ainvoke`` and ``bind_tools``.
        Defaults to ``ChatGoogleGenerativeAI`` configured from settings.
    """

    __slots__ = ("_llm",)

    def __init__(self, llm: Any | None = None) -> None:
        self._llm = llm or self._init_llm()


    @staticmethod
    def _init_llm() -> Any:
        from langchain_google_genai import ChatGoogleGenerativeAI

        llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=settings.LLM_TEMPERATURE, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
        logger.info("[LLM] Initialised: %s (temperature=%.1f)", settings.LLM_MODEL, settings.LLM_TEMPERATURE)
        return llm


    async def complete(self, transcript: Transcript, tools: list[ToolDefinition] | None = None) -> ChatTurn:
        """
        Run one completion over *transcript*.

        Returns
        -------
        ChatTurn
            The assistant turn, with ``tool_calls`` when the model asked
            for tools.

        Raises
        ------
        ProviderError
            On any failure of the underlying model call.
        """
        runnable = self._llm.bind_tools([tool.to_openai_tool() for tool in tools]) if tools else self._llm

        t_start = time.perf_counter()
        try:
            response = await runnable.ainvoke(to_langchain_messages(transcript))
        except Exception as exc:
            logger.error("[LLM] Completion failed: %s", exc)
            raise ProviderError("llm", str(exc)) from exc

        turn = from_ai_message(response)
        logger.info("[LLM] Completion in %.1fms (%d chars, tool_calls=%d)", elapsed_ms(t_start), len(turn.content), len(turn.tool_calls))
        return turn


    async def simple_completion(self, system_prompt: str, user_message: str) -> str:
        """One-shot completion without tools; returns the text only."""
        turn = await self.complete([ChatTurn.system(system_prompt), ChatTurn.user(user_message)])
        return turn.content
