"""
Chatify AI - RAG Engine
========================
Orchestrates one ``ask``: persona → memory → chat-history grounding →
bounded tool-calling loop → memory write-back.

Flow
----
    1. Persona detection → ``(persona, clean_message)``
    2. Load thread transcript; empty → seed the persona's system turn
    3. Message Search on ``clean_message`` (limit ``ASK_SEARCH_LIMIT``)
       → context block appended to the user turn
    4. Tool loop, at most ``MAX_TOOL_ITERATIONS`` LLM calls:
         - no tool calls → save transcript, return answer + sources
         - tool calls    → run each, append a ``tool`` turn, call again
    5. Loop exhausted → fixed apology, empty sources, transcript NOT saved

State machine::

    NEW → SYSTEM_SEEDED → AWAITING_LLM → (TOOL_REQUESTED → AWAITING_LLM)*
        → ANSWERED | EXHAUSTED

Provider failures (search, LLM, web search, memory) propagate unchanged;
only a successful-but-incomplete LLM response is retried.

Usage:
    rag = RAGManager(message_search, llm, web_search, memory)
    result = await rag.ask("@finder wifi password", user_id="u1", thread_id="t1")
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable

from chatify_ai.config.prompt_templates import CHAT_CONTEXT_HEADER, CHAT_CONTEXT_LINE, LOOP_EXHAUSTED_ANSWER, NO_CHAT_CONTEXT
from chatify_ai.config.settings import settings
from chatify_ai.src.core.memory import ConversationMemory
from chatify_ai.src.core.message_search import MessageSearch
from chatify_ai.src.core.models import AskResult, ChatTurn, SearchResult, Source, ToolCall, Transcript
from chatify_ai.src.core.persona import PersonaSelector
from chatify_ai.src.core.tools import CHAT_SEARCH_TOOL, WEB_SEARCH_TOOL, ToolDefinition, ToolKind, query_argument
from chatify_ai.src.utils.logger import elapsed_ms, get_logger
from chatify_ai.src.utils.text_utils import format_local_date

logger = get_logger(__name__)


def format_chat_context(results: list[SearchResult]) -> str:
    """Render matches as the numbered context block appended to the user turn."""
    if not results:
        return NO_CHAT_CONTEXT
    lines = [CHAT_CONTEXT_LINE.format(rank=i, text=r.text, conversation_type=r.metadata.conversation_type, date=format_local_date(r.metadata.timestamp)) for i, r in enumerate(results, 1)]
    return CHAT_CONTEXT_HEADER + "\n".join(lines)


def _current_time() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")


class RAGManager:
    """
    Per-request orchestrator.  Holds no request state; safe for
    concurrent ``ask`` calls (same-thread calls are last-write-wins).

    Parameters
    ----------
    message_search
        ``MessageSearch`` used for up-front grounding and ``searchChats``.
    llm
        Object exposing ``async complete(transcript, tools) -> ChatTurn``.
    web_search
        Object exposing ``async search(query) -> str``.
    memory
        Any ``ConversationMemory`` backend.
    persona_selector
        Defaults to a ``PersonaSelector`` over the built-in persona table.
    max_iterations
        LLM-call bound per ``ask``.  Defaults to ``settings.MAX_TOOL_ITERATIONS``.
    enable_chat_search_tool
        Expose ``searchChats`` to the LLM.  Defaults to ``settings.ENABLE_CHAT_SEARCH_TOOL``.
    """

    __slots__ = ("_search", "_llm", "_web", "_memory", "_personas", "_max_iterations", "_tools", "_clock")

    def __init__(self, message_search: MessageSearch, llm: Any, web_search: Any, memory: ConversationMemory, persona_selector: PersonaSelector | None = None, max_iterations: int | None = None, enable_chat_search_tool: bool | None = None, clock: Callable[[], str] = _current_time) -> None:
        self._search = message_search
        self._llm = llm
        self._web = web_search
        self._memory = memory
        self._personas = persona_selector or PersonaSelector()
        self._max_iterations = max_iterations or settings.MAX_TOOL_ITERATIONS
        if enable_chat_search_tool is None:
            enable_chat_search_tool = settings.ENABLE_CHAT_SEARCH_TOOL
        self._tools: list[ToolDefinition] = [WEB_SEARCH_TOOL, CHAT_SEARCH_TOOL] if enable_chat_search_tool else [WEB_SEARCH_TOOL]
        self._clock = clock


    @property
    def tools(self) -> list[ToolDefinition]:
        return list(self._tools)


    async def ask(self, question: str, user_id: str, thread_id: str, conversation_type: str | None = None, target_id: str | None = None) -> AskResult:
        """
        Answer *question* for *user_id* within conversation *thread_id*.

        Returns
        -------
        AskResult
            The final answer, the persona name and the grounding messages;
            on loop exhaustion the fixed apology with no sources.

        Raises
        ------
        SearchFailure, ProviderError
            Propagated from Message Search, the LLM, web search or memory.
        """
        t_start = time.perf_counter()

        # ── 1. Persona ────────────────────────────────────────────────
        key, persona, clean_message = self._personas.detect(question)
        logger.info("[RAG] Thread '%s' → persona '%s'", thread_id, key)

        # ── 2. Memory (seed on first use) ─────────────────────────────
        transcript: Transcript = await self._memory.get(thread_id)
        if not transcript:
            logger.info("[RAG] New thread: %s", thread_id)
            transcript.append(ChatTurn.system(persona.render_system_prompt(self._clock())))

        # ── 3. Chat-history grounding ─────────────────────────────────
        t_search = time.perf_counter()
        matches = await self._search.search(clean_message, user_id=user_id, conversation_type=conversation_type, target_id=target_id, limit=settings.ASK_SEARCH_LIMIT)
        search_ms = elapsed_ms(t_search)
        transcript.append(ChatTurn.user(clean_message + format_chat_context(matches)))

        # ── 4. Tool loop ──────────────────────────────────────────────
        for iteration in range(1, self._max_iterations + 1):
            reply = await self._llm.complete(transcript, tools=self._tools)
            transcript.append(reply)

            if not reply.tool_calls:
                await self._memory.save(thread_id, transcript)
                logger.info("[RAG] Answered in %d iteration(s), %.1fms total (search=%.1f, sources=%d)", iteration, elapsed_ms(t_start), search_ms, len(matches))
                return AskResult(answer=reply.content, persona=persona.name, sources=[Source.from_result(m) for m in matches])

            for call in reply.tool_calls:
                transcript.append(ChatTurn.tool_result(call, await self._run_tool(call, user_id)))

        # ── 5. Exhausted ──────────────────────────────────────────────
        logger.warning("[RAG] Tool loop exhausted after %d iterations on thread '%s'; transcript not saved.", self._max_iterations, thread_id)
        return AskResult(answer=LOOP_EXHAUSTED_ANSWER, persona=persona.name, sources=[])

    # ══════════════════════════════════════════════════════════════════
    #  TOOL DISPATCH
    # ══════════════════════════════════════════════════════════════════

    async def _run_tool(self, call: ToolCall, user_id: str) -> str:
        """Execute one tool call and return the text for its ``tool`` turn."""
        kind = ToolKind.resolve(call.name)
        if kind is None or kind not in {tool.kind for tool in self._tools}:
            logger.warning("[RAG] LLM requested unavailable tool '%s'.", call.name)
            return f"Tool '{call.name}' is not available."

        query = query_argument(call.arguments)
        if query is None:
            logger.warning("[RAG] Tool '%s' called without a query.", call.name)
            return f"Tool '{call.name}' requires a non-empty 'query' argument."

        if kind is ToolKind.WEB_SEARCH:
            logger.info("[RAG] webSearch('%s')", query)
            return await self._web.search(query)

        if kind is ToolKind.SEARCH_CHATS:
            conversation_type = call.arguments.get("conversationType")
            if conversation_type not in ("private", "group"):
                conversation_type = None
            logger.info("[RAG] searchChats('%s', type=%s)", query, conversation_type or "all")
            results = await self._search.search(query, user_id=user_id, conversation_type=conversation_type, limit=settings.ASK_SEARCH_LIMIT)
            return format_chat_context(results).strip()

        raise AssertionError(f"Unhandled tool kind: {kind}")
