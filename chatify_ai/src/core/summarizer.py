"""
Chatify AI - Summarizer & Reply Helper
=======================================
Two one-shot pipelines: no memory, no tool loop, one LLM completion each.

``Summarizer``
    Bulk Message Search over a time window (limit ``SUMMARY_SEARCH_LIMIT``)
    → matched texts in ranked order → one completion under the
    summarizer persona.  Zero matches short-circuits without an LLM call.

``ReplySuggester``
    Last 5 messages of a conversation rendered as ``You:`` / ``Them:``
    lines → one completion → up to 3 numbered suggestions.
"""

from __future__ import annotations

import re
import time
from typing import Any

from chatify_ai.config.prompt_templates import NO_MESSAGES_SUMMARY, PERSONAS, REPLY_SUGGESTION_PROMPT, REPLY_SUGGESTION_TEMPLATE, SUMMARIZE_PROMPT_TEMPLATE
from chatify_ai.config.settings import settings
from chatify_ai.src.core.message_search import MessageSearch
from chatify_ai.src.core.models import RecentMessage, SummaryResult, SuggestedReplies, TimeRange
from chatify_ai.src.utils.logger import elapsed_ms, get_logger

logger = get_logger(__name__)

_RE_NUMBERING = re.compile(r"^\s*\d+\s*[.)]\s*")
_REPLY_CONTEXT_MESSAGES: int = 5
_MAX_SUGGESTIONS: int = 3


class Summarizer:
    """
    Parameters
    ----------
    message_search
        ``MessageSearch`` used to collect the window's messages.
    llm
        Object exposing ``async simple_completion(system_prompt, user_message) -> str``.
    """

    __slots__ = ("_search", "_llm")

    def __init__(self, message_search: MessageSearch, llm: Any) -> None:
        self._search = message_search
        self._llm = llm


    async def summarize(self, user_id: str, target_id: str | None = None, conversation_type: str | None = None, time_range: TimeRange | str = "today") -> SummaryResult:
        """
        Summarise the user's messages within *time_range*.

        The query text is ``"conversation <range>"``; the window itself is
        also applied as a timestamp filter on the search.
        """
        t_start = time.perf_counter()
        label = time_range if isinstance(time_range, str) else (time_range.range or "custom range")

        results = await self._search.search(f"conversation {label}", user_id=user_id, conversation_type=conversation_type, target_id=target_id, limit=settings.SUMMARY_SEARCH_LIMIT, time_range=time_range)
        if not results:
            logger.info("[SUMMARY] No messages for user '%s' in '%s'.", user_id, label)
            return SummaryResult(summary=NO_MESSAGES_SUMMARY, message_count=0)

        messages = "\n".join(r.text for r in results)
        summary = await self._llm.simple_completion(PERSONAS["summarizer"].system_prompt, SUMMARIZE_PROMPT_TEMPLATE.format(messages=messages))

        logger.info("[SUMMARY] %d message(s) summarised in %.1fms", len(results), elapsed_ms(t_start))
        return SummaryResult(summary=summary, message_count=len(results))


def parse_suggestions(text: str, limit: int = _MAX_SUGGESTIONS) -> list[str]:
    """Strip ``1.`` / ``1)`` numbering, drop blank lines, keep the first *limit*."""
    suggestions = [_RE_NUMBERING.sub("", line).strip() for line in text.splitlines()]
    return [s for s in suggestions if s][:limit]


class ReplySuggester:
    """Suggests short replies for the latest turns of a conversation."""

    __slots__ = ("_llm",)

    def __init__(self, llm: Any) -> None:
        self._llm = llm


    async def suggest(self, recent_messages: list[RecentMessage]) -> SuggestedReplies:
        window = recent_messages[-_REPLY_CONTEXT_MESSAGES:]
        conversation = "\n".join(f"{'You' if m.is_own else 'Them'}: {m.text}" for m in window)

        raw = await self._llm.simple_completion(REPLY_SUGGESTION_PROMPT, REPLY_SUGGESTION_TEMPLATE.format(conversation=conversation))
        suggestions = parse_suggestions(raw)
        logger.info("[SUMMARY] %d reply suggestion(s) from %d message(s).", len(suggestions), len(window))
        return SuggestedReplies(suggestions=suggestions)
