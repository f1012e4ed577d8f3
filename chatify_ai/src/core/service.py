"""
Chatify AI - Service Facade
============================
The operations an HTTP layer calls.  Each one validates its required
fields first (``ValidationError`` before any provider is touched), then
delegates to the component that owns the behaviour:

    ask             → RAGManager
    index_message   → MessageIndexer.index
    delete_message  → MessageIndexer.delete
    summarize       → Summarizer
    suggest_replies → ReplySuggester
    clear_memory    → ConversationMemory.clear

Results are pydantic models; ``model_dump(by_alias=True)`` yields the
camelCase response bodies (``messageCount``, ``threadId``, ...).

Usage:
    service = build_service()
    result = await service.ask("what did Dana say about Friday?", user_id="u1", thread_id="t1")
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as ModelValidationError

from chatify_ai.src.core.errors import ValidationError
from chatify_ai.src.core.ingestor import MessageIndexer
from chatify_ai.src.core.memory import ConversationMemory, build_memory
from chatify_ai.src.core.message_search import MessageSearch
from chatify_ai.src.core.models import AskResult, ClearResult, DeleteResult, IndexedMessage, IndexResult, RecentMessage, SuggestedReplies, SummaryResult, TimeRange
from chatify_ai.src.core.rag_engine import RAGManager
from chatify_ai.src.core.summarizer import ReplySuggester, Summarizer
from chatify_ai.src.utils.logger import get_logger
from chatify_ai.src.utils.text_utils import is_blank

logger = get_logger(__name__)


def require_fields(**fields: Any) -> None:
    """Raise ``ValidationError`` naming every blank / missing field."""
    missing = [name for name, value in fields.items() if value is None or (isinstance(value, str) and is_blank(value))]
    if missing:
        raise ValidationError.for_missing(missing)


def _coerce_time_range(time_range: TimeRange | dict[str, Any] | str | None) -> TimeRange | str:
    if time_range is None:
        return "today"
    if isinstance(time_range, dict):
        return TimeRange.model_validate(time_range)
    return time_range


class ChatifyAIService:
    """
    Parameters
    ----------
    rag
        ``RAGManager`` answering ``ask``.
    summarizer / reply_suggester
        One-shot completion pipelines.
    indexer
        ``MessageIndexer`` owning the vector-index writes.
    memory
        The ``ConversationMemory`` backend shared with ``rag``.
    web_search
        Optional; closed by ``aclose``.
    """

    __slots__ = ("_rag", "_summarizer", "_suggester", "_indexer", "_memory", "_web_search")

    def __init__(self, rag: RAGManager, summarizer: Summarizer, reply_suggester: ReplySuggester, indexer: MessageIndexer, memory: ConversationMemory, web_search: Any | None = None) -> None:
        self._rag = rag
        self._summarizer = summarizer
        self._suggester = reply_suggester
        self._indexer = indexer
        self._memory = memory
        self._web_search = web_search


    async def ask(self, question: str, user_id: str, thread_id: str, conversation_type: str | None = None, target_id: str | None = None) -> AskResult:
        require_fields(question=question, userId=user_id, threadId=thread_id)
        return await self._rag.ask(question, user_id=user_id, thread_id=thread_id, conversation_type=conversation_type, target_id=target_id)


    async def index_message(self, message_id: str, text: str | None, sender_id: str, receiver_id: str | None = None, conversation_type: str | None = None, timestamp: str | None = None, group_id: str | None = None) -> IndexResult:
        require_fields(messageId=message_id, senderId=sender_id)
        try:
            message = IndexedMessage(message_id=message_id, text=text, sender_id=sender_id, receiver_id=receiver_id, group_id=group_id, conversation_type=conversation_type, timestamp=timestamp)
        except ModelValidationError as exc:
            raise ValidationError(f"Invalid message: {exc.errors()[0]['msg']}") from exc
        return await self._indexer.index(message)


    async def delete_message(self, message_id: str) -> DeleteResult:
        require_fields(messageId=message_id)
        return await self._indexer.delete(message_id)


    async def summarize(self, user_id: str, target_id: str | None = None, conversation_type: str | None = None, time_range: TimeRange | dict[str, Any] | str | None = "today") -> SummaryResult:
        require_fields(userId=user_id)
        return await self._summarizer.summarize(user_id, target_id=target_id, conversation_type=conversation_type, time_range=_coerce_time_range(time_range))


    async def suggest_replies(self, user_id: str, recent_messages: list[RecentMessage | dict[str, Any]] | None, target_id: str | None = None, conversation_type: str | None = None) -> SuggestedReplies:
        require_fields(userId=user_id)
        if not recent_messages:
            raise ValidationError.for_missing(["recentMessages"])
        messages = [m if isinstance(m, RecentMessage) else RecentMessage.model_validate(m) for m in recent_messages]
        logger.debug("[SERVICE] Reply suggestions for user '%s' (target=%s, type=%s)", user_id, target_id or "-", conversation_type or "all")
        return await self._suggester.suggest(messages)


    async def clear_memory(self, thread_id: str) -> ClearResult:
        require_fields(threadId=thread_id)
        await self._memory.clear(thread_id)
        return ClearResult(cleared=True, thread_id=thread_id)


    async def aclose(self) -> None:
        if self._web_search is not None:
            await self._web_search.aclose()


def build_service() -> ChatifyAIService:
    """Wire the production providers from settings."""
    from chatify_ai.src.database.vector_store import ChatVectorStore
    from chatify_ai.src.providers.embeddings import EmbeddingProvider
    from chatify_ai.src.providers.llm import GeminiChatProvider
    from chatify_ai.src.providers.web_search import TavilyWebSearch

    embeddings = EmbeddingProvider()
    store = ChatVectorStore()
    llm = GeminiChatProvider()
    web_search = TavilyWebSearch()
    memory = build_memory()

    search = MessageSearch(embeddings, store)
    rag = RAGManager(search, llm, web_search, memory)
    service = ChatifyAIService(rag, Summarizer(search, llm), ReplySuggester(llm), MessageIndexer(embeddings, store), memory, web_search=web_search)
    logger.info("[SERVICE] Ready (memory=%s, tools=%s)", memory.__class__.__name__, [t.name for t in rag.tools])
    return service
