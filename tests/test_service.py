"""
Tests for the service facade: boundary validation and delegation.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from chatify_ai.src.core.errors import ValidationError
from chatify_ai.src.core.ingestor import MessageIndexer
from chatify_ai.src.core.models import AskResult, ChatTurn, SuggestedReplies, SummaryResult, TimeRange
from chatify_ai.src.core.service import ChatifyAIService, require_fields


@pytest.fixture
def rag():
    rag = MagicMock()
    rag.ask = AsyncMock(return_value=AskResult(answer="a", persona="Chatify AI"))
    return rag


@pytest.fixture
def summarizer():
    summarizer = MagicMock()
    summarizer.summarize = AsyncMock(return_value=SummaryResult(summary="s", message_count=1))
    return summarizer


@pytest.fixture
def suggester():
    suggester = MagicMock()
    suggester.suggest = AsyncMock(return_value=SuggestedReplies(suggestions=["ok"]))
    return suggester


@pytest.fixture
def service(rag, summarizer, suggester, mock_embeddings, fake_store, memory, mock_web_search, tmp_path):
    indexer = MessageIndexer(mock_embeddings, fake_store, source_dir=tmp_path, hash_cache_path=tmp_path / "hashes.json")
    return ChatifyAIService(rag, summarizer, suggester, indexer, memory, web_search=mock_web_search)


class TestRequireFields:

    def test_lists_every_missing_field(self):
        with pytest.raises(ValidationError) as exc_info:
            require_fields(question="hi", userId="", threadId=None)

        assert exc_info.value.missing == ["userId", "threadId"]
        assert str(exc_info.value) == "Missing required fields: userId, threadId"

    def test_passes_when_present(self):
        require_fields(question="hi", userId="u1")


class TestAsk:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("question,user_id,thread_id", [("", "u1", "t1"), ("hi", None, "t1"), ("hi", "u1", "  ")])
    async def test_missing_fields_rejected_before_any_provider_call(self, service, rag, mock_embeddings, question, user_id, thread_id):
        with pytest.raises(ValidationError):
            await service.ask(question, user_id, thread_id)

        rag.ask.assert_not_awaited()
        mock_embeddings.embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delegates_to_rag(self, service, rag):
        result = await service.ask("hi", "u1", "t1", conversation_type="group", target_id="g1")

        assert result.answer == "a"
        rag.ask.assert_awaited_once_with("hi", user_id="u1", thread_id="t1", conversation_type="group", target_id="g1")


class TestIndexing:

    @pytest.mark.asyncio
    async def test_index_requires_ids(self, service, mock_embeddings):
        with pytest.raises(ValidationError) as exc_info:
            await service.index_message("", "hello", None)

        assert exc_info.value.missing == ["messageId", "senderId"]
        mock_embeddings.embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_index_defaults_conversation_type(self, service, fake_store):
        result = await service.index_message("m1", "hello", "u1", receiver_id="u2", conversation_type=None)

        assert result.model_dump(by_alias=True, exclude_none=True) == {"indexed": True, "messageId": "m1"}
        assert fake_store.rows["m1"]["meta"]["conversation_type"] == "private"

    @pytest.mark.asyncio
    async def test_index_blank_text(self, service):
        result = await service.index_message("m1", None, "u1")

        assert result.indexed is False
        assert result.reason == "No text content"

    @pytest.mark.asyncio
    async def test_unknown_conversation_type_is_rejected(self, service, mock_embeddings):
        with pytest.raises(ValidationError):
            await service.index_message("m1", "hello", "u1", conversation_type="channel")

        mock_embeddings.embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_requires_message_id(self, service):
        with pytest.raises(ValidationError):
            await service.delete_message("")


class TestSummarize:

    @pytest.mark.asyncio
    async def test_requires_user(self, service, summarizer):
        with pytest.raises(ValidationError):
            await service.summarize("", "u2")

        summarizer.summarize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_time_range_dict_is_coerced(self, service, summarizer):
        await service.summarize("u1", "u2", "private", time_range={"dateFrom": "2024-05-01", "dateTo": "2024-05-02"})

        time_range = summarizer.summarize.await_args.kwargs["time_range"]
        assert time_range == TimeRange(date_from="2024-05-01", date_to="2024-05-02")

    @pytest.mark.asyncio
    async def test_default_range_is_today(self, service, summarizer):
        await service.summarize("u1", time_range=None)

        assert summarizer.summarize.await_args.kwargs["time_range"] == "today"


class TestSuggestReplies:

    @pytest.mark.asyncio
    async def test_requires_recent_messages(self, service, suggester):
        with pytest.raises(ValidationError) as exc_info:
            await service.suggest_replies("u1", [])

        assert exc_info.value.missing == ["recentMessages"]
        suggester.suggest.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_accepts_wire_dicts(self, service, suggester):
        await service.suggest_replies("u1", [{"text": "hey", "isOwn": False}])

        messages = suggester.suggest.await_args.args[0]
        assert messages[0].text == "hey"
        assert messages[0].is_own is False


class TestClearMemory:

    @pytest.mark.asyncio
    async def test_clear_empties_the_thread(self, service, memory):
        await memory.save("t1", [ChatTurn.system("sys")])

        result = await service.clear_memory("t1")

        assert result.model_dump(by_alias=True) == {"cleared": True, "threadId": "t1"}
        assert await memory.get("t1") == []

    @pytest.mark.asyncio
    async def test_requires_thread_id(self, service):
        with pytest.raises(ValidationError):
            await service.clear_memory("")

    @pytest.mark.asyncio
    async def test_aclose_closes_web_client(self, service, mock_web_search):
        await service.aclose()

        mock_web_search.aclose.assert_awaited_once()
