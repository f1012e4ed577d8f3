"""
Tests for the Gemini chat adapter: message conversion and tool binding.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from chatify_ai.src.core.errors import ProviderError
from chatify_ai.src.core.models import ChatTurn, ToolCall
from chatify_ai.src.core.tools import WEB_SEARCH_TOOL
from chatify_ai.src.providers.llm import GeminiChatProvider, from_ai_message, to_langchain_messages


class TestMessageConversion:

    def test_transcript_to_langchain(self):
        call = ToolCall(id="call_1", name="webSearch", arguments={"query": "weather"})
        transcript = [
            ChatTurn.system("sys"),
            ChatTurn.user("hi"),
            ChatTurn(role="assistant", content="", tool_calls=(call,)),
            ChatTurn.tool_result(call, "sunny"),
        ]

        messages = to_langchain_messages(transcript)

        assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage, ToolMessage]
        assert messages[2].tool_calls[0]["name"] == "webSearch"
        assert messages[2].tool_calls[0]["args"] == {"query": "weather"}
        assert messages[3].tool_call_id == "call_1"
        assert messages[3].name == "webSearch"

    def test_ai_message_with_tool_calls(self):
        message = AIMessage(content="", tool_calls=[{"name": "webSearch", "args": {"query": "news"}, "id": "abc", "type": "tool_call"}])

        turn = from_ai_message(message)

        assert turn.role == "assistant"
        assert turn.tool_calls == (ToolCall(id="abc", name="webSearch", arguments={"query": "news"}),)

    def test_content_parts_are_joined(self):
        message = AIMessage(content=[{"type": "text", "text": "Hello "}, {"type": "text", "text": "world"}])

        assert from_ai_message(message).content == "Hello world"


class TestGeminiChatProvider:

    @pytest.fixture
    def chat_model(self):
        model = MagicMock()
        model.ainvoke = AsyncMock(return_value=AIMessage(content="plain answer"))
        bound = MagicMock()
        bound.ainvoke = AsyncMock(return_value=AIMessage(content="", tool_calls=[{"name": "webSearch", "args": {"query": "q"}, "id": "c1", "type": "tool_call"}]))
        model.bind_tools = MagicMock(return_value=bound)
        return model

    @pytest.mark.asyncio
    async def test_complete_without_tools(self, chat_model):
        provider = GeminiChatProvider(llm=chat_model)

        turn = await provider.complete([ChatTurn.user("hi")])

        assert turn.content == "plain answer"
        chat_model.bind_tools.assert_not_called()

    @pytest.mark.asyncio
    async def test_complete_binds_tools(self, chat_model):
        provider = GeminiChatProvider(llm=chat_model)

        turn = await provider.complete([ChatTurn.user("hi")], tools=[WEB_SEARCH_TOOL])

        schema = chat_model.bind_tools.call_args.args[0]
        assert schema[0]["function"]["name"] == "webSearch"
        assert turn.tool_calls[0].id == "c1"

    @pytest.mark.asyncio
    async def test_failures_become_provider_errors(self, chat_model):
        chat_model.ainvoke.side_effect = RuntimeError("503 unavailable")
        provider = GeminiChatProvider(llm=chat_model)

        with pytest.raises(ProviderError) as exc_info:
            await provider.simple_completion("sys", "hi")

        assert exc_info.value.provider == "llm"
