import os

# Settings are loaded at import time and these two have no default.
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("TAVILY_API_KEY", "test-tavily-key")
os.environ.setdefault("MEMORY_BACKEND", "memory")

import pytest
from unittest.mock import AsyncMock, MagicMock

from chatify_ai.src.core.memory import InMemoryConversationMemory
from chatify_ai.src.core.message_search import MessageSearch
from chatify_ai.src.core.models import ChatTurn, ToolCall
from chatify_ai.src.database.vector_store import METADATA_FIELDS


_OPS = {
    "$eq": lambda a, b: a == b,
    "$ne": lambda a, b: a != b,
    "$gt": lambda a, b: a is not None and a > b,
    "$gte": lambda a, b: a is not None and a >= b,
    "$lt": lambda a, b: a is not None and a < b,
    "$lte": lambda a, b: a is not None and a <= b,
}


def matches_filter(spec, row):
    """Evaluate a provider-neutral filter against a metadata dict."""
    if not spec:
        return True
    results = []
    for key, value in spec.items():
        if key == "$and":
            results.append(all(matches_filter(s, row) for s in value))
        elif key == "$or":
            results.append(any(matches_filter(s, row) for s in value))
        else:
            results.append(all(_OPS[op](row.get(key), operand) for op, operand in value.items()))
    return all(results)


class FakeVectorStore:
    """In-memory stand-in for ChatVectorStore; rows carry a fixed score."""

    def __init__(self):
        self.rows = {}
        self.queries = []
        self.fail_with = None

    def add(self, message_id, text, score=0.5, **metadata):
        meta = {field: metadata.get(field) for field in METADATA_FIELDS}
        meta["message_id"] = message_id
        if meta["conversation_type"] is None:
            meta["conversation_type"] = "private"
        if meta["timestamp"] is None:
            meta["timestamp"] = "2024-05-01T09:30:00.000Z"
        self.rows[message_id] = {"text": text, "score": score, "vector": None, "meta": meta}

    def upsert(self, message_id, vector, text, metadata):
        meta = {field: metadata.get(field) for field in METADATA_FIELDS}
        meta["message_id"] = message_id
        self.rows[message_id] = {"text": text, "score": 0.5, "vector": vector, "meta": meta}

    def query(self, vector, filter_spec=None, limit=5):
        self.queries.append({"vector": vector, "filter": filter_spec, "limit": limit})
        if self.fail_with is not None:
            raise self.fail_with
        hits = [(r["text"], dict(r["meta"]), r["score"]) for r in self.rows.values() if matches_filter(filter_spec, r["meta"])]
        hits.sort(key=lambda h: h[2], reverse=True)
        return hits[:limit]

    def delete(self, message_id):
        self.rows.pop(message_id, None)

    def count(self):
        return len(self.rows)


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def assistant(content="", calls=()):
    return ChatTurn(role="assistant", content=content, tool_calls=tuple(calls))


def web_call(query, call_id="call_1"):
    return ToolCall(id=call_id, name="webSearch", arguments={"query": query})


@pytest.fixture
def fake_store():
    return FakeVectorStore()


@pytest.fixture
def mock_embeddings():
    embeddings = MagicMock()
    embeddings.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return embeddings


@pytest.fixture
def mock_llm():
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=assistant("Final answer."))
    llm.simple_completion = AsyncMock(return_value="Summary text.")
    return llm


@pytest.fixture
def mock_web_search():
    web = MagicMock()
    web.search = AsyncMock(return_value="[1] Weather today\nSunny, 24C")
    web.aclose = AsyncMock()
    return web


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory(clock):
    return InMemoryConversationMemory(ttl_seconds=86400, clock=clock)


@pytest.fixture
def message_search(mock_embeddings, fake_store):
    return MessageSearch(mock_embeddings, fake_store)
