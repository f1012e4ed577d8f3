"""
Chatify AI - Conversation Memory
=================================
Time-bounded ``thread_id → Transcript`` store.  Every write (``save`` /
``append``) resets the thread's expiry to ``MEMORY_TTL_SECONDS`` from now
(sliding TTL); reads never extend it.

Backends
--------
``InMemoryConversationMemory``
    Process-local dict of ``(transcript, expires_at)`` with lazy eviction
    on access.  Writes also sweep every expired thread, at most once per
    ``sweep_interval`` seconds.
``MongoConversationMemory``
    Async store backed by ``motor``.  A TTL index on ``updated_at`` lets
    MongoDB delete stale threads in the background; reads additionally
    filter on ``updated_at`` because the TTL monitor only runs every ~60s.

Both return *copies*: mutating a transcript obtained from ``get`` never
changes what is stored until ``save`` is called.

Collection schema (``ai_threads``)::

    {
        "thread_id": str,
        "turns": [{"role": str, "content": str, ...}, ...],
        "updated_at": datetime
    }
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol, runtime_checkable

import motor.motor_asyncio
from pymongo.errors import OperationFailure, PyMongoError

from chatify_ai.config.settings import settings
from chatify_ai.src.core.errors import ProviderError
from chatify_ai.src.core.models import ChatTurn, Transcript
from chatify_ai.src.utils.logger import get_logger

logger = get_logger(__name__)

_SWEEP_INTERVAL_SECONDS: int = 60
# IndexOptionsConflict, IndexKeySpecsConflict
_INDEX_CONFLICT_CODES: frozenset[int] = frozenset({85, 86})


# ══════════════════════════════════════════════════════════════════════
#  CONTRACT
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class ConversationMemory(Protocol):
    """Structural type shared by every memory backend."""

    async def get(self, thread_id: str) -> Transcript: ...

    async def save(self, thread_id: str, transcript: Transcript) -> None: ...

    async def append(self, thread_id: str, turn: ChatTurn) -> None: ...

    async def clear(self, thread_id: str) -> None: ...

    async def exists(self, thread_id: str) -> bool: ...


# ══════════════════════════════════════════════════════════════════════
#  IN-PROCESS BACKEND
# ══════════════════════════════════════════════════════════════════════


class InMemoryConversationMemory:
    """
    Process-local TTL map.

    Parameters
    ----------
    ttl_seconds
        Sliding expiry.  Defaults to ``settings.MEMORY_TTL_SECONDS``.
    clock
        Monotonic time source, injectable for tests.
    sweep_interval
        Minimum seconds between two full sweeps triggered by writes.
    """

    __slots__ = ("_ttl", "_clock", "_entries", "_sweep_interval", "_next_sweep")

    def __init__(self, ttl_seconds: int | None = None, clock: Callable[[], float] = time.monotonic, sweep_interval: float = _SWEEP_INTERVAL_SECONDS) -> None:
        self._ttl: int = ttl_seconds or settings.MEMORY_TTL_SECONDS
        self._clock = clock
        self._entries: dict[str, tuple[Transcript, float]] = {}
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval


    def _live_entry(self, thread_id: str) -> Transcript | None:
        entry = self._entries.get(thread_id)
        if entry is None:
            return None
        transcript, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[thread_id]
            logger.debug("[MEMORY] Thread '%s' expired.", thread_id)
            return None
        return transcript


    async def get(self, thread_id: str) -> Transcript:
        transcript = self._live_entry(thread_id)
        return list(transcript) if transcript is not None else []


    async def save(self, thread_id: str, transcript: Transcript) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self.purge_expired()
            self._next_sweep = now + self._sweep_interval
        self._entries[thread_id] = (list(transcript), now + self._ttl)
        logger.debug("[MEMORY] Saved thread '%s' (%d turns).", thread_id, len(transcript))


    async def append(self, thread_id: str, turn: ChatTurn) -> None:
        transcript = await self.get(thread_id)
        transcript.append(turn)
        await self.save(thread_id, transcript)


    async def clear(self, thread_id: str) -> None:
        self._entries.pop(thread_id, None)
        logger.info("[MEMORY] Cleared thread '%s'.", thread_id)


    async def exists(self, thread_id: str) -> bool:
        return self._live_entry(thread_id) is not None


    def purge_expired(self) -> int:
        """Evict every expired thread now.  Returns the number removed."""
        now = self._clock()
        stale = [tid for tid, (_, expires_at) in self._entries.items() if now >= expires_at]
        for tid in stale:
            del self._entries[tid]
        if stale:
            logger.info("[MEMORY] Purged %d expired thread(s).", len(stale))
        return len(stale)


    def __len__(self) -> int:
        return len(self._entries)


# ══════════════════════════════════════════════════════════════════════
#  MONGODB BACKEND
# ══════════════════════════════════════════════════════════════════════

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def _get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the process-wide async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        if settings.MONGO_URI is None:
            raise RuntimeError("MONGO_URI is not configured.")
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value())
        logger.info("[MEMORY] MongoDB async client created.")
    return _mongo_client


class MongoConversationMemory:
    """
    Thread transcripts in MongoDB with a sliding TTL.

    Parameters
    ----------
    collection
        Optional pre-built motor collection (tests inject a mock here).
        Defaults to ``settings.MONGO_DB_NAME`` / ``settings.MONGO_COLLECTION``.
    ttl_seconds
        Sliding expiry.  Defaults to ``settings.MEMORY_TTL_SECONDS``.
    """

    __slots__ = ("_collection", "_ttl", "_index_ready")

    def __init__(self, collection: object | None = None, ttl_seconds: int | None = None) -> None:
        if collection is None:
            client = _get_mongo_client()
            collection = client[settings.MONGO_DB_NAME][settings.MONGO_COLLECTION]
        self._collection = collection
        self._ttl: int = ttl_seconds or settings.MEMORY_TTL_SECONDS
        self._index_ready = False


    async def _ensure_indexes(self) -> None:
        if self._index_ready:
            return
        await self._collection.create_index("thread_id", unique=True)  # type: ignore[attr-defined]
        try:
            await self._collection.create_index("updated_at", expireAfterSeconds=self._ttl)  # type: ignore[attr-defined]
        except OperationFailure as exc:
            if exc.code not in _INDEX_CONFLICT_CODES:
                raise
            # An existing TTL index was built with another expiry; retune it in place.
            logger.warning("[MEMORY] TTL index conflict (%s); updating expireAfterSeconds to %ds.", exc.code, self._ttl)
            await self._collection.database.command("collMod", self._collection.name, index={"keyPattern": {"updated_at": 1}, "expireAfterSeconds": self._ttl})  # type: ignore[attr-defined]
        self._index_ready = True
        logger.info("[MEMORY] MongoDB indexes ensured (ttl=%ds).", self._ttl)


    def _cutoff(self) -> datetime:
        return datetime.now(timezone.utc) - timedelta(seconds=self._ttl)


    async def get(self, thread_id: str) -> Transcript:
        try:
            doc = await self._collection.find_one({"thread_id": thread_id, "updated_at": {"$gte": self._cutoff()}}, {"turns": 1})  # type: ignore[attr-defined]
        except PyMongoError as exc:
            logger.error("[MEMORY] Read failed for thread '%s': %s", thread_id, exc)
            raise ProviderError("memory", str(exc)) from exc
        if doc is None:
            return []
        return [ChatTurn.model_validate(raw) for raw in doc.get("turns", [])]


    async def save(self, thread_id: str, transcript: Transcript) -> None:
        turns = [turn.model_dump(exclude_none=True) for turn in transcript]
        try:
            await self._ensure_indexes()
            await self._collection.update_one({"thread_id": thread_id}, {"$set": {"turns": turns, "updated_at": datetime.now(timezone.utc)}}, upsert=True)  # type: ignore[attr-defined]
        except PyMongoError as exc:
            logger.error("[MEMORY] Write failed for thread '%s': %s", thread_id, exc)
            raise ProviderError("memory", str(exc)) from exc
        logger.debug("[MEMORY] Saved thread '%s' (%d turns).", thread_id, len(turns))


    async def append(self, thread_id: str, turn: ChatTurn) -> None:
        transcript = await self.get(thread_id)
        transcript.append(turn)
        await self.save(thread_id, transcript)


    async def clear(self, thread_id: str) -> None:
        try:
            await self._collection.delete_one({"thread_id": thread_id})  # type: ignore[attr-defined]
        except PyMongoError as exc:
            raise ProviderError("memory", str(exc)) from exc
        logger.info("[MEMORY] Cleared thread '%s'.", thread_id)


    async def exists(self, thread_id: str) -> bool:
        try:
            doc = await self._collection.find_one({"thread_id": thread_id, "updated_at": {"$gte": self._cutoff()}}, {"_id": 1})  # type: ignore[attr-defined]
        except PyMongoError as exc:
            raise ProviderError("memory", str(exc)) from exc
        return doc is not None


def build_memory() -> ConversationMemory:
    """Construct the backend selected by ``settings.MEMORY_BACKEND``."""
    if settings.MEMORY_BACKEND == "mongo":
        return MongoConversationMemory()
    return InMemoryConversationMemory()
