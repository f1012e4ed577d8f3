"""
Chatify AI - Message Search
============================
Turns a natural-language query into ranked chat-history matches:
embed the query, restrict the vector index to what the user may see,
return at most ``limit`` results ordered by descending similarity.

Visibility filter
-----------------
``private``  → ``conversation_type = private`` AND the user is sender or
               receiver; with a ``target_id`` only the two directions of
               the (user, target) pair.
``group``    → ``conversation_type = group`` AND the user is the sender;
               with a ``target_id`` additionally ``group_id = target_id``.
otherwise    → the user is sender or receiver, any conversation type.

Time window
-----------
``today`` (local midnight → now), ``week`` (rolling 7 days), ``month``
(rolling 30 days), or explicit ``date_from`` / ``date_to``.  Bounds are
inclusive and compared as normalised ISO-8601 strings.

Failures of the embedder or the index raise ``SearchFailure``; an empty
list only ever means "no matches".
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from chatify_ai.src.core.errors import SearchFailure, ValidationError
from chatify_ai.src.core.models import MessageMetadata, SearchResult, TimeRange
from chatify_ai.src.database.vector_store import FilterSpec
from chatify_ai.src.utils.logger import elapsed_ms, get_logger
from chatify_ai.src.utils.text_utils import to_iso8601

logger = get_logger(__name__)

_ROLLING_WINDOWS: dict[str, timedelta] = {"week": timedelta(days=7), "month": timedelta(days=30)}


# ══════════════════════════════════════════════════════════════════════
#  FILTER CONSTRUCTION
# ══════════════════════════════════════════════════════════════════════


def _eq(field: str, value: str) -> FilterSpec:
    return {field: {"$eq": value}}


def build_visibility_filter(user_id: str, conversation_type: str | None = None, target_id: str | None = None) -> FilterSpec:
    """Filter restricting results to messages *user_id* may see."""
    if conversation_type == "private":
        if target_id:
            pair = [
                {"$and": [_eq("sender_id", user_id), _eq("receiver_id", target_id)]},
                {"$and": [_eq("sender_id", target_id), _eq("receiver_id", user_id)]},
            ]
        else:
            pair = [_eq("sender_id", user_id), _eq("receiver_id", user_id)]
        return {"$and": [_eq("conversation_type", "private"), {"$or": pair}]}

    if conversation_type == "group":
        clauses = [_eq("conversation_type", "group"), _eq("sender_id", user_id)]
        if target_id:
            clauses.append(_eq("group_id", target_id))
        return {"$and": clauses}

    return {"$or": [_eq("sender_id", user_id), _eq("receiver_id", user_id)]}


def resolve_time_range(time_range: TimeRange | str | None, now: datetime | None = None) -> tuple[str | None, str | None] | None:
    """
    Resolve a time window to inclusive ``(from, to)`` ISO-8601 bounds.

    Either bound may be ``None`` for an explicit one-sided window.
    Returns ``None`` when there is no constraint (no range, or an
    unrecognised symbolic range).

    Raises
    ------
    ValidationError
        If an explicit bound is not a valid ISO-8601 timestamp.
    """
    if time_range is None:
        return None
    if isinstance(time_range, str):
        time_range = TimeRange(range=time_range) if time_range in ("today", "week", "month") else TimeRange()

    now = now or datetime.now(timezone.utc)

    if time_range.range == "today":
        local_midnight = now.astimezone().replace(hour=0, minute=0, second=0, microsecond=0)
        return to_iso8601(local_midnight), to_iso8601(now)

    if time_range.range in _ROLLING_WINDOWS:
        return to_iso8601(now - _ROLLING_WINDOWS[time_range.range]), to_iso8601(now)

    if time_range.date_from or time_range.date_to:
        try:
            date_from = to_iso8601(time_range.date_from) if time_range.date_from else None
            date_to = to_iso8601(time_range.date_to) if time_range.date_to else None
        except ValueError as exc:
            raise ValidationError(f"Invalid time range: {exc}") from exc
        return date_from, date_to

    return None


def build_search_filter(user_id: str, conversation_type: str | None = None, target_id: str | None = None, time_range: TimeRange | str | None = None, now: datetime | None = None) -> FilterSpec:
    """Visibility filter, narrowed by the resolved time window when given."""
    spec = build_visibility_filter(user_id, conversation_type, target_id)
    bounds = resolve_time_range(time_range, now)
    if bounds is None:
        return spec

    date_from, date_to = bounds
    window: dict[str, str] = {}
    if date_from:
        window["$gte"] = date_from
    if date_to:
        window["$lte"] = date_to
    return {"$and": [spec, {"timestamp": window}]}


# ══════════════════════════════════════════════════════════════════════
#  SEARCH
# ══════════════════════════════════════════════════════════════════════


class MessageSearch:
    """
    Semantic search over the user's indexed chat history.

    Parameters
    ----------
    embeddings
        Object exposing ``async embed(text) -> list[float] | None``.
    vector_store
        Object exposing ``query(vector, filter_spec, limit)`` returning
        ``(text, metadata, score)`` rows (``ChatVectorStore``).
    clock
        Returns "now" as an aware ``datetime``; injectable for tests.
    """

    __slots__ = ("_embeddings", "_store", "_clock")

    def __init__(self, embeddings: Any, vector_store: Any, clock: Callable[[], datetime] | None = None) -> None:
        self._embeddings = embeddings
        self._store = vector_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))


    async def search(self, query: str, user_id: str, conversation_type: str | None = None, target_id: str | None = None, limit: int = 5, time_range: TimeRange | str | None = None) -> list[SearchResult]:
        """
        Return at most *limit* matches for *query*, best first.

        Raises
        ------
        SearchFailure
            If embedding the query or querying the index fails.
        """
        spec = build_search_filter(user_id, conversation_type, target_id, time_range, now=self._clock())

        t_start = time.perf_counter()
        try:
            vector = await self._embeddings.embed(query)
            if vector is None:
                logger.info("[SEARCH] Blank query — nothing to search.")
                return []
            rows = await asyncio.to_thread(self._store.query, vector, spec, limit)
        except Exception as exc:
            logger.error("[SEARCH] Search failed for user '%s': %s", user_id, exc)
            raise SearchFailure(str(exc)) from exc

        results = [SearchResult(text=text, metadata=MessageMetadata.model_validate(meta), score=score) for text, meta, score in rows]
        results.sort(key=lambda r: r.score, reverse=True)
        results = results[:limit]

        logger.info("[SEARCH] %d match(es) for user '%s' (type=%s, target=%s) in %.1fms", len(results), user_id, conversation_type or "all", target_id or "-", elapsed_ms(t_start))
        return results
