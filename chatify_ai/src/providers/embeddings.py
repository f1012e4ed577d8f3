"""
Chatify AI - Embedding Provider
================================
Turns text into a fixed-width vector with Gemini embeddings via
``langchain-google-genai``.

Contract: ``embed(text)`` returns ``None`` for empty / whitespace input
(nothing to embed) and raises ``ProviderError`` on transport failure.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from chatify_ai.config.settings import settings
from chatify_ai.src.core.errors import ProviderError
from chatify_ai.src.utils.logger import elapsed_ms, get_logger
from chatify_ai.src.utils.text_utils import is_blank

logger = get_logger(__name__)


@runtime_checkable
class AsyncEmbedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    async def aembed_query(self, text: str) -> list[float]: ...


class EmbeddingProvider:
    """
    Async embedding adapter.

    Parameters
    ----------
    embedder
        Any ``AsyncEmbedder``.  Defaults to ``GoogleGenerativeAIEmbeddings``
        configured from settings.
    """

    __slots__ = ("_embedder",)

    def __init__(self, embedder: AsyncEmbedder | None = None) -> None:
        self._embedder = embedder or self._init_embedder()


    @staticmethod
    def _init_embedder() -> AsyncEmbedder:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
        logger.info("[EMBED] Embedder initialised: %s", settings.EMBEDDING_MODEL)
        return embedder


    async def embed(self, text: str | None) -> list[float] | None:
        """Embed *text*; ``None`` for blank input."""
        if is_blank(text):
            return None

        t_start = time.perf_counter()
        try:
            vector = await self._embedder.aembed_query(text)  # type: ignore[arg-type]
        except Exception as exc:
            logger.error("[EMBED] Embedding failed: %s", exc)
            raise ProviderError("embeddings", str(exc)) from exc

        logger.debug("[EMBED] %d-dim vector in %.1fms", len(vector), elapsed_ms(t_start))
        return list(vector)
