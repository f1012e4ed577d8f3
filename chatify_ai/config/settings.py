"""
Chatify AI - Centralized Configuration
=======================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` and ``TAVILY_API_KEY`` are typed as ``SecretStr`` and
  have **no default value**.  If either key is missing at startup, Pydantic
  raises a ``ValidationError`` naming the missing variable.  The raw values
  never appear in repr, logs, or tracebacks.
- ``MONGO_URI`` is also ``SecretStr`` — connection strings contain
  credentials.  It is only required when ``MEMORY_BACKEND="mongo"``.

Paths
-----
All filesystem paths are ``Path.resolve()``-d at class level so they
work identically on Windows, WSL, and Linux.

Tool loop
---------
``MAX_TOOL_ITERATIONS`` bounds the number of LLM calls a single ``ask``
may make while the model keeps requesting tools (default 5).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required** — the service will refuse
    to start until they are provided.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini embeddings + chat).  **Required.**
    TAVILY_API_KEY : SecretStr
        API key for the Tavily web-search API.  **Required.**
    MEMORY_BACKEND : Literal["memory", "mongo"]
        Where thread transcripts live.  ``memory`` keeps them in-process,
        ``mongo`` stores them in MongoDB with a TTL index.
    MEMORY_TTL_SECONDS : int
        Sliding expiry for a thread, counted from its last write.
    EMBEDDING_MODEL : str
        Model identifier passed to ``GoogleGenerativeAIEmbeddings``.
    EMBEDDING_DIMENSIONS : int
        Width of the vector column in the LanceDB table.
    LLM_MODEL : str
        Model identifier for the chat-completion LLM.
    LANCEDB_TABLE_NAME : str
        Table name inside the LanceDB on-disk database.
    ASK_SEARCH_LIMIT / SUMMARY_SEARCH_LIMIT : int
        Number of chat-history matches used to ground answers / summaries.
    ENABLE_CHAT_SEARCH_TOOL : bool
        Offer the ``searchChats`` tool to the LLM in addition to ``webSearch``.
    INDEX_CONCURRENCY : int
        Parallel embedding calls during bulk re-import.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DATA_EXPORT_DIR: Path = BASE_DIR / "data" / "exports"
    DATA_PROCESSED_DIR: Path = BASE_DIR / "data" / "processed"
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys (REQUIRED, no default) ────────────────────────────────
    GOOGLE_API_KEY: SecretStr
    TAVILY_API_KEY: SecretStr

    # ── Conversation Memory ────────────────────────────────────────────
    MEMORY_BACKEND: Literal["memory", "mongo"] = "memory"
    MEMORY_TTL_SECONDS: int = 60 * 60 * 24
    MONGO_URI: SecretStr | None = None
    MONGO_DB_NAME: str = "chatify_ai"
    MONGO_COLLECTION: str = "ai_threads"

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "models/gemini-embedding-001"
    EMBEDDING_DIMENSIONS: int = 3072
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.0

    # ── LanceDB ────────────────────────────────────────────────────────
    LANCEDB_TABLE_NAME: str = "chat_messages"

    # ── Retrieval & Tool Loop ──────────────────────────────────────────
    ASK_SEARCH_LIMIT: int = 5
    SUMMARY_SEARCH_LIMIT: int = 20
    MAX_TOOL_ITERATIONS: int = 5
    ENABLE_CHAT_SEARCH_TOOL: bool = False

    # ── Web Search (Tavily) ────────────────────────────────────────────
    WEB_SEARCH_URL: str = "https://api.tavily.com/search"
    WEB_SEARCH_MAX_RESULTS: int = 5
    WEB_SEARCH_TIMEOUT: float = 15.0

    # ── Concurrency ────────────────────────────────────────────────────
    INDEX_CONCURRENCY: int = 5

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("MAX_TOOL_ITERATIONS")
    @classmethod
    def _iterations_range(cls, v: int) -> int:
        if not 1 <= v <= 10:
            raise ValueError(f"MAX_TOOL_ITERATIONS must be 1–10, got {v}")
        return v


    @field_validator("INDEX_CONCURRENCY")
    @classmethod
    def _concurrency_range(cls, v: int) -> int:
        if not 1 <= v <= 16:
            raise ValueError(f"INDEX_CONCURRENCY must be 1–16, got {v}")
        return v


    @field_validator("MEMORY_TTL_SECONDS")
    @classmethod
    def _ttl_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"MEMORY_TTL_SECONDS must be positive, got {v}")
        return v


    @model_validator(mode="after")
    def _mongo_backend_needs_uri(self) -> Settings:
        if self.MEMORY_BACKEND == "mongo" and self.MONGO_URI is None:
            raise ValueError("MEMORY_BACKEND='mongo' requires MONGO_URI to be set")
        return self

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from chatify_ai.config.settings import settings
settings = Settings()
