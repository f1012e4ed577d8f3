"""
Chatify AI - MessageIndexer
============================
Keeps the vector index in step with the chat application: one message at
a time as they are sent (``index`` / ``delete``), or in bulk from chat
exports when the index has to be rebuilt (``run``).

Key design decisions:
    • **Dependency Injection** – receives the embedding provider and the
      ``ChatVectorStore``.
    • **Upsert semantics** – re-indexing a ``message_id`` replaces the
      previous entry; edits are just another ``index`` call.
    • **Blank text is a no-op** – nothing is embedded or written for
      attachments-only / empty messages.
    • **Normalised timestamps** – stored as ``YYYY-MM-DDTHH:MM:SS.mmmZ``
      so time-window filters can compare strings.
    • **Bulk concurrency** – messages of an export are embedded in
      parallel, bounded by an ``asyncio.Semaphore(INDEX_CONCURRENCY)``.
    • **Caching** – MD5-based file hashing skips unchanged export files.

Export format (``*.jsonl``, one message per line, camelCase keys)::

    {"messageId": "m1", "text": "hi", "senderId": "u1", "receiverId": "u2",
     "conversationType": "private", "timestamp": "2024-05-01T09:30:00Z"}

Usage:
    indexer = MessageIndexer(embeddings, vector_store)
    await indexer.index(IndexedMessage(message_id="m1", text="hi", sender_id="u1"))
    summary = await indexer.run()
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError as ModelValidationError

from chatify_ai.config.settings import settings
from chatify_ai.src.core.errors import ProviderError, ValidationError
from chatify_ai.src.core.models import DeleteResult, IndexedMessage, IndexResult
from chatify_ai.src.utils.logger import elapsed_ms, get_logger
from chatify_ai.src.utils.text_utils import clean_text, is_blank, to_iso8601

logger = get_logger(__name__)

_EXPORT_SUFFIX = ".jsonl"
NO_TEXT_REASON = "No text content"


class MessageIndexer:
    """
    Index, re-index and delete chat messages in the vector store.

    Parameters
    ----------
    embeddings
        Object exposing ``async embed(text) -> list[float] | None``.
    vector_store
        A ``ChatVectorStore`` (sync; called through ``asyncio.to_thread``).
    source_dir
        Export directory for ``run``.  Defaults to ``settings.DATA_EXPORT_DIR``.
    concurrency
        Parallel embeddings during ``run``.  Defaults to ``settings.INDEX_CONCURRENCY``.
    hash_cache_path
        Where export-file hashes are kept.  Defaults to
        ``settings.DATA_PROCESSED_DIR / "index_hashes.json"``.
    """

    def __init__(self, embeddings: Any, vector_store: Any, source_dir: Path | None = None, concurrency: int | None = None, hash_cache_path: Path | None = None) -> None:
        self._embeddings = embeddings
        self._store = vector_store
        self._source_dir = Path(source_dir or settings.DATA_EXPORT_DIR)
        self._concurrency = concurrency or settings.INDEX_CONCURRENCY
        self._hash_cache_path: Path = hash_cache_path or settings.DATA_PROCESSED_DIR / "index_hashes.json"
        self._hash_cache: dict[str, str] = self._load_hash_cache()

    # ══════════════════════════════════════════════════════════════════
    #  SINGLE MESSAGE
    # ══════════════════════════════════════════════════════════════════

    async def index(self, message: IndexedMessage) -> IndexResult:
        """
        Embed and upsert one message.

        Returns
        -------
        IndexResult
            ``indexed=False`` with a reason when the message has no text.

        Raises
        ------
        ValidationError
            If the timestamp is not ISO-8601.
        ProviderError
            If embedding or the index write fails.
        """
        if is_blank(message.text):
            return IndexResult(indexed=False, message_id=message.message_id, reason=NO_TEXT_REASON)

        text = clean_text(message.text)  # type: ignore[arg-type]
        try:
            timestamp = to_iso8601(message.timestamp)
        except ValueError as exc:
            raise ValidationError(f"Invalid timestamp for message '{message.message_id}': {message.timestamp}") from exc

        t_start = time.perf_counter()
        vector = await self._embeddings.embed(text)
        if vector is None:
            return IndexResult(indexed=False, message_id=message.message_id, reason=NO_TEXT_REASON)

        metadata = {"sender_id": message.sender_id, "receiver_id": message.receiver_id, "group_id": message.group_id, "conversation_type": message.conversation_type, "timestamp": timestamp}
        try:
            await asyncio.to_thread(self._store.upsert, message.message_id, vector, text, metadata)
        except Exception as exc:
            logger.error("[INDEX] Upsert failed for '%s': %s", message.message_id, exc)
            raise ProviderError("vector-index", str(exc)) from exc

        logger.info("[INDEX] Indexed message '%s' (%s) in %.1fms", message.message_id, message.conversation_type, elapsed_ms(t_start))
        return IndexResult(indexed=True, message_id=message.message_id)


    async def delete(self, message_id: str) -> DeleteResult:
        """Remove *message_id* from the index.  Deleting an unknown id is not an error."""
        try:
            await asyncio.to_thread(self._store.delete, message_id)
        except Exception as exc:
            logger.error("[INDEX] Delete failed for '%s': %s", message_id, exc)
            raise ProviderError("vector-index", str(exc)) from exc

        logger.info("[INDEX] Deleted message '%s'.", message_id)
        return DeleteResult(deleted=True, message_id=message_id)

    # ══════════════════════════════════════════════════════════════════
    #  BULK RE-IMPORT
    # ══════════════════════════════════════════════════════════════════

    async def run(self, source_dir: Path | None = None) -> dict[str, Any]:
        """
        Re-index every ``*.jsonl`` export under the source directory.

        Returns
        -------
        dict
            Execution summary with keys:
            ``total_files``, ``files_processed``, ``files_skipped``,
            ``messages_indexed``, ``messages_skipped``, ``elapsed_seconds``.
        """
        t_start = time.perf_counter()
        source = Path(source_dir or self._source_dir)

        if not source.exists():
            logger.warning("[INDEX] Source directory does not exist: %s", source)
            return self._summary(0, 0, 0, 0, 0, time.perf_counter() - t_start)

        files = sorted(f for f in source.iterdir() if f.suffix.lower() == _EXPORT_SUFFIX)
        if not files:
            logger.warning("[INDEX] No %s exports found in %s", _EXPORT_SUFFIX, source)
            return self._summary(0, 0, 0, 0, 0, time.perf_counter() - t_start)

        logger.info("[INDEX] Starting re-import — %d file(s) found in %s", len(files), source)

        semaphore = asyncio.Semaphore(self._concurrency)
        files_processed = files_skipped = indexed = skipped = 0

        for filepath in files:
            outcome = await self._index_file(filepath, semaphore)
            if outcome is None:
                files_skipped += 1
                continue
            files_processed += 1
            indexed += outcome[0]
            skipped += outcome[1]

        self._save_hash_cache()

        elapsed = time.perf_counter() - t_start
        logger.info("[INDEX] Re-import complete — %d file(s) processed, %d skipped, %d message(s) indexed, %d skipped in %.2fs.", files_processed, files_skipped, indexed, skipped, elapsed)
        return self._summary(len(files), files_processed, files_skipped, indexed, skipped, elapsed)


    async def _index_file(self, filepath: Path, semaphore: asyncio.Semaphore) -> tuple[int, int] | None:
        """
        Index one export file.

        Returns
        -------
        tuple[int, int] | None
            ``(indexed, skipped)`` message counts, or ``None`` on a cache hit.
        """
        file_hash = self._compute_file_hash(filepath)
        if self._hash_cache.get(filepath.name) == file_hash:
            logger.info("[INDEX] CACHE_HIT — Skipping unchanged file: %s", filepath.name)
            return None

        t_file = time.perf_counter()
        messages, malformed = self._read_export(filepath)

        async def _bounded(message: IndexedMessage) -> bool | None:
            async with semaphore:
                try:
                    return (await self.index(message)).indexed
                except (ProviderError, ValidationError) as exc:
                    logger.error("[INDEX] Message '%s' in %s failed: %s", message.message_id, filepath.name, exc)
                    return None

        outcomes = await asyncio.gather(*(_bounded(m) for m in messages))
        indexed = sum(1 for ok in outcomes if ok)
        skipped = malformed + len(outcomes) - indexed

        # A file with failed messages is retried on the next run
        if None not in outcomes:
            self._hash_cache[filepath.name] = file_hash

        logger.info("[INDEX] File '%s' — %d indexed, %d skipped in %.1fms.", filepath.name, indexed, skipped, elapsed_ms(t_file))
        return indexed, skipped


    @staticmethod
    def _read_export(filepath: Path) -> tuple[list[IndexedMessage], int]:
        """Parse a JSONL export.  Returns the valid messages and the malformed-line count."""
        messages: list[IndexedMessage] = []
        malformed = 0
        with open(filepath, encoding="utf-8") as f:
            for line_no, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    messages.append(IndexedMessage.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ModelValidationError) as exc:
                    malformed += 1
                    logger.warning("[INDEX] %s:%d malformed line skipped (%s)", filepath.name, line_no, exc.__class__.__name__)
        return messages, malformed

    # ══════════════════════════════════════════════════════════════════
    #  MD5 CACHING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _compute_file_hash(filepath: Path) -> str:
        """Return the MD5 hex digest of a file's contents."""
        hasher = hashlib.md5()
        with open(filepath, "rb") as f:
            for block in iter(lambda: f.read(8192), b""):
                hasher.update(block)
        return hasher.hexdigest()


    def _load_hash_cache(self) -> dict[str, str]:
        if self._hash_cache_path.exists():
            try:
                return json.loads(self._hash_cache_path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError):
                logger.warning("[INDEX] Corrupt hash cache — starting fresh.")
        return {}


    def _save_hash_cache(self) -> None:
        self._hash_cache_path.parent.mkdir(parents=True, exist_ok=True)
        self._hash_cache_path.write_text(json.dumps(self._hash_cache, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("[INDEX] Hash cache saved to %s", self._hash_cache_path)


    def clear_hash_cache(self) -> None:
        """Forget every export hash (``--purge``) so the next run re-reads all files."""
        self._hash_cache = {}
        if self._hash_cache_path.exists():
            self._hash_cache_path.unlink()
            logger.info("[INDEX] Hash cache removed: %s", self._hash_cache_path)


    @staticmethod
    def _summary(total: int, processed: int, skipped: int, indexed: int, messages_skipped: int, elapsed: float) -> dict[str, Any]:
        return {
            "total_files": total,
            "files_processed": processed,
            "files_skipped": skipped,
            "messages_indexed": indexed,
            "messages_skipped": messages_skipped,
            "elapsed_seconds": round(elapsed, 2),
        }
