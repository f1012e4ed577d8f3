"""
Chatify AI - Vector Index Setup & Re-import Script
===================================================
CLI entry point that orchestrates:
    1. Validate configuration (``GOOGLE_API_KEY``, ``TAVILY_API_KEY``) fail-fast.
    2. Initialise ``ChatVectorStore`` (optionally drop the existing table).
    3. Re-import chat exports with ``MessageIndexer.run``.
    4. Print a structured execution summary with timing breakdown.

Flags:
    --drop       Drop the LanceDB table before re-importing (hash cache preserved).
    --purge      Drop table AND clear the hash cache (full re-import).
    --drop-only  Drop the table and exit immediately (no re-import).
    --source DIR Read ``*.jsonl`` exports from DIR instead of ``DATA_EXPORT_DIR``.

Usage:
    python -m chatify_ai.scripts.setup_db                      # Normal re-import
    python -m chatify_ai.scripts.setup_db --drop               # Drop table, re-import (skip cached)
    python -m chatify_ai.scripts.setup_db --purge              # Drop table + cache, full re-import
    python -m chatify_ai.scripts.setup_db --drop-only          # Drop table and exit
    python -m chatify_ai.scripts.setup_db --source ./exports   # Custom export directory
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path
from typing import Any

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Chatify AI — Initialise the message vector index and re-import chat exports.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--drop", action="store_true", default=False, help="Drop the LanceDB table before re-importing (hash cache preserved).")
    group.add_argument("--purge", action="store_true", default=False, help="Drop the LanceDB table AND clear the hash cache (full clean re-import).")
    group.add_argument("--drop-only", action="store_true", default=False, help="Drop the LanceDB table and exit (no re-import).")
    parser.add_argument("--source", type=Path, default=None, help="Directory of *.jsonl chat exports (default: DATA_EXPORT_DIR).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from chatify_ai.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        sys.exit(1)
    settings_ms = (time.perf_counter() - t_settings) * 1000

    from chatify_ai.src.utils.logger import get_logger
    logger = get_logger(__name__)

    logger.info("Settings loaded in %.1fms", settings_ms)

    source_dir: Path = args.source or settings.DATA_EXPORT_DIR
    _print_header(settings, source_dir)

    # ── 1. Initialise embedder (timed) ─────────────────────────────────
    from chatify_ai.src.providers.embeddings import EmbeddingProvider

    t_embedder = time.perf_counter()
    logger.info("Initialising embedding model: %s", settings.EMBEDDING_MODEL)
    try:
        embeddings = EmbeddingProvider()
    except Exception:
        logger.exception("Failed to initialise embedding model.")
        sys.exit(1)
    embedder_ms = (time.perf_counter() - t_embedder) * 1000

    # ── 2. Initialise ChatVectorStore (timed) ──────────────────────────
    from chatify_ai.src.core.ingestor import MessageIndexer
    from chatify_ai.src.database.vector_store import ChatVectorStore

    t_lancedb = time.perf_counter()
    logger.info("Connecting to LanceDB at: %s", settings.LANCEDB_PATH)
    store = ChatVectorStore()
    lancedb_ms = (time.perf_counter() - t_lancedb) * 1000
    startup_ms = settings_ms + embedder_ms + lancedb_ms

    indexer = MessageIndexer(embeddings, store, source_dir=source_dir)

    if args.drop or args.purge or args.drop_only:
        logger.warning("Dropping table '%s' as requested.", settings.LANCEDB_TABLE_NAME)
        store.drop_table()

        if args.purge:
            indexer.clear_hash_cache()

        if args.drop_only:
            logger.info("--drop-only: Table dropped. Exiting.")
            _print_footer(None, time.perf_counter() - t_start, settings_ms, embedder_ms, lancedb_ms, startup_ms)
            return

        # Re-open so a fresh table is created
        store = ChatVectorStore()
        indexer = MessageIndexer(embeddings, store, source_dir=source_dir)

    logger.info("VectorStore ready — table '%s' (%d existing rows).", settings.LANCEDB_TABLE_NAME, store.count())
    logger.info("Total startup time: %.1fms (settings: %.1fms, embedder: %.1fms, lancedb: %.1fms)", startup_ms, settings_ms, embedder_ms, lancedb_ms)

    # ── 3. Re-import exports ───────────────────────────────────────────
    summary = asyncio.run(indexer.run())

    # ── 4. Print execution summary ─────────────────────────────────────
    _print_footer(summary, time.perf_counter() - t_start, settings_ms, embedder_ms, lancedb_ms, startup_ms)


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: Any, source_dir: Path) -> None:
    from chatify_ai.src.utils.logger import mask_secret

    print()
    print("=" * 60)
    print("  CHATIFY AI — Vector Index Setup & Re-import")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")
    print(f"  Embedding    : {settings.EMBEDDING_MODEL} ({settings.EMBEDDING_DIMENSIONS} dims)")
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")
    print(f"  Table        : {settings.LANCEDB_TABLE_NAME}")
    print(f"  Source dir   : {source_dir}")
    print(f"  Concurrency  : {settings.INDEX_CONCURRENCY}")
    print(f"  API Key      : {mask_secret(settings.GOOGLE_API_KEY.get_secret_value())}")
    print("=" * 60)
    print()


def _print_footer(summary: dict[str, Any] | None, elapsed: float, settings_ms: float, embedder_ms: float, lancedb_ms: float, startup_ms: float) -> None:
    processing_s = elapsed - (startup_ms / 1000)
    summary = summary or {}

    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Total files scanned  : {summary.get('total_files', 0)}")
    print(f"  Files imported       : {summary.get('files_processed', 0)}")
    print(f"  Files skipped (cache): {summary.get('files_skipped', 0)}")
    print(f"  Messages indexed     : {summary.get('messages_indexed', 0)}")
    print(f"  Messages skipped     : {summary.get('messages_skipped', 0)}")
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  Embedder init        : {embedder_ms:>8.1f}ms")
    print(f"  LanceDB connection   : {lancedb_ms:>8.1f}ms")
    print(f"  Startup time (total) : {startup_ms:>8.1f}ms")
    print(f"  Processing time      : {processing_s:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
