"""
Chatify AI - ChatVectorStore
=============================
OOP wrapper around LanceDB providing the Vector Index contract:

  • ``upsert(id, vector, text, metadata)`` — keyed by ``message_id``
  • ``query(vector, filter, limit)``       — cosine similarity + metadata filter
  • ``delete(id)``

Filters arrive in a provider-neutral nested form built by Message Search
and are rendered to a LanceDB SQL ``WHERE`` clause here, so this is the
only module that knows LanceDB syntax::

    {"$and": [{"conversation_type": {"$eq": "private"}},
              {"$or": [{"sender_id": {"$eq": "u1"}}, {"receiver_id": {"$eq": "u1"}}]}]}
    →  (conversation_type = 'private' AND (sender_id = 'u1' OR receiver_id = 'u1'))

Design decisions:
  • **Singleton DB connection** — ``_get_connection()`` caches the
    ``lancedb.DBConnection`` per path to avoid file-lock contention.
  • **Vectors in, vectors out** — embedding happens in the provider
    layer; the store never calls a model.
  • **Similarity score** — cosine distance is converted to
    ``score = 1 - distance`` so callers sort "higher is better".

All methods are synchronous; async callers wrap them with
``asyncio.to_thread``.
"""

from __future__ import annotations

import threading
from typing import Any

import lancedb
import pyarrow as pa

from chatify_ai.config.settings import settings
from chatify_ai.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
FilterSpec = dict[str, Any]
MessageRecord = dict[str, str | list[float] | None]
QueryRow = tuple[str, dict[str, str | None], float]

# ── Metadata columns (everything except the vector and the text) ──────
METADATA_FIELDS: tuple[str, ...] = ("message_id", "sender_id", "receiver_id", "group_id", "conversation_type", "timestamp")

_COMPARISON_OPERATORS: dict[str, str] = {"$eq": "=", "$ne": "!=", "$gt": ">", "$gte": ">=", "$lt": "<", "$lte": "<="}

_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def build_schema(dimensions: int) -> pa.Schema:
    """LanceDB table schema for chat messages with a fixed-width vector column."""
    return pa.schema([
        pa.field("vector", pa.list_(pa.float32(), dimensions)),
        pa.field("text", pa.utf8()),
        pa.field("message_id", pa.utf8()),
        pa.field("sender_id", pa.utf8()),
        pa.field("receiver_id", pa.utf8()),
        pa.field("group_id", pa.utf8()),
        pa.field("conversation_type", pa.utf8()),
        pa.field("timestamp", pa.utf8()),
    ])


def _get_connection(db_path: str) -> lancedb.DBConnection:
    """Return a process-wide ``lancedb.DBConnection`` for *db_path* (thread-safe)."""
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", db_path)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


# ══════════════════════════════════════════════════════════════════════
#  FILTER RENDERING
# ══════════════════════════════════════════════════════════════════════


def _quote(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def render_where(spec: FilterSpec) -> str:
    """
    Render a provider-neutral filter to a SQL ``WHERE`` expression.

    Supported forms: ``{"$and": [...]}``, ``{"$or": [...]}`` and
    ``{field: {op: value, ...}}`` with ``op`` in ``$eq $ne $gt $gte $lt $lte``.
    Several keys in one dict are AND-ed.

    Raises
    ------
    ValueError
        On an unknown operator, an unknown field, or an empty group.
    """
    clauses: list[str] = []

    for key, value in spec.items():
        if key in ("$and", "$or"):
            if not value:
                raise ValueError(f"Empty '{key}' group in filter.")
            joiner = " AND " if key == "$and" else " OR "
            parts = [render_where(sub) for sub in value]
            clauses.append(parts[0] if len(parts) == 1 else "(" + joiner.join(parts) + ")")
            continue

        if key not in METADATA_FIELDS:
            raise ValueError(f"Unknown filter field '{key}'.")
        for op, operand in value.items():
            if op not in _COMPARISON_OPERATORS:
                raise ValueError(f"Unsupported filter operator '{op}'.")
            clauses.append(f"{key} {_COMPARISON_OPERATORS[op]} {_quote(operand)}")

    if not clauses:
        raise ValueError("Empty filter.")
    return clauses[0] if len(clauses) == 1 else "(" + " AND ".join(clauses) + ")"


# ══════════════════════════════════════════════════════════════════════
#  STORE
# ══════════════════════════════════════════════════════════════════════


class ChatVectorStore:
    """
    High-level abstraction over the LanceDB chat-message table.

    Parameters
    ----------
    db_path
        Override the database directory.  Defaults to ``settings.LANCEDB_PATH``.
    table_name
        Override the table name.  Defaults to ``settings.LANCEDB_TABLE_NAME``.
    dimensions
        Vector width.  Defaults to ``settings.EMBEDDING_DIMENSIONS``.
    """

    __slots__ = ("_db_path", "_table_name", "_dimensions", "db", "table")

    def __init__(self, db_path: str | None = None, table_name: str | None = None, dimensions: int | None = None) -> None:
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._table_name: str = table_name or settings.LANCEDB_TABLE_NAME
        self._dimensions: int = dimensions or settings.EMBEDDING_DIMENSIONS
        self.db: lancedb.DBConnection | None = None
        self.table: lancedb.table.Table | None = None
        self._connect()


    def _connect(self) -> None:
        """Open (or re-use) the LanceDB connection and initialise the table."""
        try:
            self.db = _get_connection(self._db_path)

            if self._table_name in self.db.table_names():
                self.table = self.db.open_table(self._table_name)
                logger.info("Opened existing table '%s' (%d rows).", self._table_name, self.table.count_rows())
            else:
                self.table = self.db.create_table(self._table_name, schema=build_schema(self._dimensions))
                logger.info("Created new table '%s' (dim=%d).", self._table_name, self._dimensions)

        except OSError as exc:
            logger.error("LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise


    def _require_table(self) -> lancedb.table.Table:
        if self.table is None:
            raise RuntimeError("Vector table is not initialised. Call _connect() first.")
        return self.table


    def upsert(self, message_id: str, vector: list[float], text: str, metadata: dict[str, str | None]) -> None:
        """
        Insert or replace the entry for *message_id*.

        Raises
        ------
        ValueError
            If the vector width does not match the table.
        """
        table = self._require_table()
        if len(vector) != self._dimensions:
            raise ValueError(f"Vector has {len(vector)} dimensions, table expects {self._dimensions}.")

        record: MessageRecord = {"vector": vector, "text": text, **{field: metadata.get(field) for field in METADATA_FIELDS}}
        record["message_id"] = message_id

        table.merge_insert("message_id").when_matched_update_all().when_not_matched_insert_all().execute([record])
        logger.debug("Upserted message '%s'.", message_id)


    def query(self, vector: list[float], filter_spec: FilterSpec | None = None, limit: int = 5) -> list[QueryRow]:
        """
        Cosine-similarity search restricted by *filter_spec*.

        Returns
        -------
        list[QueryRow]
            ``(text, metadata, score)`` tuples, highest score first,
            at most *limit* long.
        """
        table = self._require_table()
        query = table.search(vector).distance_type("cosine").limit(limit)

        if filter_spec:
            where_str = render_where(filter_spec)
            query = query.where(where_str, prefilter=True)
            logger.debug("Searching with filter: %s", where_str)

        rows: list[dict[str, Any]] = query.to_list()
        results: list[QueryRow] = [(row["text"], {field: row.get(field) for field in METADATA_FIELDS}, 1.0 - float(row.get("_distance", 1.0))) for row in rows]
        results.sort(key=lambda r: r[2], reverse=True)
        logger.info("Search returned %d results.", len(results))
        return results


    def delete(self, message_id: str) -> None:
        """Remove the entry for *message_id* (no-op if absent)."""
        table = self._require_table()
        table.delete(f"message_id = {_quote(message_id)}")
        logger.debug("Deleted message '%s'.", message_id)


    def count(self) -> int:
        """Return the total number of rows in the table."""
        if self.table is None:
            return 0
        return self.table.count_rows()


    def drop_table(self) -> None:
        """Drop the vector table (used by the operator CLI)."""
        if self.db is None:
            logger.warning("No database connection; nothing to drop.")
            return
        try:
            self.db.drop_table(self._table_name)
            self.table = None
            logger.info("Dropped table '%s'.", self._table_name)
        except (ValueError, FileNotFoundError):
            logger.warning("Table '%s' does not exist — nothing to drop.", self._table_name)


    def __repr__(self) -> str:
        return f"ChatVectorStore(db='{self._db_path}', table='{self._table_name}', rows={self.count()})"
