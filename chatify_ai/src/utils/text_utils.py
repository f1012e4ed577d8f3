"""
Chatify AI - Text & Timestamp Utilities
========================================
Stateless helpers shared by indexing, search and prompt formatting.

Timestamps
----------
Every timestamp written to the vector index goes through
``to_iso8601`` so that all stored values share one shape::

    2024-05-01T09:30:00.000Z

Zero-padded UTC ISO-8601 strings sort lexicographically in time order,
which is what makes ``timestamp >= 'from' AND timestamp <= 'to'`` range
filters valid on a string column.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import datetime, timezone

# Control characters (C0/C1) and zero-width marks, except \n \r \t.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u2060\ufffe]")


def is_blank(text: str | None) -> bool:
    """True for ``None``, empty, or whitespace-only text."""
    return text is None or not text.strip()


def clean_text(text: str) -> str:
    """
    Normalise a chat message before embedding.

    NFC-normalises, strips invisible characters and trims surrounding
    whitespace.  Inner whitespace and newlines are left alone since they
    can carry meaning in code snippets shared in chats.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    return text.strip()


def to_iso8601(value: str | datetime | None = None) -> str:
    """
    Normalise *value* to a UTC ISO-8601 string with millisecond precision.

    Accepts a ``datetime`` (naive values are taken as UTC), an ISO-8601
    string (a trailing ``Z`` is accepted), or ``None`` for "now".

    Raises
    ------
    ValueError
        If *value* is a string that is not ISO-8601.
    """
    if value is None:
        moment = datetime.now(timezone.utc)
    elif isinstance(value, datetime):
        moment = value
    else:
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        moment = datetime.fromisoformat(raw)

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)

    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def format_local_date(timestamp: str) -> str:
    """
    Render an ISO-8601 timestamp as a short local date (``M/D/YYYY``).

    Unparseable input is returned unchanged so a malformed record never
    breaks prompt construction.
    """
    try:
        moment = datetime.fromisoformat(to_iso8601(timestamp)[:-1] + "+00:00").astimezone()
    except ValueError:
        return timestamp
    return f"{moment.month}/{moment.day}/{moment.year}"
