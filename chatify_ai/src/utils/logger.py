"""
Chatify AI - Logging
=====================
Logger factory plus the two small helpers every stage log line uses:
``elapsed_ms`` for ``perf_counter`` timings and ``mask_secret`` for
printing credentials safely.

Verbosity follows ``settings.ENV``:
  • ``"dev"``  → DEBUG
  • ``"prod"`` → WARNING

Every component prefixes its lines with a bracketed tag so one request
can be followed through the pipeline::

    [RAG] Persona 'summarizer' selected for thread 't1'
    [SEARCH] 3 match(es) in 41.2ms
    [LLM] Completion in 812.0ms (tool_calls=1)

Usage:
    from chatify_ai.src.utils.logger import get_logger
    logger = get_logger(__name__)
"""

import logging
import sys
import time

from chatify_ai.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_DEFAULT_LEVEL = _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return a named logger writing to stdout.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit level override; defaults to the ``ENV``-derived level.

    Returns:
        A configured ``logging.Logger``.  Calling this twice for the same
        name returns the same logger without stacking handlers.
    """
    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(resolved_level)
        handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(handler)

        logger.propagate = False

    return logger


def elapsed_ms(t_start: float) -> float:
    """Milliseconds since *t_start* (a ``time.perf_counter()`` reading)."""
    return (time.perf_counter() - t_start) * 1000


def mask_secret(value: str, visible: int = 4) -> str:
    """Mask all but the last *visible* characters of a credential."""
    if len(value) <= visible:
        return "****"
    return f"****{value[-visible:]}"
