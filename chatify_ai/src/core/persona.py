"""
Chatify AI - Persona Selector
==============================
Maps a leading trigger token (``@summarizer``, ``@finder``, ...) to a
persona and strips it from the query.

Matching is a case-insensitive *literal prefix* test against the raw
message, walked in the declaration order of ``PERSONAS``; the first hit
wins.  No match → the ``default`` persona and the message untouched.

Usage:
    selector = PersonaSelector()
    key, persona, clean = selector.detect("@finder the wifi password")
    # ("finder", Persona(name="Finder", ...), "the wifi password")
"""

from __future__ import annotations

from typing import NamedTuple

from chatify_ai.config.prompt_templates import DEFAULT_PERSONA_KEY, PERSONAS
from chatify_ai.src.core.models import Persona
from chatify_ai.src.utils.logger import get_logger

logger = get_logger(__name__)


class PersonaMatch(NamedTuple):
    key: str
    persona: Persona
    clean_message: str


class PersonaSelector:
    """
    Trigger-prefix persona detection over an ordered persona table.

    Parameters
    ----------
    personas
        Ordered ``key → Persona`` mapping.  Must contain ``default_key``.
    default_key
        Key of the fallback persona (the one with no trigger).
    """

    __slots__ = ("_personas", "_default_key")

    def __init__(self, personas: dict[str, Persona] | None = None, default_key: str = DEFAULT_PERSONA_KEY) -> None:
        self._personas = personas if personas is not None else PERSONAS
        if default_key not in self._personas:
            raise ValueError(f"Default persona '{default_key}' is not in the persona table.")
        self._default_key = default_key


    @property
    def default(self) -> Persona:
        return self._personas[self._default_key]


    def detect(self, raw_message: str) -> PersonaMatch:
        """
        Detect the persona addressed by *raw_message*.

        Returns
        -------
        PersonaMatch
            ``(key, persona, clean_message)`` where ``clean_message`` has
            the trigger removed and surrounding whitespace trimmed, or is
            the original message when nothing matched.
        """
        lowered = raw_message.lower()

        for key, persona in self._personas.items():
            trigger = persona.trigger
            if trigger and lowered.startswith(trigger.lower()):
                clean = raw_message[len(trigger):].strip()
                logger.debug("[PERSONA] Trigger '%s' → '%s'", trigger, key)
                return PersonaMatch(key, persona, clean)

        return PersonaMatch(self._default_key, self.default, raw_message)
