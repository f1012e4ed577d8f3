"""
Unit tests for trigger-prefix persona detection.
"""
import pytest

from chatify_ai.src.core.models import Persona
from chatify_ai.src.core.persona import PersonaSelector


class TestPersonaSelector:

    @pytest.fixture
    def selector(self):
        return PersonaSelector()

    def test_summarizer_trigger_is_stripped(self, selector):
        key, persona, clean = selector.detect("@summarizer what did we discuss")

        assert key == "summarizer"
        assert persona.name == "Summarizer"
        assert clean == "what did we discuss"

    def test_trigger_match_is_case_insensitive(self, selector):
        key, _, clean = selector.detect("@FINDER   wifi password  ")

        assert key == "finder"
        assert clean == "wifi password"

    def test_no_trigger_returns_default_and_original_message(self, selector):
        raw = "  what's the plan for friday? "
        key, persona, clean = selector.detect(raw)

        assert key == "default"
        assert persona.name == "Chatify AI"
        assert clean == raw

    def test_trigger_must_be_a_prefix(self, selector):
        key, _, _ = selector.detect("please @coder explain this")

        assert key == "default"

    def test_first_declared_trigger_wins(self):
        personas = {
            "default": Persona(name="Default", system_prompt="d"),
            "long": Persona(name="Long", trigger="@finder", system_prompt="l"),
            "short": Persona(name="Short", trigger="@find", system_prompt="s"),
        }
        selector = PersonaSelector(personas)

        key, _, clean = selector.detect("@finder keys")

        assert key == "long"
        assert clean == "keys"

    def test_missing_default_persona_is_rejected(self):
        with pytest.raises(ValueError):
            PersonaSelector({"only": Persona(name="Only", trigger="@only", system_prompt="x")})

    def test_default_prompt_renders_current_time(self, selector):
        rendered = selector.default.render_system_prompt("2024-05-01 10:00:00 UTC")

        assert "Current time: 2024-05-01 10:00:00 UTC" in rendered
        assert "{current_time}" not in rendered

    @pytest.mark.parametrize("trigger", ["@summarizer", "@finder", "@helper", "@coder"])
    def test_clean_message_detects_as_default(self, selector, trigger):
        _, _, clean = selector.detect(f"{trigger} what did Dana say about friday?")

        key, persona, again = selector.detect(clean)

        assert key == "default"
        assert persona is selector.default
        assert again == clean
