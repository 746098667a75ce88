"""
Visitor Insight Follow-up Tests - Suggested Next Questions

Tests model-generated follow-ups, line cleanup, and canned pairs when no
model is available.

Run with: pytest tests/test_followups.py -v
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx
import pytest

from insight_engine.core.llm import MockLLMProvider, UnconfiguredProvider
from insight_engine.core.providers import OllamaProvider
from insight_engine.core.providers.gateway import ProviderGateway
from insight_engine.errors import ProviderError
from insight_engine.followups import (
    FollowUpGenerator,
    clean_question_lines,
    fallback_questions,
)


def _generator(provider):
    return FollowUpGenerator(ProviderGateway.for_provider(provider))


# =============================================================================
# CANNED PAIRS
# =============================================================================

class TestFallbackQuestions:
    """Canned pairs keyed by the answer's topic."""

    def test_security_broader(self):
        questions = _generator(UnconfiguredProvider()).generate(
            "Security analysis shows 12 VPN connections", is_deeper=False
        )
        assert questions == ["Show me security threats", "Analyze VPN patterns"]

    def test_security_deeper(self):
        questions = fallback_questions("12 bot detections were found", is_deeper=True)
        assert questions == [
            "What specific security measures should I implement?",
            "How do these threats compare to industry averages?",
        ]

    def test_security_beats_geography(self):
        questions = fallback_questions("Each country shows VPN usage")
        assert questions[0] == "Show me security threats"

    @pytest.mark.parametrize("answer,expected", [
        ("Most requests come from one country.", "Show geographic distribution"),
        ("One visitor dominates activity.", "Show visitor patterns"),
        ("Chrome is the top browser.", "Show browser usage"),
        ("Nothing notable.", "Show data patterns"),
    ])
    def test_topic_pairs(self, answer, expected):
        assert fallback_questions(answer)[0] == expected

    def test_generic_deeper(self):
        assert fallback_questions("Nothing notable.", is_deeper=True)[1] == \
            "How do these insights compare to benchmarks?"

    def test_os_in_answer_is_not_a_browser_topic(self):
        assert fallback_questions("Most traffic runs on the latest OS release.")[0] == \
            "Show data patterns"


# =============================================================================
# MODEL QUESTIONS
# =============================================================================

class TestModelQuestions:
    """Follow-ups written by the backend."""

    def test_numbered_lines_cleaned(self):
        provider = MockLLMProvider(default_response=(
            '1. "Which countries send the most bots?"\n'
            "2) How has VPN usage changed this week?\n"
        ))
        questions = _generator(provider).generate("Bots rose 20%.")

        assert questions == [
            "Which countries send the most bots?",
            "How has VPN usage changed this week?",
        ]

    def test_extra_lines_trimmed_to_two(self):
        provider = MockLLMProvider(default_response="- One?\n- Two?\n- Three?")
        assert _generator(provider).generate("Answer") == ["One?", "Two?"]

    def test_single_line_falls_back(self):
        provider = MockLLMProvider(default_response="Only one question?")
        questions = _generator(provider).generate("Chrome is the top browser.")

        assert questions == ["Show browser usage", "Analyze device patterns"]

    def test_provider_failure_falls_back(self):
        provider = MockLLMProvider(failures=[
            ProviderError("mock", "down"),
            ProviderError("mock", "still down"),
        ])
        questions = _generator(provider).generate("One visitor dominates activity.", is_deeper=True)

        assert questions == [
            "Which visitors show suspicious behavior patterns?",
            "How do visitor patterns change over time?",
        ]

    def test_deeper_instruction_in_prompt(self):
        provider = MockLLMProvider(default_response="A?\nB?")
        _generator(provider).generate("Answer", is_deeper=True)

        assert "deeper, more specific" in provider.get_calls()[0]["system_prompt"]


def test_clean_question_lines():
    raw = "\n  * 'First?'\n\nQ2: Second?\n   \n"
    assert clean_question_lines(raw) == ["First?", "Second?"]


# =============================================================================
# UNUSABLE BACKEND REPLIES
# =============================================================================

class TestUnusableReplies:
    """Malformed or crashing backends still yield the canned pair."""

    def test_malformed_ollama_reply(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"message": "just a string"})
        )
        provider = OllamaProvider("http://ollama.test:11434", transport=transport)

        questions = _generator(provider).generate("VPN and bot traffic", [], False)

        assert questions == ["Show me security threats", "Analyze VPN patterns"]

    def test_unexpected_error(self):
        provider = MockLLMProvider(failures=[RuntimeError("boom")])
        questions = _generator(provider).generate("Chrome is the top browser.")

        assert questions == ["Show browser usage", "Analyze device patterns"]
