"""
Visitor Insight Overview Tests - Headline Insight and Starter Questions

Run with: pytest tests/test_overview.py -v
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx

from conftest import make_event, make_events

from insight_engine.core.llm import MockLLMProvider, UnconfiguredProvider
from insight_engine.core.providers import OllamaProvider
from insight_engine.core.providers.gateway import ProviderGateway
from insight_engine.core.types import ProviderKind
from insight_engine.errors import ProviderError
from insight_engine.overview import (
    NO_EVENTS_INSIGHT,
    OverviewInsightGenerator,
    fallback_insight,
    suggest_question,
)


def _generator(provider):
    return OverviewInsightGenerator(ProviderGateway.for_provider(provider))


# =============================================================================
# RULE-BASED HEADLINES
# =============================================================================

class TestFallbackInsight:
    """Priority: threats, low confidence, geography, all clear."""

    def test_threats(self):
        insight = fallback_insight(make_events(200, vpn=10, bot=5))
        assert insight == "**15 security threats detected** (7.5% of traffic) - 10 VPN and 5 bot detections."

    def test_low_confidence(self):
        events = make_events(8) + [make_event(100 + i, confidence_score=0.3) for i in range(2)]
        assert fallback_insight(events).startswith("**2 low confidence events** (20.0%)")

    def test_broad_geography(self):
        events = [make_event(i, country=f"Country{i}") for i in range(5)]
        assert fallback_insight(events).startswith("**5 countries** detected across 5 events")

    def test_all_clear(self):
        assert fallback_insight(make_events(4)) == \
            "**No immediate fraud indicators** detected in 4 events from 4 visitors."

    def test_no_events(self):
        assert fallback_insight([]) == NO_EVENTS_INSIGHT


class TestSuggestQuestion:
    """Starter questions follow what the data shows."""

    def test_security(self):
        assert "VPN usage" in suggest_question(make_events(5, bot=1))

    def test_geographic(self):
        events = [make_event(i, country=f"Country{i}") for i in range(4)]
        assert suggest_question(events).startswith("What are the geographic patterns")

    def test_repeat_visitors(self):
        events = [make_event(i, visitor_id="same") for i in range(3)]
        assert suggest_question(events).startswith("What visitor behavior patterns")

    def test_default(self):
        assert suggest_question(make_events(2)).startswith("What are the most important insights")


# =============================================================================
# GENERATOR
# =============================================================================

class TestOverviewInsightGenerator:
    """Model path and degradation."""

    def test_unconfigured(self):
        insight = _generator(UnconfiguredProvider()).generate(make_events(10, vpn=1))

        assert insight.provider == ProviderKind.FALLBACK
        assert insight.insight.startswith("**1 security threats detected**")
        assert insight.error is None

    def test_model_headline(self):
        provider = MockLLMProvider(default_response="**3 bots** seen today.\n")
        insight = _generator(provider).generate(make_events(150, bot=3))

        assert insight.insight == "**3 bots** seen today."
        assert insight.provider == ProviderKind.LOCAL
        user_prompt = provider.get_calls()[0]["user_prompt"]
        assert "Bot Detected: 3 (2.0%)" in user_prompt

    def test_small_dataset_sends_records(self):
        provider = MockLLMProvider(default_response="Fine.")
        _generator(provider).generate(make_events(3))

        user_prompt = provider.get_calls()[0]["user_prompt"]
        assert "small FingerprintJS dataset (3 events)" in user_prompt
        assert '"visitorId"' in user_prompt

    def test_provider_failure(self):
        provider = MockLLMProvider(failures=[ProviderError("mock", "x"), ProviderError("mock", "y")])
        insight = _generator(provider).generate(make_events(10))

        assert insight.provider == ProviderKind.FALLBACK
        assert insight.insight.startswith("**No immediate fraud indicators**")
        assert insight.error

    def test_empty_events(self):
        insight = _generator(MockLLMProvider()).generate([])

        assert insight.insight == NO_EVENTS_INSIGHT
        assert insight.to_dict()["suggestedQuestion"]

    def test_malformed_ollama_reply(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"message": {"content": ["a", "b"]}})
        )
        provider = OllamaProvider("http://ollama.test:11434", transport=transport)

        insight = _generator(provider).generate(make_events(10, vpn=2))

        assert insight.provider == ProviderKind.FALLBACK
        assert insight.insight.startswith("**2 security threats detected**")
        assert insight.error

    def test_unexpected_error(self):
        provider = MockLLMProvider(failures=[RuntimeError("boom")])
        insight = _generator(provider).generate(make_events(10))

        assert insight.provider == ProviderKind.FALLBACK
        assert insight.error == "boom"
