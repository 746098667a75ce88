"""
Property-based tests for the analysis engine using Hypothesis.

These tests generate random event collections, questions and model
outputs to check that the engine's guarantees hold for any input:
answers are never empty, charts stay bounded, follow-ups come in pairs.

Run with: pytest tests/test_properties.py -v

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

# Skip all tests if hypothesis not installed
hypothesis = pytest.importorskip("hypothesis")

from hypothesis import given, settings, strategies as st

from insight_engine.analysis import AnalysisOrchestrator, parse_analysis_response
from insight_engine.charts import build_fallback_chart
from insight_engine.core.llm import MockLLMProvider, UnconfiguredProvider
from insight_engine.core.providers.gateway import ProviderGateway
from insight_engine.core.types import MAX_CHART_POINTS, IdentificationEvent, ProviderKind
from insight_engine.followups import FollowUpGenerator
from insight_engine.summarizer import compute_summary, summarize


# =============================================================================
# STRATEGIES
# =============================================================================

labels = st.one_of(st.none(), st.just(""), st.text(max_size=60))

events_strategy = st.lists(
    st.builds(
        IdentificationEvent.create,
        visitor_id=st.sampled_from(["a1", "b2", "c3", "d4", "e5", "f6", "g7", "h8", "i9", "j10", "k11", "l12"]),
        ip_address=st.text(max_size=15),
        country=labels,
        browser_name=labels,
        confidence_score=st.one_of(st.none(), st.floats(allow_nan=True), st.text(max_size=5)),
        vpn_detected=st.one_of(st.booleans(), st.sampled_from(["true", "false", "detected"])),
        bot_detected=st.booleans(),
    ),
    max_size=250,
)

questions = st.one_of(
    st.text(max_size=120),
    st.sampled_from([
        "Show me security threats",
        "Which countries?",
        "Top visitors",
        "Browser usage chart",
        "How many events?",
        "Plot a graph",
    ]),
)


# =============================================================================
# SUMMARIZER
# =============================================================================

class TestSummaryProperties:

    @given(events=events_strategy)
    @settings(max_examples=60, deadline=None)
    def test_summary_invariants(self, events):
        summary = compute_summary(events)

        assert summary.security.clean + max(summary.security.vpn, summary.security.bot) <= len(events)
        assert 0.0 <= summary.confidence.average <= 1.0
        for ranking in (summary.top_countries, summary.top_browsers, summary.top_visitors):
            assert len(ranking) <= 5
            counts = [count for _, count in ranking]
            assert counts == sorted(counts, reverse=True)

    @given(events=events_strategy)
    @settings(max_examples=60, deadline=None)
    def test_digest_never_empty(self, events):
        assert summarize(events).strip()


# =============================================================================
# ORCHESTRATION
# =============================================================================

class TestAnalysisProperties:

    @given(events=events_strategy.filter(bool), question=questions)
    @settings(max_examples=60, deadline=None)
    def test_fallback_always_answers(self, events, question):
        orchestrator = AnalysisOrchestrator(ProviderGateway.for_provider(UnconfiguredProvider()))
        result = orchestrator.analyze(events, question)

        assert result.answer.strip()
        assert result.provider == ProviderKind.FALLBACK
        assert result.success is False
        if result.chart is not None:
            assert 1 <= len(result.chart.points) <= MAX_CHART_POINTS

    @given(events=events_strategy.filter(bool), question=questions)
    @settings(max_examples=60, deadline=None)
    def test_fallback_chart_deterministic(self, events, question):
        first = build_fallback_chart(events, question)
        second = build_fallback_chart(events, question)

        assert (first and first.to_dict()) == (second and second.to_dict())

    @given(response=st.text(min_size=1, max_size=300).filter(lambda s: s.strip()))
    @settings(max_examples=100, deadline=None)
    def test_any_model_output_yields_answer(self, response):
        answer, chart = parse_analysis_response(response, chart_requested=True)

        assert answer.strip()
        if chart is not None:
            assert len(chart.points) <= 8

    @given(response=st.text(max_size=200), answer=st.text(max_size=200), deeper=st.booleans())
    @settings(max_examples=60, deadline=None)
    def test_follow_ups_always_two(self, response, answer, deeper):
        provider = MockLLMProvider(default_response=response or " ")
        questions = FollowUpGenerator(ProviderGateway.for_provider(provider)).generate(
            answer, is_deeper=deeper
        )

        assert len(questions) == 2
        assert all(q.strip() for q in questions)
