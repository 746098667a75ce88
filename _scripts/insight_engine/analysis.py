# insight_engine/analysis.py
"""
Visitor Insight - Analysis Orchestrator v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Answers a natural-language question about an event collection.

Flow:
1. Classify the question (fast vs full digest, chart or plain text)
2. Skip straight to the rule-based answer when no backend is configured
3. Build prompts around the data digest and call the provider gateway
4. Parse the response, degrading a broken chart envelope to plain text
5. On any provider failure, answer from the rule-based fallback

analyze() never raises.
"""

import json
import logging
import re
from typing import Optional, Sequence, Tuple

from .charts import build_fallback_chart, requires_chart
from .core.config import InsightConfig
from .core.providers.gateway import ProviderGateway
from .core.types import (
    AnalysisResult,
    ChartSpec,
    IdentificationEvent,
    ProviderKind,
    SummaryMode,
)
from .errors import InsightError, ParseError, ProviderError
from .fallback import build_fallback_answer
from .summarizer import is_fast_mode_question, summarize

logger = logging.getLogger(__name__)


NOT_AVAILABLE_ERROR = "AI service not available"

# Greedy on purpose: spans from the first "{" to the last "}"
_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


# =============================================================================
# PROMPTS
# =============================================================================

ANALYST_ROLE = """You are a data analyst for FingerprintJS visitor data. Provide concise, accurate insights.

Data includes: visitor events, geography, browsers, security (VPN/bot detection), confidence scores.

IMPORTANT: Provide only the analysis. Do NOT include follow-up questions, suggestions, or recommendations in your response. Focus solely on answering the user's question with data insights."""

PRIOR_CONTEXT_TEMPLATE = """IMPORTANT: The user is asking a follow-up question. Consider the context from your previous response when providing this analysis.
Previous response: "{context}\""""

CHART_INSTRUCTIONS = """RESPOND IN JSON FORMAT:
{{
  "analysis": "Brief analysis text...",
  "chart": {{
    "type": "bar|line|pie",
    "title": "Chart title",
    "data": [{{"name": "Category", "value": 123}}]
  }}
}}
- Use "bar" for categories, "line" for trends, "pie" for proportions
- Max {max_points} data points, use exact values from data"""

PLAIN_INSTRUCTIONS = "RESPOND IN PLAIN TEXT - be concise and specific."


def build_analysis_prompts(question: str,
                           digest: str,
                           chart_requested: bool,
                           prior_context: Optional[str] = None,
                           max_points: int = 8) -> Tuple[str, str]:
    """
    Build (system_prompt, user_prompt) for an analysis call.

    Args:
        question: The user's question (context already split off)
        digest: Output of summarize()
        chart_requested: Ask for the JSON envelope instead of plain text
        prior_context: Previous assistant answer, for follow-up questions
        max_points: Chart size limit stated to the model
    """
    sections = [ANALYST_ROLE]

    if prior_context:
        sections.append(PRIOR_CONTEXT_TEMPLATE.format(context=prior_context))

    if chart_requested:
        sections.append(CHART_INSTRUCTIONS.format(max_points=max_points))
    else:
        sections.append(PLAIN_INSTRUCTIONS)

    sections.append(f"Data: {digest}")

    instruction = "Include chart data." if chart_requested else "Be concise."
    user_prompt = f"Q: {question}\n\nAnalyze the data. {instruction}"

    return "\n\n".join(sections), user_prompt


# =============================================================================
# RESPONSE PARSING
# =============================================================================

def extract_json_object(text: str) -> dict:
    """
    Find and decode a JSON object embedded in free-form model output.

    Raises:
        ParseError: no braces, invalid JSON, or not an object
    """
    match = _JSON_BLOCK.search(text)
    if not match:
        raise ParseError("no JSON object found")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e}")

    if not isinstance(data, dict):
        raise ParseError("JSON value is not an object")
    return data


def parse_analysis_response(response: str,
                            chart_requested: bool,
                            max_points: int = 8) -> Tuple[str, Optional[ChartSpec]]:
    """
    Split model output into answer text and optional chart.

    A chart envelope that cannot be used degrades to the whole response as
    plain text. A usable envelope with a malformed chart keeps its
    analysis text and drops the chart.

    Returns:
        (answer, chart)
    """
    cleaned = response.strip()

    if not chart_requested:
        return cleaned, None

    try:
        envelope = extract_json_object(cleaned)
        analysis = envelope.get("analysis")
        chart_data = envelope.get("chart")
        if not isinstance(analysis, str) or not analysis.strip() or not chart_data:
            raise ParseError("envelope needs both 'analysis' and 'chart'")
    except ParseError as e:
        logger.info(f"Chart envelope unusable, answering in plain text: {e.detail}",
                    extra={"stage": "parse"})
        return cleaned, None

    try:
        chart = ChartSpec.from_dict(chart_data, max_points)
    except ParseError as e:
        logger.info(f"Dropping malformed chart: {e.detail}", extra={"stage": "parse"})
        chart = None

    return analysis.strip(), chart


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class AnalysisOrchestrator:
    """
    Answers questions about event collections.

    The gateway is an explicit dependency so callers decide its lifetime;
    the server keeps one per process.
    """

    def __init__(self, gateway: ProviderGateway, config: Optional[InsightConfig] = None):
        self.gateway = gateway
        self.config = config or gateway.config

    def analyze(self,
                events: Sequence[IdentificationEvent],
                question: str,
                prior_context: Optional[str] = None) -> AnalysisResult:
        """
        Answer question about events.

        Args:
            events: Event collection (validated non-empty at the boundary)
            question: The user's question
            prior_context: Previous assistant answer for follow-ups

        Returns:
            AnalysisResult; success=False with a rule-based answer when no
            model answer could be obtained
        """
        fast_mode = is_fast_mode_question(question)
        mode = SummaryMode.FAST if fast_mode else SummaryMode.FULL

        try:
            if not self.gateway.is_configured:
                logger.info("AI not available, answering with fallback",
                            extra={"stage": "select", "provider": ProviderKind.FALLBACK.value})
                return self.fallback(events, question, NOT_AVAILABLE_ERROR)

            digest = summarize(
                events,
                mode,
                small_threshold=self.config.small_dataset_threshold,
                top_n=self.config.top_n,
            )
            chart_requested = requires_chart(question)
            system_prompt, user_prompt = build_analysis_prompts(
                question,
                digest,
                chart_requested,
                prior_context=prior_context,
                max_points=self.config.model_chart_max_points,
            )

            logger.info(
                f"Analyzing {len(events)} events ({mode.value} mode, "
                f"chart={'yes' if chart_requested else 'no'})",
                extra={"stage": "prompt", "provider": self.gateway.kind.value,
                       "event_count": len(events)},
            )

            response = self.gateway.complete(system_prompt, user_prompt)
            answer, chart = parse_analysis_response(
                response, chart_requested, self.config.model_chart_max_points
            )

            return AnalysisResult(
                success=True,
                answer=answer,
                chart=chart,
                provider=self.gateway.kind,
                data_summary=digest,
            )

        except ProviderError as e:
            logger.warning(f"Provider failed, answering with fallback: {e}",
                           extra={"stage": "provider", "provider": e.provider})
            return self.fallback(events, question, str(e))

        except InsightError as e:
            logger.warning(f"Analysis unavailable, answering with fallback: {e}",
                           extra={"stage": "select"})
            return self.fallback(events, question, e.user_message)

        except Exception as e:
            logger.exception("Analysis failed unexpectedly, answering with fallback",
                             extra={"stage": "analyze"})
            return self.fallback(events, question, str(e) or type(e).__name__)

    def fallback(self,
                 events: Sequence[IdentificationEvent],
                 question: str,
                 error: str) -> AnalysisResult:
        """Rule-based answer and chart; always succeeds in producing text."""
        return AnalysisResult(
            success=False,
            answer=build_fallback_answer(events, question),
            chart=build_fallback_chart(events, question),
            provider=ProviderKind.FALLBACK,
            error=error,
        )


__all__ = [
    "NOT_AVAILABLE_ERROR",
    "ANALYST_ROLE",
    "build_analysis_prompts",
    "extract_json_object",
    "parse_analysis_response",
    "AnalysisOrchestrator",
]
