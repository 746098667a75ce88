"""
Visitor Insight - Chart Resolver v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Decides whether a question wants a visualization and builds the
rule-based chart for it.
"""

from typing import Optional, Sequence

from .core.types import ChartKind, ChartSpec, IdentificationEvent
from .fallback import Topic, classify_topic
from .summarizer import count_by, security_counts, top_counts


# Deliberately broad: a needless chart is fine, a missing one is not
CHART_KEYWORDS = (
    "chart", "graph", "visualize", "show me", "display", "plot", "trend",
    "compare", "distribution", "percentage", "proportion", "breakdown",
    "top", "most", "highest", "lowest", "activity", "pattern",
)

# Generic questions only get a chart when they ask for one outright
VISUAL_KEYWORDS = ("chart", "graph", "visualize", "show me")

# Point caps differ by chart on purpose; legends on pies stay legible
TOP_VISITORS_CAP = 10
CATEGORY_BAR_CAP = 8
PIE_CAP = 8


def requires_chart(question: str) -> bool:
    """True when the question implies a visualization."""
    lowered = question.lower()
    return any(keyword in lowered for keyword in CHART_KEYWORDS)


def visitor_label(visitor_id: str) -> str:
    return visitor_id[:8] + "..."


def _visitor_bar(events, cap: int, title: str) -> Optional[ChartSpec]:
    ranked = top_counts(count_by(e.visitor_id for e in events), cap)
    return ChartSpec.from_counts(
        ChartKind.BAR,
        title,
        [(visitor_label(visitor_id), count) for visitor_id, count in ranked],
    )


def _security_pie(events) -> Optional[ChartSpec]:
    security = security_counts(events)
    slices = [
        ("VPN Detected", security.vpn),
        ("Bot Detected", security.bot),
        ("Clean Requests", security.clean),
    ]
    return ChartSpec.from_counts(
        ChartKind.PIE,
        "Security Threat Analysis",
        [(name, count) for name, count in slices if count > 0][:PIE_CAP],
    )


def build_fallback_chart(events: Sequence[IdentificationEvent],
                         question: str) -> Optional[ChartSpec]:
    """
    Rule-based chart for question.

    Uses the same topic priority as the fallback answer. Pure: the same
    (events, question) always yields the same chart.

    Returns:
        ChartSpec, or None when plain text is sufficient or there is
        nothing to plot
    """
    topic = classify_topic(question)

    if topic == Topic.VISITOR:
        return _visitor_bar(events, TOP_VISITORS_CAP, "Top 10 Visitors by Request Count")

    if topic == Topic.SECURITY:
        return _security_pie(events)

    if topic == Topic.GEOGRAPHIC:
        return ChartSpec.from_counts(
            ChartKind.BAR,
            "Geographic Distribution by Country",
            top_counts(count_by(e.country for e in events), CATEGORY_BAR_CAP),
        )

    if topic == Topic.BROWSER:
        return ChartSpec.from_counts(
            ChartKind.BAR,
            "Browser Usage Distribution",
            top_counts(count_by(e.browser_name for e in events), CATEGORY_BAR_CAP),
        )

    lowered = question.lower()
    if any(keyword in lowered for keyword in VISUAL_KEYWORDS):
        return _visitor_bar(events, CATEGORY_BAR_CAP, "Visitor Activity Overview")

    return None


__all__ = [
    "CHART_KEYWORDS",
    "VISUAL_KEYWORDS",
    "TOP_VISITORS_CAP",
    "CATEGORY_BAR_CAP",
    "PIE_CAP",
    "requires_chart",
    "visitor_label",
    "build_fallback_chart",
]
