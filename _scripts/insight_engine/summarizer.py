"""
Visitor Insight - Data Summarizer v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Reduces an event collection to a compact digest for prompts. The digest
holds counts and top-N lists only, never per-event detail, so its size
does not grow with the input. Zero-cost: no LLM, no side effects.
"""

from collections import Counter
from typing import Iterable, List, Sequence, Tuple

from .core.types import (
    UNKNOWN,
    ConfidenceStats,
    DataSummary,
    IdentificationEvent,
    SecurityCounts,
    SummaryMode,
)


# =============================================================================
# CONSTANTS
# =============================================================================

NO_DATA_SENTINEL = "No data available for analysis."

SMALL_DATASET_THRESHOLD = 100
TOP_N = 5

HIGH_CONFIDENCE = 0.8
LOW_CONFIDENCE = 0.6

# Longest label rendered into a digest
MAX_LABEL_CHARS = 32
# Visitor ids are shortened further in digests
VISITOR_ID_CHARS = 6

FAST_MODE_KEYWORDS = (
    "total", "count", "how many", "number of", "summary", "overview",
    "basic", "simple", "quick", "fast",
)


# =============================================================================
# AGGREGATION HELPERS
# =============================================================================

def count_by(values: Iterable[str], skip_unknown: bool = True) -> Counter:
    """Count values in first-seen order, optionally ignoring UNKNOWN."""
    counts = Counter()
    for value in values:
        if skip_unknown and value == UNKNOWN:
            continue
        counts[value] += 1
    return counts


def top_counts(counts: Counter, n: int) -> List[Tuple[str, int]]:
    """
    Top n (label, count) pairs, count descending.

    Counter.most_common sorts stably, so ties keep first-seen order.
    """
    return counts.most_common(n)


def security_counts(events: Sequence[IdentificationEvent]) -> SecurityCounts:
    return SecurityCounts(
        vpn=sum(1 for e in events if e.vpn_detected),
        bot=sum(1 for e in events if e.bot_detected),
        clean=sum(1 for e in events if e.is_clean),
    )


def percentage(part: int, whole: int) -> float:
    """part/whole as a percentage, 0 for an empty whole."""
    return (part / whole) * 100 if whole else 0.0


# =============================================================================
# SUMMARY
# =============================================================================

def compute_summary(events: Sequence[IdentificationEvent], top_n: int = TOP_N) -> DataSummary:
    """
    Compute every DataSummary field.

    Recomputed on each call; nothing is cached.
    """
    total = len(events)
    confidence_total = sum(e.confidence_score for e in events)

    return DataSummary(
        total_events=total,
        unique_visitors=len({e.visitor_id for e in events}),
        unique_ips=len({e.ip_address for e in events}),
        unique_countries=len({e.country for e in events if e.country != UNKNOWN}),
        security=security_counts(events),
        confidence=ConfidenceStats(
            average=confidence_total / total if total else 0.0,
            high_count=sum(1 for e in events if e.confidence_score >= HIGH_CONFIDENCE),
            low_count=sum(1 for e in events if e.confidence_score < LOW_CONFIDENCE),
        ),
        top_countries=top_counts(count_by(e.country for e in events), top_n),
        top_browsers=top_counts(count_by(e.browser_name for e in events), top_n),
        top_visitors=top_counts(count_by(e.visitor_id for e in events), top_n),
    )


def _label(text: str, limit: int = MAX_LABEL_CHARS) -> str:
    return text if len(text) <= limit else text[:limit - 1] + "…"


def _format_top(pairs: List[Tuple[str, int]], shorten=_label) -> str:
    if not pairs:
        return "none"
    return ", ".join(f"{shorten(label)}({count})" for label, count in pairs)


def render_summary(summary: DataSummary) -> str:
    """Render a DataSummary as the multi-line prompt digest."""
    security = summary.security
    confidence = summary.confidence
    return "\n".join([
        f"Events: {summary.total_events}, Visitors: {summary.unique_visitors}, "
        f"IPs: {summary.unique_ips}, Countries: {summary.unique_countries}",
        f"Security: VPN {security.vpn}, Bot {security.bot}, Clean {security.clean}",
        f"Confidence: Avg {confidence.average:.2f}, High {confidence.high_count}, "
        f"Low {confidence.low_count}",
        f"Top Countries: {_format_top(summary.top_countries)}",
        f"Top Browsers: {_format_top(summary.top_browsers)}",
        f"Top Visitors: {_format_top(summary.top_visitors, lambda v: v[:VISITOR_ID_CHARS])}",
    ])


def render_fast_summary(events: Sequence[IdentificationEvent]) -> str:
    """Counts-only digest for simple aggregate questions."""
    security = security_counts(events)
    visitors = len({e.visitor_id for e in events})
    return (
        f"Total: {len(events)} events, {visitors} visitors. "
        f"Security: {security.vpn} VPN, {security.bot} bots."
    )


def limited_data_sentinel(count: int, threshold: int = SMALL_DATASET_THRESHOLD) -> str:
    return (
        f"Limited data available ({count} events). Detailed analysis requires "
        f"more than {threshold} events for meaningful insights."
    )


def summarize(events: Sequence[IdentificationEvent],
              mode: SummaryMode = SummaryMode.FULL,
              small_threshold: int = SMALL_DATASET_THRESHOLD,
              top_n: int = TOP_N) -> str:
    """
    Digest an event collection for prompt inclusion.

    Args:
        events: Any size collection, including empty
        mode: FAST for counts only, FULL for the complete digest
        small_threshold: At or below this many events, return the
            limited-data sentinel instead of statistics
        top_n: Length of top-N lists in FULL mode

    Returns:
        Digest text (never raises for empty input)
    """
    if not events:
        return NO_DATA_SENTINEL

    if len(events) <= small_threshold:
        return limited_data_sentinel(len(events), small_threshold)

    if mode == SummaryMode.FAST:
        return render_fast_summary(events)

    return render_summary(compute_summary(events, top_n))


def is_fast_mode_question(question: str) -> bool:
    """Simple aggregate questions only need the counts-only digest."""
    lowered = question.lower()
    return any(keyword in lowered for keyword in FAST_MODE_KEYWORDS)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "NO_DATA_SENTINEL",
    "SMALL_DATASET_THRESHOLD",
    "TOP_N",
    "HIGH_CONFIDENCE",
    "LOW_CONFIDENCE",
    "FAST_MODE_KEYWORDS",
    "count_by",
    "top_counts",
    "security_counts",
    "percentage",
    "compute_summary",
    "render_summary",
    "render_fast_summary",
    "limited_data_sentinel",
    "summarize",
    "is_fast_mode_question",
]
