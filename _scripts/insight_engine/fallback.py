"""
Visitor Insight - Rule-Based Fallback v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Deterministic answers computed straight from event aggregates. Used
whenever no model answer is available; always produces text.

Topic matching is substring search over fixed keyword sets (plus a few
whole words), in a fixed priority order. Fallback answers and charts
depend on both.
"""

import re
from enum import Enum
from typing import Dict, Sequence, Tuple

from .core.types import IdentificationEvent
from .summarizer import count_by, percentage, security_counts, top_counts


class Topic(Enum):
    """Question/answer categories with dedicated fallback templates."""
    VISITOR = "visitor"
    SECURITY = "security"
    GEOGRAPHIC = "geographic"
    BROWSER = "browser"
    GENERIC = "generic"


# =============================================================================
# KEYWORDS
# =============================================================================

QUESTION_KEYWORDS: Dict[Topic, Tuple[str, ...]] = {
    Topic.VISITOR: ("visitor", "activity"),
    Topic.SECURITY: ("security", "threat", "vpn", "bot"),
    Topic.GEOGRAPHIC: ("geograph", "location", "country", "countries"),
    Topic.BROWSER: ("browser", "device", "operating system"),
}

# Whole-word matches; as substrings these hide in "most", "cost", ...
QUESTION_WORDS: Dict[Topic, Tuple[str, ...]] = {
    Topic.BROWSER: ("os",),
}

# First match wins
QUESTION_TOPIC_ORDER = (Topic.VISITOR, Topic.SECURITY, Topic.GEOGRAPHIC, Topic.BROWSER)

_WORD = re.compile(r"[a-z0-9]+")


def classify_topic(text: str,
                   order: Sequence[Topic] = QUESTION_TOPIC_ORDER,
                   keywords: Dict[Topic, Tuple[str, ...]] = None,
                   words: Dict[Topic, Tuple[str, ...]] = None) -> Topic:
    """
    First topic in order whose keywords appear in text.

    Args:
        keywords: Substring matches per topic (question keywords by default)
        words: Whole-word matches per topic; defaults to QUESTION_WORDS
            only when the question keywords are in use

    Returns:
        Topic.GENERIC when nothing matches
    """
    if keywords is None:
        keywords = QUESTION_KEYWORDS
        words = QUESTION_WORDS if words is None else words
    words = words or {}
    lowered = text.lower()
    tokens = set(_WORD.findall(lowered))

    for topic in order:
        if any(keyword in lowered for keyword in keywords.get(topic, ())):
            return topic
        if any(word in tokens for word in words.get(topic, ())):
            return topic

    return Topic.GENERIC


# =============================================================================
# ANSWERS
# =============================================================================

def _join_counts(pairs, unit: str = "requests") -> str:
    return ", ".join(f"{label} ({count} {unit})" for label, count in pairs)


def visitor_answer(events: Sequence[IdentificationEvent]) -> str:
    unique_visitors = len({e.visitor_id for e in events})
    answer = (
        f"I can see {len(events)} total events from {unique_visitors} unique visitors."
    )

    top = top_counts(count_by(e.visitor_id for e in events), 1)
    if top:
        visitor_id, count = top[0]
        answer += (
            f" The most active visitor ({visitor_id[:8]}...) made {count} requests "
            f"({percentage(count, len(events)):.1f}% of traffic)."
        )

    return answer + (
        " Concentrated activity like this could indicate regular users "
        "or potential automated behavior."
    )


def security_answer(events: Sequence[IdentificationEvent]) -> str:
    security = security_counts(events)
    threat_share = percentage(security.vpn + security.bot, len(events))
    return (
        f"Security analysis shows {security.vpn} VPN connections and {security.bot} "
        f"bot detections out of {len(events)} total events. This represents "
        f"{threat_share:.1f}% potential security threats."
    )


def geographic_answer(events: Sequence[IdentificationEvent]) -> str:
    countries = count_by(e.country for e in events)
    if not countries:
        return (
            f"None of the {len(events)} events carry country information, "
            f"so no geographic breakdown is available."
        )
    return (
        f"Geographic analysis shows activity from {len(countries)} different countries. "
        f"The top countries by request volume are: {_join_counts(top_counts(countries, 3))}. "
        f"This distribution helps identify your global reach and detect unusual "
        f"access patterns."
    )


def browser_answer(events: Sequence[IdentificationEvent]) -> str:
    browsers = count_by(e.browser_name for e in events)
    if not browsers:
        return (
            f"None of the {len(events)} events carry browser information, "
            f"so no browser breakdown is available."
        )
    return (
        f"Browser analysis shows {len(browsers)} different browsers in use. "
        f"The most popular browsers are: {_join_counts(top_counts(browsers, 3))}. "
        f"This helps understand your users' technology preferences and detect "
        f"potential bot activity."
    )


def generic_answer(events: Sequence[IdentificationEvent]) -> str:
    unique_visitors = len({e.visitor_id for e in events})
    security = security_counts(events)
    return (
        f"I've analyzed your identification dataset with {len(events)} events from "
        f"{unique_visitors} unique visitors, including {security.vpn} VPN and "
        f"{security.bot} bot detections. Ask about visitors, security, geography "
        f"or browsers for a detailed breakdown."
    )


_ANSWERS = {
    Topic.VISITOR: visitor_answer,
    Topic.SECURITY: security_answer,
    Topic.GEOGRAPHIC: geographic_answer,
    Topic.BROWSER: browser_answer,
    Topic.GENERIC: generic_answer,
}


def build_fallback_answer(events: Sequence[IdentificationEvent], question: str) -> str:
    """Rule-based answer for question, built from live aggregates."""
    return _ANSWERS[classify_topic(question)](events)


__all__ = [
    "Topic",
    "QUESTION_KEYWORDS",
    "QUESTION_WORDS",
    "QUESTION_TOPIC_ORDER",
    "classify_topic",
    "build_fallback_answer",
    "visitor_answer",
    "security_answer",
    "geographic_answer",
    "browser_answer",
    "generic_answer",
]
