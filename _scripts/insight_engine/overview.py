"""
Visitor Insight - Overview Insight v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

One or two sentence fraud-focused headline for the overview page, plus a
starter question for the chat panel. Model-written when a backend is
available; rule-based otherwise. Never raises.
"""

import json
import logging
from typing import Sequence

from .core.config import InsightConfig
from .core.providers.gateway import ProviderGateway
from .core.types import IdentificationEvent, OverviewInsight, ProviderKind
from .errors import InsightError
from .summarizer import count_by, percentage, security_counts

logger = logging.getLogger(__name__)


NO_EVENTS_INSIGHT = "No recent events available for analysis."

# Stricter than the digest's low-confidence band
SUSPICIOUS_CONFIDENCE = 0.5
BROAD_GEOGRAPHY_COUNTRIES = 3

FRAUD_SYSTEM_PROMPT = """You are a fraud detection specialist. You MUST provide ONLY 1-2 sentences maximum.

CRITICAL: Keep your response extremely short and focused. Do NOT write paragraphs or detailed analysis.

Format: One sentence with the key security finding, optionally followed by one sentence with the most important metric.

Example: "**5 VPN detections** found in your traffic, representing 2.5% of total events."

Focus on the single most critical finding:
- VPN/bot detection counts and percentages
- Geographic anomalies
- Suspicious patterns
- Overall risk level

Use **bold** for the key metric. Keep it under 50 words total."""


# =============================================================================
# INDICATORS
# =============================================================================

def _indicators(events: Sequence[IdentificationEvent]) -> dict:
    security = security_counts(events)
    return {
        "total": len(events),
        "visitors": len({e.visitor_id for e in events}),
        "vpn": security.vpn,
        "bot": security.bot,
        "low_confidence": sum(1 for e in events if e.confidence_score < SUSPICIOUS_CONFIDENCE),
        "countries": len(count_by(e.country for e in events)),
    }


def fallback_insight(events: Sequence[IdentificationEvent]) -> str:
    """
    Rule-based headline: the single most critical finding.

    Priority: detected threats, then low-confidence events, then broad
    geography, then an all-clear.
    """
    if not events:
        return NO_EVENTS_INSIGHT

    stats = _indicators(events)
    total = stats["total"]

    threats = stats["vpn"] + stats["bot"]
    if threats:
        return (
            f"**{threats} security threats detected** "
            f"({percentage(threats, total):.1f}% of traffic) - "
            f"{stats['vpn']} VPN and {stats['bot']} bot detections."
        )

    if stats["low_confidence"]:
        return (
            f"**{stats['low_confidence']} low confidence events** "
            f"({percentage(stats['low_confidence'], total):.1f}%) detected, "
            f"indicating potential suspicious activity."
        )

    if stats["countries"] > BROAD_GEOGRAPHY_COUNTRIES:
        return (
            f"**{stats['countries']} countries** detected across {total} events, "
            f"suggesting broad geographic distribution."
        )

    return (
        f"**No immediate fraud indicators** detected in {total} events "
        f"from {stats['visitors']} visitors."
    )


def suggest_question(events: Sequence[IdentificationEvent]) -> str:
    """Starter chat question matched to what the data shows."""
    if not events:
        return "What are the most important insights and patterns in the recent visitor data?"

    stats = _indicators(events)

    if stats["vpn"] or stats["bot"]:
        return (
            "What are the key security insights from the recent visitor data? "
            "Focus on any suspicious patterns, VPN usage, or bot activity."
        )

    if stats["countries"] > BROAD_GEOGRAPHY_COUNTRIES:
        return "What are the geographic patterns and visitor distribution insights from the recent data?"

    if stats["total"] > stats["visitors"] * 2:
        return "What visitor behavior patterns and activity insights can you identify from the recent data?"

    return "What are the most important insights and patterns in the recent visitor data?"


# =============================================================================
# GENERATOR
# =============================================================================

class OverviewInsightGenerator:
    """Builds the overview headline."""

    def __init__(self, gateway: ProviderGateway, config: InsightConfig = None):
        self.gateway = gateway
        self.config = config or gateway.config

    def build_user_prompt(self, events: Sequence[IdentificationEvent]) -> str:
        """
        Small datasets go to the model verbatim; larger ones as indicators.
        """
        if len(events) <= self.config.small_dataset_threshold:
            records = json.dumps([e.to_dict() for e in events], indent=2, default=str)
            return (
                f"Analyze this small FingerprintJS dataset ({len(events)} events) and "
                f"provide a 1-2 sentence high-level security overview:\n\n{records}\n\n"
                f"Focus on the single most critical security finding."
            )

        stats = _indicators(events)
        total = stats["total"]
        digest = "\n".join([
            f"Total Events: {total}",
            f"Unique Visitors: {stats['visitors']}",
            f"VPN Detected: {stats['vpn']} ({percentage(stats['vpn'], total):.1f}%)",
            f"Bot Detected: {stats['bot']} ({percentage(stats['bot'], total):.1f}%)",
            f"Low Confidence (<{SUSPICIOUS_CONFIDENCE}): {stats['low_confidence']} "
            f"({percentage(stats['low_confidence'], total):.1f}%)",
            f"Countries: {stats['countries']}",
        ])
        return (
            f"Analyze this FingerprintJS data and provide a 1-2 sentence high-level "
            f"security overview:\n\n{digest}\n\n"
            f"Focus on the single most critical security finding."
        )

    def generate(self, events: Sequence[IdentificationEvent]) -> OverviewInsight:
        """Headline and starter question for events."""
        question = suggest_question(events)

        if not events:
            return OverviewInsight(NO_EVENTS_INSIGHT, ProviderKind.FALLBACK, question)

        try:
            if not self.gateway.is_configured:
                return OverviewInsight(fallback_insight(events), ProviderKind.FALLBACK, question)

            text = self.gateway.complete(FRAUD_SYSTEM_PROMPT, self.build_user_prompt(events))
            return OverviewInsight(text.strip(), self.gateway.kind, question)

        except InsightError as e:
            logger.warning(f"Overview insight failed, using rule-based headline: {e}",
                           extra={"stage": "insight", "event_count": len(events)})
            return OverviewInsight(
                fallback_insight(events), ProviderKind.FALLBACK, question, error=e.user_message
            )

        except Exception as e:
            logger.exception("Overview insight failed unexpectedly, using rule-based headline",
                             extra={"stage": "insight", "event_count": len(events)})
            return OverviewInsight(
                fallback_insight(events), ProviderKind.FALLBACK, question,
                error=str(e) or type(e).__name__,
            )


__all__ = [
    "NO_EVENTS_INSIGHT",
    "fallback_insight",
    "suggest_question",
    "OverviewInsightGenerator",
]
