"""
Visitor Insight Core - Type Definitions v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Core data types for the Visitor Insight analysis engine.
All types are plain Python dataclasses, JSON-serialisable,
with no external dependencies.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..errors import ParseError


# Sentinel for unknown categorical fields
UNKNOWN = "Unknown"

# Hard cap on chart size, whatever produced it
MAX_CHART_POINTS = 10


# =============================================================================
# ENUMS
# =============================================================================

class ProviderKind(Enum):
    """Which backend produced an answer."""
    LOCAL = "local"        # Local model server (Ollama)
    CLOUD = "cloud"        # Cloud chat-completion API (OpenAI)
    FALLBACK = "fallback"  # Rule-based, no model


class SummaryMode(Enum):
    """How much of the data digest to compute."""
    FAST = "fast"
    FULL = "full"


class ChartKind(Enum):
    """Renderable chart kinds."""
    BAR = "bar"
    LINE = "line"
    PIE = "pie"


class MessageRole(Enum):
    """Chat message author."""
    USER = "user"
    ASSISTANT = "assistant"


# =============================================================================
# FIELD NORMALISATION
# =============================================================================

def _pick(data: Dict[str, Any], *keys: str) -> Any:
    """First non-None value among keys."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _categorical(value: Any) -> str:
    if value is None:
        return UNKNOWN
    text = str(value).strip()
    return text or UNKNOWN


def _optional_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _confidence(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(score):
        return 0.0
    return min(1.0, max(0.0, score))


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes", "detected", "bad")


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch milliseconds from the event source, seconds otherwise
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


# =============================================================================
# EVENTS
# =============================================================================

@dataclass(frozen=True)
class IdentificationEvent:
    """
    One visitor identification signal.

    Created by the event source at fetch time and immutable afterwards.
    Categorical fields never hold empty strings; missing values become
    UNKNOWN so grouping stays stable.
    """
    visitor_id: str = UNKNOWN
    ip_address: str = UNKNOWN
    request_id: str = UNKNOWN
    timestamp: Optional[datetime] = None
    browser_name: str = UNKNOWN
    operating_system: str = UNKNOWN
    country: str = UNKNOWN
    city: str = UNKNOWN
    confidence_score: float = 0.0
    vpn_detected: bool = False
    bot_detected: bool = False
    linked_id: str = ""
    url: str = ""
    user_agent: str = ""

    @property
    def is_clean(self) -> bool:
        """Neither VPN nor bot was detected."""
        return not self.vpn_detected and not self.bot_detected

    @classmethod
    def create(cls, **fields: Any) -> "IdentificationEvent":
        """Factory that applies field normalisation."""
        return cls(
            visitor_id=_categorical(fields.get("visitor_id")),
            ip_address=_categorical(fields.get("ip_address")),
            request_id=_categorical(fields.get("request_id")),
            timestamp=_timestamp(fields.get("timestamp")),
            browser_name=_categorical(fields.get("browser_name")),
            operating_system=_categorical(fields.get("operating_system")),
            country=_categorical(fields.get("country")),
            city=_categorical(fields.get("city")),
            confidence_score=_confidence(fields.get("confidence_score")),
            vpn_detected=_flag(fields.get("vpn_detected")),
            bot_detected=_flag(fields.get("bot_detected")),
            linked_id=_optional_text(fields.get("linked_id")),
            url=_optional_text(fields.get("url")),
            user_agent=_optional_text(fields.get("user_agent")),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdentificationEvent":
        """Deserialise from the dashboard's camelCase or snake_case keys."""
        return cls.create(
            visitor_id=_pick(data, "visitorId", "visitor_id"),
            ip_address=_pick(data, "ipAddress", "ip_address", "ip"),
            request_id=_pick(data, "requestId", "request_id"),
            timestamp=_pick(data, "timestamp", "date", "time"),
            browser_name=_pick(data, "browserName", "browser_name", "browser"),
            operating_system=_pick(data, "operatingSystem", "operating_system", "os"),
            country=_pick(data, "country"),
            city=_pick(data, "city"),
            confidence_score=_pick(data, "confidenceScore", "confidence_score", "confidence"),
            vpn_detected=_pick(data, "vpnDetected", "vpn_detected"),
            bot_detected=_pick(data, "botDetected", "bot_detected"),
            linked_id=_pick(data, "linkedId", "linked_id"),
            url=_pick(data, "url"),
            user_agent=_pick(data, "userAgent", "user_agent"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialise using the dashboard's field names."""
        return {
            "visitorId": self.visitor_id,
            "ipAddress": self.ip_address,
            "requestId": self.request_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "browserName": self.browser_name,
            "operatingSystem": self.operating_system,
            "country": self.country,
            "city": self.city,
            "confidenceScore": self.confidence_score,
            "vpnDetected": self.vpn_detected,
            "botDetected": self.bot_detected,
            "linkedId": self.linked_id,
            "url": self.url,
            "userAgent": self.user_agent,
        }


# =============================================================================
# SUMMARY
# =============================================================================

@dataclass
class SecurityCounts:
    vpn: int = 0
    bot: int = 0
    clean: int = 0


@dataclass
class ConfidenceStats:
    average: float = 0.0
    high_count: int = 0
    low_count: int = 0


@dataclass
class DataSummary:
    """
    Statistical digest of an event collection.

    Top-N lists hold (label, count) pairs sorted by count descending,
    ties in first-seen order.
    """
    total_events: int
    unique_visitors: int
    unique_ips: int
    unique_countries: int
    security: SecurityCounts
    confidence: ConfidenceStats
    top_countries: List[Tuple[str, int]] = field(default_factory=list)
    top_browsers: List[Tuple[str, int]] = field(default_factory=list)
    top_visitors: List[Tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalEvents": self.total_events,
            "uniqueVisitors": self.unique_visitors,
            "uniqueIPs": self.unique_ips,
            "uniqueCountries": self.unique_countries,
            "security": {
                "vpn": self.security.vpn,
                "bot": self.security.bot,
                "clean": self.security.clean,
            },
            "confidence": {
                "average": round(self.confidence.average, 4),
                "highCount": self.confidence.high_count,
                "lowCount": self.confidence.low_count,
            },
            "topCountries": [list(pair) for pair in self.top_countries],
            "topBrowsers": [list(pair) for pair in self.top_browsers],
            "topVisitors": [list(pair) for pair in self.top_visitors],
        }


# =============================================================================
# CHARTS
# =============================================================================

@dataclass(frozen=True)
class ChartPoint:
    name: str
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value}


@dataclass
class ChartSpec:
    """
    A bounded labeled dataset plus a chart kind.

    Never constructed with zero points; callers use None for "no chart".
    """
    kind: ChartKind
    title: str
    points: List[ChartPoint]

    def __post_init__(self):
        if not self.points:
            raise ValueError("ChartSpec requires at least one point")
        if len(self.points) > MAX_CHART_POINTS:
            raise ValueError(f"ChartSpec allows at most {MAX_CHART_POINTS} points")

    @classmethod
    def from_counts(cls, kind: ChartKind, title: str,
                    counts: List[Tuple[str, int]]) -> Optional["ChartSpec"]:
        """Build from (label, count) pairs; None when there is nothing to plot."""
        points = [ChartPoint(name=label, value=count) for label, count in counts]
        if not points:
            return None
        return cls(kind=kind, title=title, points=points)

    @classmethod
    def from_dict(cls, data: Any, max_points: int = MAX_CHART_POINTS) -> Optional["ChartSpec"]:
        """
        Validate a chart object produced by a model.

        Accepts {"type", "title", "data": [{"name", "value"}]}. Points beyond
        max_points are dropped. Returns None when no valid points remain.

        Raises:
            ParseError: chart is not an object or has an unknown type
        """
        if not isinstance(data, dict):
            raise ParseError("chart is not an object")

        try:
            kind = ChartKind(str(data.get("type", "")).strip().lower())
        except ValueError:
            raise ParseError(f"unknown chart type: {data.get('type')!r}")

        raw_points = data.get("data") or []
        if not isinstance(raw_points, list):
            raise ParseError("chart data is not a list")

        max_points = min(max_points, MAX_CHART_POINTS)
        points = []
        for item in raw_points:
            if not isinstance(item, dict):
                continue
            value = item.get("value")
            if isinstance(value, bool):
                continue
            try:
                value = float(value)
            except (TypeError, ValueError):
                continue
            if math.isnan(value) or math.isinf(value):
                continue
            if value.is_integer():
                value = int(value)
            points.append(ChartPoint(name=_categorical(item.get("name")), value=value))
            if len(points) >= max_points:
                break

        if not points:
            return None

        title = _optional_text(data.get("title")) or "Chart"
        return cls(kind=kind, title=title, points=points)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise in the shape the dashboard charts consume."""
        return {
            "type": self.kind.value,
            "title": self.title,
            "data": [p.to_dict() for p in self.points],
        }


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class AnalysisResult:
    """
    Output of the analysis orchestrator.

    answer is never empty; a fallback answer is always computable.
    error is only set when success is False.
    """
    success: bool
    answer: str
    provider: ProviderKind
    chart: Optional[ChartSpec] = None
    error: Optional[str] = None
    data_summary: Optional[str] = None

    def __post_init__(self):
        if not self.answer or not self.answer.strip():
            raise ValueError("AnalysisResult.answer must be non-empty")
        if self.success:
            self.error = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": self.success,
            "answer": self.answer,
            "provider": self.provider.value,
            "chart": self.chart.to_dict() if self.chart else None,
        }
        if self.error:
            result["error"] = self.error
        if self.data_summary:
            result["dataSummary"] = self.data_summary
        return result


@dataclass
class ProviderStatus:
    """Which backend is configured and with which model."""
    provider: ProviderKind
    is_available: bool
    model: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "isAvailable": self.is_available,
            "model": self.model,
        }


@dataclass
class OverviewInsight:
    """Headline insight for the overview page."""
    insight: str
    provider: ProviderKind
    suggested_question: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "insight": self.insight,
            "provider": self.provider.value,
            "suggestedQuestion": self.suggested_question,
        }
        if self.error:
            result["error"] = self.error
        return result


# =============================================================================
# CHAT
# =============================================================================

@dataclass
class ChatMessage:
    """One turn of the dashboard chat, as stored by the UI layer."""
    role: MessageRole
    content: str
    chart: Optional[ChartSpec] = None
    suggestions: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_result(cls, result: AnalysisResult,
                    suggestions: List[str] = None) -> "ChatMessage":
        """Assistant message for an analysis result."""
        return cls(
            role=MessageRole.ASSISTANT,
            content=result.answer,
            chart=result.chart,
            suggestions=list(suggestions or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "chart": self.chart.to_dict() if self.chart else None,
            "suggestions": self.suggestions,
            "timestamp": self.timestamp.isoformat(),
        }


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "UNKNOWN",
    "MAX_CHART_POINTS",
    "ProviderKind",
    "SummaryMode",
    "ChartKind",
    "MessageRole",
    "IdentificationEvent",
    "SecurityCounts",
    "ConfidenceStats",
    "DataSummary",
    "ChartPoint",
    "ChartSpec",
    "AnalysisResult",
    "ProviderStatus",
    "OverviewInsight",
    "ChatMessage",
]
