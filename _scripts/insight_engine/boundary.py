"""
Visitor Insight - Request Boundary v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Turns inbound JSON payloads into validated request objects. This is the
only place InputError is raised, and the only place that understands the
legacy convention of smuggling the previous answer inside the question.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .core.types import IdentificationEvent
from .errors import InputError, MissingFieldError


# Previous AI response: "<answer>". User question: <question>
_EMBEDDED_CONTEXT = re.compile(
    r'Previous AI response: "(?P<context>[^"]+)"\. User question: (?P<question>.+)',
    re.DOTALL,
)


def split_embedded_context(question: str) -> Tuple[str, Optional[str]]:
    """
    Separate a legacy inline previous answer from the real question.

    Returns:
        (question, prior_context); prior_context is None when the
        question carries no embedded context
    """
    match = _EMBEDDED_CONTEXT.search(question)
    if not match:
        return question, None
    return match.group("question").strip(), match.group("context").strip()


def parse_events(payload: Dict[str, Any], field_name: str = "events",
                 required: bool = True) -> List[IdentificationEvent]:
    """
    Validate and convert the event list of a payload.

    Raises:
        MissingFieldError: required and absent
        InputError: not a list, empty when required, or holds non-objects
    """
    raw = payload.get(field_name)

    if raw is None:
        if required:
            raise MissingFieldError(field_name)
        return []

    if not isinstance(raw, list):
        raise InputError(field_name, "must be a list of events")

    if required and not raw:
        raise InputError(field_name, "must contain at least one event")

    events = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise InputError(field_name, f"item {index} is not an object")
        events.append(IdentificationEvent.from_dict(item))
    return events


def _require_text(payload: Dict[str, Any], field_name: str) -> str:
    value = payload.get(field_name)
    if value is None:
        raise MissingFieldError(field_name)
    if not isinstance(value, str) or not value.strip():
        raise InputError(field_name, "must be a non-empty string")
    return value.strip()


def _optional_text(payload: Dict[str, Any], field_name: str) -> Optional[str]:
    value = payload.get(field_name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InputError(field_name, "must be a string")
    return value.strip() or None


# =============================================================================
# REQUESTS
# =============================================================================

@dataclass
class AnalysisRequest:
    """Inbound analysis request."""
    question: str
    events: List[IdentificationEvent]
    prior_context: Optional[str] = None
    is_deeper: bool = False
    include_follow_ups: bool = False

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AnalysisRequest":
        """
        Build from a JSON payload.

        An explicit priorAnswerContext wins over context embedded in the
        question text.

        Raises:
            InputError: missing question, or missing/empty events
        """
        if not isinstance(payload, dict):
            raise InputError("body", "must be a JSON object")

        question, embedded_context = split_embedded_context(_require_text(payload, "question"))
        if not question:
            raise InputError("question", "must be a non-empty string")

        prior_context = _optional_text(payload, "priorAnswerContext") or embedded_context

        return cls(
            question=question,
            events=parse_events(payload),
            prior_context=prior_context,
            is_deeper=bool(payload.get("isDeeper", False)),
            include_follow_ups=bool(payload.get("includeFollowUps", False)),
        )


@dataclass
class FollowUpRequest:
    """Inbound follow-up question request."""
    answer_text: str
    events: List[IdentificationEvent] = field(default_factory=list)
    is_deeper: bool = False

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "FollowUpRequest":
        """
        Raises:
            InputError: missing answerText or malformed events
        """
        if not isinstance(payload, dict):
            raise InputError("body", "must be a JSON object")

        return cls(
            answer_text=_require_text(payload, "answerText"),
            events=parse_events(payload, required=False),
            is_deeper=bool(payload.get("isDeeper", False)),
        )


__all__ = [
    "split_embedded_context",
    "parse_events",
    "AnalysisRequest",
    "FollowUpRequest",
]
