"""
Visitor Insight - Follow-up Generator v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Suggests two next questions after an answer. Model-generated when a
backend is available, canned pairs otherwise. Never raises.
"""

import logging
import re
from typing import Dict, List, Sequence, Tuple

from .core.providers.gateway import ProviderGateway
from .core.types import IdentificationEvent
from .errors import InsightError
from .fallback import Topic, classify_topic

logger = logging.getLogger(__name__)


QUESTION_COUNT = 2

# Keywords looked for in the answer text, not the question
ANSWER_KEYWORDS: Dict[Topic, Tuple[str, ...]] = {
    Topic.SECURITY: ("security", "vpn", "bot", "threat"),
    Topic.GEOGRAPHIC: ("geographic", "country", "location"),
    Topic.VISITOR: ("visitor", "activity", "behavior"),
    Topic.BROWSER: ("browser", "device", "technology"),
}

ANSWER_TOPIC_ORDER = (Topic.SECURITY, Topic.GEOGRAPHIC, Topic.VISITOR, Topic.BROWSER)

BROADER_QUESTIONS: Dict[Topic, Tuple[str, str]] = {
    Topic.SECURITY: ("Show me security threats", "Analyze VPN patterns"),
    Topic.GEOGRAPHIC: ("Show geographic distribution", "Analyze location patterns"),
    Topic.VISITOR: ("Show visitor patterns", "Analyze user behavior"),
    Topic.BROWSER: ("Show browser usage", "Analyze device patterns"),
    Topic.GENERIC: ("Show data patterns", "Analyze insights"),
}

DEEPER_QUESTIONS: Dict[Topic, Tuple[str, str]] = {
    Topic.SECURITY: (
        "What specific security measures should I implement?",
        "How do these threats compare to industry averages?",
    ),
    Topic.GEOGRAPHIC: (
        "Which regions show unusual activity patterns?",
        "How does geographic distribution affect security?",
    ),
    Topic.VISITOR: (
        "Which visitors show suspicious behavior patterns?",
        "How do visitor patterns change over time?",
    ),
    Topic.BROWSER: (
        "Which browsers are most commonly used by bots?",
        "How do device types correlate with security threats?",
    ),
    Topic.GENERIC: (
        "What are the most significant data patterns?",
        "How do these insights compare to benchmarks?",
    ),
}

FOLLOW_UP_SYSTEM_PROMPT = """You are an AI assistant that generates contextual follow-up questions based on data analysis responses.

IMPORTANT: Generate exactly 2 follow-up questions that are:
1. Relevant to the analysis just provided
2. Specific and actionable
3. Different from each other
4. Focused on deeper insights or related areas

{depth}

RESPOND WITH ONLY THE 2 QUESTIONS, ONE PER LINE, NO ADDITIONAL TEXT."""

DEEPER_INSTRUCTION = "Generate deeper, more specific questions that explore the analysis further."
BROADER_INSTRUCTION = "Generate initial follow-up questions that explore related areas."

# "1.", "2)", "-", "*", "•" and "Q1:" style prefixes
_LIST_PREFIX = re.compile(r"^\s*(?:\d+\s*[.):-]|[-*•]|q\d+\s*[:.)])\s*", re.IGNORECASE)


def clean_question_lines(response: str) -> List[str]:
    """Strip numbering, bullets and quotes from each line; drop empties."""
    questions = []
    for line in response.splitlines():
        text = _LIST_PREFIX.sub("", line).strip().strip('"\'').strip()
        if text:
            questions.append(text)
    return questions


def fallback_questions(answer_text: str, is_deeper: bool = False) -> List[str]:
    """Canned pair for the answer's topic."""
    topic = classify_topic(answer_text, ANSWER_TOPIC_ORDER, ANSWER_KEYWORDS)
    table = DEEPER_QUESTIONS if is_deeper else BROADER_QUESTIONS
    return list(table[topic])


class FollowUpGenerator:
    """Generates exactly two follow-up questions for an answer."""

    def __init__(self, gateway: ProviderGateway):
        self.gateway = gateway

    def generate(self,
                 answer_text: str,
                 events: Sequence[IdentificationEvent] = (),
                 is_deeper: bool = False) -> List[str]:
        """
        Suggest next questions.

        Args:
            answer_text: The answer the questions should follow
            events: Dataset the conversation is about
            is_deeper: Ask for more specific rather than broader questions

        Returns:
            Exactly two non-empty questions
        """
        try:
            if self.gateway.is_configured:
                questions = self._from_model(answer_text, is_deeper)
                if len(questions) >= QUESTION_COUNT:
                    return questions[:QUESTION_COUNT]
                logger.info(
                    f"Model produced {len(questions)} usable follow-ups, using canned pair",
                    extra={"stage": "follow_ups"},
                )
        except InsightError as e:
            logger.warning(f"Follow-up generation failed, using canned pair: {e}",
                           extra={"stage": "follow_ups"})
        except Exception:
            logger.exception("Follow-up generation failed unexpectedly, using canned pair",
                             extra={"stage": "follow_ups"})

        return fallback_questions(answer_text, is_deeper)

    def _from_model(self, answer_text: str, is_deeper: bool) -> List[str]:
        system_prompt = FOLLOW_UP_SYSTEM_PROMPT.format(
            depth=DEEPER_INSTRUCTION if is_deeper else BROADER_INSTRUCTION
        )
        user_prompt = (
            f'Based on this AI analysis response: "{answer_text}"\n\n'
            f"Generate 2 follow-up questions."
        )
        return clean_question_lines(self.gateway.complete(system_prompt, user_prompt))


__all__ = [
    "QUESTION_COUNT",
    "ANSWER_KEYWORDS",
    "ANSWER_TOPIC_ORDER",
    "BROADER_QUESTIONS",
    "DEEPER_QUESTIONS",
    "clean_question_lines",
    "fallback_questions",
    "FollowUpGenerator",
]
