"""
Shared fixtures for Visitor Insight tests.

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from insight_engine.core.types import IdentificationEvent


def make_event(index: int = 0, **overrides) -> IdentificationEvent:
    """One plausible event; overrides use snake_case field names."""
    fields = {
        "visitor_id": f"visitor{index:04d}abcdef",
        "ip_address": f"10.0.{index // 250}.{index % 250}",
        "request_id": f"req-{index}",
        "timestamp": 1700000000000 + index * 1000,
        "browser_name": "Chrome",
        "operating_system": "Windows",
        "country": "United States",
        "city": "Austin",
        "confidence_score": 0.95,
        "vpn_detected": False,
        "bot_detected": False,
    }
    fields.update(overrides)
    return IdentificationEvent.create(**fields)


def make_events(count: int, vpn: int = 0, bot: int = 0, **overrides):
    """count events; the first vpn are VPN, the next bot are bots."""
    events = []
    for i in range(count):
        events.append(make_event(
            i,
            vpn_detected=i < vpn,
            bot_detected=vpn <= i < vpn + bot,
            **overrides,
        ))
    return events


@pytest.fixture
def event_factory():
    """The make_events helper, as a fixture."""
    return make_events
