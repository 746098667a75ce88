"""
Visitor Insight Ingestion - Event Sources

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root
"""

from .csv_events import (
    COLUMN_MAP,
    parse_events_csv,
    load_events_csv,
)

from .fingerprint import (
    FingerprintClient,
    flatten_event,
)


__all__ = [
    # CSV exports
    "COLUMN_MAP",
    "parse_events_csv",
    "load_events_csv",
    # Fingerprint Server API
    "FingerprintClient",
    "flatten_event",
]
