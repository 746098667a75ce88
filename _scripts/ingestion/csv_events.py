"""
Dashboard CSV export parser.

Turns an identification-events CSV export (dotted column names such as
browserDetails.browserName) into IdentificationEvent records. Plain
camelCase or snake_case headers are accepted too.

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3
"""

import csv
import io
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from insight_engine.core.types import IdentificationEvent
from insight_engine.errors import InputError

logger = logging.getLogger(__name__)


MAX_ROWS = 10000

ENCODINGS = ('utf-8-sig', 'utf-8', 'latin-1', 'cp1252')

# Event field -> CSV columns, export names first
COLUMN_MAP: Dict[str, Tuple[str, ...]] = {
    "visitorId": ("visitorId", "visitor_id"),
    "ipAddress": ("ip", "ipAddress", "ip_address"),
    "requestId": ("requestId", "request_id"),
    "timestamp": ("time", "timestamp", "date"),
    "browserName": ("browserDetails.browserName", "browserName", "browser"),
    "operatingSystem": ("browserDetails.os", "operatingSystem", "os"),
    "country": ("ipLocation.country.name", "country"),
    "city": ("ipLocation.city.name", "city"),
    "confidenceScore": ("confidence.score", "confidenceScore", "confidence"),
    "vpnDetected": ("vpn.result", "vpnDetected", "vpn_detected"),
    "botDetected": ("bot.result", "botDetected", "bot_detected"),
    "linkedId": ("linkedId", "linked_id"),
    "url": ("url",),
    "userAgent": ("userAgent", "user_agent"),
}


def decode_csv(raw: bytes) -> str:
    """
    Decode uploaded bytes, trying common encodings in turn.

    Raises:
        InputError: no supported encoding fits
    """
    for encoding in ENCODINGS:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise InputError("csv", "could not decode file with any supported encoding")


def _first_value(row: Dict[str, Optional[str]], columns: Tuple[str, ...]) -> Optional[str]:
    for column in columns:
        value = row.get(column)
        if value is not None and value.strip():
            return value.strip()
    return None


def _time_value(value: Optional[str]) -> Union[str, int, None]:
    # Exports carry either ISO strings or epoch milliseconds
    if value is not None and value.isdigit():
        return int(value)
    return value


def row_to_event(row: Dict[str, Optional[str]]) -> IdentificationEvent:
    """Map one CSV row onto an event."""
    fields = {name: _first_value(row, columns) for name, columns in COLUMN_MAP.items()}
    fields["timestamp"] = _time_value(fields["timestamp"])
    return IdentificationEvent.from_dict(fields)


def parse_events_csv(content: Union[str, bytes]) -> List[IdentificationEvent]:
    """
    Parse a dashboard CSV export.

    Args:
        content: CSV text, or raw uploaded bytes

    Returns:
        Events in file order; blank rows are skipped

    Raises:
        InputError: empty file, missing header, or no visitor id column
    """
    if isinstance(content, bytes):
        content = decode_csv(content)

    if not content.strip():
        raise InputError("csv", "file is empty")

    sample = content[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel

    reader = csv.DictReader(io.StringIO(content.strip()), dialect=dialect)
    headers = [h.strip() for h in (reader.fieldnames or [])]
    if not headers:
        raise InputError("csv", "missing header row")
    if not any(column in headers for column in COLUMN_MAP["visitorId"]):
        raise InputError("csv", "no visitorId column in header")
    reader.fieldnames = headers

    events = []
    for row in reader:
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        events.append(row_to_event(row))
        if len(events) >= MAX_ROWS:
            logger.warning(f"CSV import truncated at {MAX_ROWS} rows")
            break

    logger.info(f"Parsed {len(events)} events from CSV", extra={"event_count": len(events)})
    return events


def load_events_csv(path: Union[str, Path]) -> List[IdentificationEvent]:
    """Parse a CSV export from disk."""
    return parse_events_csv(Path(path).read_bytes())


__all__ = [
    "COLUMN_MAP",
    "MAX_ROWS",
    "decode_csv",
    "row_to_event",
    "parse_events_csv",
    "load_events_csv",
]
