"""
Fingerprint Server API client.

Fetches identification events from the events search endpoint and
flattens the nested per-product payloads into IdentificationEvent.

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from insight_engine.core.config import ENV_FP_SECRET_KEY, InsightConfig
from insight_engine.core.types import IdentificationEvent
from insight_engine.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)


SEARCH_PATH = "/events/search"
DEFAULT_LIMIT = 100
MAX_LIMIT = 1000
SOURCE_NAME = "Fingerprint API"


def _product_data(event: Dict[str, Any], product: str) -> Dict[str, Any]:
    data = ((event.get("products") or {}).get(product) or {}).get("data")
    return data if isinstance(data, dict) else {}


def _nested(data: Dict[str, Any], *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def flatten_event(event: Dict[str, Any]) -> IdentificationEvent:
    """
    Flatten one search result.

    The IP and its geolocation come from the ipInfo product, falling back
    to the identification record. vpn is a boolean result; bot counts only
    when botd classifies it as "bad".
    """
    identification = _product_data(event, "identification")
    ip_info = _product_data(event, "ipInfo")
    botd = _product_data(event, "botd")
    vpn = _product_data(event, "vpn")

    return IdentificationEvent.create(
        visitor_id=identification.get("visitorId"),
        ip_address=_nested(ip_info, "v4", "address") or identification.get("ip"),
        request_id=identification.get("requestId"),
        timestamp=identification.get("timestamp"),
        browser_name=_nested(identification, "browserDetails", "browserName"),
        operating_system=_nested(identification, "browserDetails", "os"),
        country=_nested(ip_info, "v4", "geolocation", "country", "name"),
        city=_nested(ip_info, "v4", "geolocation", "city", "name"),
        confidence_score=_nested(identification, "confidence", "score"),
        vpn_detected=vpn.get("result") is True,
        bot_detected=_nested(botd, "bot", "result") == "bad",
        linked_id=identification.get("linkedId"),
        url=identification.get("url"),
        user_agent=identification.get("userAgent"),
    )


class FingerprintClient:
    """
    Thin client for the events search endpoint.

    Usage:
        client = FingerprintClient.from_config(InsightConfig.from_env())
        events = client.search(limit=100)
    """

    def __init__(self, secret_key: Optional[str], base_url: str,
                 timeout: float = 20.0, transport: httpx.BaseTransport = None):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: InsightConfig,
                    transport: httpx.BaseTransport = None) -> "FingerprintClient":
        return cls(config.fp_secret_key, config.fp_api_base_url,
                   config.fp_timeout, transport)

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    def search(self, limit: int = DEFAULT_LIMIT,
               start_date: Optional[str] = None,
               end_date: Optional[str] = None) -> List[IdentificationEvent]:
        """
        Fetch and flatten recent events.

        Args:
            limit: Maximum events to return (clamped to 1..1000)
            start_date: Optional lower bound, passed through as start_date
            end_date: Optional upper bound, passed through as end_date

        Raises:
            ConfigurationError: no secret key configured
            UpstreamError: transport failure, non-2xx status, or bad JSON
        """
        if not self.is_configured:
            raise ConfigurationError(ENV_FP_SECRET_KEY, "not set")

        params = {"limit": max(1, min(int(limit), MAX_LIMIT))}
        if start_date:
            params["start_date"] = start_date
        if end_date:
            params["end_date"] = end_date

        logger.info(f"Fetching events from {self.base_url}{SEARCH_PATH}",
                    extra={"stage": "events"})

        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout,
                              transport=self._transport) as client:
                response = client.get(
                    SEARCH_PATH,
                    params=params,
                    headers={"Auth-API-Key": self.secret_key, "Accept": "application/json"},
                )
        except httpx.TimeoutException:
            raise UpstreamError(SOURCE_NAME, f"timed out after {self.timeout:g}s", 504)
        except httpx.HTTPError as e:
            raise UpstreamError(SOURCE_NAME, str(e))

        if not response.is_success:
            raise UpstreamError(SOURCE_NAME,
                                f"status {response.status_code} {response.reason_phrase}")

        try:
            payload = response.json()
        except ValueError:
            raise UpstreamError(SOURCE_NAME, "response was not valid JSON")

        raw_events = payload.get("events") if isinstance(payload, dict) else None
        events = [flatten_event(e) for e in (raw_events or []) if isinstance(e, dict)]

        logger.info(f"Fetched {len(events)} events", extra={"event_count": len(events)})
        return events


__all__ = [
    "SEARCH_PATH",
    "DEFAULT_LIMIT",
    "MAX_LIMIT",
    "flatten_event",
    "FingerprintClient",
]
