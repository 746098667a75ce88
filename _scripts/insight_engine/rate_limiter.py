"""
Visitor Insight - Rate Limiting v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Rate limits API endpoints that call a model backend or the event source.

Default: In-memory storage (single instance)
Optional: Redis backend via INSIGHT_RATE_LIMIT_STORAGE
"""

import logging
import os

from flask import Flask, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_LIMIT = "60 per minute"     # General endpoints
EXPENSIVE_LIMIT = "10 per minute"   # Model calls (analyze, follow-ups, insight)
UPSTREAM_LIMIT = "20 per minute"    # Event source fetches and CSV imports

RATE_LIMIT_STORAGE = os.environ.get("INSIGHT_RATE_LIMIT_STORAGE", "memory://")
RATE_LIMIT_DEFAULT = os.environ.get("INSIGHT_RATE_LIMIT_DEFAULT", DEFAULT_LIMIT)
RATE_LIMIT_EXPENSIVE = os.environ.get("INSIGHT_RATE_LIMIT_EXPENSIVE", EXPENSIVE_LIMIT)
RATE_LIMIT_UPSTREAM = os.environ.get("INSIGHT_RATE_LIMIT_UPSTREAM", UPSTREAM_LIMIT)
RATE_LIMIT_ENABLED = os.environ.get("INSIGHT_RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_key() -> str:
    """
    Get the rate limit key for the current request.

    Uses X-Forwarded-For header if behind proxy, otherwise remote address.
    """
    user_key = request.headers.get("X-Rate-Limit-Key")
    if user_key:
        return f"user:{user_key}"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First IP in the chain is the original client
        return forwarded.split(",")[0].strip()

    return get_remote_address()


# =============================================================================
# LIMITER INSTANCE
# =============================================================================

# Route decorators bind to this instance at import; init_rate_limiter attaches the app
limiter = Limiter(
    get_rate_limit_key,
    default_limits=[RATE_LIMIT_DEFAULT],
    storage_uri=RATE_LIMIT_STORAGE,
    strategy="fixed-window",
    headers_enabled=True,
    enabled=RATE_LIMIT_ENABLED,
)

rate_limit_expensive = limiter.limit(RATE_LIMIT_EXPENSIVE)
rate_limit_upstream = limiter.limit(RATE_LIMIT_UPSTREAM)
exempt_from_rate_limit = limiter.exempt


def init_rate_limiter(app: Flask) -> Limiter:
    """
    Attach the limiter to the Flask app and register the 429 handler.

    Args:
        app: Flask application instance
    """
    limiter.init_app(app)

    if not RATE_LIMIT_ENABLED:
        logger.info("Rate limiting is disabled (INSIGHT_RATE_LIMIT_ENABLED=false)")
        return limiter

    @app.errorhandler(429)
    def ratelimit_handler(e):
        """Return JSON response for rate limit exceeded."""
        logger.warning(
            f"Rate limit exceeded for {get_rate_limit_key()}: {e.description}",
            extra={"path": request.path, "status_code": 429},
        )
        response = jsonify({
            "success": False,
            "error": f"Too many requests ({e.description}). Please wait and try again.",
            "data": {"error_type": "RateLimitError"},
        })
        response.status_code = 429
        return response

    logger.info(
        f"Rate limiter initialized: storage={RATE_LIMIT_STORAGE}, "
        f"default={RATE_LIMIT_DEFAULT}, expensive={RATE_LIMIT_EXPENSIVE}"
    )
    return limiter


def get_rate_limit_status() -> dict:
    """Current limits, for the info endpoint."""
    if not RATE_LIMIT_ENABLED:
        return {"enabled": False}

    return {
        "enabled": True,
        "storage": RATE_LIMIT_STORAGE,
        "limits": {
            "default": RATE_LIMIT_DEFAULT,
            "expensive": RATE_LIMIT_EXPENSIVE,
            "upstream": RATE_LIMIT_UPSTREAM,
        },
    }


__all__ = [
    "limiter",
    "init_rate_limiter",
    "rate_limit_expensive",
    "rate_limit_upstream",
    "exempt_from_rate_limit",
    "get_rate_limit_key",
    "get_rate_limit_status",
    "RATE_LIMIT_ENABLED",
]
