# insight_engine/errors.py
"""
Visitor Insight - Custom Exceptions v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Error types for Visitor Insight operations.
Each exception includes both a technical message (for logs) and
a user-friendly message (for API responses).

Only InputError, ConfigurationError and UpstreamError are meant to reach
API clients. Provider and parse errors are recovered inside the engine.
"""


class InsightError(Exception):
    """Base exception for Visitor Insight errors."""

    def __init__(self, message: str, user_message: str = None, status_code: int = 500):
        super().__init__(message)
        self.user_message = user_message or message
        self.status_code = status_code


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(InsightError):
    """Required configuration is missing or invalid."""

    def __init__(self, setting: str, issue: str):
        super().__init__(
            f"Configuration error: {setting} - {issue}",
            f"The server is not configured correctly ({setting}: {issue}).",
            503
        )
        self.setting = setting
        self.issue = issue


# =============================================================================
# PROVIDER ERRORS
# =============================================================================

class ProviderError(InsightError):
    """An answer backend failed to produce text."""

    retryable = True

    def __init__(self, provider: str, reason: str, status_code: int = 503):
        super().__init__(
            f"Provider {provider} failed: {reason}",
            f"The AI service ({provider}) is temporarily unavailable. "
            f"A rule-based answer was used instead.",
            status_code
        )
        self.provider = provider
        self.reason = reason


class ProviderNotConfiguredError(ProviderError):
    """No answer backend is configured."""

    retryable = False

    def __init__(self, provider: str = "fallback"):
        super().__init__(provider, "not configured")


class ProviderTimeoutError(ProviderError):
    """Backend call exceeded its timeout."""

    def __init__(self, provider: str, timeout_seconds: float):
        super().__init__(provider, f"timed out after {timeout_seconds:g}s", 504)
        self.timeout_seconds = timeout_seconds


# =============================================================================
# PARSE ERRORS
# =============================================================================

class ParseError(InsightError):
    """Model output could not be interpreted in the requested format."""

    def __init__(self, detail: str):
        super().__init__(
            f"Could not parse model output: {detail}",
            "The AI response could not be interpreted.",
            422
        )
        self.detail = detail


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InsightError):
    """Inbound request is malformed."""

    def __init__(self, field: str, issue: str):
        super().__init__(
            f"Input error: {field} - {issue}",
            f"Invalid input for '{field}': {issue}",
            400
        )
        self.field = field
        self.issue = issue


class MissingFieldError(InputError):
    """Required field is missing."""

    def __init__(self, field: str):
        super().__init__(
            field,
            f"'{field}' is required but was not provided."
        )


# =============================================================================
# UPSTREAM ERRORS
# =============================================================================

class UpstreamError(InsightError):
    """The identification event source failed."""

    def __init__(self, source: str, detail: str, status_code: int = 502):
        super().__init__(
            f"Upstream {source} error: {detail}",
            f"Could not fetch events from {source}: {detail}",
            status_code
        )
        self.source = source
        self.detail = detail


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "InsightError",
    "ConfigurationError",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProviderTimeoutError",
    "ParseError",
    "InputError",
    "MissingFieldError",
    "UpstreamError",
]
