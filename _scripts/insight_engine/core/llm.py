"""
Visitor Insight Core - LLM Interface v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Abstract text-completion interface. Implementations wrap specific
backends (Ollama, OpenAI). Every backend is "give prompt, get text";
wire formats stay inside the implementation.
"""

import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..errors import ProviderError, ProviderNotConfiguredError
from .types import ProviderKind


class Deadline:
    """
    Overall time budget for one backend call.

    HTTP client timeouts apply per connect/read phase; a reply that trickles
    in can outlast them. Backends check this while reading the body.
    """

    def __init__(self, seconds: float):
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at


class LLMProvider(ABC):
    """
    Abstract base class for answer backends.

    complete() returns text or raises ProviderError. It never returns an
    empty string.
    """

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        """Backend category reported in results."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'ollama', 'openai')."""
        pass

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier (e.g., 'llama3.2', 'gpt-4o-mini')."""
        pass

    @abstractmethod
    def complete(self,
                 system_prompt: str,
                 user_prompt: str,
                 timeout: Optional[float] = None) -> str:
        """
        Generate a completion.

        Args:
            system_prompt: Role, data and formatting instructions
            user_prompt: The question
            timeout: Override the backend's default timeout in seconds

        Returns:
            Non-empty response text

        Raises:
            ProviderError: network failure, non-success status or timeout
        """
        pass

    @property
    def is_configured(self) -> bool:
        """Whether this backend can be called at all."""
        return True

    def ping(self) -> bool:
        """Live availability check. Defaults to the configuration check."""
        return self.is_configured


class UnconfiguredProvider(LLMProvider):
    """
    Stand-in when no backend is configured.

    Fails every call immediately so "no AI available" travels the same
    failure path as any other provider error.
    """

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.FALLBACK

    @property
    def name(self) -> str:
        return "fallback"

    @property
    def model(self) -> str:
        return "none"

    @property
    def is_configured(self) -> bool:
        return False

    def complete(self, system_prompt: str, user_prompt: str,
                 timeout: Optional[float] = None) -> str:
        raise ProviderNotConfiguredError(self.name)


class MockLLMProvider(LLMProvider):
    """
    Mock provider for testing.

    Returns canned responses without making network calls. Queued
    exceptions are raised (in order) before any response is returned.
    """

    def __init__(self,
                 responses: Dict[str, str] = None,
                 default_response: str = "Mock analysis.",
                 kind: ProviderKind = ProviderKind.LOCAL,
                 failures: List[Exception] = None):
        """
        Args:
            responses: Map of prompt substrings to responses.
                       If the user prompt contains key, return value.
            default_response: Response when no key matches
            kind: Kind to report (LOCAL or CLOUD)
            failures: Exceptions to raise on the first calls
        """
        self._responses = responses or {}
        self._default_response = default_response
        self._kind = kind
        self._failures = list(failures or [])
        self._calls = []

    @property
    def kind(self) -> ProviderKind:
        return self._kind

    @property
    def name(self) -> str:
        return "mock"

    @property
    def model(self) -> str:
        return "mock-model"

    def complete(self, system_prompt: str, user_prompt: str,
                 timeout: Optional[float] = None) -> str:
        self._calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "timeout": timeout,
        })

        if self._failures:
            raise self._failures.pop(0)

        for key, response in self._responses.items():
            if key in user_prompt:
                return response

        if not self._default_response.strip():
            raise ProviderError(self.name, "empty response")
        return self._default_response

    def get_calls(self):
        """Get list of all calls made."""
        return self._calls


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "Deadline",
    "LLMProvider",
    "UnconfiguredProvider",
    "MockLLMProvider",
]
