# insight_engine/core/providers/gateway.py
"""
Visitor Insight Core - Provider Gateway v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Single entry point to whichever answer backend is configured.
"""

import logging
import threading
from typing import Callable, Optional

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from ...errors import ConfigurationError, ProviderError
from ...logging_utils import Timer
from ..config import InsightConfig
from ..llm import LLMProvider, UnconfiguredProvider
from ..types import ProviderKind, ProviderStatus
from .factory import create_provider

logger = logging.getLogger(__name__)


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.retryable


class ProviderGateway:
    """
    Routes completion requests to the configured backend.

    The backend is resolved once, lazily, on first use and cached for the
    gateway's lifetime. Concurrent first calls build it exactly once. A
    rejected configuration is cached too, as the unconfigured backend.

    Retry policy:
    - At most config.max_attempts attempts (one retry by default)
    - Not-configured errors are never retried
    - Exhausted retries re-raise the last ProviderError
    """

    def __init__(
        self,
        config: Optional[InsightConfig] = None,
        provider_factory: Callable[[InsightConfig], LLMProvider] = None,
    ):
        """
        Args:
            config: Engine configuration (defaults to the environment)
            provider_factory: Builds the backend; tests inject mocks here
        """
        self.config = config or InsightConfig.from_env()
        self._factory = provider_factory or create_provider
        self._provider: Optional[LLMProvider] = None
        self.configuration_error: Optional[ConfigurationError] = None
        self._lock = threading.Lock()

    @classmethod
    def for_provider(cls, provider: LLMProvider,
                     config: Optional[InsightConfig] = None) -> "ProviderGateway":
        """Gateway bound to an already-built backend."""
        return cls(config or InsightConfig.for_testing(), lambda _config: provider)

    @property
    def provider(self) -> LLMProvider:
        """The backend, built on first access."""
        if self._provider is None:
            with self._lock:
                if self._provider is None:
                    provider = self._build_provider()
                    logger.info(
                        f"Provider gateway initialised: {provider.name} ({provider.model})",
                        extra={"provider": provider.kind.value},
                    )
                    self._provider = provider
        return self._provider

    def _build_provider(self) -> LLMProvider:
        try:
            return self._factory(self.config)
        except ConfigurationError as e:
            # Kept for the gateway's lifetime; answers degrade to fallback
            logger.error(f"Provider configuration rejected, using fallback: {e}",
                         extra={"stage": "provider"})
            self.configuration_error = e
            return UnconfiguredProvider()

    @property
    def kind(self) -> ProviderKind:
        return self.provider.kind

    @property
    def is_configured(self) -> bool:
        return self.provider.is_configured

    def complete(self, system_prompt: str, user_prompt: str,
                 timeout: Optional[float] = None) -> str:
        """
        Get a completion from the configured backend.

        Raises:
            ProviderError: backend failed on every attempt, timed out,
                or is not configured
        """
        provider = self.provider
        retrying = Retrying(
            stop=stop_after_attempt(max(1, self.config.max_attempts)),
            wait=wait_fixed(self.config.retry_wait_seconds),
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._log_retry,
            reraise=True,
        )

        with Timer(logger, "provider completion", provider=provider.kind.value):
            return retrying(provider.complete, system_prompt, user_prompt, timeout=timeout)

    def status(self, probe: bool = False) -> ProviderStatus:
        """
        Report the configured backend.

        Args:
            probe: Ping the backend instead of trusting configuration
        """
        provider = self.provider
        available = provider.ping() if probe else provider.is_configured
        return ProviderStatus(
            provider=provider.kind,
            is_available=available,
            model=provider.model,
        )

    def _log_retry(self, retry_state) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"Retrying provider call after failure: {error}",
            extra={"provider": self.provider.kind.value, "stage": "provider"},
        )


__all__ = ["ProviderGateway"]
