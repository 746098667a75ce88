"""
Visitor Insight Core - OpenAI Provider v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Cloud chat-completion integration via the OpenAI Python SDK.
"""

import logging
from typing import Optional

import httpx
import openai

from ...errors import ProviderError, ProviderTimeoutError
from ..llm import Deadline, LLMProvider
from ..types import ProviderKind

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """
    OpenAI API provider.

    Supports GPT-4o-mini and other chat completion models, and any
    OpenAI-compatible endpoint through base_url. SDK-level retries are
    disabled; the gateway owns the retry budget.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        timeout: float = 15.0,
        max_tokens: int = 1000,
        temperature: float = 0.3,
    ):
        """
        Initialise OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model identifier (default: gpt-4o-mini for latency)
            base_url: Optional custom API endpoint (Azure OpenAI or proxies)
            timeout: Request timeout in seconds
            max_tokens: Maximum response tokens
            temperature: Sampling temperature
        """
        self._api_key = api_key
        self._model = model
        self._base_url = base_url
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = None

        logger.info(f"OpenAI provider initialised with model: {model}")

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.CLOUD

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._model

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> openai.OpenAI:
        """Lazy initialisation of OpenAI client."""
        if self._client is None:
            kwargs = {
                "api_key": self._api_key,
                "timeout": self._timeout,
                "max_retries": 0,
            }
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._client = openai.OpenAI(**kwargs)
        return self._client

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Generate a response using the chat completions API.

        The reply is streamed so the timeout bounds the whole call, not
        just each read.

        Raises:
            ProviderTimeoutError: request exceeded timeout
            ProviderError: API, network or empty-answer failure
        """
        timeout = timeout or self._timeout
        deadline = Deadline(timeout)
        parts = []

        try:
            stream = self._get_client().chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                timeout=timeout,
                stream=True,
            )
            with stream:
                for chunk in stream:
                    if deadline.expired:
                        raise ProviderTimeoutError(self.name, timeout)
                    if chunk.choices:
                        parts.append(chunk.choices[0].delta.content or "")
        except (openai.APITimeoutError, httpx.TimeoutException):
            raise ProviderTimeoutError(self.name, timeout)
        except openai.APIError as e:
            raise ProviderError(self.name, str(e))
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"stream failed: {e}")

        content = "".join(parts).strip()
        if not content:
            raise ProviderError(self.name, "empty response")

        logger.debug(f"OpenAI response: {len(content)} chars in {len(parts)} chunks")
        return content


__all__ = ["OpenAIProvider"]
