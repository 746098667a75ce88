"""
Visitor Insight Core - Ollama Provider v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Local model server integration over the Ollama chat API.
"""

import json
import logging
from typing import Any, Optional

import httpx

from ...errors import ProviderError, ProviderTimeoutError
from ..llm import Deadline, LLMProvider
from ..types import ProviderKind

logger = logging.getLogger(__name__)


class OllamaProvider(LLMProvider):
    """
    Ollama chat endpoint provider.

    POST {host}/api/chat with {model, messages, stream: false};
    the answer is read from message.content.
    """

    def __init__(
        self,
        host: str,
        model: str = "llama3.2",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialise Ollama provider.

        Args:
            host: Server base URL, e.g. http://localhost:11434
            model: Model identifier
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        self._host = host.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._transport = transport

        logger.info(f"Ollama provider initialised with model: {model} at {self._host}")

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.LOCAL

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    def _client(self, timeout: float) -> httpx.Client:
        return httpx.Client(base_url=self._host, timeout=timeout, transport=self._transport)

    def ping(self) -> bool:
        """Check the server answers its model listing."""
        try:
            with self._client(min(self._timeout, 5.0)) as client:
                response = client.get("/api/tags")
            return response.is_success
        except httpx.HTTPError as e:
            logger.warning(f"Ollama ping failed: {e}")
            return False

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Generate a response using the Ollama chat API.

        The timeout is one deadline for the whole call: the body is read
        incrementally and abandoned once the deadline passes.

        Raises:
            ProviderTimeoutError: request exceeded timeout
            ProviderError: network failure, bad status, malformed or empty answer
        """
        timeout = timeout or self._timeout
        deadline = Deadline(timeout)
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "stream": False,
        }

        logger.debug(f"Ollama request: {len(system_prompt) + len(user_prompt)} prompt chars")

        try:
            with self._client(timeout) as client:
                with client.stream("POST", "/api/chat", json=payload) as response:
                    body = self._read_body(response, deadline)
        except httpx.TimeoutException:
            raise ProviderTimeoutError(self.name, timeout)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {e}")

        if not response.is_success:
            raise ProviderError(
                self.name,
                f"status {response.status_code}: {body[:200].decode('utf-8', 'replace')}",
            )

        try:
            data = json.loads(body)
        except ValueError:
            raise ProviderError(self.name, "response is not JSON")

        content = _message_content(data)
        if content is None:
            raise ProviderError(self.name, "malformed response")

        content = content.strip()
        if not content:
            raise ProviderError(self.name, "empty response")

        logger.debug(f"Ollama response: {len(content)} chars")
        return content

    def _read_body(self, response: httpx.Response, deadline: Deadline) -> bytes:
        chunks = []
        for chunk in response.iter_bytes():
            if deadline.expired:
                raise ProviderTimeoutError(self.name, deadline.seconds)
            chunks.append(chunk)
        return b"".join(chunks)


def _message_content(data: Any) -> Optional[str]:
    """message.content of a chat reply, or None when the reply has another shape."""
    if not isinstance(data, dict):
        return None

    message = data.get("message")
    if message is None:
        content = data.get("content", "")
    elif isinstance(message, dict):
        content = message.get("content", "")
    else:
        return None

    return content if isinstance(content, str) else None


__all__ = ["OllamaProvider"]
