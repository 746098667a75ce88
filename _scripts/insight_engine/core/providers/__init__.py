"""
Visitor Insight Core - LLM Providers Package v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Concrete answer backends and the gateway in front of them.
"""

from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider
from .factory import create_provider, get_available_providers, load_env_file, resolve_provider_name
from .gateway import ProviderGateway

__all__ = [
    "OllamaProvider",
    "OpenAIProvider",
    "create_provider",
    "get_available_providers",
    "load_env_file",
    "resolve_provider_name",
    "ProviderGateway",
]
