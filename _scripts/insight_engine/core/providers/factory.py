"""
Visitor Insight Core - LLM Provider Factory v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Factory functions for creating answer backends from configuration.
"""

import os
import logging
from typing import Dict, List
from pathlib import Path

from ...errors import ConfigurationError
from ..config import InsightConfig, ENV_PROVIDER
from ..llm import LLMProvider, UnconfiguredProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


# Accepted spellings for each backend
LOCAL_NAMES = ("ollama", "local")
CLOUD_NAMES = ("openai", "cloud")
FALLBACK_NAMES = ("fallback", "none", "rule-based")


def load_env_file(env_path: Path = None) -> Dict[str, str]:
    """
    Load environment variables from .env file.

    Variables already present in the environment win.

    Args:
        env_path: Path to .env file. Defaults to current directory.

    Returns:
        Dict of loaded variables (also updates os.environ)
    """
    if env_path is None:
        env_path = Path.cwd() / ".env"

    loaded = {}

    if not env_path.exists():
        return loaded

    try:
        with open(env_path, 'r') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#') or '=' not in line:
                    continue

                key, _, value = line.partition('=')
                key = key.strip()
                value = value.strip()

                if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                    value = value[1:-1]

                if key not in os.environ:
                    os.environ[key] = value
                    loaded[key] = value

        logger.debug(f"Loaded {len(loaded)} variables from {env_path}")
    except OSError as e:
        logger.warning(f"Failed to load .env: {e}")

    return loaded


def get_available_providers(config: InsightConfig) -> List[str]:
    """
    Get backends that have the settings they need.

    Returns:
        Canonical provider names, cloud first
    """
    available = []
    if config.openai_api_key:
        available.append("openai")
    if config.ollama_host:
        available.append("ollama")
    return available


def resolve_provider_name(config: InsightConfig) -> str:
    """
    Decide which backend to build.

    Selection order:
    1. Explicit AI_PROVIDER setting
    2. First available configured backend
    3. "fallback" when nothing is configured

    Raises:
        ConfigurationError: AI_PROVIDER names an unknown backend
    """
    name = (config.provider or "").strip().lower()

    if not name:
        available = get_available_providers(config)
        if available:
            logger.info(f"Auto-selected provider: {available[0]}")
            return available[0]
        return "fallback"

    if name in LOCAL_NAMES:
        return "ollama"
    if name in CLOUD_NAMES:
        return "openai"
    if name in FALLBACK_NAMES:
        return "fallback"

    raise ConfigurationError(ENV_PROVIDER, f"unknown provider '{name}'")


def create_provider(config: InsightConfig) -> LLMProvider:
    """
    Create the answer backend for a configuration.

    A selected backend that lacks its settings (no host, no API key)
    degrades to UnconfiguredProvider with a warning rather than failing
    start-up, since rule-based answers are a normal operating mode.

    Returns:
        Configured LLMProvider instance
    """
    name = resolve_provider_name(config)

    if name == "ollama":
        if not config.ollama_host:
            logger.warning("OLLAMA_HOST not set, falling back to rule-based analysis")
            return UnconfiguredProvider()
        return OllamaProvider(
            host=config.ollama_host,
            model=config.ollama_model,
            timeout=config.ollama_timeout,
        )

    if name == "openai":
        if not config.openai_api_key:
            logger.warning("OPENAI_API_KEY not set, falling back to rule-based analysis")
            return UnconfiguredProvider()
        return OpenAIProvider(
            api_key=config.openai_api_key,
            model=config.openai_model,
            base_url=config.openai_base_url,
            timeout=config.openai_timeout,
            max_tokens=config.openai_max_tokens,
            temperature=config.temperature,
        )

    logger.info("No AI provider configured, using rule-based fallback analysis")
    return UnconfiguredProvider()


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "create_provider",
    "resolve_provider_name",
    "get_available_providers",
    "load_env_file",
]
