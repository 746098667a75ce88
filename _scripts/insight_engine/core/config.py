"""
Visitor Insight Core - Configuration v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Engine configuration. Read once at process start; backend and event
source settings come from the environment, tuning knobs from code.
"""

import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional


# =============================================================================
# ENVIRONMENT VARIABLE NAMES
# =============================================================================

ENV_PROVIDER = "AI_PROVIDER"

ENV_OLLAMA_HOST = "OLLAMA_HOST"
ENV_OLLAMA_MODEL = "OLLAMA_MODEL"

ENV_OPENAI_KEY = "OPENAI_API_KEY"
ENV_OPENAI_MODEL = "OPENAI_MODEL"
ENV_OPENAI_BASE_URL = "OPENAI_BASE_URL"

ENV_FP_SECRET_KEY = "FP_SECRET_KEY"
ENV_FP_API_BASE_URL = "FP_API_BASE_URL"


# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_OLLAMA_MODEL = "llama3.2"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_FP_API_BASE_URL = "https://api.stage.fpjs.sh"


@dataclass
class InsightConfig:
    """
    Configuration for the analysis engine.

    provider is the raw selection ("ollama", "openai", "fallback" or empty
    for auto-detection); the provider factory resolves it.
    """

    # =========================================================================
    # PROVIDER SELECTION
    # =========================================================================

    provider: str = ""

    # Local model server
    ollama_host: Optional[str] = None
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    ollama_timeout: float = 30.0

    # Cloud chat-completion API
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: Optional[str] = None
    openai_timeout: float = 15.0
    openai_max_tokens: int = 1000
    temperature: float = 0.3

    # One retry at most
    max_attempts: int = 2
    retry_wait_seconds: float = 1.0

    # =========================================================================
    # ANALYSIS
    # =========================================================================

    small_dataset_threshold: int = 100     # At or below: "limited data" digest
    top_n: int = 5                         # Length of top-N lists in digests
    model_chart_max_points: int = 8        # Cap applied to model-produced charts

    # =========================================================================
    # EVENT SOURCE
    # =========================================================================

    fp_secret_key: Optional[str] = None
    fp_api_base_url: str = DEFAULT_FP_API_BASE_URL
    fp_timeout: float = 20.0

    # =========================================================================
    # METHODS
    # =========================================================================

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> "InsightConfig":
        """Build config from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            provider=env.get(ENV_PROVIDER, "").strip().lower(),
            ollama_host=env.get(ENV_OLLAMA_HOST) or None,
            ollama_model=env.get(ENV_OLLAMA_MODEL) or DEFAULT_OLLAMA_MODEL,
            openai_api_key=env.get(ENV_OPENAI_KEY) or None,
            openai_model=env.get(ENV_OPENAI_MODEL) or DEFAULT_OPENAI_MODEL,
            openai_base_url=env.get(ENV_OPENAI_BASE_URL) or None,
            fp_secret_key=env.get(ENV_FP_SECRET_KEY) or None,
            fp_api_base_url=env.get(ENV_FP_API_BASE_URL) or DEFAULT_FP_API_BASE_URL,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to dictionary, secrets masked."""
        data = asdict(self)
        for key in ("openai_api_key", "fp_secret_key"):
            data[key] = "***" if data[key] else None
        return data

    @classmethod
    def for_testing(cls, **overrides: Any) -> "InsightConfig":
        """Config with no provider and no retry delay."""
        values = {"provider": "fallback", "retry_wait_seconds": 0.0}
        values.update(overrides)
        return cls(**values)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "InsightConfig",
    "ENV_PROVIDER",
    "ENV_OLLAMA_HOST",
    "ENV_OLLAMA_MODEL",
    "ENV_OPENAI_KEY",
    "ENV_OPENAI_MODEL",
    "ENV_OPENAI_BASE_URL",
    "ENV_FP_SECRET_KEY",
    "ENV_FP_API_BASE_URL",
]
