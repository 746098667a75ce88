"""
Visitor Insight Core - Core Module

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Core types, configuration and answer backends.
"""

from .types import (
    # Constants
    UNKNOWN,
    MAX_CHART_POINTS,
    # Enums
    ProviderKind,
    SummaryMode,
    ChartKind,
    MessageRole,
    # Data types
    IdentificationEvent,
    SecurityCounts,
    ConfidenceStats,
    DataSummary,
    ChartPoint,
    ChartSpec,
    AnalysisResult,
    ProviderStatus,
    OverviewInsight,
    ChatMessage,
)

from .config import InsightConfig

from .llm import (
    LLMProvider,
    UnconfiguredProvider,
    MockLLMProvider,
)

from .providers import (
    OllamaProvider,
    OpenAIProvider,
    ProviderGateway,
    create_provider,
    load_env_file,
)

__all__ = [
    "UNKNOWN",
    "MAX_CHART_POINTS",
    "ProviderKind",
    "SummaryMode",
    "ChartKind",
    "MessageRole",
    "IdentificationEvent",
    "SecurityCounts",
    "ConfidenceStats",
    "DataSummary",
    "ChartPoint",
    "ChartSpec",
    "AnalysisResult",
    "ProviderStatus",
    "OverviewInsight",
    "ChatMessage",
    "InsightConfig",
    "LLMProvider",
    "UnconfiguredProvider",
    "MockLLMProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "ProviderGateway",
    "create_provider",
    "load_env_file",
]
