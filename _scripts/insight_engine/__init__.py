"""
Visitor Insight Engine v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Answers natural-language questions about visitor identification events
through a pluggable answer backend, with a deterministic rule-based
fallback whenever no model is available.

Layers:
- Summarizer: bounded text digests of event collections
- Provider gateway: local model server, cloud API, or none
- Orchestrator: prompt, call, parse, degrade
- Follow-ups, overview headline, provider status
"""

__version__ = '1.0.0'


# =============================================================================
# CORE API
# =============================================================================

from .core import (
    # Constants
    UNKNOWN,
    MAX_CHART_POINTS,
    # Enums
    ProviderKind,
    SummaryMode,
    ChartKind,
    MessageRole,
    # Types
    IdentificationEvent,
    DataSummary,
    ChartPoint,
    ChartSpec,
    AnalysisResult,
    ProviderStatus,
    OverviewInsight,
    ChatMessage,
    # Config
    InsightConfig,
    # Backends
    LLMProvider,
    MockLLMProvider,
    ProviderGateway,
    create_provider,
    load_env_file,
)

from .errors import (
    InsightError,
    ConfigurationError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
    ParseError,
    InputError,
    MissingFieldError,
    UpstreamError,
)


# =============================================================================
# ANALYSIS
# =============================================================================

from .summarizer import (
    compute_summary,
    summarize,
    is_fast_mode_question,
)

from .fallback import (
    Topic,
    classify_topic,
    build_fallback_answer,
)

from .charts import (
    requires_chart,
    build_fallback_chart,
)

from .analysis import (
    AnalysisOrchestrator,
    build_analysis_prompts,
    parse_analysis_response,
)

from .followups import FollowUpGenerator
from .status import StatusReporter
from .overview import OverviewInsightGenerator, suggest_question

from .boundary import (
    AnalysisRequest,
    FollowUpRequest,
    parse_events,
    split_embedded_context,
)


__all__ = [
    '__version__',
    # Core
    'UNKNOWN',
    'MAX_CHART_POINTS',
    'ProviderKind',
    'SummaryMode',
    'ChartKind',
    'MessageRole',
    'IdentificationEvent',
    'DataSummary',
    'ChartPoint',
    'ChartSpec',
    'AnalysisResult',
    'ProviderStatus',
    'OverviewInsight',
    'ChatMessage',
    'InsightConfig',
    'LLMProvider',
    'MockLLMProvider',
    'ProviderGateway',
    'create_provider',
    'load_env_file',
    # Errors
    'InsightError',
    'ConfigurationError',
    'ProviderError',
    'ProviderNotConfiguredError',
    'ProviderTimeoutError',
    'ParseError',
    'InputError',
    'MissingFieldError',
    'UpstreamError',
    # Analysis
    'compute_summary',
    'summarize',
    'is_fast_mode_question',
    'Topic',
    'classify_topic',
    'build_fallback_answer',
    'requires_chart',
    'build_fallback_chart',
    'AnalysisOrchestrator',
    'build_analysis_prompts',
    'parse_analysis_response',
    'FollowUpGenerator',
    'StatusReporter',
    'OverviewInsightGenerator',
    'suggest_question',
    # Request boundary
    'AnalysisRequest',
    'FollowUpRequest',
    'parse_events',
    'split_embedded_context',
]
