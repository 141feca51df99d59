"""
talkpipe

Configurable multi-stage voice transcription pipelines: audio goes in,
passes through an ordered list of swappable stages and comes out as text
with per-stage metrics.
"""

__version__ = "0.1.0"

from .errors import TalkPipeError, ConfigurationError, ProviderError, TransientProviderError
from .pipeline import (
    PipelineConfiguration,
    StageConfiguration,
    PipelineStage,
    StageRegistry,
    PipelineBuildContext,
    PipelineEngine,
    Pipeline,
    PipelineResult,
    RunStatus,
    ExecutionContext,
    CancellationToken,
    WindowContext,
    ComparisonRunner,
    PipelineComparisonResult,
    PipelineService
)
from .config import ConfigurationStore

__all__ = [
    "__version__",
    "TalkPipeError",
    "ConfigurationError",
    "ProviderError",
    "TransientProviderError",
    "PipelineConfiguration",
    "StageConfiguration",
    "PipelineStage",
    "StageRegistry",
    "PipelineBuildContext",
    "PipelineEngine",
    "Pipeline",
    "PipelineResult",
    "RunStatus",
    "ExecutionContext",
    "CancellationToken",
    "WindowContext",
    "ComparisonRunner",
    "PipelineComparisonResult",
    "PipelineService",
    "ConfigurationStore"
]
