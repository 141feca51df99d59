"""
Pipeline Module

Configuration model, stage contract, engine, metrics and comparison of
multi-stage transcription pipelines.
"""

from .settings_extraction import (
    SettingKind,
    SettingValue,
    decode_setting,
    decode_settings,
    encode_settings,
    get_string,
    get_bool,
    get_int,
    get_float
)
from .metrics import StageMetrics, PipelineMetrics
from .results import RunStatus, StageResult, PipelineResult, CANCELLED_MESSAGE
from .context import (
    WindowContext,
    ProgressUpdate,
    ProgressSink,
    CancellationToken,
    ExecutionContext
)
from .stage import PipelineStage, ConfigurableRetryMixin
from .configuration import StageConfiguration, PipelineConfiguration
from .registry import PipelineBuildContext, StageFactory, StageRegistry
from .engine import Pipeline, PipelineEngine
from .comparison import ComparisonRunner, PipelineComparisonResult
from .service import PipelineService

__all__ = [
    "SettingKind",
    "SettingValue",
    "decode_setting",
    "decode_settings",
    "encode_settings",
    "get_string",
    "get_bool",
    "get_int",
    "get_float",
    "StageMetrics",
    "PipelineMetrics",
    "RunStatus",
    "StageResult",
    "PipelineResult",
    "CANCELLED_MESSAGE",
    "WindowContext",
    "ProgressUpdate",
    "ProgressSink",
    "CancellationToken",
    "ExecutionContext",
    "PipelineStage",
    "ConfigurableRetryMixin",
    "StageConfiguration",
    "PipelineConfiguration",
    "PipelineBuildContext",
    "StageFactory",
    "StageRegistry",
    "Pipeline",
    "PipelineEngine",
    "ComparisonRunner",
    "PipelineComparisonResult",
    "PipelineService"
]
