#!/usr/bin/env python3

"""
Stage and Pipeline Results
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .metrics import StageMetrics, PipelineMetrics


class RunStatus(Enum):
    """Terminal state of a pipeline run"""
    COMPLETED = "completed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"
    CONFIGURATION_ERROR = "configuration_error"


CANCELLED_MESSAGE = "Pipeline execution was cancelled"


@dataclass(frozen=True)
class StageResult:
    """Outcome of one stage attempt"""
    success: bool
    metrics: StageMetrics = field(default_factory=StageMetrics)
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, metrics: StageMetrics) -> 'StageResult':
        return cls(success=True, metrics=metrics.stop())

    @classmethod
    def fail(cls, error_message: str, metrics: StageMetrics) -> 'StageResult':
        return cls(success=False, metrics=metrics.stop(), error_message=error_message)


@dataclass(frozen=True)
class PipelineResult:
    """Final result of a complete pipeline run"""
    success: bool
    status: RunStatus
    metrics: PipelineMetrics = field(default_factory=PipelineMetrics)
    text: str = ""
    word_count: int = 0
    language: Optional[str] = None
    duration_seconds: Optional[float] = None
    error_message: Optional[str] = None
    failed_stage_name: Optional[str] = None

    @property
    def pipeline_name(self) -> str:
        return self.metrics.pipeline_name

    @property
    def cancelled(self) -> bool:
        return self.status is RunStatus.CANCELLED

    @property
    def total_duration_ms(self) -> Optional[float]:
        return self.metrics.total_duration_ms

    @classmethod
    def configuration_error(cls, pipeline_name: str, message: str) -> 'PipelineResult':
        """Result for a run refused before any stage executed"""
        metrics = PipelineMetrics(pipeline_name=pipeline_name).finalize()
        return cls(
            success=False,
            status=RunStatus.CONFIGURATION_ERROR,
            metrics=metrics,
            error_message=message
        )
