#!/usr/bin/env python3

"""
Pipeline Stage Contract

Every unit of work in a pipeline implements PipelineStage. A stage reads and
writes the execution context, reports its outcome as a StageResult and
declares how often the engine may retry it.
"""

import logging
from abc import ABC, abstractmethod

from .context import ExecutionContext
from .metrics import StageMetrics
from .results import StageResult

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """
    Abstract pipeline stage

    execute() must not raise for expected conditions such as empty input or
    a rejected API call; it returns StageResult.fail() with a readable
    message instead. The engine still treats any exception that escapes as
    a failed attempt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name, unique within a pipeline"""
        pass

    @property
    @abstractmethod
    def stage_type(self) -> str:
        """Registry identifier this stage was built from"""
        pass

    @property
    def retry_count(self) -> int:
        """Extra attempts the engine makes after a failure"""
        return 0

    @property
    def retry_delay(self) -> float:
        """Constant delay in seconds between attempts"""
        return 0.0

    @abstractmethod
    async def execute(self, context: ExecutionContext) -> StageResult:
        pass

    def start_metrics(self) -> StageMetrics:
        return StageMetrics(stage_name=self.name)

    def finish(self, metrics: StageMetrics, **custom_metrics) -> StageResult:
        for key, value in custom_metrics.items():
            metrics.add_metric(key, value)
        return StageResult.ok(metrics)

    def fail(self, metrics: StageMetrics, message: str, exc: Exception = None) -> StageResult:
        if exc is not None:
            metrics.add_metric("Exception", str(exc))
        logger.debug(f"Stage {self.name} failed: {message}")
        return StageResult.fail(message, metrics)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, type={self.stage_type!r})"


class ConfigurableRetryMixin:
    """
    Lets a stage's declared retry policy be overridden from its settings

    Stages using this set _retry_count and _retry_delay in __init__.
    """
    _retry_count: int = 0
    _retry_delay: float = 0.0

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def retry_delay(self) -> float:
        return self._retry_delay

    def configure_retry(self, retry_count=None, retry_delay=None) -> None:
        if retry_count is not None:
            self._retry_count = max(0, int(retry_count))
        if retry_delay is not None:
            self._retry_delay = max(0.0, float(retry_delay))
