#!/usr/bin/env python3

"""
Pipeline Metrics

Per-stage timing and custom measurements, rolled up per pipeline run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StageMetrics:
    """
    Metrics collected during a single stage execution

    custom_metrics holds stage-specific measurements, e.g. bytes processed,
    model used or seconds of silence removed.
    """
    stage_name: str = ""
    start_time: datetime = field(default_factory=utc_now)
    end_time: Optional[datetime] = None
    attempts: int = 1
    custom_metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> timedelta:
        if self.end_time is None:
            return timedelta(0)
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        return self.duration.total_seconds() * 1000.0

    def stop(self) -> 'StageMetrics':
        """Stamp the end time if it is not set yet"""
        if self.end_time is None:
            self.end_time = utc_now()
        return self

    def add_metric(self, key: str, value: Any) -> None:
        self.custom_metrics[key] = value

    def get_metric(self, key: str, expected_type: Optional[Type[T]] = None) -> Optional[T]:
        value = self.custom_metrics.get(key)
        if expected_type is not None and not isinstance(value, expected_type):
            return None
        return value

    def describe(self) -> str:
        line = f"{self.stage_name}: {self.duration_ms:.2f}ms"
        if self.attempts > 1:
            line += f" [{self.attempts} attempts]"
        if self.custom_metrics:
            details = ", ".join(f"{k}={v}" for k, v in self.custom_metrics.items())
            line += f" ({details})"
        return line


@dataclass
class PipelineMetrics:
    """Aggregated metrics for one pipeline run"""
    pipeline_name: str = ""
    start_time: datetime = field(default_factory=utc_now)
    end_time: Optional[datetime] = None
    stage_metrics: List[StageMetrics] = field(default_factory=list)
    global_metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_duration(self) -> Optional[timedelta]:
        """Wall-clock span of the run, None until finalized"""
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    @property
    def total_duration_ms(self) -> Optional[float]:
        duration = self.total_duration
        return None if duration is None else duration.total_seconds() * 1000.0

    @property
    def stage_names(self) -> List[str]:
        return [m.stage_name for m in self.stage_metrics]

    def add_stage_metrics(self, metrics: StageMetrics) -> None:
        self.stage_metrics.append(metrics)

    def set_global_metric(self, key: str, value: Any) -> None:
        self.global_metrics[key] = value

    def get_global_metric(self, key: str, expected_type: Optional[Type[T]] = None) -> Optional[T]:
        value = self.global_metrics.get(key)
        if expected_type is not None and not isinstance(value, expected_type):
            return None
        return value

    def finalize(self) -> 'PipelineMetrics':
        if self.end_time is None:
            self.end_time = utc_now()
        return self

    def summary(self) -> str:
        total = self.total_duration_ms
        lines = [
            f"Pipeline: {self.pipeline_name}",
            f"Total Duration: {total:.2f}ms" if total is not None else "Total Duration: n/a",
            f"Stages: {len(self.stage_metrics)}",
        ]
        lines.extend(f"  - {m.describe()}" for m in self.stage_metrics)

        if self.global_metrics:
            lines.append("Global Metrics:")
            lines.extend(f"  - {k}: {v}" for k, v in self.global_metrics.items())

        return "\n".join(lines)
