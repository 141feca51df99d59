#!/usr/bin/env python3

"""
Pipeline Comparison

Runs several complete pipelines against the same audio and collects their
results for benchmarking. Each pipeline gets its own fresh context, and one
pipeline failing never stops the others.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .context import CancellationToken, WindowContext
from .engine import Pipeline
from .metrics import PipelineMetrics
from .results import PipelineResult, RunStatus

logger = logging.getLogger(__name__)


def _duration(result: PipelineResult) -> float:
    return result.metrics.total_duration_ms or 0.0


@dataclass(frozen=True)
class PipelineComparisonResult:
    """
    Outcome of a comparison run

    results keeps the order pipelines were supplied in; ranking() is a
    sorted view over the successful ones and never reorders results.
    """
    results: List[PipelineResult] = field(default_factory=list)
    total_duration_ms: float = 0.0

    @property
    def successful(self) -> List[PipelineResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[PipelineResult]:
        return [r for r in self.results if not r.success]

    @property
    def fastest(self) -> Optional[PipelineResult]:
        successful = self.successful
        return min(successful, key=_duration) if successful else None

    @property
    def slowest(self) -> Optional[PipelineResult]:
        successful = self.successful
        return max(successful, key=_duration) if successful else None

    @property
    def speedup(self) -> Optional[float]:
        """Slowest over fastest duration; None with fewer than two successes"""
        if len(self.successful) < 2:
            return None
        fastest = _duration(self.fastest)
        if fastest <= 0:
            return None
        return _duration(self.slowest) / fastest

    def ranking(self) -> List[PipelineResult]:
        return sorted(self.successful, key=_duration)

    def summary(self) -> str:
        lines = [
            "Pipeline Comparison Summary",
            "===========================",
            f"Total Comparison Duration: {self.total_duration_ms:.2f}ms",
            f"Pipelines Tested: {len(self.results)}",
            f"Successful: {len(self.successful)}",
            f"Failed: {len(self.failed)}",
            "",
        ]

        for result in self.results:
            lines.append(f"Pipeline: {result.pipeline_name}")
            lines.append(f"  Status: {'SUCCESS' if result.success else result.status.name}")
            if result.success:
                lines.append(f"  Duration: {_duration(result):.2f}ms")
                lines.append(f"  Word Count: {result.word_count}")
                lines.append(f"  Stages: {len(result.metrics.stage_metrics)}")
                lines.extend(f"    - {m.describe()}" for m in result.metrics.stage_metrics)
            else:
                lines.append(f"  Error: {result.error_message}")
                lines.append(f"  Failed Stage: {result.failed_stage_name}")
            lines.append("")

        speedup = self.speedup
        if speedup is not None:
            fastest, slowest = self.fastest, self.slowest
            lines.append("Performance:")
            lines.append(f"  Fastest: {fastest.pipeline_name} ({_duration(fastest):.2f}ms)")
            lines.append(f"  Slowest: {slowest.pipeline_name} ({_duration(slowest):.2f}ms)")
            lines.append(f"  Speedup: {speedup:.2f}x")

        return "\n".join(lines)


class ComparisonRunner:
    """Executes pipelines one after another on identical input"""

    async def run(self, audio: bytes, pipelines: Sequence[Pipeline],
                  window_context: Optional[WindowContext] = None,
                  cancellation: Optional[CancellationToken] = None,
                  parallel: bool = False) -> PipelineComparisonResult:
        """
        Run every pipeline on audio

        Pipelines run sequentially by default since they may share
        rate-limited services. parallel=True runs them concurrently; result
        order still matches the input order.

        Raises:
            ValueError: audio is empty or no pipelines were given
        """
        if not audio:
            raise ValueError("Audio data cannot be empty")
        if not pipelines:
            raise ValueError("At least one pipeline must be provided")

        logger.info(f"Starting pipeline comparison with {len(pipelines)} pipelines on {len(audio)} bytes of audio")
        started = time.perf_counter()

        if parallel:
            results = list(await asyncio.gather(
                *(self._run_one(p, audio, window_context, cancellation) for p in pipelines)
            ))
        else:
            results = []
            for pipeline in pipelines:
                results.append(await self._run_one(pipeline, audio, window_context, cancellation))

        comparison = PipelineComparisonResult(
            results=results,
            total_duration_ms=(time.perf_counter() - started) * 1000.0
        )
        logger.info(f"Pipeline comparison completed in {comparison.total_duration_ms:.2f}ms")
        logger.debug(comparison.summary())
        return comparison

    async def _run_one(self, pipeline: Pipeline, audio: bytes,
                       window_context: Optional[WindowContext],
                       cancellation: Optional[CancellationToken]) -> PipelineResult:
        logger.info(f"Running pipeline: {pipeline.name}")
        context = pipeline.new_context(
            bytes(audio), window_context=window_context, cancellation=cancellation
        )

        try:
            result = await pipeline.run(context)
        except Exception as e:
            logger.error(f"Pipeline '{pipeline.name}' threw exception: {e}")
            return PipelineResult(
                success=False,
                status=RunStatus.ABORTED,
                metrics=PipelineMetrics(pipeline_name=pipeline.name).finalize(),
                error_message=str(e)
            )

        if result.success:
            logger.info(f"Pipeline '{pipeline.name}' completed: {result.word_count} words in "
                        f"{_duration(result):.2f}ms")
        else:
            logger.info(f"Pipeline '{pipeline.name}' failed: {result.error_message}")
        return result
