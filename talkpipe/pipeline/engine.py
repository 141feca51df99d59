#!/usr/bin/env python3

"""
Pipeline Engine

PipelineEngine turns a PipelineConfiguration into a Pipeline: an ordered,
already-resolved list of stage instances. Pipeline.run() executes those
stages one after another against a single ExecutionContext.

Run states:

    NotStarted -> Running(stage i) -> Running(stage i+1) | Aborted | Completed

A stage is attempted up to retry_count + 1 times with a constant delay
between attempts. This is independent of any exponential HTTP backoff a
stage applies to its own network calls, so one attempt may contain several
HTTP retries.
"""

import asyncio
import logging
import uuid
from dataclasses import replace
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence

from ..errors import ConfigurationError
from ..events.event_bus import (
    BaseEvent,
    EventBus,
    PipelineCancelledEvent,
    PipelineCompletedEvent,
    PipelineFailedEvent,
    PipelineStartedEvent,
    StageCompletedEvent,
    StageRetryEvent
)
from ..functional.utils import count_words
from .configuration import PipelineConfiguration
from .context import CancellationToken, ExecutionContext, ProgressSink, WindowContext
from .metrics import PipelineMetrics, StageMetrics
from .registry import PipelineBuildContext, StageRegistry
from .results import CANCELLED_MESSAGE, PipelineResult, RunStatus, StageResult
from .settings_extraction import get_float, get_int
from .stage import ConfigurableRetryMixin, PipelineStage

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class _Cancelled(Exception):
    """Internal signal: the token was cancelled before the given stage ran"""

    def __init__(self, next_stage_name: Optional[str]):
        super().__init__(next_stage_name)
        self.next_stage_name = next_stage_name


class Pipeline:
    """
    Executable pipeline: stages resolved, ready to run

    A Pipeline holds no per-run state and may be run any number of times,
    including concurrently, as long as each run gets its own context.
    """

    def __init__(self, name: str, stages: Sequence[PipelineStage],
                 event_bus: Optional[EventBus] = None,
                 sleep: Optional[Sleep] = None,
                 global_settings: Optional[Mapping[str, Any]] = None):
        self.name = name
        self._stages = tuple(stages)
        self._event_bus = event_bus
        self._sleep = sleep
        self._global_settings = dict(global_settings or {})

    @property
    def stages(self) -> Sequence[PipelineStage]:
        return self._stages

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self._stages]

    @property
    def global_settings(self) -> Mapping[str, Any]:
        return dict(self._global_settings)

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self) -> str:
        return f"Pipeline(name={self.name!r}, stages={self.stage_names!r})"

    def new_context(self, audio: bytes,
                    window_context: Optional[WindowContext] = None,
                    progress: Optional[ProgressSink] = None,
                    cancellation: Optional[CancellationToken] = None) -> ExecutionContext:
        """Fresh context for one run, seeded with this pipeline's global settings"""
        return ExecutionContext(
            audio=audio,
            window_context=window_context if window_context and window_context.is_valid else None,
            settings=self._global_settings,
            cancellation=cancellation or CancellationToken.none(),
            progress=progress
        )

    async def run(self, context: ExecutionContext) -> PipelineResult:
        run_id = str(uuid.uuid4())
        metrics = PipelineMetrics(pipeline_name=self.name)
        total = len(self._stages)

        logger.info(f"Pipeline '{self.name}' starting with {total} stage(s)")
        await self._publish(PipelineStartedEvent(
            source="engine", run_id=run_id, pipeline_name=self.name,
            stage_count=total, audio_size=len(context.audio or b"")
        ))

        try:
            for index, stage in enumerate(self._stages):
                if context.is_cancelled:
                    logger.info(f"Pipeline '{self.name}' cancelled at stage {index + 1}/{total} ({stage.name})")
                    raise _Cancelled(stage.name)

                context.report_progress(
                    f"Stage {index + 1}/{total}: {stage.name}...",
                    int(index / total * 100)
                )
                logger.debug(f"Pipeline '{self.name}' executing stage {index + 1}/{total}: {stage.name}")

                result = await self._execute_stage(stage, context, run_id)
                metrics.add_stage_metrics(result.metrics)

                await self._publish(StageCompletedEvent(
                    source="engine", run_id=run_id, pipeline_name=self.name,
                    stage_name=stage.name, stage_type=stage.stage_type,
                    success=result.success, duration_ms=result.metrics.duration_ms,
                    attempts=result.metrics.attempts, error_message=result.error_message
                ))

                if not result.success:
                    return await self._aborted(metrics, run_id, stage.name, result.error_message)

                logger.debug(f"Pipeline '{self.name}' stage '{stage.name}' completed in "
                             f"{result.metrics.duration_ms:.2f}ms")

        except _Cancelled as cancelled:
            return await self._cancelled(metrics, run_id, cancelled.next_stage_name)
        except Exception as e:
            logger.error(f"Pipeline '{self.name}' failed with unexpected exception: {e}")
            return await self._aborted(metrics, run_id, None, f"Pipeline execution failed: {e}")

        return await self._completed(metrics, run_id, context)

    async def _execute_stage(self, stage: PipelineStage, context: ExecutionContext,
                             run_id: str) -> StageResult:
        """Run one stage with its retry policy; raises _Cancelled"""
        max_attempts = max(0, stage.retry_count) + 1
        delay = max(0.0, stage.retry_delay)

        for attempt in range(1, max_attempts + 1):
            if attempt > 1 and context.is_cancelled:
                raise _Cancelled(stage.name)

            result = await self._attempt(stage, context)
            if not result.success and context.is_cancelled:
                logger.info(f"Stage '{stage.name}' stopped by cancellation: {result.error_message}")
                raise _Cancelled(stage.name)

            if result.success or attempt == max_attempts:
                result = replace(result, metrics=replace(result.metrics, attempts=attempt))
                if not result.success and max_attempts > 1:
                    logger.error(f"Stage '{stage.name}' failed after {attempt} attempts: {result.error_message}")
                return result

            logger.warning(f"Stage '{stage.name}' attempt {attempt}/{max_attempts} failed: "
                           f"{result.error_message}; retrying in {delay:.2f}s")
            await self._publish(StageRetryEvent(
                source="engine", run_id=run_id, pipeline_name=self.name,
                stage_name=stage.name, attempt=attempt, max_attempts=max_attempts,
                delay_seconds=delay, error_message=result.error_message
            ))

            await self._wait(delay, context)
            if context.is_cancelled:
                raise _Cancelled(stage.name)

        raise AssertionError("unreachable")

    async def _attempt(self, stage: PipelineStage, context: ExecutionContext) -> StageResult:
        """
        One attempt; escaping exceptions become a failed StageResult

        The attempt races the cancellation token, so a stage blocked on a
        slow network call is abandoned as soon as cancel() is called.
        """
        stage_task = asyncio.ensure_future(stage.execute(context))
        cancel_task = asyncio.ensure_future(context.cancellation.wait())
        try:
            await asyncio.wait({stage_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            cancel_task.cancel()
            stage_task.cancel()
            await asyncio.gather(stage_task, return_exceptions=True)
            raise
        cancel_task.cancel()
        if not stage_task.done():
            stage_task.cancel()

        try:
            result = await stage_task
        except asyncio.CancelledError:
            if context.is_cancelled:
                logger.info(f"Stage '{stage.name}' abandoned on cancellation")
                raise _Cancelled(stage.name)
            raise
        except Exception as e:
            logger.error(f"Pipeline '{self.name}' stage '{stage.name}' threw exception: {e}")
            error_metrics = StageMetrics(stage_name=stage.name)
            error_metrics.add_metric("Exception", str(e))
            return StageResult.fail(f"Exception in {stage.name}: {e}", error_metrics)

        if not isinstance(result, StageResult):
            error_metrics = StageMetrics(stage_name=stage.name)
            return StageResult.fail(
                f"Stage {stage.name} returned {type(result).__name__} instead of a StageResult",
                error_metrics
            )
        return result

    async def _wait(self, delay: float, context: ExecutionContext) -> None:
        if delay <= 0:
            return
        if self._sleep is not None:
            await self._sleep(delay)
        else:
            await context.cancellation.sleep(delay)

    async def _completed(self, metrics: PipelineMetrics, run_id: str,
                         context: ExecutionContext) -> PipelineResult:
        metrics.finalize()
        context.report_progress("Complete", 100)

        text = context.text
        word_count = count_words(text)
        metrics.set_global_metric("TotalWordCount", word_count)

        logger.info(f"Pipeline '{self.name}' completed successfully in {metrics.total_duration_ms:.2f}ms")
        await self._publish(PipelineCompletedEvent(
            source="engine", run_id=run_id, pipeline_name=self.name,
            word_count=word_count, language=context.language,
            duration_ms=metrics.total_duration_ms
        ))

        return PipelineResult(
            success=True,
            status=RunStatus.COMPLETED,
            metrics=metrics,
            text=text,
            word_count=word_count,
            language=context.language,
            duration_seconds=context.audio_duration
        )

    async def _aborted(self, metrics: PipelineMetrics, run_id: str,
                       stage_name: Optional[str], message: Optional[str]) -> PipelineResult:
        metrics.finalize()
        logger.warning(f"Pipeline '{self.name}' failed at stage '{stage_name}': {message}")
        await self._publish(PipelineFailedEvent(
            source="engine", run_id=run_id, pipeline_name=self.name,
            failed_stage_name=stage_name, error_message=message or "",
            duration_ms=metrics.total_duration_ms
        ))
        return PipelineResult(
            success=False,
            status=RunStatus.ABORTED,
            metrics=metrics,
            error_message=message,
            failed_stage_name=stage_name
        )

    async def _cancelled(self, metrics: PipelineMetrics, run_id: str,
                         next_stage_name: Optional[str]) -> PipelineResult:
        metrics.finalize()
        await self._publish(PipelineCancelledEvent(
            source="engine", run_id=run_id, pipeline_name=self.name,
            next_stage_name=next_stage_name
        ))
        return PipelineResult(
            success=False,
            status=RunStatus.CANCELLED,
            metrics=metrics,
            error_message=CANCELLED_MESSAGE,
            failed_stage_name=next_stage_name
        )

    async def _publish(self, event: BaseEvent) -> None:
        if self._event_bus is None:
            return
        try:
            result = await self._event_bus.publish(event)
            if result.is_failure():
                logger.debug(f"Event {event.event_type} not published: {result.get_error()}")
        except Exception as e:
            logger.warning(f"Failed to publish {event.event_type}: {e}")


class PipelineEngine:
    """Builds executable pipelines from configurations"""

    def __init__(self, registry: StageRegistry, build_context: Optional[PipelineBuildContext] = None,
                 event_bus: Optional[EventBus] = None, sleep: Optional[Sleep] = None):
        self.registry = registry
        self.build_context = build_context or PipelineBuildContext()
        self.event_bus = event_bus
        self._sleep = sleep

    def build(self, config: PipelineConfiguration) -> Pipeline:
        """
        Resolve every enabled stage before anything runs

        Raises:
            ConfigurationError: a stage type is unknown or its factory failed
        """
        stages: List[PipelineStage] = []
        for position, stage_config in enumerate(config.stages, start=1):
            if not stage_config.enabled:
                logger.debug(f"Pipeline '{config.name}': skipping disabled stage {position} ({stage_config.type})")
                continue

            try:
                stage = self.registry.create(stage_config, self.build_context)
            except ConfigurationError as e:
                raise ConfigurationError(f"Pipeline '{config.name}', stage {position}: {e}") from e

            self._apply_retry_overrides(stage, stage_config.settings)
            stages.append(stage)

        logger.debug(f"Built pipeline '{config.name}' with stages {[s.name for s in stages]}")
        return Pipeline(
            config.name,
            stages,
            event_bus=self.event_bus,
            sleep=self._sleep,
            global_settings=config.global_settings
        )

    def _apply_retry_overrides(self, stage: PipelineStage, settings: Mapping[str, Any]) -> None:
        retry_count = get_int(settings, "RetryCount")
        retry_delay = get_float(settings, "RetryDelaySeconds")
        if retry_count is None and retry_delay is None:
            return

        if isinstance(stage, ConfigurableRetryMixin):
            stage.configure_retry(retry_count, retry_delay)
            logger.debug(f"Stage '{stage.name}' retry policy: {stage.retry_count} retries, {stage.retry_delay}s delay")
        else:
            logger.warning(f"Stage '{stage.name}' does not support retry overrides; ignoring")
