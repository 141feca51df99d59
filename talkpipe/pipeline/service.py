#!/usr/bin/env python3

"""
Pipeline Service

Caller-facing entry point: keeps a snapshot of the enabled configurations,
tracks the default pipeline and runs or compares pipelines by name.
Reloading replaces the snapshot; runs already in progress keep the
configuration they were built from.
"""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from ..errors import ConfigurationError
from .comparison import ComparisonRunner, PipelineComparisonResult
from .configuration import PipelineConfiguration
from .context import CancellationToken, ProgressSink, WindowContext
from .engine import Pipeline, PipelineEngine
from .results import PipelineResult

if TYPE_CHECKING:
    from ..config.store import ConfigurationStore

logger = logging.getLogger(__name__)


class PipelineService:
    """Runs named pipelines from a configuration store"""

    def __init__(self, store: 'ConfigurationStore', engine: PipelineEngine,
                 default_pipeline: Optional[str] = None,
                 comparison_runner: Optional[ComparisonRunner] = None):
        self.store = store
        self.engine = engine
        self.comparison_runner = comparison_runner or ComparisonRunner()
        self._configurations: Dict[str, PipelineConfiguration] = {}
        self._default_key: Optional[str] = default_pipeline.casefold() if default_pipeline else None
        self.reload()

    def reload(self) -> None:
        """Replace the configuration snapshot from the store"""
        configurations: Dict[str, PipelineConfiguration] = {}
        for config in self.store.load_all():
            if not config.enabled:
                logger.debug(f"Skipping disabled pipeline configuration: {config.name}")
                continue
            if config.key in configurations:
                logger.warning(f"Duplicate pipeline name '{config.name}'; keeping "
                               f"'{configurations[config.key].name}'")
                continue
            configurations[config.key] = config

        self._configurations = configurations

        if self._default_key not in configurations:
            if self._default_key is not None:
                logger.warning(f"Default pipeline '{self._default_key}' is no longer available")
            self._default_key = next(iter(configurations), None)
            if self._default_key is not None:
                logger.info(f"Set default pipeline: {configurations[self._default_key].name}")

        logger.info(f"Loaded {len(configurations)} pipeline configurations")

    def available_pipelines(self) -> List[str]:
        return [config.name for config in self._configurations.values()]

    def get_configuration(self, name: str) -> Optional[PipelineConfiguration]:
        return self._configurations.get(name.strip().casefold())

    @property
    def default_pipeline_name(self) -> Optional[str]:
        if self._default_key is None:
            return None
        return self._configurations[self._default_key].name

    def set_default(self, name: str) -> None:
        key = name.strip().casefold()
        if key not in self._configurations:
            raise KeyError(f"Pipeline configuration not found: {name}")
        self._default_key = key
        logger.info(f"Default pipeline set to: {self._configurations[key].name}")

    def build(self, name: str) -> Pipeline:
        """
        Raises:
            KeyError: no enabled configuration has that name
            ConfigurationError: the configuration cannot be built
        """
        config = self.get_configuration(name)
        if config is None:
            raise KeyError(f"Pipeline '{name}' not found")
        return self.engine.build(config)

    async def run(self, audio: bytes, pipeline_name: Optional[str] = None,
                  window_context: Optional[WindowContext] = None,
                  progress: Optional[ProgressSink] = None,
                  cancellation: Optional[CancellationToken] = None) -> PipelineResult:
        """Run the named pipeline, or the default one, on audio"""
        name = pipeline_name or self.default_pipeline_name
        if name is None:
            logger.warning("No default pipeline configured")
            return PipelineResult.configuration_error(
                "", "No default pipeline configured. Please configure a pipeline in settings."
            )

        try:
            pipeline = self.build(name)
        except KeyError:
            logger.warning(f"Pipeline not found: {name}")
            return PipelineResult.configuration_error(name, f"Pipeline '{name}' not found")
        except ConfigurationError as e:
            logger.error(f"Failed to build pipeline '{name}': {e}")
            return PipelineResult.configuration_error(name, str(e))

        logger.info(f"Executing pipeline: {pipeline.name}")
        context = pipeline.new_context(
            audio, window_context=window_context, progress=progress, cancellation=cancellation
        )
        result = await pipeline.run(context)

        logger.info(f"Pipeline '{pipeline.name}' finished: success={result.success}, "
                    f"duration={result.total_duration_ms or 0.0:.2f}ms")
        return result

    async def compare(self, audio: bytes, names: Sequence[str],
                      window_context: Optional[WindowContext] = None,
                      cancellation: Optional[CancellationToken] = None,
                      parallel: bool = False) -> PipelineComparisonResult:
        """
        Compare named pipelines on the same audio

        Raises:
            KeyError: a name is unknown
            ConfigurationError: a configuration cannot be built
            ValueError: audio is empty or no names were given
        """
        pipelines = [self.build(name) for name in names]
        return await self.comparison_runner.run(
            audio, pipelines, window_context=window_context,
            cancellation=cancellation, parallel=parallel
        )
