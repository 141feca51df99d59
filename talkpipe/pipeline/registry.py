#!/usr/bin/env python3

"""
Stage Registry

Maps configuration `type` identifiers to factories producing PipelineStage
instances. Registration happens once at startup; freeze() then makes the
registry read-only so it can be shared by concurrent runs.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..errors import ConfigurationError
from .configuration import StageConfiguration
from .stage import PipelineStage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineBuildContext:
    """Credentials and resources available to stage factories"""
    openai_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    local_model_path: Optional[str] = None
    local_model_name: Optional[str] = None
    http_timeout_seconds: float = 300.0

    @property
    def has_local_model(self) -> bool:
        return bool(self.local_model_path or self.local_model_name)


StageFactory = Callable[[StageConfiguration, PipelineBuildContext], PipelineStage]


class StageRegistry:
    """Registry of stage factories keyed by stage type"""

    def __init__(self):
        self._factories: Dict[str, StageFactory] = {}
        self._frozen = False

    def register(self, stage_type: str, factory: StageFactory) -> 'StageRegistry':
        if self._frozen:
            raise RuntimeError(f"Stage registry is frozen; cannot register '{stage_type}'")
        if not stage_type or not stage_type.strip():
            raise ValueError("Stage type must not be empty")

        if stage_type in self._factories:
            logger.warning(f"Stage factory for type '{stage_type}' is being overwritten")

        self._factories[stage_type] = factory
        logger.debug(f"Registered stage factory for type: {stage_type}")
        return self

    def freeze(self) -> 'StageRegistry':
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def is_registered(self, stage_type: str) -> bool:
        return stage_type in self._factories

    def registered_types(self) -> List[str]:
        return sorted(self._factories)

    def resolve(self, stage_type: str) -> StageFactory:
        factory = self._factories.get(stage_type)
        if factory is None:
            available = ", ".join(self.registered_types()) or "(none)"
            raise ConfigurationError(
                f"No factory registered for stage type: {stage_type}. Available types: {available}"
            )
        return factory

    def create(self, config: StageConfiguration, build_context: PipelineBuildContext) -> PipelineStage:
        """Resolve and construct one stage; any factory error is a ConfigurationError"""
        factory = self.resolve(config.type)
        try:
            stage = factory(config, build_context)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to create stage '{config.name or config.type}': {e}") from e

        if not isinstance(stage, PipelineStage):
            raise ConfigurationError(
                f"Factory for '{config.type}' returned {type(stage).__name__}, not a PipelineStage"
            )
        return stage

    def __len__(self) -> int:
        return len(self._factories)

    def __contains__(self, stage_type: str) -> bool:
        return self.is_registered(stage_type)
