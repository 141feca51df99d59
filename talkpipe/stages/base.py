#!/usr/bin/env python3

"""
Built-in Stage Base

Shared plumbing for the stages shipped with talkpipe: display name, type
identifier and a retry policy that configuration may override.
"""

from typing import Optional

from ..pipeline.stage import ConfigurableRetryMixin, PipelineStage


class BuiltinStage(ConfigurableRetryMixin, PipelineStage):
    STAGE_TYPE = ""
    DEFAULT_NAME = ""
    DEFAULT_RETRY_COUNT = 0
    DEFAULT_RETRY_DELAY = 0.0

    def __init__(self, name: Optional[str] = None, stage_type: Optional[str] = None):
        self._name = name or self.DEFAULT_NAME or type(self).__name__
        self._stage_type = stage_type or self.STAGE_TYPE
        self._retry_count = self.DEFAULT_RETRY_COUNT
        self._retry_delay = self.DEFAULT_RETRY_DELAY

    @property
    def name(self) -> str:
        return self._name

    @property
    def stage_type(self) -> str:
        return self._stage_type
