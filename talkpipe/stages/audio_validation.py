#!/usr/bin/env python3

"""
Audio Validation Stage

Rejects empty or oversized recordings and records the audio duration for
the stages that follow.
"""

import logging
from typing import Optional

from ..audio import estimate_duration, read_wav_info
from ..pipeline.configuration import StageConfiguration
from ..pipeline.context import ExecutionContext
from ..pipeline.registry import PipelineBuildContext
from ..pipeline.results import StageResult
from ..pipeline.settings_extraction import get_int
from .base import BuiltinStage

logger = logging.getLogger(__name__)

# Upload limit of the cloud transcription APIs
MAX_AUDIO_BYTES = 26_214_400


class AudioValidationStage(BuiltinStage):
    STAGE_TYPE = "AudioValidation"
    DEFAULT_NAME = "Audio Validation"

    def __init__(self, name: Optional[str] = None, max_size_bytes: int = MAX_AUDIO_BYTES):
        super().__init__(name)
        self.max_size_bytes = max_size_bytes

    async def execute(self, context: ExecutionContext) -> StageResult:
        metrics = self.start_metrics()
        audio = context.audio

        if not audio:
            return self.fail(metrics, "Audio data is null or empty")

        size_mb = len(audio) / 1_048_576.0
        if len(audio) > self.max_size_bytes:
            limit_mb = self.max_size_bytes / 1_048_576.0
            return self.fail(metrics, f"Audio file exceeds {limit_mb:.0f}MB limit (size: {size_mb:.2f}MB)")

        duration = estimate_duration(audio)
        context.audio_duration = duration

        info = read_wav_info(audio)
        if info is not None:
            metrics.add_metric("SampleRate", info.sample_rate)
            metrics.add_metric("Channels", info.channels)
        else:
            logger.debug("Audio has no readable WAV header; assuming 16kHz 16-bit mono")

        context.report_progress("Audio validated", 10)
        return self.finish(
            metrics,
            AudioSizeBytes=len(audio),
            AudioSizeMB=size_mb,
            AudioDurationSeconds=duration
        )


def create_audio_validation_stage(config: StageConfiguration,
                                  build_context: PipelineBuildContext) -> AudioValidationStage:
    return AudioValidationStage(
        name=config.name,
        max_size_bytes=get_int(config.settings, "MaxSizeBytes", MAX_AUDIO_BYTES)
    )
