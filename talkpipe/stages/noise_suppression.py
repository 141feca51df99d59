#!/usr/bin/env python3

"""
Noise Suppression Stage

Spectral gating on 16-bit PCM WAV audio. The noise floor of each frequency
bin is estimated from the quietest frames, and every bin is attenuated in
proportion to how close it sits to that floor.
"""

import asyncio
import logging
import math
from typing import Optional

import numpy as np

from ..audio import decode_pcm16, encode_pcm16, rms
from ..pipeline.configuration import StageConfiguration
from ..pipeline.context import ExecutionContext
from ..pipeline.registry import PipelineBuildContext
from ..pipeline.results import StageResult
from ..pipeline.settings_extraction import get_float, get_int
from .base import BuiltinStage

logger = logging.getLogger(__name__)

NOISE_PERCENTILE = 10


def spectral_gate(samples: np.ndarray, frame_size: int, strength: float) -> np.ndarray:
    """
    Denoise float samples with overlap-add STFT gating

    Uses a sqrt-Hann window at 50% overlap for analysis and synthesis, so
    strength=0 reconstructs the input.
    """
    samples = np.asarray(samples, dtype=np.float64)
    if frame_size < 4 or len(samples) < frame_size:
        return samples.copy()

    hop = frame_size // 2
    window = np.sqrt(np.hanning(frame_size + 1)[:-1])
    padded = np.concatenate([np.zeros(frame_size), samples, np.zeros(frame_size)])
    frame_count = 1 + (len(padded) - frame_size) // hop

    frames = np.stack([padded[i * hop:i * hop + frame_size] * window for i in range(frame_count)])
    spectrum = np.fft.rfft(frames, axis=1)
    magnitude = np.abs(spectrum)

    # Edge frames are mostly padding
    inner = magnitude[2:-2] if frame_count > 4 else magnitude
    noise_floor = np.percentile(inner, NOISE_PERCENTILE, axis=0)

    gain = np.clip(1.0 - strength * noise_floor / np.maximum(magnitude, 1e-10), 0.0, 1.0)
    cleaned = np.fft.irfft(spectrum * gain, n=frame_size, axis=1) * window

    output = np.zeros(len(padded))
    for i in range(frame_count):
        output[i * hop:i * hop + frame_size] += cleaned[i]

    return output[frame_size:frame_size + len(samples)]


class NoiseSuppressionStage(BuiltinStage):
    STAGE_TYPE = "NoiseSuppression"
    DEFAULT_NAME = "Noise Suppression"

    def __init__(self, name: Optional[str] = None, reduction_strength: float = 1.0, frame_ms: int = 32):
        super().__init__(name)
        self.reduction_strength = min(max(reduction_strength, 0.0), 1.0)
        self.frame_ms = max(frame_ms, 1)

    def _process(self, audio: bytes):
        samples, sample_rate = decode_pcm16(audio)
        frame_size = int(sample_rate * self.frame_ms / 1000)
        frame_size += frame_size % 2

        denoised = spectral_gate(samples.astype(np.float64), frame_size, self.reduction_strength)
        output = np.round(denoised).astype(np.int16)
        return encode_pcm16(output, sample_rate), rms(samples), rms(output)

    async def execute(self, context: ExecutionContext) -> StageResult:
        metrics = self.start_metrics()
        audio = context.audio
        if not audio:
            return self.fail(metrics, "Audio data is null or empty")

        context.report_progress("Removing background noise", 15)

        try:
            processed, rms_before, rms_after = await asyncio.to_thread(self._process, audio)
        except ValueError as e:
            return self.fail(metrics, f"Noise suppression requires 16-bit PCM WAV audio: {e}", e)

        context.audio = processed

        metrics.add_metric("ReductionStrength", self.reduction_strength)
        metrics.add_metric("RmsBefore", round(rms_before, 2))
        metrics.add_metric("RmsAfter", round(rms_after, 2))
        if rms_before > 0 and rms_after > 0:
            reduction_db = 20.0 * math.log10(rms_before / rms_after)
            metrics.add_metric("NoiseReductionDb", round(reduction_db, 2))
            logger.debug(f"Noise suppression reduced level by {reduction_db:.2f}dB")

        return self.finish(metrics)


def create_noise_suppression_stage(config: StageConfiguration,
                                   build_context: PipelineBuildContext) -> NoiseSuppressionStage:
    return NoiseSuppressionStage(
        name=config.name,
        reduction_strength=get_float(config.settings, "ReductionStrength", 1.0),
        frame_ms=get_int(config.settings, "FrameMs", 32)
    )
