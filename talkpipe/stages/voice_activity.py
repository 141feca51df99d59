#!/usr/bin/env python3

"""
Voice Activity Trim Stage

Energy-based voice activity detection. Frames whose level rises far enough
above the recording's noise floor count as speech; silence between speech
segments is cut before the audio is sent for transcription.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..audio import decode_pcm16, encode_pcm16
from ..pipeline.configuration import StageConfiguration
from ..pipeline.context import ExecutionContext
from ..pipeline.registry import PipelineBuildContext
from ..pipeline.results import StageResult
from ..pipeline.settings_extraction import get_float, get_int
from .base import BuiltinStage

logger = logging.getLogger(__name__)

FRAME_MS = 30
# About -50 dBFS; quieter frames are never speech
MIN_SPEECH_RMS = 100.0


@dataclass(frozen=True)
class VadSettings:
    threshold: float = 0.5
    min_speech_duration_ms: int = 250
    min_silence_duration_ms: int = 100
    padding_ms: int = 30


def detect_speech(samples: np.ndarray, sample_rate: int, settings: VadSettings) -> List[Tuple[int, int]]:
    """
    Speech segments as (start, end) sample offsets

    threshold (0..1) places the speech cut between the noise floor and the
    loudest frame, measured in dB.
    """
    frame_size = max(1, int(sample_rate * FRAME_MS / 1000))
    frame_count = len(samples) // frame_size
    if frame_count == 0:
        return []

    frames = samples[:frame_count * frame_size].astype(np.float64).reshape(frame_count, frame_size)
    frame_rms = np.sqrt(np.mean(frames * frames, axis=1))
    frame_db = 20.0 * np.log10(np.maximum(frame_rms, 1e-6))

    floor_db = float(np.percentile(frame_db, 10))
    peak_db = float(frame_db.max())
    cut_db = floor_db + settings.threshold * (peak_db - floor_db)
    speech = (frame_db >= cut_db) & (frame_rms >= MIN_SPEECH_RMS)

    segments = []
    start = None
    for index, is_speech in enumerate(speech):
        if is_speech and start is None:
            start = index
        elif not is_speech and start is not None:
            segments.append([start, index])
            start = None
    if start is not None:
        segments.append([start, frame_count])

    ms_per_frame = FRAME_MS
    min_gap = settings.min_silence_duration_ms / ms_per_frame
    merged: List[List[int]] = []
    for segment in segments:
        if merged and segment[0] - merged[-1][1] < min_gap:
            merged[-1][1] = segment[1]
        else:
            merged.append(segment)

    min_length = settings.min_speech_duration_ms / ms_per_frame
    padding = int(sample_rate * settings.padding_ms / 1000)
    result: List[Tuple[int, int]] = []
    for start_frame, end_frame in merged:
        if end_frame - start_frame < min_length:
            continue
        begin = max(0, start_frame * frame_size - padding)
        end = min(len(samples), end_frame * frame_size + padding)
        if result and begin <= result[-1][1]:
            result[-1] = (result[-1][0], end)
        else:
            result.append((begin, end))

    return result


class VoiceActivityTrimStage(BuiltinStage):
    STAGE_TYPE = "VoiceActivityTrim"
    DEFAULT_NAME = "Voice Activity Trimming"

    def __init__(self, name: Optional[str] = None, settings: Optional[VadSettings] = None):
        super().__init__(name)
        self.settings = settings or VadSettings()

    def _process(self, audio: bytes):
        samples, sample_rate = decode_pcm16(audio)
        segments = detect_speech(samples, sample_rate, self.settings)
        original_duration = len(samples) / float(sample_rate)
        if not segments:
            return None, original_duration, original_duration, 0

        trimmed = np.concatenate([samples[start:end] for start, end in segments])
        trimmed_duration = len(trimmed) / float(sample_rate)
        return encode_pcm16(trimmed, sample_rate), original_duration, trimmed_duration, len(segments)

    async def execute(self, context: ExecutionContext) -> StageResult:
        metrics = self.start_metrics()
        audio = context.audio
        if not audio:
            return self.fail(metrics, "Audio data is null or empty")

        context.report_progress("Detecting voice activity", 25)

        try:
            trimmed, original_duration, trimmed_duration, segment_count = \
                await asyncio.to_thread(self._process, audio)
        except ValueError as e:
            return self.fail(metrics, f"VAD processing failed: {e}", e)

        metrics.add_metric("VADThreshold", self.settings.threshold)
        metrics.add_metric("SpeechSegmentsDetected", segment_count)
        metrics.add_metric("OriginalDurationSeconds", original_duration)

        if trimmed is None:
            logger.info("No speech detected; keeping original audio")
            metrics.add_metric("TrimmedDurationSeconds", original_duration)
            metrics.add_metric("SilenceRemovedSeconds", 0.0)
            return self.finish(metrics)

        removed = original_duration - trimmed_duration
        context.audio = trimmed
        context.audio_duration = trimmed_duration

        metrics.add_metric("OriginalSizeBytes", len(audio))
        metrics.add_metric("TrimmedSizeBytes", len(trimmed))
        metrics.add_metric("TrimmedDurationSeconds", trimmed_duration)
        metrics.add_metric("SilenceRemovedSeconds", removed)
        if original_duration > 0:
            metrics.add_metric("DurationReductionPercentage", removed / original_duration * 100.0)

        context.report_progress(f"Trimmed {removed:.1f}s silence", 30)
        return self.finish(metrics)


def create_voice_activity_stage(config: StageConfiguration,
                                build_context: PipelineBuildContext) -> VoiceActivityTrimStage:
    defaults = VadSettings()
    settings = VadSettings(
        threshold=get_float(config.settings, "Threshold", defaults.threshold),
        min_speech_duration_ms=get_int(config.settings, "MinSpeechDurationMs", defaults.min_speech_duration_ms),
        min_silence_duration_ms=get_int(config.settings, "MinSilenceDurationMs", defaults.min_silence_duration_ms),
        padding_ms=get_int(config.settings, "PaddingMs", defaults.padding_ms)
    )
    return VoiceActivityTrimStage(name=config.name, settings=settings)
