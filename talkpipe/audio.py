#!/usr/bin/env python3

"""
Audio Utilities

In-memory WAV helpers shared by the audio stages: header inspection, 16-bit
PCM decode/encode and conversion to the float32 16 kHz mono signal Whisper
expects.
"""

import io
import logging
import wave
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000
WAV_HEADER_SIZE = 44


@dataclass(frozen=True)
class AudioInfo:
    sample_rate: int
    channels: int
    sample_width: int
    frames: int

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frames / float(self.sample_rate)


def read_wav_info(data: bytes) -> Optional[AudioInfo]:
    """Header of a WAV buffer, or None if it is not a readable WAV"""
    try:
        with wave.open(io.BytesIO(data), 'rb') as wav_file:
            return AudioInfo(
                sample_rate=wav_file.getframerate(),
                channels=wav_file.getnchannels(),
                sample_width=wav_file.getsampwidth(),
                frames=wav_file.getnframes()
            )
    except (wave.Error, EOFError) as e:
        logger.debug(f"Not a readable WAV buffer: {e}")
        return None


def estimate_duration(data: bytes) -> float:
    """Duration in seconds from the WAV header, else assume 16 kHz 16-bit mono"""
    info = read_wav_info(data)
    if info is not None:
        return info.duration
    return max(0, len(data) - WAV_HEADER_SIZE) / float(WHISPER_SAMPLE_RATE * 2 * 1)


def decode_pcm16(data: bytes) -> Tuple[np.ndarray, int]:
    """
    Decode a 16-bit PCM WAV into mono int16 samples

    Returns:
        (samples, sample_rate)

    Raises:
        ValueError: not a WAV, or not 16-bit PCM
    """
    try:
        with wave.open(io.BytesIO(data), 'rb') as wav_file:
            channels = wav_file.getnchannels()
            sample_width = wav_file.getsampwidth()
            sample_rate = wav_file.getframerate()
            frames = wav_file.readframes(wav_file.getnframes())
    except (wave.Error, EOFError) as e:
        raise ValueError(f"Invalid WAV data: {e}") from e

    if sample_width != 2:
        raise ValueError(f"Only 16-bit PCM is supported, got {sample_width * 8}-bit")

    samples = np.frombuffer(frames, dtype='<i2')
    if channels > 1:
        usable = len(samples) - len(samples) % channels
        samples = samples[:usable].reshape(-1, channels).mean(axis=1).astype(np.int16)
    return samples.astype(np.int16, copy=False), sample_rate


def encode_pcm16(samples: np.ndarray, sample_rate: int) -> bytes:
    """Encode mono samples as a 16-bit PCM WAV"""
    clipped = np.clip(np.asarray(samples), -32768, 32767).astype('<i2')
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(clipped.tobytes())
    return buffer.getvalue()


def to_whisper_input(data: bytes) -> np.ndarray:
    """float32 samples in [-1, 1] at 16 kHz"""
    samples, sample_rate = decode_pcm16(data)
    audio = samples.astype(np.float32) / 32768.0

    if sample_rate != WHISPER_SAMPLE_RATE and len(audio) > 0:
        target_length = int(round(len(audio) * WHISPER_SAMPLE_RATE / float(sample_rate)))
        source_positions = np.linspace(0.0, len(audio) - 1, num=target_length)
        audio = np.interp(source_positions, np.arange(len(audio)), audio).astype(np.float32)
        logger.debug(f"Resampled audio from {sample_rate}Hz to {WHISPER_SAMPLE_RATE}Hz")

    return audio


def rms(samples: np.ndarray) -> float:
    if len(samples) == 0:
        return 0.0
    values = np.asarray(samples, dtype=np.float64)
    return float(np.sqrt(np.mean(values * values)))
