#!/usr/bin/env python3

"""
Test Utilities

WAV builders, scripted stages and small fakes shared by the test suites.
"""

import asyncio
import io
import json
import math
import struct
import time
import wave
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from talkpipe.functional.result_monad import Result
from talkpipe.pipeline.configuration import StageConfiguration
from talkpipe.pipeline.context import ExecutionContext
from talkpipe.pipeline.registry import PipelineBuildContext, StageRegistry
from talkpipe.pipeline.results import StageResult
from talkpipe.pipeline.stage import ConfigurableRetryMixin, PipelineStage


def create_test_wav_data(duration: float = 1.0, sample_rate: int = 16000, frequency: float = 440.0,
                         amplitude: float = 0.3, channels: int = 1) -> bytes:
    """Create a 16-bit PCM sine tone"""
    samples = int(duration * sample_rate)
    frames = []
    for i in range(samples):
        value = int(32767 * amplitude * math.sin(2 * math.pi * frequency * i / sample_rate))
        frames.append(struct.pack('<h', value) * channels)

    wav_buffer = io.BytesIO()
    with wave.open(wav_buffer, 'wb') as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(b''.join(frames))

    return wav_buffer.getvalue()


def create_speech_like_wav(segments: Sequence[tuple], sample_rate: int = 16000) -> bytes:
    """
    Concatenate (kind, seconds) pieces where kind is 'tone' or 'silence'

    Silence carries a faint hiss so it has a measurable noise floor.
    """
    pcm = bytearray()
    for kind, seconds in segments:
        count = int(seconds * sample_rate)
        for i in range(count):
            if kind == "tone":
                value = int(32767 * 0.4 * math.sin(2 * math.pi * 220.0 * i / sample_rate))
            else:
                value = 20 if i % 2 else -20
            pcm += struct.pack('<h', value)

    wav_buffer = io.BytesIO()
    with wave.open(wav_buffer, 'wb') as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(bytes(pcm))
    return wav_buffer.getvalue()


def wav_duration(data: bytes) -> float:
    with wave.open(io.BytesIO(data), 'rb') as wav_file:
        return wav_file.getnframes() / float(wav_file.getframerate())


class ScriptedStage(ConfigurableRetryMixin, PipelineStage):
    """
    Stage whose attempts follow a script

    Each entry of outcomes is True (succeed), False (fail), an Exception
    instance (raise it) or a callable taking the context and returning one
    of those. The last entry repeats once the script runs out.
    """

    def __init__(self, name: str = "Scripted", outcomes: Sequence[Any] = (True,),
                 retry_count: int = 0, retry_delay: float = 0.0,
                 raw_text: Optional[str] = None, cleaned_text: Optional[str] = None,
                 language: Optional[str] = None, log: Optional[List[str]] = None,
                 stage_type: str = "Scripted"):
        self._name = name
        self._stage_type = stage_type
        self._retry_count = retry_count
        self._retry_delay = retry_delay
        self.outcomes = list(outcomes) or [True]
        self.raw_text = raw_text
        self.cleaned_text = cleaned_text
        self.language = language
        self.log = log if log is not None else []
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def stage_type(self) -> str:
        return self._stage_type

    async def execute(self, context: ExecutionContext) -> StageResult:
        metrics = self.start_metrics()
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        self.log.append(self.name)
        metrics.add_metric("Call", self.calls)

        if callable(outcome) and not isinstance(outcome, BaseException):
            outcome = outcome(context)
        if isinstance(outcome, BaseException):
            raise outcome
        if not outcome:
            return self.fail(metrics, f"{self.name} failed on call {self.calls}")

        if self.raw_text is not None:
            context.raw_transcription = self.raw_text
        if self.cleaned_text is not None:
            context.cleaned_text = self.cleaned_text
        if self.language is not None:
            context.language = self.language
        return self.finish(metrics)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RecordingProgress:
    def __init__(self):
        self.updates = []

    def __call__(self, update) -> None:
        self.updates.append(update)

    @property
    def messages(self) -> List[str]:
        return [u.message for u in self.updates]


def scripted_factory(**kwargs) -> Callable[[StageConfiguration, PipelineBuildContext], ScriptedStage]:
    """Factory building a ScriptedStage named after the configuration"""
    def factory(config: StageConfiguration, build_context: PipelineBuildContext) -> ScriptedStage:
        return ScriptedStage(name=config.name or config.type, stage_type=config.type, **kwargs)
    return factory


def create_test_registry(**types: Callable) -> StageRegistry:
    registry = StageRegistry()
    for stage_type, factory in types.items():
        registry.register(stage_type, factory)
    return registry


def write_pipeline_file(directory: Union[str, Path], file_name: str, content: Union[str, Dict[str, Any]]) -> Path:
    path = Path(directory) / file_name
    if isinstance(content, dict):
        content = json.dumps(content, indent=2)
    path.write_text(content, encoding="utf-8")
    return path


async def wait_for_condition(condition_func, timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Wait for a condition to become true"""
    start_time = time.time()

    while time.time() - start_time < timeout:
        if await condition_func() if asyncio.iscoroutinefunction(condition_func) else condition_func():
            return True
        await asyncio.sleep(interval)

    return False


def assert_result_success(result: Result, message: str = "Expected successful result"):
    """Assert that a Result is successful"""
    assert result.is_success(), f"{message}: {result.get_error() if result.is_failure() else 'Unknown error'}"


def assert_result_failure(result: Result, expected_error: str = None):
    """Assert that a Result is a failure"""
    assert result.is_failure(), "Expected failure result but got success"
    if expected_error:
        assert expected_error in str(result.get_error()), \
            f"Expected error containing '{expected_error}', got '{result.get_error()}'"
