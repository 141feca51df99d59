#!/usr/bin/env python3

"""
Transcription Stages

Speech-to-text through an OpenAI-compatible cloud API (OpenAI, Groq) or a
local Whisper model. Either way the text lands in raw_transcription.
"""

import logging
from typing import Optional

from ..errors import ConfigurationError, ProviderError
from ..functional.utils import count_words
from ..pipeline.configuration import StageConfiguration
from ..pipeline.context import ExecutionContext
from ..pipeline.registry import PipelineBuildContext
from ..pipeline.results import StageResult
from ..pipeline.settings_extraction import get_string
from ..providers.openai_client import GROQ_BASE_URL, OPENAI_BASE_URL, OpenAICompatibleClient
from .base import BuiltinStage

logger = logging.getLogger(__name__)


class CloudTranscriptionStage(BuiltinStage):
    """Transcribes context.audio with a hosted Whisper model"""
    DEFAULT_RETRY_COUNT = 2
    DEFAULT_RETRY_DELAY = 1.0

    def __init__(self, client: OpenAICompatibleClient, model: str, provider: str,
                 stage_type: str, name: Optional[str] = None, language: Optional[str] = None):
        super().__init__(name or f"{provider} Whisper Transcription", stage_type)
        self.client = client
        self.model = model
        self.provider = provider
        self.language = language

    async def execute(self, context: ExecutionContext) -> StageResult:
        metrics = self.start_metrics()
        if not context.audio:
            return self.fail(metrics, "Audio data not found in context")

        context.report_progress(f"Transcribing with {self.provider} Whisper...", 30)

        try:
            transcription = await self.client.transcribe(context.audio, self.model, language=self.language)
        except ProviderError as e:
            return self.fail(metrics, f"{self.provider} Whisper transcription failed: {e}", e)

        if not transcription or not transcription.strip():
            return self.fail(metrics, "Transcription returned empty result")

        context.raw_transcription = transcription
        if self.language:
            context.language = self.language

        word_count = count_words(transcription)
        context.report_progress(f"Transcribed {word_count} words", 50)
        return self.finish(
            metrics,
            Provider=self.provider,
            Model=self.model,
            WordCount=word_count,
            CharacterCount=len(transcription)
        )


class LocalWhisperTranscriptionStage(BuiltinStage):
    """Offline transcription; also records the detected language"""
    STAGE_TYPE = "LocalWhisperTranscription"
    DEFAULT_NAME = "Local Whisper Transcription"

    def __init__(self, transcriber, name: Optional[str] = None, language: Optional[str] = None):
        super().__init__(name)
        self.transcriber = transcriber
        self.language = language

    async def execute(self, context: ExecutionContext) -> StageResult:
        metrics = self.start_metrics()
        if not context.audio:
            return self.fail(metrics, "Audio data not found in context")

        context.report_progress("Transcribing with local Whisper model...", 30)

        try:
            result = await self.transcriber.transcribe(context.audio, language=self.language)
        except (ValueError, RuntimeError, OSError) as e:
            return self.fail(metrics, f"Local Whisper transcription failed: {e}", e)

        if not result.text:
            return self.fail(metrics, "Transcription returned empty result")

        context.raw_transcription = result.text
        context.language = result.language or self.language

        word_count = count_words(result.text)
        context.report_progress(f"Transcribed {word_count} words", 50)
        return self.finish(
            metrics,
            Provider="Local",
            Model=getattr(self.transcriber, "model_name", "unknown"),
            Language=context.language,
            WordCount=word_count,
            CharacterCount=len(result.text),
            ProcessingSeconds=round(result.processing_time, 3)
        )


def _api_key(config: StageConfiguration, fallback: Optional[str], provider: str) -> str:
    api_key = get_string(config.settings, "ApiKey") or fallback
    if not api_key or not api_key.strip():
        raise ConfigurationError(f"{provider} API key not found in stage settings or build context")
    return api_key


def create_openai_transcription_stage(config: StageConfiguration,
                                      build_context: PipelineBuildContext) -> CloudTranscriptionStage:
    client = OpenAICompatibleClient(
        _api_key(config, build_context.openai_api_key, "OpenAI"),
        base_url=get_string(config.settings, "BaseUrl", OPENAI_BASE_URL),
        timeout=build_context.http_timeout_seconds
    )
    return CloudTranscriptionStage(
        client,
        model=get_string(config.settings, "Model", "whisper-1"),
        provider="OpenAI",
        stage_type="OpenAIWhisperTranscription",
        name=config.name,
        language=get_string(config.settings, "Language")
    )


def create_groq_transcription_stage(config: StageConfiguration,
                                    build_context: PipelineBuildContext) -> CloudTranscriptionStage:
    client = OpenAICompatibleClient(
        _api_key(config, build_context.groq_api_key, "Groq"),
        base_url=get_string(config.settings, "BaseUrl", GROQ_BASE_URL),
        timeout=build_context.http_timeout_seconds
    )
    return CloudTranscriptionStage(
        client,
        model=get_string(config.settings, "Model", "whisper-large-v3-turbo"),
        provider="Groq",
        stage_type="GroqWhisperTranscription",
        name=config.name,
        language=get_string(config.settings, "Language")
    )


def create_local_transcription_stage(config: StageConfiguration,
                                     build_context: PipelineBuildContext) -> LocalWhisperTranscriptionStage:
    model = (get_string(config.settings, "ModelPath")
             or get_string(config.settings, "ModelName")
             or build_context.local_model_path
             or build_context.local_model_name)
    if not model:
        raise ConfigurationError("Local Whisper model not found in stage settings or build context")

    # torch and whisper load only when a local stage is actually configured
    from ..providers.local_whisper import LocalWhisperTranscriber

    language = get_string(config.settings, "Language")
    transcriber = LocalWhisperTranscriber(model=model, device=get_string(config.settings, "Device"),
                                          language=language)
    return LocalWhisperTranscriptionStage(transcriber, name=config.name, language=language)
