#!/usr/bin/env python3

"""
Text Cleaning Stages

Turn raw_transcription into cleaned_text, either through a chat model that
removes filler words and fixes punctuation or by copying it unchanged.
"""

import logging
from typing import Optional

from ..errors import ConfigurationError, ProviderError
from ..functional.utils import count_words
from ..pipeline.configuration import StageConfiguration
from ..pipeline.context import ExecutionContext
from ..pipeline.registry import PipelineBuildContext
from ..pipeline.results import StageResult
from ..pipeline.settings_extraction import get_float, get_int, get_string
from ..providers.openai_client import CLEANUP_PROMPT, GROQ_BASE_URL, OPENAI_BASE_URL, OpenAICompatibleClient
from .base import BuiltinStage

logger = logging.getLogger(__name__)


class LLMTextCleaningStage(BuiltinStage):
    DEFAULT_RETRY_COUNT = 2
    DEFAULT_RETRY_DELAY = 1.0

    def __init__(self, client: OpenAICompatibleClient, model: str, provider: str,
                 stage_type: str, name: Optional[str] = None,
                 system_prompt: str = CLEANUP_PROMPT,
                 temperature: float = 0.3, max_tokens: int = 500):
        super().__init__(name or f"{provider} Text Cleaning", stage_type)
        self.client = client
        self.model = model
        self.provider = provider
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_prompt(self, context: ExecutionContext) -> str:
        if context.window_context is not None and context.window_context.is_valid:
            return f"{self.system_prompt}\n\n{context.window_context.context_prompt()}"
        return self.system_prompt

    async def execute(self, context: ExecutionContext) -> StageResult:
        metrics = self.start_metrics()
        raw_text = context.raw_transcription
        if not raw_text or not raw_text.strip():
            return self.fail(metrics, "Raw transcription not found in context")

        context.report_progress(f"Cleaning text with {self.provider}...", 70)

        def on_partial(partial: str) -> None:
            context.report_progress(f"Cleaning... {count_words(partial)} words", 80)

        try:
            cleaned = await self.client.clean_text(
                raw_text, self.model, self.build_prompt(context),
                on_partial=on_partial, temperature=self.temperature, max_tokens=self.max_tokens
            )
        except ProviderError as e:
            return self.fail(metrics, f"{self.provider} text cleaning failed: {e}", e)

        context.cleaned_text = cleaned

        before, after = count_words(raw_text), count_words(cleaned)
        context.report_progress(f"Cleaned {after} words", 90)
        return self.finish(
            metrics,
            Model=self.model,
            BeforeWordCount=before,
            AfterWordCount=after,
            WordCountChange=after - before,
            BeforeLength=len(raw_text),
            AfterLength=len(cleaned),
            UsedWindowContext=context.window_context is not None
        )


class PassThroughCleaningStage(BuiltinStage):
    STAGE_TYPE = "PassThroughCleaning"
    DEFAULT_NAME = "Pass-Through (No Cleaning)"

    async def execute(self, context: ExecutionContext) -> StageResult:
        metrics = self.start_metrics()
        raw_text = context.raw_transcription
        if not raw_text or not raw_text.strip():
            return self.fail(metrics, "Raw transcription not found in context")

        context.cleaned_text = raw_text
        context.report_progress("Text ready (no cleaning)", 90)
        return self.finish(
            metrics,
            WordCount=count_words(raw_text),
            CharacterCount=len(raw_text),
            Modified=False
        )


def _create_llm_stage(config: StageConfiguration, build_context: PipelineBuildContext,
                      provider: str, stage_type: str, api_key: Optional[str],
                      base_url: str, default_model: str) -> LLMTextCleaningStage:
    api_key = get_string(config.settings, "ApiKey") or api_key
    if not api_key or not api_key.strip():
        raise ConfigurationError(f"{provider} API key not found in stage settings or build context")

    client = OpenAICompatibleClient(
        api_key,
        base_url=get_string(config.settings, "BaseUrl", base_url),
        timeout=build_context.http_timeout_seconds
    )
    return LLMTextCleaningStage(
        client,
        model=get_string(config.settings, "Model", default_model),
        provider=provider,
        stage_type=stage_type,
        name=config.name,
        system_prompt=get_string(config.settings, "SystemPrompt", CLEANUP_PROMPT),
        temperature=get_float(config.settings, "Temperature", 0.3),
        max_tokens=get_int(config.settings, "MaxTokens", 500)
    )


def create_gpt_cleaning_stage(config: StageConfiguration,
                              build_context: PipelineBuildContext) -> LLMTextCleaningStage:
    return _create_llm_stage(config, build_context, "GPT", "GPTTextCleaning",
                             build_context.openai_api_key, OPENAI_BASE_URL, "gpt-4.1-nano-2025-04-14")


def create_groq_cleaning_stage(config: StageConfiguration,
                               build_context: PipelineBuildContext) -> LLMTextCleaningStage:
    return _create_llm_stage(config, build_context, "Groq", "GroqTextCleaning",
                             build_context.groq_api_key, GROQ_BASE_URL, "llama-3.1-8b-instant")


def create_passthrough_stage(config: StageConfiguration,
                             build_context: PipelineBuildContext) -> PassThroughCleaningStage:
    return PassThroughCleaningStage(name=config.name)
