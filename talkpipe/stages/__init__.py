"""
Stages Module

Built-in pipeline stages and their registration.
"""

from ..pipeline.registry import StageRegistry
from .base import BuiltinStage
from .audio_validation import AudioValidationStage, create_audio_validation_stage
from .noise_suppression import NoiseSuppressionStage, create_noise_suppression_stage
from .voice_activity import VoiceActivityTrimStage, VadSettings, create_voice_activity_stage
from .transcription import (
    CloudTranscriptionStage,
    LocalWhisperTranscriptionStage,
    create_openai_transcription_stage,
    create_groq_transcription_stage,
    create_local_transcription_stage
)
from .cleaning import (
    LLMTextCleaningStage,
    PassThroughCleaningStage,
    create_gpt_cleaning_stage,
    create_groq_cleaning_stage,
    create_passthrough_stage
)

BUILTIN_FACTORIES = {
    "AudioValidation": create_audio_validation_stage,
    "NoiseSuppression": create_noise_suppression_stage,
    "VoiceActivityTrim": create_voice_activity_stage,
    "OpenAIWhisperTranscription": create_openai_transcription_stage,
    "GroqWhisperTranscription": create_groq_transcription_stage,
    "LocalWhisperTranscription": create_local_transcription_stage,
    "GPTTextCleaning": create_gpt_cleaning_stage,
    "GroqTextCleaning": create_groq_cleaning_stage,
    "PassThroughCleaning": create_passthrough_stage,
}


def register_builtin_stages(registry: StageRegistry) -> StageRegistry:
    for stage_type, factory in BUILTIN_FACTORIES.items():
        registry.register(stage_type, factory)
    return registry


def create_default_registry(freeze: bool = True) -> StageRegistry:
    """Registry holding every built-in stage, frozen unless asked otherwise"""
    registry = register_builtin_stages(StageRegistry())
    return registry.freeze() if freeze else registry


__all__ = [
    "BuiltinStage",
    "AudioValidationStage",
    "NoiseSuppressionStage",
    "VoiceActivityTrimStage",
    "VadSettings",
    "CloudTranscriptionStage",
    "LocalWhisperTranscriptionStage",
    "LLMTextCleaningStage",
    "PassThroughCleaningStage",
    "BUILTIN_FACTORIES",
    "register_builtin_stages",
    "create_default_registry"
]
