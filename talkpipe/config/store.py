#!/usr/bin/env python3

"""
Pipeline Configuration Store

One pipeline per file, named `<sanitized name>.pipeline.json`, in a single
directory. Reads tolerate comments and trailing commas; writes emit plain
indented JSON.
"""

import json
import logging
import re
from pathlib import Path
from typing import List, Optional, Union

import json5

from ..functional.result_monad import Result, Success, Failure, from_callable
from ..errors import ConfigurationError
from ..pipeline.configuration import PipelineConfiguration
from ..pipeline.registry import PipelineBuildContext

logger = logging.getLogger(__name__)

FILE_SUFFIX = ".pipeline.json"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._ -]")
_UNDERSCORE_RUNS = re.compile(r"_{2,}")

_VAD_SETTINGS = {"Threshold": 0.5, "MinSpeechDurationMs": 250, "MinSilenceDurationMs": 100}


def sanitize_file_name(name: str) -> str:
    """Filesystem-safe stem for a pipeline name"""
    sanitized = _UNSAFE_CHARS.sub("_", name or "")
    sanitized = _UNDERSCORE_RUNS.sub("_", sanitized)
    sanitized = sanitized.rstrip(". ")
    if not sanitized.strip("_ .") or sanitized in (".", ".."):
        return "pipeline"
    return sanitized


def default_configurations(build_context: PipelineBuildContext) -> List[PipelineConfiguration]:
    """
    Standard configurations for a fresh install

    FastCloud is always offered. LocalPrivacy and Hybrid need a local
    Whisper model.
    """
    local_settings = {}
    if build_context.local_model_path:
        local_settings["ModelPath"] = build_context.local_model_path
    if build_context.local_model_name:
        local_settings["ModelName"] = build_context.local_model_name

    front = [
        {"type": "AudioValidation"},
        {"type": "NoiseSuppression"},
        {"type": "VoiceActivityTrim", "settings": dict(_VAD_SETTINGS)},
    ]

    configurations = [
        PipelineConfiguration.create(
            "FastCloud",
            front + [
                {"type": "OpenAIWhisperTranscription"},
                {"type": "GPTTextCleaning"},
            ],
            description="Fast cloud-based transcription using OpenAI Whisper API with GPT cleaning "
                        "(with noise suppression and voice activity trimming)"
        )
    ]

    if build_context.has_local_model:
        configurations.append(PipelineConfiguration.create(
            "LocalPrivacy",
            front + [
                {"type": "LocalWhisperTranscription", "settings": dict(local_settings)},
                {"type": "PassThroughCleaning"},
            ],
            description="Fully offline transcription using a local Whisper model (no API calls)"
        ))
        configurations.append(PipelineConfiguration.create(
            "Hybrid",
            front + [
                {"type": "LocalWhisperTranscription", "settings": dict(local_settings)},
                {"type": "GPTTextCleaning"},
            ],
            description="Local transcription for privacy with cloud cleaning for quality"
        ))

    return configurations


class ConfigurationStore:
    """Directory-backed store of pipeline configurations"""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Pipeline configuration store at {self.directory}")

    def path_for(self, name: str) -> Path:
        return self.directory / f"{sanitize_file_name(name)}{FILE_SUFFIX}"

    def list_files(self) -> List[Path]:
        try:
            return sorted(p for p in self.directory.glob(f"*{FILE_SUFFIX}") if p.is_file())
        except OSError as e:
            logger.error(f"Failed to enumerate pipeline configuration files: {e}")
            return []

    def load_file(self, path: Union[str, Path]) -> Result[PipelineConfiguration, Exception]:
        """Parse one file; any problem comes back as a Failure"""
        path = Path(path)

        def _load() -> PipelineConfiguration:
            if not path.exists():
                raise ConfigurationError(f"Pipeline configuration file not found: {path}")
            try:
                document = json5.loads(path.read_text(encoding="utf-8"))
            except ValueError as e:
                raise ConfigurationError(f"Malformed pipeline configuration {path.name}: {e}") from e
            return PipelineConfiguration.from_document(document, source=path.name)

        return from_callable(_load)

    def load_all(self) -> List[PipelineConfiguration]:
        """Every configuration that parses; broken files are logged and skipped"""
        files = self.list_files()
        logger.info(f"Found {len(files)} pipeline configuration files")

        configurations = []
        for path in files:
            result = self.load_file(path)
            if result.is_success():
                config = result.get_value()
                configurations.append(config)
                logger.debug(f"Loaded pipeline configuration: {config.name} from {path.name}")
            else:
                logger.warning(f"Failed to load pipeline config from {path.name}: {result.get_error()}")

        return configurations

    def load_by_name(self, name: str) -> Optional[PipelineConfiguration]:
        key = name.strip().casefold()

        # Fast path: the file named after the configuration
        path = self.path_for(name)
        if path.exists():
            result = self.load_file(path)
            if result.is_success() and result.get_value().key == key:
                return result.get_value()

        for config in self.load_all():
            if config.key == key:
                return config
        return None

    def files_for_key(self, key: str) -> List[Path]:
        """Files whose configuration answers to the case-insensitive key"""
        matches = []
        for path in self.list_files():
            result = self.load_file(path)
            if result.is_success() and result.get_value().key == key:
                matches.append(path)
        return matches

    def save(self, config: PipelineConfiguration) -> Result[Path, Exception]:
        """Upsert config; files holding the same name in another casing are replaced"""
        path = self.path_for(config.name)

        def _save() -> Path:
            self.directory.mkdir(parents=True, exist_ok=True)
            content = json.dumps(config.to_document(), indent=2, ensure_ascii=False)
            tmp_path = path.with_name(path.name + ".tmp")
            tmp_path.write_text(content + "\n", encoding="utf-8")
            for stale in self.files_for_key(config.key):
                if stale.name != path.name:
                    logger.info(f"Replacing {stale.name} with {path.name} for pipeline {config.name}")
                    stale.unlink(missing_ok=True)
            tmp_path.replace(path)
            logger.info(f"Saved pipeline configuration: {config.name} to {path.name}")
            return path

        result = from_callable(_save)
        if result.is_failure():
            logger.error(f"Failed to save pipeline configuration {config.name}: {result.get_error()}")
        return result

    def delete(self, name: str) -> bool:
        paths = self.files_for_key(name.strip().casefold())
        named = self.path_for(name)
        if named.exists() and named not in paths:
            paths.append(named)
        if not paths:
            logger.debug(f"No pipeline configuration file to delete for {name}")
            return False
        for path in paths:
            path.unlink(missing_ok=True)
        logger.info(f"Deleted pipeline configuration: {name}")
        return True

    def ensure_defaults(self, build_context: PipelineBuildContext) -> List[PipelineConfiguration]:
        """Seed the standard configurations into an empty store; returns what was created"""
        existing = self.load_all()
        if existing:
            logger.info(f"Found {len(existing)} existing pipeline configurations, skipping defaults")
            return []

        logger.info("No pipeline configurations found, creating defaults")
        created = []
        for config in default_configurations(build_context):
            if self.save(config).is_success():
                created.append(config)
        return created
