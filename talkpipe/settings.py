#!/usr/bin/env python3

"""
Settings Management System

Handles loading, saving, and validation of application settings: API
credentials, the local Whisper model, where pipeline configurations live
and logging. Environment variables override values from the file.
"""

import json
import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Dict, Any, Mapping, Optional

from .functional.result_monad import Result, Success, Failure, from_callable
from .functional.utils import merge_configs
from .pipeline.registry import PipelineBuildContext

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "~/.talkpipe/settings.json"
DEFAULT_PIPELINES_DIR = "~/.talkpipe/pipelines"

ENV_OVERRIDES = {
    "OPENAI_API_KEY": "openai_api_key",
    "GROQ_API_KEY": "groq_api_key",
    "TALKPIPE_MODEL_PATH": "local_model_path",
    "TALKPIPE_PIPELINES_DIR": "pipelines_dir",
    "TALKPIPE_LOG_LEVEL": "logging_level",
}

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


@dataclass
class AppSettings:
    """Application settings with default values"""
    # Credentials
    openai_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None

    # Local transcription
    local_model_path: Optional[str] = None
    local_model_name: Optional[str] = None

    # Pipelines
    pipelines_dir: str = DEFAULT_PIPELINES_DIR
    default_pipeline: Optional[str] = None
    http_timeout_seconds: float = 300.0

    # Logging settings
    logging_level: str = "INFO"
    logging_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AppSettings':
        """Create settings from dictionary, using defaults for missing keys"""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.debug(f"Ignoring unknown settings: {sorted(unknown)}")

        settings_dict = cls().to_dict()
        settings_dict.update({k: v for k, v in data.items() if k in known})
        return cls(**settings_dict)

    def with_environment(self, environ: Optional[Mapping[str, str]] = None) -> 'AppSettings':
        """Copy with environment overrides applied"""
        environ = os.environ if environ is None else environ
        overrides = {attr: environ[var] for var, attr in ENV_OVERRIDES.items() if environ.get(var)}
        if not overrides:
            return self
        logger.debug(f"Settings overridden from environment: {sorted(overrides)}")
        return AppSettings.from_dict(merge_configs(self.to_dict(), overrides))

    @property
    def pipelines_path(self) -> Path:
        return Path(self.pipelines_dir).expanduser()

    def to_build_context(self) -> PipelineBuildContext:
        return PipelineBuildContext(
            openai_api_key=self.openai_api_key,
            groq_api_key=self.groq_api_key,
            local_model_path=self.local_model_path,
            local_model_name=self.local_model_name,
            http_timeout_seconds=self.http_timeout_seconds
        )


class SettingsManager:
    """
    Settings management with persistence

    Settings live in a JSON file. The file never receives environment
    overrides; get_settings() applies them on top of what was loaded.
    """

    def __init__(self, config_file: str = DEFAULT_SETTINGS_FILE,
                 environ: Optional[Mapping[str, str]] = None):
        self.config_file = Path(config_file).expanduser()
        self._environ = environ
        self._settings: Optional[AppSettings] = None

        logger.info(f"Settings manager initialized with config file: {self.config_file}")

    def load_settings(self) -> Result[AppSettings, Exception]:
        """Load settings from file, creating defaults if file doesn't exist"""
        def _load():
            if not self.config_file.exists():
                logger.info("Config file doesn't exist, creating with defaults")
                settings = AppSettings()
                save_result = self.save_settings(settings)
                if save_result.is_failure():
                    logger.warning(f"Failed to save default settings: {save_result.get_error()}")
                return settings

            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError(f"Settings file {self.config_file} must contain a JSON object")

            settings = AppSettings.from_dict(data)
            logger.info("Settings loaded successfully")
            return settings

        result = from_callable(_load)
        if result.is_success():
            self._settings = result.get_value()
        else:
            logger.error(f"Failed to load settings: {result.get_error()}")
            self._settings = AppSettings()

        return result

    def save_settings(self, settings: AppSettings) -> Result[None, Exception]:
        """Save settings to file"""
        def _save():
            self.config_file.parent.mkdir(parents=True, exist_ok=True)

            validation_result = self.validate_settings(settings)
            if validation_result.is_failure():
                raise ValueError(f"Invalid settings: {validation_result.get_error()}")

            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(settings.to_dict(), f, indent=4, ensure_ascii=False)

            logger.info(f"Settings saved to {self.config_file}")

        result = from_callable(_save)
        if result.is_success():
            self._settings = settings

        return result

    def get_settings(self) -> AppSettings:
        """Current settings with environment overrides, loading if needed"""
        if self._settings is None:
            load_result = self.load_settings()
            if load_result.is_failure():
                logger.warning("Using default settings due to load failure")

        return self._settings.with_environment(self._environ)

    def update_settings(self, updates: Dict[str, Any]) -> Result[AppSettings, Exception]:
        """Update specific settings and save to file"""
        if self._settings is None:
            self.load_settings()

        updated_dict = self._settings.to_dict()
        updated_dict.update(updates)

        try:
            new_settings = AppSettings.from_dict(updated_dict)
        except TypeError as e:
            logger.error(f"Failed to update settings: {e}")
            return Failure(e)

        save_result = self.save_settings(new_settings)
        if save_result.is_failure():
            return Failure(save_result.get_error())

        logger.info(f"Settings updated: {list(updates.keys())}")
        return Success(new_settings)

    def validate_settings(self, settings: AppSettings) -> Result[AppSettings, str]:
        """Validate settings values"""
        if settings.logging_level.upper() not in VALID_LOG_LEVELS:
            return Failure(f"Invalid logging level '{settings.logging_level}', must be one of: {VALID_LOG_LEVELS}")

        try:
            timeout = float(settings.http_timeout_seconds)
        except (TypeError, ValueError):
            return Failure(f"HTTP timeout must be a number: {settings.http_timeout_seconds!r}")
        if timeout <= 0:
            return Failure("HTTP timeout must be positive")

        if not settings.pipelines_dir or not str(settings.pipelines_dir).strip():
            return Failure("Pipelines directory must not be empty")

        if settings.local_model_path and not Path(settings.local_model_path).expanduser().exists():
            logger.warning(f"Local model path does not exist: {settings.local_model_path}")

        return Success(settings)
