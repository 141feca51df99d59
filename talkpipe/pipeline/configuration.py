#!/usr/bin/env python3

"""
Pipeline Configuration Model

Declarative description of a named, ordered list of stages. Documents look
like:

    {
      "name": "FastCloud",
      "description": "...",
      "enabled": true,
      "stages": [
        {"type": "AudioValidation", "enabled": true, "settings": {}},
        {"type": "OpenAIWhisperTranscription", "settings": {"Model": "whisper-1"}}
      ],
      "globalSettings": {}
    }

Unknown fields are ignored. Configurations are frozen once built so a
reload never changes a configuration a running pipeline holds.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import ConfigurationError
from .settings_extraction import SettingValue, decode_settings, encode_settings

logger = logging.getLogger(__name__)


_PIPELINE_FIELDS = {"name": "name", "description": "description", "enabled": "enabled",
                    "stages": "stages", "globalsettings": "globalSettings",
                    "global_settings": "globalSettings"}
_STAGE_FIELDS = {"type": "type", "name": "name", "enabled": "enabled", "settings": "settings"}


def _canonical_keys(document: Mapping[str, Any], fields: Mapping[str, str]) -> Dict[str, Any]:
    """Match field names case-insensitively; setting keys are left alone"""
    canonical = {}
    for key, value in document.items():
        target = fields.get(str(key).lower(), key) if isinstance(key, str) else key
        canonical.setdefault(target, value)
    return canonical


def normalize_document(document: Mapping[str, Any]) -> Dict[str, Any]:
    normalized = _canonical_keys(document, _PIPELINE_FIELDS)
    stages = normalized.get("stages")
    if isinstance(stages, list):
        normalized["stages"] = [
            _canonical_keys(stage, _STAGE_FIELDS) if isinstance(stage, Mapping) else stage
            for stage in stages
        ]
    return normalized


def _coerce_settings(value: Any) -> Dict[str, SettingValue]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError("settings must be an object")
    try:
        return decode_settings(value)
    except ConfigurationError as e:
        raise ValueError(str(e)) from e


class StageConfiguration(BaseModel):
    """Configuration for a single pipeline stage"""
    model_config = ConfigDict(frozen=True, extra="ignore", arbitrary_types_allowed=True)

    type: str = Field(description="Stage type resolved against the stage registry")
    name: Optional[str] = Field(default=None, description="Display name for this stage instance")
    enabled: bool = Field(default=True, description="Disabled stages are skipped, not removed")
    settings: Dict[str, SettingValue] = Field(default_factory=dict)

    @field_validator("type")
    @classmethod
    def type_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("stage type must not be empty")
        return value

    @field_validator("settings", mode="before")
    @classmethod
    def decode_stage_settings(cls, value: Any) -> Dict[str, SettingValue]:
        return _coerce_settings(value)

    def to_document(self) -> Dict[str, Any]:
        document = {"type": self.type}
        if self.name is not None:
            document["name"] = self.name
        document["enabled"] = self.enabled
        document["settings"] = encode_settings(self.settings)
        return document


class PipelineConfiguration(BaseModel):
    """Named, ordered pipeline description; stage order is execution order"""
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        arbitrary_types_allowed=True
    )

    name: str
    description: str = ""
    enabled: bool = True
    stages: Tuple[StageConfiguration, ...] = ()
    global_settings: Dict[str, SettingValue] = Field(default_factory=dict, alias="globalSettings")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("pipeline name must not be empty")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def description_default(cls, value: Any) -> str:
        return "" if value is None else value

    @field_validator("stages", mode="before")
    @classmethod
    def stages_default(cls, value: Any) -> Any:
        return () if value is None else value

    @field_validator("global_settings", mode="before")
    @classmethod
    def decode_global_settings(cls, value: Any) -> Dict[str, SettingValue]:
        return _coerce_settings(value)

    @property
    def key(self) -> str:
        """Case-insensitive lookup key"""
        return self.name.casefold()

    def enabled_stages(self) -> List[StageConfiguration]:
        return [stage for stage in self.stages if stage.enabled]

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "stages": [stage.to_document() for stage in self.stages],
            "globalSettings": encode_settings(self.global_settings),
        }

    @classmethod
    def from_document(cls, document: Any, source: Optional[str] = None) -> 'PipelineConfiguration':
        """Validate a parsed document, raising ConfigurationError on any problem"""
        where = f" in {source}" if source else ""
        if not isinstance(document, Mapping):
            raise ConfigurationError(f"Pipeline document{where} must be a JSON object")
        try:
            return cls.model_validate(normalize_document(document))
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'document'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid pipeline configuration{where}: {problems}") from e

    @classmethod
    def create(cls, name: str, stages: List[Dict[str, Any]], description: str = "",
               global_settings: Optional[Dict[str, Any]] = None, enabled: bool = True) -> 'PipelineConfiguration':
        """Build a configuration from plain stage dicts"""
        return cls.from_document({
            "name": name,
            "description": description,
            "enabled": enabled,
            "stages": stages,
            "globalSettings": global_settings or {},
        })
