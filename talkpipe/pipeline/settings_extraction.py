#!/usr/bin/env python3

"""
Settings Extraction

Typed accessors over stage and pipeline settings maps.

Settings arrive from JSON documents, where the same logical value may be
written as 0.5, "0.5", true or "true". Values are decoded once at load time
into SettingValue tags; the accessors below then narrow either tagged or raw
values to the requested type and return None rather than raising when a key
is missing or cannot be converted.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

Scalar = Union[str, bool, int, float, None]


class SettingKind(Enum):
    STRING = "string"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    NULL = "null"


@dataclass(frozen=True)
class SettingValue:
    """A scalar setting tagged with the kind it was written as"""
    kind: SettingKind
    value: Scalar = None

    def to_json(self) -> Scalar:
        return self.value

    def __str__(self) -> str:
        return _render(self.value)


SettingsMap = Mapping[str, Union[SettingValue, Scalar]]


def decode_setting(raw: Any) -> SettingValue:
    """Tag a deserialized scalar. Lists and objects are rejected."""
    if isinstance(raw, SettingValue):
        return raw
    if raw is None:
        return SettingValue(SettingKind.NULL, None)
    # bool first: bool is a subclass of int
    if isinstance(raw, bool):
        return SettingValue(SettingKind.BOOLEAN, raw)
    if isinstance(raw, int):
        return SettingValue(SettingKind.INTEGER, raw)
    if isinstance(raw, float):
        return SettingValue(SettingKind.FLOAT, raw)
    if isinstance(raw, str):
        return SettingValue(SettingKind.STRING, raw)
    raise ConfigurationError(
        f"Unsupported setting value of type {type(raw).__name__}: only strings, "
        f"booleans, numbers and null are allowed"
    )


def decode_settings(raw: Optional[Mapping[str, Any]]) -> Dict[str, SettingValue]:
    """Decode a whole settings map, naming the offending key on error"""
    decoded = {}
    for key, value in (raw or {}).items():
        try:
            decoded[str(key)] = decode_setting(value)
        except ConfigurationError as e:
            raise ConfigurationError(f"Setting '{key}': {e}") from e
    return decoded


def encode_settings(settings: Mapping[str, Union[SettingValue, Scalar]]) -> Dict[str, Scalar]:
    """Inverse of decode_settings, for writing documents"""
    return {
        key: value.value if isinstance(value, SettingValue) else value
        for key, value in settings.items()
    }


def _render(value: Scalar) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _lookup(settings: Optional[SettingsMap], key: str) -> tuple:
    if not settings or key not in settings:
        return False, None
    return True, settings[key]


def get_string(settings: Optional[SettingsMap], key: str, default: Optional[str] = None) -> Optional[str]:
    found, value = _lookup(settings, key)
    if not found:
        return default

    if isinstance(value, str):
        return value
    if isinstance(value, SettingValue):
        if value.kind is SettingKind.STRING:
            return value.value
        if value.kind is SettingKind.NULL:
            return default
        return _render(value.value)
    if value is None:
        return default
    if isinstance(value, (bool, int, float)):
        return _render(value)
    return default


def get_bool(settings: Optional[SettingsMap], key: str, default: Optional[bool] = None) -> Optional[bool]:
    found, value = _lookup(settings, key)
    if not found:
        return default

    if isinstance(value, bool):
        return value
    if isinstance(value, SettingValue):
        if value.kind is SettingKind.BOOLEAN:
            return value.value
        value = value.value if value.kind is SettingKind.STRING else None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return default


def get_int(settings: Optional[SettingsMap], key: str, default: Optional[int] = None) -> Optional[int]:
    found, value = _lookup(settings, key)
    if not found:
        return default

    if isinstance(value, SettingValue):
        if value.kind is SettingKind.BOOLEAN or value.kind is SettingKind.NULL:
            return default
        value = value.value

    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else default
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return default
        return int(parsed) if math.isfinite(parsed) and parsed.is_integer() else default
    return default


def get_float(settings: Optional[SettingsMap], key: str, default: Optional[float] = None) -> Optional[float]:
    found, value = _lookup(settings, key)
    if not found:
        return default

    if isinstance(value, SettingValue):
        if value.kind is SettingKind.BOOLEAN or value.kind is SettingKind.NULL:
            return default
        value = value.value

    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            logger.debug(f"Setting '{key}' is not a number: {value!r}")
            return default
    return default
