"""
Configuration Module

Directory-backed storage of pipeline configurations.
"""

from .store import ConfigurationStore, FILE_SUFFIX, sanitize_file_name, default_configurations

__all__ = [
    "ConfigurationStore",
    "FILE_SUFFIX",
    "sanitize_file_name",
    "default_configurations"
]
