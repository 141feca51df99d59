#!/usr/bin/env python3

"""
Shared Utilities

Logging setup and small dictionary helpers used across talkpipe.
"""

import logging
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'


def setup_logging(level: str = "INFO", format_string: Optional[str] = None,
                  log_file: Optional[str] = None) -> None:
    """
    Configure root logging

    Writes to stderr, and additionally to log_file when one is given.
    """
    if format_string is None:
        format_string = DEFAULT_LOG_FORMAT

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=format_string,
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers,
        force=True
    )

    logger.info(f"Logging configured at {level} level")


def merge_configs(default: Mapping[str, Any], user: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge two mappings, recursing into nested dicts; user values win."""
    result = dict(default)

    for key, value in user.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def count_words(text: Optional[str]) -> int:
    """Count whitespace-separated words"""
    if not text or not text.strip():
        return 0
    return len(text.split())
