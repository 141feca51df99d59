"""
Functional Programming Module

Result monad and shared helpers.
"""

from .result_monad import (
    Result,
    Success,
    Failure,
    from_callable
)
from .utils import setup_logging, merge_configs, count_words

__all__ = [
    "Result",
    "Success",
    "Failure",
    "from_callable",
    "setup_logging",
    "merge_configs",
    "count_words"
]
