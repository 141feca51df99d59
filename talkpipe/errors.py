#!/usr/bin/env python3

"""
Exception Types

Errors raised at talkpipe boundaries. Stage failures are not exceptions;
stages report them through StageResult.
"""

from typing import Optional


class TalkPipeError(Exception):
    """Base class for talkpipe errors"""


class ConfigurationError(TalkPipeError):
    """Pipeline configuration cannot be loaded, validated or resolved"""


class ProviderError(TalkPipeError):
    """A remote service rejected a request"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """A remote service failure worth retrying (5xx, 408, 429, transport errors)"""
