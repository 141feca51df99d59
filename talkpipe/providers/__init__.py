"""
Providers Module

Clients for remote speech and language APIs plus local Whisper.
"""

from .resilience import (
    RetryPolicy,
    API_POLICY,
    TRANSCRIPTION_POLICY,
    call_with_retry,
    check_response,
    is_transient_status
)
from .openai_client import (
    OpenAICompatibleClient,
    OPENAI_BASE_URL,
    GROQ_BASE_URL,
    CLEANUP_PROMPT,
    parse_sse_chunk
)

__all__ = [
    "RetryPolicy",
    "API_POLICY",
    "TRANSCRIPTION_POLICY",
    "call_with_retry",
    "check_response",
    "is_transient_status",
    "OpenAICompatibleClient",
    "OPENAI_BASE_URL",
    "GROQ_BASE_URL",
    "CLEANUP_PROMPT",
    "parse_sse_chunk"
]
