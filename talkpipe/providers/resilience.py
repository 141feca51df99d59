#!/usr/bin/env python3

"""
HTTP Resilience

Retry with exponential backoff and jitter for calls to remote speech and
language APIs. Only transient failures are retried: 5xx, 408, 429,
timeouts and transport errors. This is the inner policy of a single stage
attempt; the engine's stage-level retry sits outside it.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random
)

from ..errors import ProviderError, TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: base_delay * 2**(n-1) plus up to jitter seconds"""
    name: str
    max_retries: int
    base_delay: float
    max_delay: float = 30.0
    jitter: float = 1.0


API_POLICY = RetryPolicy(name="api", max_retries=3, base_delay=1.0)
TRANSCRIPTION_POLICY = RetryPolicy(name="transcription", max_retries=2, base_delay=2.0)


def is_transient_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in (408, 429)


def check_response(response: httpx.Response, body: Optional[str] = None) -> None:
    """Raise the matching ProviderError for a non-2xx response"""
    if response.is_success:
        return
    detail = body if body is not None else response.text
    message = f"HTTP {response.status_code} from {response.request.url}: {detail[:500]}"
    if is_transient_status(response.status_code):
        raise TransientProviderError(message, status_code=response.status_code)
    raise ProviderError(message, status_code=response.status_code)


def translate_transport_error(e: httpx.HTTPError) -> ProviderError:
    """Timeouts and connection failures are transient; other httpx errors are not"""
    if isinstance(e, (httpx.TimeoutException, httpx.TransportError)):
        return TransientProviderError(f"{type(e).__name__}: {e}")
    return ProviderError(f"{type(e).__name__}: {e}")


def _log_retry(policy: RetryPolicy, description: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.warning(f"[{policy.name}] {description} retry {state.attempt_number}/{policy.max_retries} "
                       f"after {delay:.1f}s - Reason: {error}")
    return before_sleep


async def call_with_retry(operation: Callable[[], Awaitable[T]], policy: RetryPolicy = API_POLICY,
                          description: str = "request",
                          sleep: Optional[Callable[[float], Awaitable[Any]]] = None) -> T:
    """
    Await operation() under policy

    operation is re-invoked for each attempt, so request bodies must be
    built inside it. The last error is re-raised once retries run out.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait_exponential(multiplier=policy.base_delay, max=policy.max_delay) + wait_random(0, policy.jitter),
        retry=retry_if_exception_type(TransientProviderError),
        before_sleep=_log_retry(policy, description),
        sleep=sleep or asyncio.sleep,
        reraise=True
    )

    async for attempt in retrying:
        with attempt:
            return await operation()
