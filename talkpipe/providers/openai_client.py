#!/usr/bin/env python3

"""
OpenAI-Compatible API Client

Speech-to-text and chat-completion calls against any OpenAI-compatible
endpoint. OpenAI and Groq share the same wire format and differ only in
base URL and model names.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..errors import ProviderError
from .resilience import (
    API_POLICY,
    TRANSCRIPTION_POLICY,
    RetryPolicy,
    call_with_retry,
    check_response,
    translate_transport_error
)

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
GROQ_BASE_URL = "https://api.groq.com/openai/v1"

CLEANUP_PROMPT = (
    "You are a text cleaning assistant for a voice-to-text transcription application. "
    "The user speaks into their microphone, and the audio is transcribed to text. "
    "Your job is to clean up the raw transcription.\n\n"
    "RULES:\n"
    "1. ONLY fix issues - do NOT add new content or information that wasn't spoken\n"
    "2. Remove filler words (um, uh, like, you know, I mean, sort of, kind of)\n"
    "3. Fix grammar errors and add proper punctuation\n"
    "4. Ensure proper capitalization\n"
    "5. Keep the original meaning and approximate length\n"
    "6. If context about the target application is provided, adjust tone and formality accordingly\n"
    "7. Return ONLY the cleaned text, no explanations or meta-commentary"
)

PartialCallback = Callable[[str], Any]


class OpenAICompatibleClient:
    """
    Thin async client for /audio/transcriptions and /chat/completions

    Each public call opens its own httpx.AsyncClient so a client instance
    can be shared by concurrent pipeline runs. transport is for tests.
    """

    def __init__(self, api_key: str, base_url: str = OPENAI_BASE_URL,
                 timeout: float = 300.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 api_policy: RetryPolicy = API_POLICY,
                 transcription_policy: RetryPolicy = TRANSCRIPTION_POLICY,
                 sleep: Optional[Callable[[float], Awaitable[Any]]] = None):
        if not api_key or not api_key.strip():
            raise ValueError("API key cannot be empty")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_policy = api_policy
        self.transcription_policy = transcription_policy
        self._api_key = api_key
        self._transport = transport
        self._sleep = sleep

    def __repr__(self) -> str:
        return f"OpenAICompatibleClient(base_url={self.base_url!r})"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self.timeout,
            transport=self._transport
        )

    async def transcribe(self, audio: bytes, model: str, language: Optional[str] = None,
                         file_name: str = "audio.wav") -> str:
        """
        Transcribe WAV audio

        Raises:
            ProviderError: the API rejected the request or retries ran out
        """
        if not audio:
            raise ValueError("Audio data cannot be empty")

        data: Dict[str, str] = {"model": model, "response_format": "text"}
        if language:
            data["language"] = language

        async def _post() -> str:
            files = {"file": (file_name, audio, "audio/wav")}
            async with self._client() as client:
                try:
                    response = await client.post("/audio/transcriptions", data=data, files=files)
                except httpx.HTTPError as e:
                    raise translate_transport_error(e) from e
            check_response(response)
            return response.text.strip()

        logger.debug(f"Transcribing {len(audio)} bytes with {model} at {self.base_url}")
        return await call_with_retry(
            _post, self.transcription_policy, description=f"transcription ({model})", sleep=self._sleep
        )

    async def clean_text(self, text: str, model: str, system_prompt: str = CLEANUP_PROMPT,
                         on_partial: Optional[PartialCallback] = None,
                         temperature: float = 0.3, max_tokens: int = 500) -> str:
        """
        Clean text with a streaming chat completion

        on_partial receives the accumulated text after every streamed chunk.

        Raises:
            ProviderError: the API rejected the request, retries ran out or
                the model returned nothing
        """
        if not text or not text.strip():
            raise ValueError("Text to clean cannot be empty")

        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": f"Clean this transcription:\n\n{text}"},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
        }

        async def _stream() -> str:
            chunks = []
            async with self._client() as client:
                try:
                    async with client.stream("POST", "/chat/completions", json=payload) as response:
                        if not response.is_success:
                            body = (await response.aread()).decode("utf-8", errors="replace")
                            check_response(response, body)

                        async for line in response.aiter_lines():
                            chunk = parse_sse_chunk(line)
                            if chunk is None:
                                continue
                            if chunk is _DONE:
                                break
                            chunks.append(chunk)
                            if on_partial is not None:
                                on_partial("".join(chunks))
                except httpx.HTTPError as e:
                    raise translate_transport_error(e) from e

            return "".join(chunks).strip()

        logger.debug(f"Cleaning {len(text)} characters with {model} at {self.base_url}")
        cleaned = await call_with_retry(
            _stream, self.api_policy, description=f"text cleaning ({model})", sleep=self._sleep
        )
        if not cleaned:
            raise ProviderError(f"{model} returned empty cleaned text")
        return cleaned


_DONE = object()


def parse_sse_chunk(line: str):
    """
    Content delta from one server-sent event line

    Returns the text fragment, the _DONE sentinel at end of stream, or None
    for lines carrying no content (keep-alives, role deltas, bad JSON).
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None

    data = line[5:].strip()
    if data == "[DONE]":
        return _DONE
    if not data.startswith("{"):
        return None

    try:
        event = json.loads(data)
    except json.JSONDecodeError:
        return None

    choices = event.get("choices") or []
    if not choices:
        return None
    content = (choices[0].get("delta") or {}).get("content")
    return content or None
