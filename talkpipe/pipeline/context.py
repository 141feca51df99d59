#!/usr/bin/env python3

"""
Execution Context

Mutable state threaded through the stages of exactly one pipeline run.

The artifact moves through well-known slots: audio bytes, then the raw
transcription, then the cleaned text. Stages only rely on these slots;
anything else they want to pass along goes into metadata.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowContext:
    """Active-window information supplied by the desktop shell"""
    process_name: str = ""
    window_title: str = ""

    @property
    def is_valid(self) -> bool:
        return bool(self.process_name or self.window_title)

    def describe(self) -> str:
        if self.process_name and self.window_title:
            return f"{self.process_name} - {self.window_title}"
        return self.process_name or self.window_title

    def context_prompt(self) -> str:
        """Prompt fragment telling a cleaning model where the text will be pasted"""
        if not self.is_valid:
            return ""

        lines = [
            "=== CONTEXT INFORMATION ===",
            "The user dictated this text while working in another application; "
            "the cleaned text will be pasted back into it.",
            "",
            "Application details:",
        ]
        if self.process_name:
            lines.append(f"- Process name: '{self.process_name}'")
        if self.window_title:
            lines.append(f"- Window title: '{self.window_title}'")
        lines.append("")
        lines.append("Match the tone and formality of the cleaned text to that application, "
                     "e.g. casual for chat, formal for email, precise for code editors.")
        return "\n".join(lines)


@dataclass(frozen=True)
class ProgressUpdate:
    message: str
    percent: Optional[int] = None


ProgressSink = Callable[[ProgressUpdate], Any]


class CancellationToken:
    """Cooperative cancellation signal checked between stages"""

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @classmethod
    def none(cls) -> 'CancellationToken':
        """A token nobody holds, so it is never cancelled"""
        return cls()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            logger.debug(f"Cancellation requested{': ' + reason if reason else ''}")

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to seconds; returns True if cancelled while waiting"""
        if self.is_cancelled:
            return True
        if seconds <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False


@dataclass
class ExecutionContext:
    """
    Per-run state shared by the stages of one pipeline

    Owned by the engine for the duration of a run and never shared
    between runs.
    """
    audio: bytes = b""
    audio_duration: Optional[float] = None
    raw_transcription: Optional[str] = None
    cleaned_text: Optional[str] = None
    language: Optional[str] = None
    window_context: Optional[WindowContext] = None
    settings: Mapping[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    cancellation: CancellationToken = field(default_factory=CancellationToken.none)
    progress: Optional[ProgressSink] = None

    def __post_init__(self):
        self.settings = MappingProxyType(dict(self.settings))

    @property
    def text(self) -> str:
        """Final text: cleaned if a cleaning stage ran, raw otherwise"""
        if self.cleaned_text:
            return self.cleaned_text
        return self.raw_transcription or ""

    @property
    def is_cancelled(self) -> bool:
        return self.cancellation.is_cancelled

    def report_progress(self, message: str, percent: Optional[int] = None) -> None:
        if self.progress is None:
            return
        try:
            self.progress(ProgressUpdate(message, percent))
        except Exception as e:
            logger.warning(f"Progress sink raised: {e}")
