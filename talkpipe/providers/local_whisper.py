#!/usr/bin/env python3

"""
Local Whisper Transcriber

Offline transcription with openai-whisper. Models are loaded lazily and
cached per model name or checkpoint path; transcription runs in a thread
executor so the event loop stays responsive.
"""

import asyncio
import functools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import torch
import whisper

from ..audio import to_whisper_input

logger = logging.getLogger(__name__)

AVAILABLE_MODELS = ['tiny', 'base', 'small', 'medium', 'large', 'turbo']


@dataclass
class LocalTranscription:
    text: str
    language: Optional[str]
    processing_time: float
    segments: List[Dict[str, Any]] = field(default_factory=list)


@functools.lru_cache(maxsize=None)
def detect_device() -> str:
    """cuda when torch sees a GPU, else cpu; checked once per process"""
    if torch.cuda.is_available():
        logger.info(f"CUDA available - using GPU: {torch.cuda.get_device_name(0)}")
        return "cuda"
    logger.info("CUDA not available - using CPU")
    return "cpu"


class LocalWhisperTranscriber:
    """
    Whisper transcriber for in-memory WAV audio

    model is either a model size name ('base', 'small', ...) or a path to a
    checkpoint file; whisper.load_model accepts both.
    """

    # Shared across instances; pipelines are rebuilt for every run
    _models: Dict[tuple, Any] = {}
    _models_lock = threading.Lock()
    _executor: Optional[ThreadPoolExecutor] = None
    _executor_lock = threading.Lock()

    def __init__(self, model: str = "base", device: Optional[str] = None,
                 language: Optional[str] = None):
        self.model_name = model
        self.language = language
        self.device = device or detect_device()

    @classmethod
    def shared_executor(cls) -> ThreadPoolExecutor:
        with cls._executor_lock:
            if cls._executor is None:
                cls._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="whisper-")
            return cls._executor

    def _load_model(self):
        key = (self.model_name, self.device)
        with self._models_lock:
            model = self._models.get(key)
            if model is None:
                logger.info(f"Loading Whisper model - model={self.model_name}, device={self.device}")
                model = whisper.load_model(self.model_name, device=self.device)
                self._models[key] = model
                logger.info("Whisper model loaded successfully")
            return model

    def _transcribe_sync(self, audio: bytes, language: Optional[str]) -> LocalTranscription:
        start_time = time.time()
        model = self._load_model()

        options = {
            'language': language or self.language,
            'task': 'transcribe',
            'fp16': self.device == 'cuda',
        }
        options = {k: v for k, v in options.items() if v is not None}

        result = model.transcribe(to_whisper_input(audio), **options)
        processing_time = time.time() - start_time

        text = (result.get('text') or '').strip()
        detected_language = result.get('language')
        logger.info(f"Local transcription completed in {processing_time:.2f}s (language: {detected_language})")

        return LocalTranscription(
            text=text,
            language=detected_language,
            processing_time=processing_time,
            segments=result.get('segments', [])
        )

    async def transcribe(self, audio: bytes, language: Optional[str] = None) -> LocalTranscription:
        """
        Raises:
            ValueError: audio is not 16-bit PCM WAV
            RuntimeError: the model could not be loaded
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.shared_executor(), self._transcribe_sync, audio, language)

