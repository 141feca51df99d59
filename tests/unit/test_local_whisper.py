#!/usr/bin/env python3

"""
Local Whisper Transcriber Unit Tests

No model is loaded: the synchronous transcription step is replaced so only
device detection and executor sharing are exercised.
"""

import threading

import pytest

pytest.importorskip("whisper")

from talkpipe.providers import local_whisper
from talkpipe.providers.local_whisper import LocalTranscription, LocalWhisperTranscriber, detect_device


@pytest.fixture
def cpu_only(monkeypatch):
    checks = []

    def is_available():
        checks.append(1)
        return False

    detect_device.cache_clear()
    monkeypatch.setattr(local_whisper.torch.cuda, "is_available", is_available)
    yield checks
    detect_device.cache_clear()


@pytest.mark.unit
class TestLocalWhisperTranscriber:

    def test_device_detected_once(self, cpu_only):
        first = LocalWhisperTranscriber("base")
        second = LocalWhisperTranscriber("small")

        assert first.device == second.device == "cpu"
        assert len(cpu_only) == 1

    def test_explicit_device_skips_detection(self, cpu_only):
        assert LocalWhisperTranscriber("base", device="cuda").device == "cuda"
        assert cpu_only == []

    @pytest.mark.asyncio
    async def test_instances_share_one_worker(self, cpu_only, monkeypatch, sample_audio_data):
        def fake_transcribe(self, audio, language):
            return LocalTranscription(text=threading.current_thread().name, language=language,
                                      processing_time=0.0)

        monkeypatch.setattr(LocalWhisperTranscriber, "_transcribe_sync", fake_transcribe)

        threads = set()
        for _ in range(3):
            result = await LocalWhisperTranscriber("base").transcribe(sample_audio_data, "en")
            threads.add(result.text)

        assert len(threads) == 1
        assert threads.pop().startswith("whisper-")
        assert LocalWhisperTranscriber.shared_executor() is LocalWhisperTranscriber.shared_executor()
