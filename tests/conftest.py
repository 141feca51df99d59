#!/usr/bin/env python3

"""
Test Configuration and Fixtures

Provides shared fixtures for unit, integration and property-based tests.
"""

import os
import shutil
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

from tests.test_utils import (
    create_test_wav_data,
    create_speech_like_wav,
    RecordingProgress,
    RecordingSleep
)

from talkpipe.config.store import ConfigurationStore
from talkpipe.events import EventBus
from talkpipe.pipeline.registry import PipelineBuildContext


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    temp_path = tempfile.mkdtemp(prefix="talkpipe_test_")
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def store(temp_dir):
    return ConfigurationStore(temp_dir / "pipelines")


@pytest.fixture
def build_context():
    return PipelineBuildContext(openai_api_key="sk-test", groq_api_key="gsk-test")


@pytest.fixture
def local_build_context():
    return PipelineBuildContext(openai_api_key="sk-test", local_model_path="/models/ggml-base.bin")


@pytest_asyncio.fixture
async def test_event_bus():
    """Create test event bus"""
    event_bus = EventBus()
    await event_bus.start()

    yield event_bus

    await event_bus.stop()


@pytest.fixture
def sample_audio_data():
    """One second of 16 kHz mono tone"""
    return create_test_wav_data(duration=1.0, sample_rate=16000)


@pytest.fixture
def speech_audio_data():
    return create_speech_like_wav([("silence", 0.5), ("tone", 0.6), ("silence", 0.8), ("tone", 0.5), ("silence", 0.5)])


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def progress():
    return RecordingProgress()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep real credentials out of tests"""
    for var in ("OPENAI_API_KEY", "GROQ_API_KEY", "TALKPIPE_MODEL_PATH",
                "TALKPIPE_PIPELINES_DIR", "TALKPIPE_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    yield


def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
    config.addinivalue_line("markers", "pipeline: Pipeline engine tests")
    config.addinivalue_line("markers", "events: Event system tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically"""
    for item in items:
        path = str(item.fspath)
        if f"{os.sep}unit{os.sep}" in path or f"{os.sep}property_based{os.sep}" in path:
            item.add_marker(pytest.mark.unit)
        elif f"{os.sep}integration{os.sep}" in path:
            item.add_marker(pytest.mark.integration)

        if "pipeline" in item.name or "engine" in path:
            item.add_marker(pytest.mark.pipeline)
        if "event" in item.name:
            item.add_marker(pytest.mark.events)
