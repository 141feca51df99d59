#!/usr/bin/env python3

"""
Configuration Store Unit Tests
"""

import json

import pytest

from talkpipe.config.store import (
    FILE_SUFFIX,
    ConfigurationStore,
    default_configurations,
    sanitize_file_name
)
from talkpipe.errors import ConfigurationError
from talkpipe.pipeline.configuration import PipelineConfiguration
from talkpipe.pipeline.registry import PipelineBuildContext

from tests.test_utils import write_pipeline_file


@pytest.mark.unit
class TestSanitizeFileName:

    @pytest.mark.parametrize("name,expected", [
        ("FastCloud", "FastCloud"),
        ("My Pipeline", "My Pipeline"),
        ("a/b\\c:d", "a_b_c_d"),
        ("what??", "what_"),
        ("trailing. ", "trailing"),
        ("", "pipeline"),
        ("***", "pipeline"),
        ("..", "pipeline"),
    ])
    def test_sanitize(self, name, expected):
        assert sanitize_file_name(name) == expected


@pytest.mark.unit
class TestConfigurationStore:
    """File-backed configuration persistence"""

    def test_save_and_load_round_trip(self, store):
        config = PipelineConfiguration.create(
            "Round Trip",
            [{"type": "AudioValidation"}, {"type": "VoiceActivityTrim", "settings": {"Threshold": 0.5}}],
            description="saved and loaded",
            global_settings={"Language": "en"}
        )

        path = store.save(config).get_value()
        loaded = store.load_file(path).get_value()

        assert path.name == f"Round Trip{FILE_SUFFIX}"
        assert loaded == config
        assert not list(store.directory.glob("*.tmp"))

    def test_saved_file_is_plain_json(self, store):
        path = store.save(PipelineConfiguration.create("Plain", [{"type": "A"}])).get_value()

        document = json.loads(path.read_text(encoding="utf-8"))

        assert document["name"] == "Plain"
        assert document["globalSettings"] == {}
        assert document["stages"][0] == {"type": "A", "enabled": True, "settings": {}}

    def test_comments_and_trailing_commas(self, store):
        write_pipeline_file(store.directory, f"Lenient{FILE_SUFFIX}", """
        {
          // hand edited
          "name": "Lenient",
          "stages": [
            {"type": "AudioValidation", "settings": {"MaxSizeBytes": 1024,}},
          ],
        }
        """)

        configs = store.load_all()

        assert [c.name for c in configs] == ["Lenient"]

    def test_corrupt_files_are_skipped(self, store):
        write_pipeline_file(store.directory, f"Good{FILE_SUFFIX}", {"name": "Good", "stages": []})
        write_pipeline_file(store.directory, f"Broken{FILE_SUFFIX}", "{ not json")
        write_pipeline_file(store.directory, f"Invalid{FILE_SUFFIX}", {"description": "no name"})
        write_pipeline_file(store.directory, "ignored.json", {"name": "Ignored"})

        configs = store.load_all()

        assert [c.name for c in configs] == ["Good"]

    def test_load_file_failures(self, store):
        missing = store.load_file(store.directory / "nope.pipeline.json")
        broken = store.load_file(write_pipeline_file(store.directory, f"Broken{FILE_SUFFIX}", "[1,"))

        assert missing.is_failure()
        assert isinstance(missing.get_error(), ConfigurationError)
        assert isinstance(broken.get_error(), ConfigurationError)

    def test_load_by_name_is_case_insensitive(self, store):
        store.save(PipelineConfiguration.create("FastCloud", [{"type": "A"}]))

        assert store.load_by_name("fastcloud").name == "FastCloud"
        assert store.load_by_name(" FASTCLOUD ").name == "FastCloud"
        assert store.load_by_name("Other") is None

    def test_load_by_name_scans_when_file_name_differs(self, store):
        write_pipeline_file(store.directory, f"renamed{FILE_SUFFIX}", {"name": "Custom", "stages": []})

        assert store.load_by_name("custom").name == "Custom"

    def test_save_overwrites(self, store):
        store.save(PipelineConfiguration.create("Same", [{"type": "A"}]))
        store.save(PipelineConfiguration.create("Same", [{"type": "B"}]))

        configs = store.load_all()

        assert len(configs) == 1
        assert configs[0].stages[0].type == "B"

    def test_save_with_other_casing_replaces_existing(self, store):
        store.save(PipelineConfiguration.create("FastCloud", [], description="old"))
        store.save(PipelineConfiguration.create("fastcloud", [], description="new"))

        configs = store.load_all()

        assert [(c.name, c.description) for c in configs] == [("fastcloud", "new")]
        assert len(store.list_files()) == 1
        assert store.load_by_name("FASTCLOUD").description == "new"

    def test_save_replaces_file_named_differently(self, store):
        write_pipeline_file(store.directory, "legacy.pipeline.json", {"name": "Meeting", "stages": []})

        store.save(PipelineConfiguration.create("Meeting", [], description="edited"))

        assert [p.name for p in store.list_files()] == ["Meeting.pipeline.json"]

    def test_delete_is_case_insensitive(self, store):
        store.save(PipelineConfiguration.create("Dictation", []))

        assert store.delete("DICTATION") is True
        assert store.list_files() == []

    def test_delete(self, store):
        store.save(PipelineConfiguration.create("Temporary", []))

        assert store.delete("Temporary") is True
        assert store.delete("Temporary") is False
        assert store.load_all() == []


@pytest.mark.unit
class TestDefaultConfigurations:
    """Seeding of standard pipelines"""

    def test_cloud_only_without_local_model(self):
        configs = default_configurations(PipelineBuildContext(openai_api_key="sk-test"))

        assert [c.name for c in configs] == ["FastCloud"]
        assert [s.type for s in configs[0].stages] == [
            "AudioValidation", "NoiseSuppression", "VoiceActivityTrim",
            "OpenAIWhisperTranscription", "GPTTextCleaning"
        ]

    def test_local_model_adds_offline_pipelines(self, local_build_context):
        configs = default_configurations(local_build_context)

        assert [c.name for c in configs] == ["FastCloud", "LocalPrivacy", "Hybrid"]
        local = configs[1]
        assert local.stages[3].type == "LocalWhisperTranscription"
        assert local.stages[3].settings["ModelPath"].value == "/models/ggml-base.bin"
        assert local.stages[4].type == "PassThroughCleaning"
        assert configs[2].stages[4].type == "GPTTextCleaning"

    def test_api_keys_are_not_written(self, store, build_context):
        store.ensure_defaults(build_context)

        for path in store.list_files():
            assert "sk-test" not in path.read_text(encoding="utf-8")

    def test_ensure_defaults_only_seeds_empty_store(self, store, local_build_context):
        created = store.ensure_defaults(local_build_context)
        again = store.ensure_defaults(local_build_context)

        assert [c.name for c in created] == ["FastCloud", "LocalPrivacy", "Hybrid"]
        assert again == []
        assert len(store.list_files()) == 3
