#!/usr/bin/env python3

"""
Pipeline Configuration, Registry and Metrics Unit Tests
"""

from datetime import timedelta

import pytest

from talkpipe.errors import ConfigurationError
from talkpipe.pipeline.configuration import PipelineConfiguration, StageConfiguration
from talkpipe.pipeline.metrics import PipelineMetrics, StageMetrics
from talkpipe.pipeline.registry import PipelineBuildContext, StageRegistry
from talkpipe.pipeline.settings_extraction import SettingKind, get_float

from tests.test_utils import ScriptedStage, scripted_factory


@pytest.mark.unit
class TestPipelineConfiguration:
    """Parsing and validation of pipeline documents"""

    def test_from_document_defaults(self):
        config = PipelineConfiguration.from_document({
            "name": "Minimal",
            "stages": [{"type": "AudioValidation"}]
        })

        assert config.name == "Minimal"
        assert config.description == ""
        assert config.enabled is True
        assert config.global_settings == {}
        assert config.stages[0].enabled is True
        assert config.stages[0].settings == {}

    def test_settings_are_tagged(self):
        config = PipelineConfiguration.from_document({
            "name": "Tagged",
            "stages": [{"type": "VoiceActivityTrim", "settings": {"Threshold": 0.5, "Mode": "fast"}}],
            "globalSettings": {"Language": "en"}
        })

        settings = config.stages[0].settings
        assert settings["Threshold"].kind is SettingKind.FLOAT
        assert get_float(settings, "Threshold") == 0.5
        assert config.global_settings["Language"].value == "en"

    def test_field_names_are_case_insensitive(self):
        config = PipelineConfiguration.from_document({
            "Name": "Shouting",
            "Description": "caps",
            "Stages": [{"Type": "AudioValidation", "Enabled": False, "Settings": {"MaxSizeBytes": 10}}],
            "GlobalSettings": {"Key": "value"}
        })

        assert config.name == "Shouting"
        assert config.stages[0].enabled is False
        assert "MaxSizeBytes" in config.stages[0].settings
        assert "Key" in config.global_settings

    def test_unknown_fields_are_ignored(self):
        config = PipelineConfiguration.from_document({"name": "Extra", "version": 3, "stages": []})

        assert config.name == "Extra"

    @pytest.mark.parametrize("document", [
        {"stages": []},
        {"name": "   "},
        {"name": "Bad", "stages": [{"type": ""}]},
        {"name": "Bad", "stages": [{"settings": {}}]},
        {"name": "Bad", "stages": [{"type": "X", "settings": {"Nested": [1]}}]},
        {"name": "Bad", "stages": "not a list"},
    ])
    def test_invalid_documents(self, document):
        with pytest.raises(ConfigurationError):
            PipelineConfiguration.from_document(document)

    def test_non_object_document(self):
        with pytest.raises(ConfigurationError, match="must be a JSON object"):
            PipelineConfiguration.from_document(["not", "an", "object"], source="list.pipeline.json")

    def test_document_round_trip(self):
        config = PipelineConfiguration.create(
            "RoundTrip",
            [{"type": "A", "name": "First", "settings": {"X": 1}}, {"type": "B", "enabled": False}],
            description="two stages",
            global_settings={"Flag": True}
        )

        assert PipelineConfiguration.from_document(config.to_document()) == config

    def test_enabled_stages_and_key(self):
        config = PipelineConfiguration.create("MixedCase", [
            {"type": "A"}, {"type": "B", "enabled": False}, {"type": "C"}
        ])

        assert [s.type for s in config.enabled_stages()] == ["A", "C"]
        assert config.key == "mixedcase"

    def test_configuration_is_frozen(self):
        config = PipelineConfiguration.create("Frozen", [])

        with pytest.raises(Exception):
            config.name = "Thawed"


@pytest.mark.unit
class TestStageRegistry:
    """Stage factory registration and resolution"""

    def test_register_and_create(self):
        registry = StageRegistry().register("Scripted", scripted_factory())

        stage = registry.create(StageConfiguration(type="Scripted", name="Mine"), PipelineBuildContext())

        assert isinstance(stage, ScriptedStage)
        assert stage.name == "Mine"
        assert "Scripted" in registry
        assert len(registry) == 1

    def test_unknown_type_lists_available(self):
        registry = StageRegistry().register("A", scripted_factory()).register("B", scripted_factory())

        with pytest.raises(ConfigurationError, match="Available types: A, B"):
            registry.resolve("C")

    def test_factory_errors_become_configuration_errors(self):
        def broken(config, build_context):
            raise ValueError("API key missing")

        registry = StageRegistry().register("Broken", broken)

        with pytest.raises(ConfigurationError, match="API key missing"):
            registry.create(StageConfiguration(type="Broken"), PipelineBuildContext())

    def test_factory_must_return_a_stage(self):
        registry = StageRegistry().register("Wrong", lambda config, ctx: object())

        with pytest.raises(ConfigurationError, match="not a PipelineStage"):
            registry.create(StageConfiguration(type="Wrong"), PipelineBuildContext())

    def test_frozen_registry_rejects_registration(self):
        registry = StageRegistry().freeze()

        assert registry.frozen
        with pytest.raises(RuntimeError):
            registry.register("Late", scripted_factory())

    def test_blank_type_rejected(self):
        with pytest.raises(ValueError):
            StageRegistry().register("  ", scripted_factory())

    def test_build_context_local_model(self):
        assert not PipelineBuildContext().has_local_model
        assert PipelineBuildContext(local_model_name="base").has_local_model


@pytest.mark.unit
class TestMetrics:
    """Stage and pipeline metrics"""

    def test_stage_duration_is_zero_until_stopped(self):
        metrics = StageMetrics(stage_name="Stage")

        assert metrics.duration == timedelta(0)
        metrics.stop()
        assert metrics.end_time is not None
        assert metrics.duration >= timedelta(0)

    def test_typed_metric_lookup(self):
        metrics = StageMetrics(stage_name="Stage")
        metrics.add_metric("AudioSizeBytes", 1024)

        assert metrics.get_metric("AudioSizeBytes", int) == 1024
        assert metrics.get_metric("AudioSizeBytes", str) is None
        assert metrics.get_metric("Missing") is None

    def test_pipeline_total_duration_requires_finalize(self):
        metrics = PipelineMetrics(pipeline_name="P")

        assert metrics.total_duration is None
        metrics.finalize()
        first_end = metrics.end_time
        metrics.finalize()

        assert metrics.end_time == first_end
        assert metrics.total_duration_ms >= 0

    def test_summary_lists_stages_and_globals(self):
        metrics = PipelineMetrics(pipeline_name="P")
        stage = StageMetrics(stage_name="Validate", attempts=2)
        stage.add_metric("AudioSizeBytes", 10)
        metrics.add_stage_metrics(stage.stop())
        metrics.set_global_metric("TotalWordCount", 3)

        summary = metrics.finalize().summary()

        assert "Pipeline: P" in summary
        assert "Stages: 1" in summary
        assert "Validate" in summary and "[2 attempts]" in summary and "AudioSizeBytes=10" in summary
        assert "TotalWordCount: 3" in summary
        assert metrics.stage_names == ["Validate"]
        assert metrics.get_global_metric("TotalWordCount", int) == 3
