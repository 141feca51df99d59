#!/usr/bin/env python3

"""
Property-Based Testing for Pure Functions

Invariants of settings extraction, file name sanitizing, configuration
documents and comparison statistics, checked with Hypothesis.
"""

import re
from datetime import timedelta

from hypothesis import given, strategies as st, example, settings

from talkpipe.config.store import sanitize_file_name
from talkpipe.functional.utils import count_words, merge_configs
from talkpipe.pipeline.comparison import PipelineComparisonResult
from talkpipe.pipeline.configuration import PipelineConfiguration
from talkpipe.pipeline.metrics import PipelineMetrics
from talkpipe.pipeline.results import PipelineResult, RunStatus
from talkpipe.pipeline.settings_extraction import decode_settings, get_bool, get_float, get_int, get_string

scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-10**9, max_value=10**9),
    st.floats(allow_nan=False, allow_infinity=False, width=32),
    st.text(max_size=20)
)

setting_keys = st.text(alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz", min_size=1, max_size=12)


class TestSettingsExtractionProperties:
    """Accessors never raise and agree on raw and tagged maps"""

    @given(st.dictionaries(setting_keys, scalars, max_size=6), setting_keys)
    def test_accessors_are_total(self, raw, key):
        """Property: any scalar map and any key yields a value or None, never an error"""
        for settings_map in (raw, decode_settings(raw)):
            get_string(settings_map, key)
            get_bool(settings_map, key)
            get_int(settings_map, key)
            get_float(settings_map, key)

    @given(st.dictionaries(setting_keys, scalars, max_size=6))
    def test_raw_and_tagged_agree(self, raw):
        """Property: decoding at load time does not change what accessors return"""
        tagged = decode_settings(raw)
        for key in raw:
            assert get_string(raw, key) == get_string(tagged, key)
            assert get_bool(raw, key) == get_bool(tagged, key)
            assert get_int(raw, key) == get_int(tagged, key)
            assert get_float(raw, key) == get_float(tagged, key)

    @given(st.floats(allow_nan=False, allow_infinity=False))
    def test_float_string_round_trip(self, value):
        """Property: a number written as a string reads back as the same float"""
        assert get_float({"Value": repr(value)}, "Value") == value

    @given(st.integers(min_value=-10**12, max_value=10**12))
    def test_int_from_any_representation(self, value):
        for written in (value, str(value), float(value)):
            assert get_int({"Value": written}, "Value") == value

    @given(setting_keys)
    def test_missing_key_returns_default(self, key):
        assert get_string({}, key, "d") == "d"
        assert get_int(None, key, 7) == 7


class TestFileNameProperties:
    """sanitize_file_name always yields a safe, stable stem"""

    @given(st.text(max_size=60))
    @example("")
    @example("../../etc/passwd")
    @example("CON. ")
    def test_sanitized_names_are_safe(self, name):
        sanitized = sanitize_file_name(name)

        assert sanitized
        assert re.fullmatch(r"[A-Za-z0-9._ -]+", sanitized)
        assert "/" not in sanitized and "\\" not in sanitized
        assert "__" not in sanitized
        assert not sanitized.endswith((".", " "))
        assert sanitized not in (".", "..")

    @given(st.text(max_size=60))
    def test_sanitize_is_idempotent(self, name):
        once = sanitize_file_name(name)

        assert sanitize_file_name(once) == once


class TestConfigurationProperties:
    """Configuration documents survive serialization"""

    @settings(max_examples=50)
    @given(
        st.text(alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZ abcdefghij", min_size=1, max_size=20).filter(lambda s: s.strip()),
        st.lists(st.fixed_dictionaries({
            "type": st.sampled_from(["AudioValidation", "NoiseSuppression", "PassThroughCleaning"]),
            "enabled": st.booleans(),
            "settings": st.dictionaries(setting_keys, scalars, max_size=3)
        }), max_size=5)
    )
    def test_document_round_trip(self, name, stages):
        config = PipelineConfiguration.create(name, stages)

        assert PipelineConfiguration.from_document(config.to_document()) == config
        assert len(config.enabled_stages()) == sum(1 for s in stages if s["enabled"])


class TestUtilityProperties:

    @given(st.lists(st.text(alphabet="abcxyz", min_size=1, max_size=8), max_size=20),
           st.sampled_from([" ", "  ", "\n", "\t "]))
    def test_count_words(self, words, separator):
        assert count_words(separator.join(words)) == len(words)

    @given(st.dictionaries(st.text(max_size=5), st.integers(), max_size=5),
           st.dictionaries(st.text(max_size=5), st.integers(), max_size=5))
    def test_merge_configs_user_values_win(self, default, user):
        merged = merge_configs(default, user)

        assert set(merged) == set(default) | set(user)
        assert all(merged[k] == v for k, v in user.items())


def _result(name: str, duration_ms: int, success: bool) -> PipelineResult:
    metrics = PipelineMetrics(pipeline_name=name)
    metrics.end_time = metrics.start_time + timedelta(milliseconds=duration_ms)
    status = RunStatus.COMPLETED if success else RunStatus.ABORTED
    return PipelineResult(success=success, status=status, metrics=metrics)


class TestComparisonProperties:

    @given(st.lists(st.tuples(st.integers(min_value=1, max_value=10**6), st.booleans()), min_size=1, max_size=8))
    def test_ranking_and_speedup(self, runs):
        results = [_result(f"P{i}", duration, ok) for i, (duration, ok) in enumerate(runs)]
        comparison = PipelineComparisonResult(results=results)

        ranking = comparison.ranking()
        durations = [r.total_duration_ms for r in ranking]
        assert durations == sorted(durations)
        assert len(ranking) == sum(1 for _, ok in runs if ok)
        assert [r.pipeline_name for r in comparison.results] == [f"P{i}" for i in range(len(runs))]

        if len(ranking) >= 2:
            assert comparison.speedup >= 1.0
        else:
            assert comparison.speedup is None
