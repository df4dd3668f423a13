from __future__ import annotations

from pathlib import Path

import pytest

from dcim_sort.config import build_app_config, build_duplicate_policy, build_segment, load_config
from dcim_sort.duplicate_resolver import Comparison, DuplicateStrategy
from dcim_sort.errors import ConfigError, DuplicateIndexError, InvalidRegexError, UnknownSegmentTypeError
from dcim_sort.models import FileKind
from dcim_sort.segments import (
    CaseNormalization,
    DateTimePattern,
    MakeModelPattern,
    ScreenshotPattern,
    SimpleFileTypePattern,
    TimeUnit,
)

SAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "config" / "dcim-sort.sample.yaml"


def _config(sorter: dict, settings: dict | None = None) -> dict:
    return {"settings": settings or {"source_dir": "in", "destination_dir": "out"}, "sorter": sorter}


class TestBuildSegment:
    def test_make_model_with_camel_case_keys(self):
        segment = build_segment(
            {
                "type": "MakeModelPattern",
                "index": 1,
                "parts": [{"index": 1, "attrName": "model"}, {"index": 0, "attrName": "make"}],
                "separator": "-",
                "caseNormalization": "Uppercase",
                "replaceSpaces": False,
                "fallback": "unknown_device",
            },
            "sorter.supported.segments[0]",
        )
        assert isinstance(segment, MakeModelPattern)
        assert [part.attr_name for part in segment.parts] == ["Make", "Model"]
        assert segment.case_normalization is CaseNormalization.UPPER
        assert segment.replace_spaces is False
        assert segment.fallback == "unknown_device"

    def test_make_model_defaults(self):
        segment = build_segment({"type": "MakeModelPattern", "index": 0}, "loc")
        assert segment == MakeModelPattern()

    def test_screenshot_pattern_case_insensitive(self):
        segment = build_segment(
            {"type": "ScreenshotPattern", "index": 0, "filenamePattern": "^screenshot.*$", "caseInsensitive": True},
            "loc",
        )
        assert isinstance(segment, ScreenshotPattern)
        assert segment.filename_pattern.search("Screenshot_2023.png")

    def test_invalid_regex(self):
        with pytest.raises(InvalidRegexError) as excinfo:
            build_segment({"type": "ScreenshotPattern", "index": 0, "filenamePattern": "(unclosed"}, "loc")
        assert excinfo.value.pattern == "(unclosed"

    def test_date_time_units(self):
        segment = build_segment(
            {
                "type": "DateTimePattern",
                "index": 2,
                "parts": [{"index": 0, "unit": "year"}, {"index": 1, "unit": "Day"}],
                "defaultValue": "undated",
                "fallbackFsTimestamp": True,
            },
            "loc",
        )
        assert isinstance(segment, DateTimePattern)
        assert [part.unit for part in segment.parts] == [TimeUnit.YEAR, TimeUnit.DAY]
        assert segment.default_value == "undated"
        assert segment.fallback_fs_timestamp is True

    def test_illegal_unit(self):
        with pytest.raises(ConfigError, match="unit"):
            build_segment({"type": "DateTimePattern", "index": 0, "parts": [{"index": 0, "unit": "Week"}]}, "loc")

    def test_duplicate_part_index(self):
        with pytest.raises(DuplicateIndexError):
            build_segment(
                {
                    "type": "DateTimePattern",
                    "index": 0,
                    "parts": [{"index": 0, "unit": "Year"}, {"index": 0, "unit": "Month"}],
                },
                "loc",
            )

    def test_file_type_labels_override(self):
        segment = build_segment(
            {"type": "SimpleFileTypePattern", "index": 0, "labels": {"video": "movies"}},
            "loc",
        )
        assert isinstance(segment, SimpleFileTypePattern)
        assert segment.labels[FileKind.VIDEO] == "movies"
        assert segment.labels[FileKind.AUDIO] == "audio_files"

    def test_unknown_type(self):
        with pytest.raises(UnknownSegmentTypeError):
            build_segment({"type": "GpsPattern", "index": 0}, "loc")

    def test_missing_index(self):
        with pytest.raises(ConfigError, match="index"):
            build_segment({"type": "ScreenshotPattern"}, "loc")

    def test_separator_with_path_separator_rejected(self):
        with pytest.raises(ConfigError):
            build_segment({"type": "DateTimePattern", "index": 0, "separator": "/"}, "loc")


class TestDuplicatePolicy:
    def test_missing_block_means_ignore(self):
        assert build_duplicate_policy(None).strategy is DuplicateStrategy.IGNORE

    def test_compare_with_text(self):
        policy = build_duplicate_policy({"strategy": "Compare", "text": "FavorTarget"})
        assert policy.strategy is DuplicateStrategy.COMPARE
        assert policy.comparison is Comparison.FAVOR_TARGET

    def test_compare_requires_text(self):
        with pytest.raises(ConfigError, match="text"):
            build_duplicate_policy({"strategy": "Compare"})

    def test_illegal_strategy(self):
        with pytest.raises(ConfigError):
            build_duplicate_policy({"strategy": "Merge"})


class TestBuildAppConfig:
    def test_duplicate_segment_index_in_chain(self):
        data = _config(
            {
                "supported": {
                    "segments": [
                        {"type": "MakeModelPattern", "index": 1},
                        {"type": "DateTimePattern", "index": 1},
                    ]
                }
            }
        )
        with pytest.raises(DuplicateIndexError):
            build_app_config(data)

    def test_settings_defaults(self):
        config = build_app_config(_config({}))
        assert config.settings.operation == "copy"
        assert config.settings.max_depth == 10
        assert config.settings.hash_algorithm == "sha256"
        assert len(config.context.supported) == 0
        assert config.context.policy.strategy is DuplicateStrategy.IGNORE

    def test_config_root_wrapper_accepted(self):
        config = build_app_config({"config": _config({"fallback": {"segments": [{"type": "SimpleFileTypePattern", "index": 0}]}})})
        assert len(config.context.fallback) == 1

    def test_invalid_operation(self):
        with pytest.raises(ConfigError, match="operation"):
            build_app_config(_config({}, {"source_dir": "a", "destination_dir": "b", "operation": "teleport"}))

    def test_load_sample_config(self):
        config = load_config(SAMPLE_CONFIG)
        assert [type(segment).__name__ for segment in config.context.supported.segments] == [
            "ScreenshotPattern",
            "MakeModelPattern",
            "DateTimePattern",
        ]
        assert config.context.policy.comparison is Comparison.RENAME

    def test_environment_variables_expanded(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DCIM_TEST_ROOT", str(tmp_path))
        path = tmp_path / "config.yaml"
        path.write_text(
            "settings:\n  source_dir: $DCIM_TEST_ROOT/in\n  destination_dir: $DCIM_TEST_ROOT/out\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.settings.source_dir == tmp_path / "in"
