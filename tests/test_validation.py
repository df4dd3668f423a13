from __future__ import annotations

from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from dcim_sort.config import build_app_config
from dcim_sort.errors import ConfigError
from dcim_sort.utils import load_yaml_file
from dcim_sort.validation import (
    ValidationIssue,
    _format_jsonschema_path,
    group_validation_issues,
    validate_config_data,
)
from dcim_sort.validation_output import ValidationFormatter

SAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "config" / "dcim-sort.sample.yaml"


def _codes(report) -> list[str]:
    return [issue.code for issue in report.errors]


def _base(segments: list) -> dict:
    return {
        "settings": {"source_dir": "in", "destination_dir": "out"},
        "sorter": {
            "supported": {"segments": segments},
            "fallback": {"segments": [{"type": "SimpleFileTypePattern", "index": 0}]},
        },
    }


def test_sample_config_is_valid():
    report = validate_config_data(load_yaml_file(SAMPLE_CONFIG))
    assert report.is_valid
    assert report.warnings == []


def test_schema_errors_reported_with_paths():
    data = _base([{"type": "MakeModelPattern", "index": 0}])
    data["settings"]["operation"] = "teleport"
    data["settings"]["max_workers"] = 0
    report = validate_config_data(data)
    assert not report.is_valid
    paths = {issue.path for issue in report.errors}
    assert "settings.operation" in paths
    assert "settings.max_workers" in paths
    assert all(issue.code == "schema" for issue in report.errors)
    assert all(issue.fix_suggestion for issue in report.errors)


def test_missing_segment_type_is_schema_error():
    report = validate_config_data(_base([{"index": 0}]))
    assert _codes(report) == ["schema"]
    assert report.errors[0].path == "sorter.supported.segments[0]"


def test_semantic_errors_collected_together():
    report = validate_config_data(
        _base(
            [
                {"type": "GpsPattern", "index": 0},
                {"type": "ScreenshotPattern", "index": 1, "filenamePattern": "(unclosed"},
                {"type": "MakeModelPattern", "index": 2},
                {"type": "DateTimePattern", "index": 2},
            ]
        )
    )
    assert sorted(_codes(report)) == ["duplicate-index", "invalid-regex", "unknown-segment-type"]
    duplicate = next(issue for issue in report.errors if issue.code == "duplicate-index")
    assert duplicate.path == "sorter.supported.segments[3].index"


def test_compare_without_text():
    data = _base([])
    data["sorter"]["duplicateResolution"] = {"strategy": "Compare"}
    report = validate_config_data(data)
    assert _codes(report) == ["duplicate-resolution"]


def test_empty_chain_is_warning():
    report = validate_config_data(_base([]))
    assert report.is_valid
    assert [issue.code for issue in report.warnings] == ["empty-chain"]


def test_config_wrapper_is_unwrapped():
    report = validate_config_data({"config": _base([{"type": "MakeModelPattern", "index": 0}])})
    assert report.is_valid


def test_format_jsonschema_path():
    assert _format_jsonschema_path([]) == "<root>"
    assert _format_jsonschema_path(["sorter", "supported", "segments", 2, "index"]) == "sorter.supported.segments[2].index"


def test_group_validation_issues_by_section():
    issues = [
        ValidationIssue("error", "settings.operation", "bad", "schema"),
        ValidationIssue("error", "sorter.supported.segments[0]", "bad", "schema"),
        ValidationIssue("error", "<root>", "bad", "schema"),
    ]
    grouped = group_validation_issues(issues)
    assert set(grouped) == {"settings", "sorter", "<root>"}


class TestValidationFormatter:
    def _render(self, report, **kwargs) -> str:
        buffer = StringIO()
        console = Console(file=buffer, width=200, force_terminal=False, color_system=None)
        ValidationFormatter(console=console, **kwargs).format_report(report)
        return buffer.getvalue()

    def test_success_message(self):
        output = self._render(validate_config_data(_base([{"type": "MakeModelPattern", "index": 0}])))
        assert "Configuration passed validation." in output

    def test_errors_grouped_with_hints(self):
        report = validate_config_data(_base([{"type": "GpsPattern", "index": 0}]))
        output = self._render(report)
        assert "Validation Errors: 1 error(s) detected" in output
        assert "Sorter" in output
        assert "GpsPattern" in output
        assert "hint:" in output

    def test_hints_hidden(self):
        report = validate_config_data(_base([{"type": "GpsPattern", "index": 0}]))
        assert "hint:" not in self._render(report, show_suggestions=False)


def test_string_flags_accepted_like_the_loader():
    data = _base(
        [
            {"type": "ScreenshotPattern", "index": 0, "filenamePattern": "^shot", "caseInsensitive": "yes"},
            {"type": "MakeModelPattern", "index": 1, "replaceSpaces": "Off"},
            {"type": "DateTimePattern", "index": 2, "fallbackFsTimestamp": "true"},
        ]
    )
    data["settings"].update({"dry_run": "on", "ignore_unknown_types": 0, "max_workers": "2", "operation": "Copy"})

    report = validate_config_data(data)

    assert report.is_valid, report.errors
    config = build_app_config(data)
    assert config.settings.dry_run is True
    assert config.settings.max_workers == 2
    assert config.context.supported.segments[1].replace_spaces is False


def test_unrecognised_flag_rejected_by_validation_and_loader():
    data = _base([{"type": "MakeModelPattern", "index": 0, "replaceSpaces": "maybe"}])

    report = validate_config_data(data)

    assert [issue.path for issue in report.errors] == ["sorter.supported.segments[0].replaceSpaces"]
    with pytest.raises(ConfigError):
        build_app_config(data)


def test_string_count_below_minimum_reported():
    data = _base([{"type": "MakeModelPattern", "index": 0}])
    data["settings"]["max_workers"] = "0"

    report = validate_config_data(data)

    assert _codes(report) == ["settings"]
    assert "max_workers" in report.errors[0].message
