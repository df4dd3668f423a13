from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from jsonschema import Draft7Validator

from .config import BOOLEAN_STRINGS, build_duplicate_policy, build_segment, build_settings, unwrap_document
from .errors import ConfigError, DuplicateIndexError, InvalidRegexError, UnknownSegmentTypeError
from .segments import SEGMENT_TYPES
from .utils import HASH_ALGORITHMS, TRANSFER_MODES


@dataclass(slots=True)
class ValidationIssue:
    """Represents a single validation problem."""

    severity: str
    path: str
    message: str
    code: str
    fix_suggestion: Optional[str] = None


@dataclass(slots=True)
class ValidationReport:
    """Aggregates validation warnings and errors."""

    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


# Mirrors the spellings accepted when the configuration is loaded.
_FLAG_SCHEMA: Dict[str, Any] = {
    "anyOf": [
        {"type": "boolean"},
        {"type": "integer", "enum": [0, 1]},
        {"type": "string", "pattern": r"(?i)^\s*(" + "|".join(sorted(BOOLEAN_STRINGS)) + r")\s*$"},
    ]
}


def _count_schema(minimum: int) -> Dict[str, Any]:
    return {
        "anyOf": [
            {"type": "integer", "minimum": minimum},
            {"type": "string", "pattern": r"^\s*\d+\s*$"},
        ]
    }


def _choice_schema(choices: Sequence[str]) -> Dict[str, Any]:
    return {"type": "string", "pattern": r"(?i)^\s*(" + "|".join(choices) + r")\s*$"}


_PARTS_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["index"],
        "properties": {
            "index": {"type": ["integer", "string"]},
            "attrName": {"type": "string"},
            "unit": {"type": "string"},
        },
        "additionalProperties": True,
    },
}

_SEGMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["type", "index"],
    "properties": {
        "type": {"type": "string"},
        "index": {"type": ["integer", "string"]},
        "parts": _PARTS_SCHEMA,
        "replaceSpaces": _FLAG_SCHEMA,
        "defaultMake": {"type": "string"},
        "defaultModel": {"type": "string"},
        "separator": {"type": "string"},
        "caseNormalization": {"type": "string"},
        "fallback": {"type": "string"},
        "value": {"type": "string"},
        "filenamePattern": {"type": "string"},
        "caseInsensitive": _FLAG_SCHEMA,
        "defaultValue": {"type": "string"},
        "fallbackFsTimestamp": _FLAG_SCHEMA,
        "labels": {"type": "object", "additionalProperties": {"type": "string"}},
    },
    "additionalProperties": True,
}

_CHAIN_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "segments": {"type": "array", "items": _SEGMENT_SCHEMA},
    },
    "additionalProperties": True,
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "settings": {
            "type": "object",
            "properties": {
                "source_dir": {"type": "string"},
                "destination_dir": {"type": "string"},
                "operation": _choice_schema(TRANSFER_MODES),
                "dry_run": _FLAG_SCHEMA,
                "max_workers": _count_schema(1),
                "max_depth": _count_schema(0),
                "ignore_unknown_types": _FLAG_SCHEMA,
                "hash_algorithm": _choice_schema(HASH_ALGORITHMS),
            },
            "additionalProperties": True,
        },
        "sorter": {
            "type": "object",
            "properties": {
                "duplicateResolution": {
                    "type": "object",
                    "required": ["strategy"],
                    "properties": {
                        "strategy": {"type": "string"},
                        "text": {"type": "string"},
                    },
                    "additionalProperties": False,
                },
                "supported": _CHAIN_SCHEMA,
                "fallback": _CHAIN_SCHEMA,
            },
            "additionalProperties": True,
        },
    },
    "additionalProperties": True,
}


FixSuggestionGenerator = Callable[[str, str, str], Optional[str]]


def _suggest_schema_fix(path: str, message: str, code: str) -> Optional[str]:
    if "is a required property" in message:
        return "Add the required field to your configuration"
    if "is not of type" in message:
        for token, label in (
            ("'string'", "string"),
            ("'object'", "object/mapping"),
            ("'array'", "array/list"),
            ("'boolean'", "boolean"),
            ("'integer'", "number"),
        ):
            if token in message:
                return f"Change this field to a {label} value"
    if "is not one of" in message:
        return "Check the allowed values for this field in the documentation"
    if "does not match" in message:
        return "Check the allowed values for this field in the documentation"
    if "is not valid under any of the given schemas" in message:
        return "Use true/false (yes/no, on/off and 1/0 also work) for flags and a whole number for counts"
    return "Review the configuration schema requirements for this field"


def _suggest_duplicate_index_fix(path: str, message: str, code: str) -> Optional[str]:
    return "Give every segment (and every part of a segment) in the same list a unique 'index'"


def _suggest_segment_type_fix(path: str, message: str, code: str) -> Optional[str]:
    known = ", ".join(sorted(SEGMENT_TYPES))
    return f"Use one of the supported segment types: {known}"


def _suggest_regex_fix(path: str, message: str, code: str) -> Optional[str]:
    return "Fix the regular expression syntax, e.g. '^screenshot.*$', and escape literal characters such as '.' or '('"


def _suggest_duplicate_resolution_fix(path: str, message: str, code: str) -> Optional[str]:
    return "Use strategy Ignore, Overwrite or Compare; Compare also needs text Rename, FavorTarget or FavorSource"


FIX_SUGGESTION_REGISTRY: Dict[str, FixSuggestionGenerator] = {
    "schema": _suggest_schema_fix,
    "duplicate-index": _suggest_duplicate_index_fix,
    "unknown-segment-type": _suggest_segment_type_fix,
    "invalid-regex": _suggest_regex_fix,
    "duplicate-resolution": _suggest_duplicate_resolution_fix,
}


def get_fix_suggestion(issue: ValidationIssue) -> Optional[str]:
    generator = FIX_SUGGESTION_REGISTRY.get(issue.code)
    if generator:
        return generator(issue.path, issue.message, issue.code)
    return None


def _format_jsonschema_path(path: Sequence[Any]) -> str:
    if not path:
        return "<root>"
    tokens: List[str] = []
    for part in path:
        if isinstance(part, int):
            if tokens:
                tokens[-1] = f"{tokens[-1]}[{part}]"
            else:
                tokens.append(f"[{part}]")
        else:
            tokens.append(str(part))
    return ".".join(tokens) if tokens else "<root>"


def _add_issue(report: ValidationReport, path: str, message: str, code: str, *, severity: str = "error") -> None:
    issue = ValidationIssue(severity=severity, path=path, message=message, code=code)
    issue.fix_suggestion = get_fix_suggestion(issue)
    if severity == "error":
        report.errors.append(issue)
    else:
        report.warnings.append(issue)


def _code_for(exc: ConfigError) -> str:
    if isinstance(exc, DuplicateIndexError):
        return "duplicate-index"
    if isinstance(exc, UnknownSegmentTypeError):
        return "unknown-segment-type"
    if isinstance(exc, InvalidRegexError):
        return "invalid-regex"
    return "segment"


def validate_config_data(data: Dict[str, Any]) -> ValidationReport:
    """Validate configuration data against the schema and the segment rules.

    Unlike ``load_config`` this collects every problem instead of stopping at
    the first one.
    """
    report = ValidationReport()
    data = unwrap_document(data)
    validator = Draft7Validator(CONFIG_SCHEMA)

    schema_errors = sorted(validator.iter_errors(data), key=lambda exc: [str(part) for part in exc.path])
    for error in schema_errors:
        _add_issue(report, _format_jsonschema_path(error.absolute_path), error.message, "schema")

    if not schema_errors:
        _validate_semantics(data, report)
    return report


def _validate_semantics(data: Dict[str, Any], report: ValidationReport) -> None:
    sorter = data.get("sorter") or {}

    try:
        build_settings(data.get("settings") or {})
    except ConfigError as exc:
        _add_issue(report, "settings", str(exc), "settings")

    try:
        build_duplicate_policy(sorter.get("duplicateResolution"))
    except ConfigError as exc:
        _add_issue(report, "sorter.duplicateResolution", str(exc), "duplicate-resolution")

    for chain_name in ("supported", "fallback"):
        location = f"sorter.{chain_name}.segments"
        segments = (sorter.get(chain_name) or {}).get("segments") or []
        if not segments:
            _add_issue(
                report,
                location,
                f"The {chain_name} chain has no segments; matching files are placed in the destination root",
                "empty-chain",
                severity="warning",
            )
        seen: Dict[int, int] = {}
        for position, entry in enumerate(segments):
            entry_path = f"{location}[{position}]"
            try:
                segment = build_segment(entry, entry_path)
            except ConfigError as exc:
                _add_issue(report, entry_path, str(exc), _code_for(exc))
                continue
            if segment.index in seen:
                _add_issue(
                    report,
                    f"{entry_path}.index",
                    f"Segment index {segment.index} is already used by {location}[{seen[segment.index]}]",
                    "duplicate-index",
                )
            else:
                seen[segment.index] = position


def group_validation_issues(issues: List[ValidationIssue]) -> Dict[str, List[ValidationIssue]]:
    """Group validation issues by their top-level section (``settings``, ``sorter``)."""
    grouped: Dict[str, List[ValidationIssue]] = {}
    for issue in issues:
        root_match = re.match(r"^([a-zA-Z_][a-zA-Z0-9_-]*)", issue.path)
        section = root_match.group(1) if root_match else "<root>"
        grouped.setdefault(section, []).append(issue)
    return grouped


__all__ = [
    "CONFIG_SCHEMA",
    "FIX_SUGGESTION_REGISTRY",
    "ValidationIssue",
    "ValidationReport",
    "get_fix_suggestion",
    "group_validation_issues",
    "validate_config_data",
]
