from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .contexts import SortContext
from .destination_builder import ChainTag, SegmentChain
from .duplicate_resolver import Comparison, DuplicateResolutionPolicy, DuplicateStrategy
from .errors import ConfigError, DuplicateIndexError, InvalidRegexError, UnknownSegmentTypeError
from .models import FileKind
from .segments import (
    DEFAULT_FILE_TYPE_LABELS,
    MAKE_ATTRIBUTE,
    MODEL_ATTRIBUTE,
    CaseNormalization,
    DateTimePart,
    DateTimePattern,
    MakeModelPattern,
    ScreenshotPattern,
    Segment,
    SegmentPart,
    SimpleFileTypePattern,
    TimeUnit,
)
from .utils import HASH_ALGORITHMS, TRANSFER_MODES, load_yaml_file, normalize_choice

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})
BOOLEAN_STRINGS = _TRUE_VALUES | _FALSE_VALUES

_STRATEGIES = {
    "ignore": DuplicateStrategy.IGNORE,
    "overwrite": DuplicateStrategy.OVERWRITE,
    "compare": DuplicateStrategy.COMPARE,
}
_COMPARISONS = {
    "rename": Comparison.RENAME,
    "favortarget": Comparison.FAVOR_TARGET,
    "favorsource": Comparison.FAVOR_SOURCE,
}
_CASES = {
    "lower": CaseNormalization.LOWER,
    "lowercase": CaseNormalization.LOWER,
    "upper": CaseNormalization.UPPER,
    "uppercase": CaseNormalization.UPPER,
    "none": CaseNormalization.NONE,
}
_UNITS = {normalize_choice(unit.value): unit for unit in TimeUnit}
_DEVICE_ATTRIBUTES = {normalize_choice(MAKE_ATTRIBUTE): MAKE_ATTRIBUTE, normalize_choice(MODEL_ATTRIBUTE): MODEL_ATTRIBUTE}


@dataclass
class Settings:
    source_dir: Path
    destination_dir: Path
    operation: str = "copy"  # copy | move | hardlink | symlink
    dry_run: bool = False
    max_workers: int = 4
    max_depth: int = 10
    ignore_unknown_types: bool = False
    hash_algorithm: str = "sha256"  # sha256 | md5 | none


@dataclass
class AppConfig:
    settings: Settings
    context: SortContext = field(default_factory=SortContext)


def _as_bool(value: Any, *, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"'{field_name}' must be a boolean, got '{value}'")


def _as_int(value: Any, *, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"'{field_name}' must be an integer, got '{value}'")
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{field_name}' must be an integer, got '{value}'") from exc


def _as_str(value: Any, default: str) -> str:
    if value is None:
        return default
    return str(value)


def _as_mapping(value: Any, *, field_name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{field_name}' must be provided as a mapping")
    return value


def _lookup_choice(value: Any, choices: Dict[str, Any], *, field_name: str) -> Any:
    key = normalize_choice(value)
    if key not in choices:
        raise ConfigError(f"Illegal value for '{field_name}': '{value}'")
    return choices[key]


def _separator(value: Any, default: str, *, field_name: str) -> str:
    separator = _as_str(value, default)
    if "/" in separator or "\\" in separator:
        raise ConfigError(f"'{field_name}' must not contain path separators")
    return separator


def _ensure_unique_indices(indices: Iterable[int], location: str) -> None:
    seen: set[int] = set()
    for index in indices:
        if index in seen:
            raise DuplicateIndexError(location, index)
        seen.add(index)


def _build_parts(
    raw_parts: Any,
    location: str,
    build: Callable[[int, Dict[str, Any], str], Any],
) -> Optional[tuple]:
    if raw_parts is None:
        return None
    if not isinstance(raw_parts, list):
        raise ConfigError(f"'{location}' must be provided as a list")
    parts = []
    for position, entry in enumerate(raw_parts):
        part_location = f"{location}[{position}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"'{part_location}' must be a mapping")
        if "index" not in entry:
            raise ConfigError(f"'{part_location}' is missing mandatory attribute 'index'")
        index = _as_int(entry["index"], field_name=f"{part_location}.index")
        parts.append(build(index, entry, part_location))
    _ensure_unique_indices((part.index for part in parts), location)
    return tuple(parts) or None


def _build_segment_part(index: int, entry: Dict[str, Any], location: str) -> SegmentPart:
    attr_name = entry.get("attrName")
    if not isinstance(attr_name, str) or not attr_name.strip():
        raise ConfigError(f"'{location}.attrName' must be a non-empty string")
    name = attr_name.strip()
    return SegmentPart(index=index, attr_name=_DEVICE_ATTRIBUTES.get(normalize_choice(name), name))


def _build_date_time_part(index: int, entry: Dict[str, Any], location: str) -> DateTimePart:
    unit = _lookup_choice(entry.get("unit"), _UNITS, field_name=f"{location}.unit")
    return DateTimePart(index=index, unit=unit)


def _build_make_model(data: Dict[str, Any], index: int, location: str) -> MakeModelPattern:
    defaults = MakeModelPattern()
    parts = _build_parts(data.get("parts"), f"{location}.parts", _build_segment_part)
    case = defaults.case_normalization
    if data.get("caseNormalization") is not None:
        case = _lookup_choice(data["caseNormalization"], _CASES, field_name=f"{location}.caseNormalization")
    replace_spaces = defaults.replace_spaces
    if data.get("replaceSpaces") is not None:
        replace_spaces = _as_bool(data["replaceSpaces"], field_name=f"{location}.replaceSpaces")
    return MakeModelPattern(
        index=index,
        parts=parts or defaults.parts,
        replace_spaces=replace_spaces,
        default_make=_as_str(data.get("defaultMake"), defaults.default_make) or defaults.default_make,
        default_model=_as_str(data.get("defaultModel"), defaults.default_model) or defaults.default_model,
        separator=_separator(data.get("separator"), defaults.separator, field_name=f"{location}.separator"),
        case_normalization=case,
        fallback=_as_str(data.get("fallback"), defaults.fallback),
    )


def compile_filename_pattern(pattern: Any, case_insensitive: bool, location: str) -> re.Pattern[str]:
    if not isinstance(pattern, str) or not pattern:
        raise InvalidRegexError(location, str(pattern), "pattern must be a non-empty string")
    flags = re.IGNORECASE if case_insensitive else 0
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise InvalidRegexError(location, pattern, str(exc)) from exc


def _build_screenshot(data: Dict[str, Any], index: int, location: str) -> ScreenshotPattern:
    defaults = ScreenshotPattern()
    filename_pattern = None
    if data.get("filenamePattern") is not None:
        case_insensitive = _as_bool(data.get("caseInsensitive", False), field_name=f"{location}.caseInsensitive")
        filename_pattern = compile_filename_pattern(
            data["filenamePattern"],
            case_insensitive,
            f"{location}.filenamePattern",
        )
    return ScreenshotPattern(
        index=index,
        value=_as_str(data.get("value"), defaults.value),
        filename_pattern=filename_pattern,
    )


def _build_date_time(data: Dict[str, Any], index: int, location: str) -> DateTimePattern:
    defaults = DateTimePattern()
    parts = _build_parts(data.get("parts"), f"{location}.parts", _build_date_time_part)
    fallback_fs_timestamp = defaults.fallback_fs_timestamp
    if data.get("fallbackFsTimestamp") is not None:
        fallback_fs_timestamp = _as_bool(data["fallbackFsTimestamp"], field_name=f"{location}.fallbackFsTimestamp")
    return DateTimePattern(
        index=index,
        parts=parts or defaults.parts,
        separator=_separator(data.get("separator"), defaults.separator, field_name=f"{location}.separator"),
        default_value=_as_str(data.get("defaultValue"), defaults.default_value),
        fallback_fs_timestamp=fallback_fs_timestamp,
    )


def _build_file_type(data: Dict[str, Any], index: int, location: str) -> SimpleFileTypePattern:
    labels = dict(DEFAULT_FILE_TYPE_LABELS)
    raw_labels = _as_mapping(data.get("labels"), field_name=f"{location}.labels")
    for key, value in raw_labels.items():
        try:
            kind = FileKind.parse(key)
        except ValueError as exc:
            raise ConfigError(f"'{location}.labels' has an unknown file kind '{key}'") from exc
        labels[kind] = _as_str(value, labels[kind])
    return SimpleFileTypePattern(index=index, labels=labels)


_SEGMENT_BUILDERS: Dict[str, Callable[[Dict[str, Any], int, str], Segment]] = {
    "MakeModelPattern": _build_make_model,
    "ScreenshotPattern": _build_screenshot,
    "DateTimePattern": _build_date_time,
    "SimpleFileTypePattern": _build_file_type,
}


def build_segment(data: Dict[str, Any], location: str) -> Segment:
    if not isinstance(data, dict):
        raise ConfigError(f"'{location}' must be a mapping")
    segment_type = data.get("type")
    if segment_type is None:
        raise ConfigError(f"'{location}' is missing mandatory attribute 'type'")
    builder = _SEGMENT_BUILDERS.get(str(segment_type))
    if builder is None:
        raise UnknownSegmentTypeError(location, segment_type)
    if "index" not in data:
        raise ConfigError(f"'{location}' is missing mandatory attribute 'index'")
    index = _as_int(data["index"], field_name=f"{location}.index")
    return builder(data, index, location)


def _build_chain(data: Dict[str, Any], tag: ChainTag) -> SegmentChain:
    location = f"sorter.{tag.value}.segments"
    block = _as_mapping(data.get(tag.value), field_name=f"sorter.{tag.value}")
    raw_segments = block.get("segments") or []
    if not isinstance(raw_segments, list):
        raise ConfigError(f"'{location}' must be provided as a list")
    segments = [build_segment(entry, f"{location}[{position}]") for position, entry in enumerate(raw_segments)]
    return SegmentChain.build(tag, segments)


def build_duplicate_policy(data: Any) -> DuplicateResolutionPolicy:
    if data is None:
        return DuplicateResolutionPolicy()
    block = _as_mapping(data, field_name="sorter.duplicateResolution")
    if block.get("strategy") is None:
        raise ConfigError("'sorter.duplicateResolution' is missing attribute 'strategy'")
    strategy = _lookup_choice(block["strategy"], _STRATEGIES, field_name="sorter.duplicateResolution.strategy")
    comparison = None
    if strategy is DuplicateStrategy.COMPARE:
        if block.get("text") is None:
            raise ConfigError("'sorter.duplicateResolution.text' is required when strategy is Compare")
        comparison = _lookup_choice(block["text"], _COMPARISONS, field_name="sorter.duplicateResolution.text")
    return DuplicateResolutionPolicy(strategy=strategy, comparison=comparison)


def build_sort_context(data: Dict[str, Any]) -> SortContext:
    """Turn a ``sorter`` block into the immutable context used for a run.

    Raises:
        ConfigError: the block is malformed (see the subclasses in ``errors``)
    """
    sorter = _as_mapping(data, field_name="sorter")
    return SortContext(
        supported=_build_chain(sorter, ChainTag.SUPPORTED),
        fallback=_build_chain(sorter, ChainTag.FALLBACK),
        policy=build_duplicate_policy(sorter.get("duplicateResolution")),
    )


def build_settings(data: Dict[str, Any]) -> Settings:
    operation = str(data.get("operation", "copy")).strip().lower()
    if operation not in TRANSFER_MODES:
        raise ConfigError(f"'settings.operation' must be one of {list(TRANSFER_MODES)}, got '{operation}'")
    hash_algorithm = str(data.get("hash_algorithm", "sha256")).strip().lower()
    if hash_algorithm not in HASH_ALGORITHMS:
        raise ConfigError(f"'settings.hash_algorithm' must be one of {list(HASH_ALGORITHMS)}, got '{hash_algorithm}'")
    max_workers = _as_int(data.get("max_workers", 4), field_name="settings.max_workers")
    if max_workers < 1:
        raise ConfigError("'settings.max_workers' must be greater than or equal to 1")
    max_depth = _as_int(data.get("max_depth", 10), field_name="settings.max_depth")
    if max_depth < 0:
        raise ConfigError("'settings.max_depth' must be greater than or equal to 0")

    return Settings(
        source_dir=Path(data.get("source_dir", "DCIM")).expanduser(),
        destination_dir=Path(data.get("destination_dir", "sorted")).expanduser(),
        operation=operation,
        dry_run=_as_bool(data.get("dry_run", False), field_name="settings.dry_run"),
        max_workers=max_workers,
        max_depth=max_depth,
        ignore_unknown_types=_as_bool(data.get("ignore_unknown_types", False), field_name="settings.ignore_unknown_types"),
        hash_algorithm=hash_algorithm,
    )


def unwrap_document(data: Dict[str, Any]) -> Dict[str, Any]:
    """Accept documents whose root is wrapped in a single ``config`` key."""
    if isinstance(data, dict) and set(data) == {"config"} and isinstance(data["config"], dict):
        return data["config"]
    return data


def build_app_config(data: Dict[str, Any]) -> AppConfig:
    data = unwrap_document(data)
    if not isinstance(data, dict):
        raise ConfigError("the configuration document must be a mapping")
    settings = build_settings(_as_mapping(data.get("settings"), field_name="settings"))
    context = build_sort_context(data.get("sorter") or {})
    return AppConfig(settings=settings, context=context)


def load_config(path: Path) -> AppConfig:
    return build_app_config(load_yaml_file(path))


__all__: List[str] = [
    "AppConfig",
    "BOOLEAN_STRINGS",
    "Settings",
    "build_app_config",
    "build_duplicate_policy",
    "build_segment",
    "build_settings",
    "build_sort_context",
    "compile_filename_pattern",
    "load_config",
    "unwrap_document",
]
