"""Segment rules and their evaluation.

A segment turns a file's metadata bag into at most one directory level of
the destination path. The four built-in kinds form a closed set:

- **MakeModelPattern**: camera make/model, with defaults and a fallback literal
- **ScreenshotPattern**: a literal that only applies to screenshots
- **DateTimePattern**: timestamp units joined by a separator
- **SimpleFileTypePattern**: a label per general file kind

``evaluate`` is the single dispatch point over these kinds. It is pure and
never touches the file system, so it is safe to call from worker threads.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple, Union

from .models import FileKind, MetadataBag

MAKE_ATTRIBUTE = "Make"
MODEL_ATTRIBUTE = "Model"
SPACE_REPLACEMENT = "_"
WHITESPACE_PATTERN = re.compile(r"\s+")


class CaseNormalization(Enum):
    LOWER = "lower"
    UPPER = "upper"
    NONE = "none"


class TimeUnit(Enum):
    YEAR = "Year"
    MONTH = "Month"
    DAY = "Day"
    HOUR = "Hour"
    MINUTE = "Minute"
    SECOND = "Second"

    @property
    def attribute(self) -> str:
        return self.value


_UNIT_RANGES: Dict[TimeUnit, Tuple[int, int]] = {
    TimeUnit.YEAR: (1, 9999),
    TimeUnit.MONTH: (1, 12),
    TimeUnit.DAY: (1, 31),
    TimeUnit.HOUR: (0, 23),
    TimeUnit.MINUTE: (0, 59),
    TimeUnit.SECOND: (0, 59),
}

DEFAULT_FILE_TYPE_LABELS: Dict[FileKind, str] = {
    FileKind.VIDEO: "videos",
    FileKind.PICTURE: "pictures",
    FileKind.AUDIO: "audio_files",
    FileKind.TEXT: "text_files",
    FileKind.DOCUMENT: "documents",
    FileKind.OTHER: "other",
}


@dataclass(frozen=True, slots=True)
class SegmentPart:
    index: int
    attr_name: str


@dataclass(frozen=True, slots=True)
class DateTimePart:
    index: int
    unit: TimeUnit


def _sorted_parts(parts):
    return tuple(sorted(parts, key=lambda part: part.index))


@dataclass(frozen=True, slots=True)
class MakeModelPattern:
    index: int = 0
    parts: Tuple[SegmentPart, ...] = (
        SegmentPart(0, MAKE_ATTRIBUTE),
        SegmentPart(1, MODEL_ATTRIBUTE),
    )
    replace_spaces: bool = True
    default_make: str = "unknown"
    default_model: str = "unknown"
    separator: str = "_"
    case_normalization: CaseNormalization = CaseNormalization.LOWER
    fallback: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "parts", _sorted_parts(self.parts))


@dataclass(frozen=True, slots=True)
class ScreenshotPattern:
    index: int = 0
    value: str = "screenshots"
    filename_pattern: Optional[re.Pattern[str]] = None


@dataclass(frozen=True, slots=True)
class DateTimePattern:
    index: int = 0
    parts: Tuple[DateTimePart, ...] = (
        DateTimePart(0, TimeUnit.YEAR),
        DateTimePart(1, TimeUnit.MONTH),
    )
    separator: str = "-"
    default_value: str = "unknown"
    fallback_fs_timestamp: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "parts", _sorted_parts(self.parts))


@dataclass(frozen=True, slots=True)
class SimpleFileTypePattern:
    index: int = 0
    labels: Mapping[FileKind, str] = field(default_factory=lambda: dict(DEFAULT_FILE_TYPE_LABELS))


Segment = Union[MakeModelPattern, ScreenshotPattern, DateTimePattern, SimpleFileTypePattern]

SEGMENT_TYPES: Dict[str, type] = {
    "MakeModelPattern": MakeModelPattern,
    "ScreenshotPattern": ScreenshotPattern,
    "DateTimePattern": DateTimePattern,
    "SimpleFileTypePattern": SimpleFileTypePattern,
}


@dataclass(frozen=True, slots=True)
class SegmentResult:
    component: str
    applicable: bool

    @classmethod
    def inapplicable(cls) -> "SegmentResult":
        return cls(component="", applicable=False)


def normalize_case(value: str, mode: CaseNormalization) -> str:
    if mode is CaseNormalization.LOWER:
        return value.lower()
    if mode is CaseNormalization.UPPER:
        return value.upper()
    return value


def evaluate(segment: Segment, bag: MetadataBag) -> SegmentResult:
    """Evaluate one segment against a metadata bag."""
    if isinstance(segment, MakeModelPattern):
        return _evaluate_make_model(segment, bag)
    if isinstance(segment, ScreenshotPattern):
        return _evaluate_screenshot(segment, bag)
    if isinstance(segment, DateTimePattern):
        return _evaluate_date_time(segment, bag)
    if isinstance(segment, SimpleFileTypePattern):
        return _evaluate_file_type(segment, bag)
    raise TypeError(f"Unsupported segment: {type(segment).__name__}")


def _evaluate_make_model(segment: MakeModelPattern, bag: MetadataBag) -> SegmentResult:
    both_absent = not bag.has(MAKE_ATTRIBUTE) and not bag.has(MODEL_ATTRIBUTE)
    if both_absent and segment.fallback:
        return SegmentResult(segment.fallback, True)

    defaults = {MAKE_ATTRIBUTE: segment.default_make, MODEL_ATTRIBUTE: segment.default_model}
    values: list[str] = []
    for part in segment.parts:
        value = bag.get(part.attr_name)
        if value is None:
            if part.attr_name not in defaults:
                continue
            value = defaults[part.attr_name]
        text = str(value).strip()
        if segment.replace_spaces:
            text = WHITESPACE_PATTERN.sub(SPACE_REPLACEMENT, text)
        values.append(text)

    joined = segment.separator.join(values)
    return SegmentResult(normalize_case(joined, segment.case_normalization), True)


def _evaluate_screenshot(segment: ScreenshotPattern, bag: MetadataBag) -> SegmentResult:
    name_matches = segment.filename_pattern is not None and segment.filename_pattern.search(bag.filename) is not None
    if bag.is_screenshot or name_matches:
        return SegmentResult(segment.value, True)
    return SegmentResult.inapplicable()


def unit_value(bag: MetadataBag, unit: TimeUnit) -> Optional[int]:
    """Return a timestamp unit from the bag, or None when absent or out of range."""
    raw = bag.get(unit.attribute)
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, float):
        if not raw.is_integer():
            return None
        number = int(raw)
    else:
        try:
            number = int(str(raw).strip())
        except ValueError:
            return None
    low, high = _UNIT_RANGES[unit]
    if low <= number <= high:
        return number
    return None


def _units_from_timestamp(timestamp: dt.datetime) -> Dict[TimeUnit, Optional[int]]:
    return {
        TimeUnit.YEAR: timestamp.year,
        TimeUnit.MONTH: timestamp.month,
        TimeUnit.DAY: timestamp.day,
        TimeUnit.HOUR: timestamp.hour,
        TimeUnit.MINUTE: timestamp.minute,
        TimeUnit.SECOND: timestamp.second,
    }


def _format_unit(unit: TimeUnit, value: Optional[int]) -> str:
    if value is None:
        return ""
    if unit is TimeUnit.YEAR:
        return f"{value:04d}"
    return f"{value:02d}"


def _evaluate_date_time(segment: DateTimePattern, bag: MetadataBag) -> SegmentResult:
    units = {unit: unit_value(bag, unit) for unit in TimeUnit}
    if all(value is None for value in units.values()):
        if not (segment.fallback_fs_timestamp and bag.fs_timestamp is not None):
            return SegmentResult(segment.default_value, True)
        units = _units_from_timestamp(bag.fs_timestamp)

    # Missing units render empty; the join is kept as-is.
    rendered = [_format_unit(part.unit, units[part.unit]) for part in segment.parts]
    return SegmentResult(segment.separator.join(rendered), True)


def _evaluate_file_type(segment: SimpleFileTypePattern, bag: MetadataBag) -> SegmentResult:
    label = segment.labels.get(bag.file_kind)
    if label is None:
        label = segment.labels.get(FileKind.OTHER, DEFAULT_FILE_TYPE_LABELS[FileKind.OTHER])
    return SegmentResult(label, True)


def segment_type_name(segment: Segment) -> str:
    return type(segment).__name__


def describe(segment: Segment) -> str:
    """Return a one-line, human readable summary of a segment's settings."""
    if isinstance(segment, MakeModelPattern):
        pattern = segment.separator.join(f"[{part.attr_name.upper()}]" for part in segment.parts)
        return (
            f'pattern="{pattern}" case="{segment.case_normalization.value}" '
            f'replace_spaces="{segment.replace_spaces}" fallback="{segment.fallback}" '
            f'default_make="{segment.default_make}" default_model="{segment.default_model}"'
        )
    if isinstance(segment, ScreenshotPattern):
        regex = segment.filename_pattern.pattern if segment.filename_pattern is not None else ""
        return f'value="{segment.value}" filename_pattern="{regex}"'
    if isinstance(segment, DateTimePattern):
        pattern = segment.separator.join(part.unit.value for part in segment.parts)
        return (
            f'pattern="{pattern}" default="{segment.default_value}" '
            f'fs_timestamp_fallback="{segment.fallback_fs_timestamp}"'
        )
    if isinstance(segment, SimpleFileTypePattern):
        return " ".join(f'{kind.value}="{label}"' for kind, label in segment.labels.items())
    raise TypeError(f"Unsupported segment: {type(segment).__name__}")


__all__ = [
    "CaseNormalization",
    "DEFAULT_FILE_TYPE_LABELS",
    "DateTimePart",
    "DateTimePattern",
    "MakeModelPattern",
    "SEGMENT_TYPES",
    "ScreenshotPattern",
    "Segment",
    "SegmentPart",
    "SegmentResult",
    "SimpleFileTypePattern",
    "TimeUnit",
    "describe",
    "evaluate",
    "normalize_case",
    "segment_type_name",
    "unit_value",
]
