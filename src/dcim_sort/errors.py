"""Exception hierarchy for configuration and per-file rule failures.

Configuration errors are fatal at startup and abort the run before any file
is routed. Rule errors are raised for a single file and are recorded by the
processor without aborting the batch.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .models import FileIdentity


class DcimSortError(Exception):
    """Base exception for all dcim-sort errors."""


class ConfigError(DcimSortError, ValueError):
    """Raised when the sorter configuration cannot be turned into a rule set."""


class DuplicateIndexError(ConfigError):
    """Two segments (or two parts of one segment) share an index."""

    def __init__(self, location: str, index: int) -> None:
        super().__init__(f"{location}: index {index} is used more than once")
        self.location = location
        self.index = index


class UnknownSegmentTypeError(ConfigError):
    """A segment declares a ``type`` that is not one of the built-in kinds."""

    def __init__(self, location: str, segment_type: object) -> None:
        super().__init__(f"{location}: unsupported segment type '{segment_type}'")
        self.location = location
        self.segment_type = segment_type


class InvalidRegexError(ConfigError):
    """A ``filenamePattern`` fails to compile."""

    def __init__(self, location: str, pattern: str, reason: str) -> None:
        super().__init__(f"{location}: filename pattern '{pattern}' is not a valid regex ({reason})")
        self.location = location
        self.pattern = pattern
        self.reason = reason


class RuleError(DcimSortError):
    """Raised when a rule cannot be applied to a single file."""


class ComparisonUndecidableError(RuleError):
    """The Compare strategy lacks the signal needed to compare two files."""

    def __init__(self, candidate: PurePath, source: FileIdentity, target: FileIdentity) -> None:
        super().__init__(
            f"cannot compare {source.source} with the current owner of {candidate} "
            f"({target.source}): size/modified time or digest unavailable"
        )
        self.candidate = candidate
        self.source = source
        self.target = target


class MetadataExtractionError(DcimSortError):
    """Raised when metadata cannot be read from a file."""


class FileOperationError(DcimSortError):
    """Raised when a copy, move or link operation fails."""


__all__ = [
    "ComparisonUndecidableError",
    "ConfigError",
    "DcimSortError",
    "DuplicateIndexError",
    "FileOperationError",
    "InvalidRegexError",
    "MetadataExtractionError",
    "RuleError",
    "UnknownSegmentTypeError",
]
