from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

AttributeValue = Union[str, int, float, None]


class FileKind(Enum):
    VIDEO = "video"
    PICTURE = "picture"
    AUDIO = "audio"
    TEXT = "text"
    DOCUMENT = "document"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> "FileKind":
        normalized = str(value).strip().lower()
        for kind in cls:
            if kind.value == normalized:
                return kind
        raise ValueError(f"unknown file kind '{value}'")


@dataclass(frozen=True, slots=True)
class MetadataBag:
    """Per-file attribute view produced by the extractor.

    ``attributes`` holds embedded metadata keyed by name (``Make``, ``Model``,
    ``Year`` ...). A missing key, ``None`` or a blank string all mean the
    attribute is absent.
    """

    filename: str
    extension: str = ""
    file_kind: FileKind = FileKind.OTHER
    attributes: Mapping[str, AttributeValue] = field(default_factory=dict)
    fs_timestamp: Optional[dt.datetime] = None
    is_supported_kind: bool = False
    is_screenshot: bool = False
    size: Optional[int] = None
    digest: Optional[str] = None

    def get(self, name: str) -> AttributeValue:
        value = self.attributes.get(name)
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        return value

    def has(self, name: str) -> bool:
        return self.get(name) is not None


@dataclass(frozen=True, slots=True)
class FileIdentity:
    """A source file together with the signal used to compare it to another file."""

    source: Path
    size: Optional[int] = None
    modified: Optional[dt.datetime] = None
    digest: Optional[str] = None

    @classmethod
    def from_bag(cls, source: Path, bag: MetadataBag) -> "FileIdentity":
        return cls(source=source, size=bag.size, modified=bag.fs_timestamp, digest=bag.digest)

    @property
    def has_digest(self) -> bool:
        return bool(self.digest)

    @property
    def has_stat(self) -> bool:
        return self.size is not None and self.modified is not None


@dataclass(slots=True)
class ProcessingStats:
    sorted: int = 0
    renamed: int = 0
    replaced: int = 0
    skipped: int = 0
    ignored: int = 0
    duplicates: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    skipped_details: List[str] = field(default_factory=list)
    ignored_details: List[str] = field(default_factory=list)
    created_directories: set[str] = field(default_factory=set)
    errors_by_kind: Dict[str, int] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return self.sorted + self.renamed + self.replaced

    def register_sorted(self) -> None:
        self.sorted += 1

    def register_renamed(self) -> None:
        self.renamed += 1

    def register_replaced(self) -> None:
        self.replaced += 1

    def register_duplicate(self) -> None:
        self.duplicates += 1

    def register_skipped(self, reason: str, *, is_error: bool = False, kind: Optional[str] = None) -> None:
        self.skipped += 1
        self.skipped_details.append(reason)
        if is_error:
            self.register_error(reason, kind=kind)

    def register_ignored(self, detail: Optional[str] = None) -> None:
        self.ignored += 1
        if detail:
            self.ignored_details.append(detail)

    def register_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def register_error(self, message: str, *, kind: Optional[str] = None) -> None:
        self.errors.append(message)
        if kind:
            self.errors_by_kind[kind] = self.errors_by_kind.get(kind, 0) + 1

    def register_directory(self, directory: Path) -> None:
        self.created_directories.add(str(directory))
