"""Metadata extraction for source files.

Embedded EXIF data is read with ``exifread``; everything else (kind, size,
modification time, digest) comes from the file system. The result is a
:class:`MetadataBag` that the segment engine evaluates without touching the
file again.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import exifread

from .errors import MetadataExtractionError
from .logging_utils import render_fields_block
from .models import AttributeValue, FileKind, MetadataBag
from .segments import MAKE_ATTRIBUTE, MODEL_ATTRIBUTE, TimeUnit
from .utils import file_digest

LOGGER = logging.getLogger(__name__)

KIND_BY_EXTENSION: Dict[str, FileKind] = {
    **dict.fromkeys(("mov", "mp4", "mpeg", "mpg", "ts", "mkv", "avi", "m4v", "3gp"), FileKind.VIDEO),
    **dict.fromkeys(
        ("jpg", "jpeg", "png", "heic", "heif", "gif", "bmp", "tif", "tiff", "webp", "dng", "cr2", "cr3", "nef", "arw", "orf", "rw2"),
        FileKind.PICTURE,
    ),
    **dict.fromkeys(("mp3", "wav", "flac", "ogg", "wma", "m4a", "aac"), FileKind.AUDIO),
    **dict.fromkeys(("txt", "ini", "json", "csv", "md", "xml", "yaml", "yml"), FileKind.TEXT),
    **dict.fromkeys(("pdf", "doc", "docx", "rtf", "odt", "xls", "xlsx", "ppt", "pptx"), FileKind.DOCUMENT),
}

SUPPORTED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "heic"})

# Formats exifread can parse; other kinds never get opened.
EXIF_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "heic", "heif", "tif", "tiff", "webp", "dng", "cr2", "nef", "arw", "orf", "rw2"})

DATE_TAGS = ("EXIF DateTimeOriginal", "EXIF DateTimeDigitized", "Image DateTime")
MAKE_TAG = "Image Make"
MODEL_TAG = "Image Model"
USER_COMMENT_TAG = "EXIF UserComment"
SCREENSHOT_COMMENT = "Screenshot"

_EXIF_DATE_PATTERN = re.compile(
    r"^\s*(\d{4})[:\-](\d{2})[:\-](\d{2})(?:[ T](\d{2}):(\d{2})(?::(\d{2}))?)?"
)


def extension_of(path: Path) -> str:
    return path.suffix.lstrip(".").lower()


def kind_for_extension(extension: str) -> FileKind:
    return KIND_BY_EXTENSION.get(extension.lower(), FileKind.OTHER)


def parse_exif_datetime(raw: str) -> Dict[str, int]:
    """Split an EXIF timestamp (``YYYY:MM:DD HH:MM:SS``) into unit attributes.

    Units that are missing or zero-filled placeholders are left out so the
    date segment can treat them as absent.
    """
    match = _EXIF_DATE_PATTERN.match(raw or "")
    if not match:
        return {}
    units = (TimeUnit.YEAR, TimeUnit.MONTH, TimeUnit.DAY, TimeUnit.HOUR, TimeUnit.MINUTE, TimeUnit.SECOND)
    values: Dict[str, int] = {}
    for unit, group in zip(units, match.groups()):
        if group is None:
            continue
        number = int(group)
        if unit in (TimeUnit.YEAR, TimeUnit.MONTH, TimeUnit.DAY) and number == 0:
            continue
        values[unit.attribute] = number
    return values


def attributes_from_tags(tags: Mapping[str, Any]) -> tuple[Dict[str, AttributeValue], bool]:
    """Map exifread tags onto bag attributes and the screenshot flag."""
    attributes: Dict[str, AttributeValue] = {}
    make = _tag_text(tags, MAKE_TAG)
    model = _tag_text(tags, MODEL_TAG)
    if make:
        attributes[MAKE_ATTRIBUTE] = make
    if model:
        attributes[MODEL_ATTRIBUTE] = model

    for tag in DATE_TAGS:
        units = parse_exif_datetime(_tag_text(tags, tag) or "")
        if units:
            attributes.update(units)
            break

    is_screenshot = _tag_text(tags, USER_COMMENT_TAG) == SCREENSHOT_COMMENT
    return attributes, is_screenshot


def _tag_text(tags: Mapping[str, Any], name: str) -> Optional[str]:
    tag = tags.get(name)
    if tag is None:
        return None
    text = str(getattr(tag, "printable", tag)).replace("\x00", "").strip()
    return text or None


class MetadataExtractor:
    """Build :class:`MetadataBag` instances for source files.

    Instances hold no per-file state and may be shared between worker
    threads.
    """

    def __init__(self, hash_algorithm: str = "sha256") -> None:
        self.hash_algorithm = hash_algorithm

    def read_tags(self, path: Path) -> Mapping[str, Any]:
        with path.open("rb") as handle:
            return exifread.process_file(handle, details=False)

    def extract(self, path: Path) -> MetadataBag:
        """Extract everything the router and the duplicate resolver need.

        Raises:
            MetadataExtractionError: the file cannot be stat'ed or read
        """
        extension = extension_of(path)
        file_kind = kind_for_extension(extension)
        try:
            stat = path.stat()
        except OSError as exc:
            raise MetadataExtractionError(f"cannot stat {path}: {exc}") from exc

        attributes: Dict[str, AttributeValue] = {}
        is_screenshot = False
        if extension in EXIF_EXTENSIONS:
            try:
                tags = self.read_tags(path)
            except OSError as exc:
                raise MetadataExtractionError(f"cannot read {path}: {exc}") from exc
            except Exception as exc:  # noqa: BLE001
                LOGGER.debug(
                    render_fields_block(
                        "EXIF Parse Failed",
                        {"Source": path, "Error": exc},
                        pad_top=True,
                    )
                )
                tags = {}
            attributes, is_screenshot = attributes_from_tags(tags)

        try:
            digest = file_digest(path, self.hash_algorithm)
        except ValueError as exc:
            raise MetadataExtractionError(f"cannot hash {path}: {exc}") from exc

        return MetadataBag(
            filename=path.name,
            extension=extension,
            file_kind=file_kind,
            attributes=attributes,
            fs_timestamp=dt.datetime.fromtimestamp(stat.st_mtime),
            is_supported_kind=extension in SUPPORTED_EXTENSIONS,
            is_screenshot=is_screenshot,
            size=stat.st_size,
            digest=digest,
        )


__all__ = [
    "KIND_BY_EXTENSION",
    "MetadataExtractor",
    "SUPPORTED_EXTENSIONS",
    "attributes_from_tags",
    "kind_for_extension",
    "parse_exif_datetime",
]
