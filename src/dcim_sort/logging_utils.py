"""Logging setup and helpers for multi-line, aligned log records."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from textwrap import wrap
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

BLOCK_WIDTH = 100
LABEL_LIMIT = 20
INDENT = "  "
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

Fields = Union[Mapping[str, object], Sequence[tuple[str, object]]]


def _as_pairs(fields: Fields) -> list[tuple[str, object]]:
    if isinstance(fields, Mapping):
        return [(str(key), value) for key, value in fields.items()]
    return [(str(key), value) for key, value in fields]


def _text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(_text(item) for item in value)
    return str(value)


def _lines(text: str, width: int) -> list[str]:
    result: list[str] = []
    for raw in text.splitlines() or [""]:
        result.extend(wrap(raw, width=width) or [""])
    return result


class LogBlock:
    """Build a titled block of ``label: value`` lines and bullet sections."""

    def __init__(self, title: str, *, pad_top: bool = True, width: int = BLOCK_WIDTH) -> None:
        self.width = width
        self._lines: list[str] = [""] if pad_top else []
        self._lines.extend([title, "=" * len(title)])

    def fields(self, fields: Optional[Fields]) -> "LogBlock":
        pairs = _as_pairs(fields) if fields else []
        if not pairs:
            return self
        label_width = min(max(len(key) for key, _ in pairs), LABEL_LIMIT)
        value_width = max(self.width - len(INDENT) - label_width - 2, 30)
        for key, value in pairs:
            first, *rest = _lines(_text(value), value_width)
            self._lines.append(f"{INDENT}{key:<{label_width}}: {first}")
            self._lines.extend(f"{INDENT}{'':<{label_width}}  {line}" for line in rest)
        return self

    def section(self, heading: str, items: Iterable[object], *, empty: str = "(none)") -> "LogBlock":
        if self._lines and self._lines[-1] != "":
            self._lines.append("")
        self._lines.append(f"{heading}:")
        entries = [item for item in items if item is not None]
        if not entries:
            self._lines.append(f"{INDENT}{empty}")
            return self
        for entry in entries:
            first, *rest = _lines(_text(entry), self.width - len(INDENT) - 2)
            self._lines.append(f"{INDENT}- {first}")
            self._lines.extend(f"{INDENT}  {line}" for line in rest)
        return self

    def render(self) -> str:
        return "\n".join(self._lines).rstrip()


def render_fields_block(title: str, fields: Fields, *, pad_top: bool = True) -> str:
    return LogBlock(title, pad_top=pad_top).fields(fields).render()


def render_section_block(
    title: str,
    sections: Sequence[tuple[str, Sequence[object]]],
    *,
    pad_top: bool = True,
) -> str:
    block = LogBlock(title, pad_top=pad_top)
    for heading, items in sections:
        block.section(heading, items)
    return block.render()


def resolve_level(name: Optional[str], *, verbose: bool = False) -> int:
    """Map a level name to a ``logging`` constant; ``verbose`` forces DEBUG."""
    if verbose:
        return logging.DEBUG
    if not name:
        return logging.INFO
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log level '{name}'")
    return level


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    *,
    console: Optional[Console] = None,
) -> None:
    """Install a rich console handler and, optionally, a plain file handler.

    Calling this again replaces the handlers installed by a previous call.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=console,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
        log_time_format="[%X]",
    )
    console_handler.setLevel(level)
    root.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        root.addHandler(file_handler)

    root.setLevel(min(level, logging.DEBUG) if log_file is not None else level)
    logging.getLogger("exifread").setLevel(logging.WARNING)


__all__ = [
    "LogBlock",
    "configure_logging",
    "render_fields_block",
    "render_section_block",
    "resolve_level",
]
