"""Source file discovery and filtering."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from .logging_utils import render_fields_block
from .models import ProcessingStats

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10


def skip_reason_for_source_file(path: Path) -> str | None:
    """Return why ``path`` should not be sorted, or None to keep it."""
    name = path.name
    if name.startswith("._") and len(name) > 2:
        return "macOS resource fork (._ prefix)"
    if name == ".DS_Store":
        return "Finder metadata"
    return None


def _log_skip(path: Path, reason: str) -> None:
    LOGGER.debug(
        render_fields_block(
            "Skipping Source File",
            {"Source": path, "Reason": reason},
            pad_top=True,
        )
    )


def gather_source_files(
    source_dir: Path,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    stats: ProcessingStats | None = None,
) -> Iterator[Path]:
    """Yield regular files below ``source_dir`` in a stable order.

    Files directly inside ``source_dir`` are depth 0; directories deeper than
    ``max_depth`` are not entered. Symlinks are never followed.
    """
    if not source_dir.is_dir():
        LOGGER.warning(render_fields_block("Source Directory Missing", {"Path": source_dir}, pad_top=True))
        if stats is not None:
            stats.register_warning(f"Source directory missing: {source_dir}")
        return

    for root, dirnames, filenames in os.walk(source_dir, followlinks=False):
        root_path = Path(root)
        depth = len(root_path.relative_to(source_dir).parts)
        dirnames.sort()
        if depth >= max_depth:
            if dirnames:
                LOGGER.debug(
                    render_fields_block(
                        "Depth Limit Reached",
                        {"Directory": root_path, "Not Entered": len(dirnames), "Max Depth": max_depth},
                        pad_top=True,
                    )
                )
            dirnames[:] = []

        for name in sorted(filenames):
            path = root_path / name
            if path.is_symlink():
                _log_skip(path, "symlink")
                continue
            if not path.is_file():
                continue
            reason = skip_reason_for_source_file(path)
            if reason:
                _log_skip(path, reason)
                continue
            yield path


__all__ = ["DEFAULT_MAX_DEPTH", "gather_source_files", "skip_reason_for_source_file"]
