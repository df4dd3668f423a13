"""Run recaps and detailed summaries logged at the end of a sorting run."""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, List

from .logging_utils import LogBlock

if TYPE_CHECKING:
    from .models import ProcessingStats

LOGGER = logging.getLogger(__name__)


def has_activity(stats: ProcessingStats) -> bool:
    return bool(stats.processed or stats.skipped or stats.ignored or stats.errors or stats.warnings)


def has_detailed_activity(stats: ProcessingStats) -> bool:
    return bool(stats.errors or stats.warnings or stats.skipped_details or stats.ignored_details)


def summarize_messages(entries: List[str], *, limit: int = 5) -> List[str]:
    """Collapse repeated messages and keep the ``limit`` most frequent."""
    if not entries:
        return []
    ordered = sorted(Counter(entries).items(), key=lambda item: (-item[1], item[0]))
    lines = [f"{count}x {text}" if count > 1 else text for text, count in ordered[:limit]]
    remaining = len(ordered) - limit
    if remaining > 0:
        lines.append(f"... {remaining} more (use --verbose for the full list)")
    return lines


def log_detailed_summary(stats: ProcessingStats, *, level: int = logging.INFO, limit: int = 5) -> None:
    block = LogBlock("Detailed Summary")
    if stats.errors:
        block.section(f"Errors ({len(stats.errors)})", summarize_messages(stats.errors, limit=limit))
    if stats.errors_by_kind:
        block.section(
            "Errors By Kind",
            [f"{kind}: {count}" for kind, count in sorted(stats.errors_by_kind.items())],
        )
    if stats.warnings:
        block.section(f"Warnings ({len(stats.warnings)})", summarize_messages(stats.warnings, limit=limit))
    if stats.skipped_details:
        block.section(f"Skipped ({stats.skipped})", summarize_messages(stats.skipped_details, limit=limit))
    if stats.ignored_details:
        block.section(f"Ignored ({stats.ignored})", summarize_messages(stats.ignored_details, limit=limit))
    LOGGER.log(level, block.render())


def log_run_recap(stats: ProcessingStats, duration: float, *, dry_run: bool = False) -> None:
    fields = {
        "Duration": f"{duration:.2f}s",
        "Mode": "dry-run" if dry_run else "live",
        "Sorted": stats.sorted,
        "Renamed": stats.renamed,
        "Replaced": stats.replaced,
        "Skipped": stats.skipped,
        "Ignored": stats.ignored,
        "Duplicates": stats.duplicates,
        "Errors": len(stats.errors),
        "Warnings": len(stats.warnings),
        "Directories": len(stats.created_directories),
    }
    block = LogBlock("Run Recap").fields(fields)
    if stats.created_directories:
        block.section("Destinations", sorted(stats.created_directories)[:10])
    LOGGER.info(block.render())


__all__ = [
    "has_activity",
    "has_detailed_activity",
    "log_detailed_summary",
    "log_run_recap",
    "summarize_messages",
]
