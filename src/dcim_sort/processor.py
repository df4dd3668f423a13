from __future__ import annotations

import datetime as dt
import logging
import time
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from rich.progress import Progress

from .config import AppConfig
from .destination_builder import Router, build_destination, format_relative_destination
from .duplicate_resolver import DuplicateResolver, Resolution, ResolutionAction
from .errors import ComparisonUndecidableError, FileOperationError, MetadataExtractionError
from .file_discovery import gather_source_files
from .logging_utils import render_fields_block
from .metadata import MetadataExtractor
from .models import FileIdentity, FileKind, MetadataBag, ProcessingStats
from .run_summary import has_activity, has_detailed_activity, log_detailed_summary, log_run_recap
from .utils import ensure_directory, file_digest, transfer_file

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PlannedFile:
    """A source file after extraction and routing, before duplicate resolution."""

    source: Path
    bag: Optional[MetadataBag] = None
    relative_dir: Optional[PurePosixPath] = None
    error: Optional[str] = None

    @property
    def candidate(self) -> PurePosixPath:
        assert self.relative_dir is not None and self.bag is not None
        return self.relative_dir / self.bag.filename


def _with_comparison(fields: dict[str, object], resolution: Resolution) -> dict[str, object]:
    """Add the content comparison outcome, when one was made, to log fields."""
    if resolution.identical is not None:
        fields["Identical"] = resolution.identical
    return fields


class Processor:
    def __init__(self, config: AppConfig, *, extractor: MetadataExtractor | None = None) -> None:
        self.config = config
        self.settings = config.settings
        self.router = Router(config.context)
        self.extractor = extractor or MetadataExtractor(self.settings.hash_algorithm)
        self.resolver = DuplicateResolver(config.context.policy, occupant_lookup=self._occupant_at)

    @staticmethod
    def _format_log(event: str, fields: Mapping[str, object] | None = None) -> str:
        return render_fields_block(event, fields or {}, pad_top=True)

    def process_all(self) -> ProcessingStats:
        stats = ProcessingStats()
        run_started = time.perf_counter()
        self.resolver.reset()
        if not self.settings.dry_run:
            ensure_directory(self.settings.destination_dir)

        sources = list(
            gather_source_files(self.settings.source_dir, max_depth=self.settings.max_depth, stats=stats)
        )
        LOGGER.debug(
            self._format_log(
                "Discovered Source Files",
                {"Total": len(sources), "Source": self.settings.source_dir, "Max Depth": self.settings.max_depth},
            )
        )

        with Progress(disable=not LOGGER.isEnabledFor(logging.INFO)) as progress:
            task_id = progress.add_task("Sorting", total=len(sources))
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
                # map() keeps source order, so resolution is deterministic.
                for planned in executor.map(self._plan, sources):
                    self._handle_planned(planned, stats)
                    progress.advance(task_id, 1)

        if stats.errors:
            for error in stats.errors:
                LOGGER.error(self._format_log("Processing Error", {"Detail": error}))
        if has_detailed_activity(stats) and (stats.errors or LOGGER.isEnabledFor(logging.DEBUG)):
            log_detailed_summary(stats, level=logging.INFO if stats.errors else logging.DEBUG)
        if has_activity(stats) or LOGGER.isEnabledFor(logging.DEBUG):
            log_run_recap(stats, time.perf_counter() - run_started, dry_run=self.settings.dry_run)
        return stats

    def _plan(self, source: Path) -> PlannedFile:
        try:
            bag = self.extractor.extract(source)
        except MetadataExtractionError as exc:
            return PlannedFile(source, error=str(exc))
        return PlannedFile(source, bag=bag, relative_dir=self.router.route(bag))

    def _handle_planned(self, planned: PlannedFile, stats: ProcessingStats) -> None:
        if planned.error is not None:
            stats.register_skipped(planned.error, is_error=True, kind="metadata")
            return
        bag = planned.bag
        assert bag is not None

        if self.settings.ignore_unknown_types and bag.file_kind is FileKind.OTHER and not bag.is_supported_kind:
            stats.register_ignored(f"{planned.source.name}: unknown file type")
            LOGGER.debug(self._format_log("Ignoring File", {"Source": planned.source, "Reason": "unknown file type"}))
            return

        identity = FileIdentity.from_bag(planned.source, bag)
        try:
            resolution = self.resolver.resolve(planned.candidate, identity)
        except ComparisonUndecidableError as exc:
            stats.register_skipped(str(exc), is_error=True, kind="comparison")
            return

        if resolution.is_collision:
            stats.register_duplicate()
        if not resolution.writes:
            detail = f"{planned.source.name}: {resolution.reason} ({resolution.path})"
            stats.register_skipped(detail)
            fields = {"Source": planned.source, "Destination": resolution.path, "Reason": resolution.reason}
            LOGGER.debug(self._format_log("Skipping Duplicate", _with_comparison(fields, resolution)))
            return
        self._apply(resolution, stats)

    def _apply(self, resolution: Resolution, stats: ProcessingStats) -> None:
        source = resolution.identity.source
        destination_dir = self.settings.destination_dir
        try:
            destination = build_destination(destination_dir, resolution.path)
        except ValueError as exc:
            stats.register_skipped(str(exc), is_error=True, kind="destination")
            return

        fields = {
            "Source": source,
            "Destination": format_relative_destination(destination, destination_dir),
            "Action": resolution.action.value,
            "Operation": self.settings.operation,
        }
        _with_comparison(fields, resolution)
        if self.settings.dry_run:
            LOGGER.info(self._format_log("Dry-Run: Would Sort File", fields))
        else:
            created_parent = not destination.parent.exists()
            try:
                self._write(resolution, destination)
            except FileOperationError as exc:
                stats.register_skipped(str(exc), is_error=True, kind="transfer")
                return
            if created_parent:
                stats.register_directory(destination.parent)
            LOGGER.debug(self._format_log("Sorted File", fields))

        if resolution.action is ResolutionAction.PLACE_RENAMED:
            stats.register_renamed()
        elif resolution.action is ResolutionAction.REPLACE:
            stats.register_replaced()
        else:
            stats.register_sorted()

    def _write(self, resolution: Resolution, destination: Path) -> None:
        """Transfer the resolved source to ``destination``.

        Raises:
            FileOperationError: the copy, move or link did not happen
        """
        source = resolution.identity.source
        result = transfer_file(
            source,
            destination,
            self.settings.operation,
            overwrite=resolution.action is ResolutionAction.REPLACE,
        )
        if not result.created and result.reason != "same-file":
            raise FileOperationError(f"{self.settings.operation} {source} -> {destination} failed: {result.reason}")

    def _occupant_at(self, relative: PurePosixPath) -> Optional[FileIdentity]:
        """Describe a file that already sits at ``relative`` in the destination tree."""
        path = self.settings.destination_dir.joinpath(*relative.parts)
        if not path.is_file():
            return None
        stat = path.stat()
        try:
            digest = file_digest(path, self.settings.hash_algorithm)
        except ValueError:
            LOGGER.warning(self._format_log("Unable To Hash Destination File", {"Path": path}))
            digest = None
        return FileIdentity(
            source=path,
            size=stat.st_size,
            modified=dt.datetime.fromtimestamp(stat.st_mtime),
            digest=digest,
        )


__all__ = ["PlannedFile", "Processor"]
