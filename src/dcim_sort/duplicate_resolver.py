"""Collision handling for files that resolve to the same destination.

The resolver owns the run-scoped :class:`DestinationIndex` and applies the
configured :class:`DuplicateResolutionPolicy` whenever a candidate path is
already taken. Every check-and-insert happens under one lock so no two files
are ever granted the same destination, even when paths are computed on
worker threads.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterator, Optional

from .errors import ComparisonUndecidableError
from .models import FileIdentity

LOGGER = logging.getLogger(__name__)

MAX_RENAME_ATTEMPTS = 999

OccupantLookup = Callable[[PurePosixPath], Optional[FileIdentity]]


class DuplicateStrategy(Enum):
    IGNORE = "ignore"
    OVERWRITE = "overwrite"
    COMPARE = "compare"


class Comparison(Enum):
    RENAME = "rename"
    FAVOR_TARGET = "favor_target"
    FAVOR_SOURCE = "favor_source"


@dataclass(frozen=True, slots=True)
class DuplicateResolutionPolicy:
    strategy: DuplicateStrategy = DuplicateStrategy.IGNORE
    comparison: Optional[Comparison] = None

    def __post_init__(self) -> None:
        if self.strategy is DuplicateStrategy.COMPARE and self.comparison is None:
            raise ValueError("the compare strategy requires a comparison mode")
        if self.strategy is not DuplicateStrategy.COMPARE and self.comparison is not None:
            raise ValueError(f"comparison mode is only valid with the compare strategy, not {self.strategy.value}")

    def describe(self) -> str:
        if self.comparison is None:
            return self.strategy.value
        return f"{self.strategy.value} ({self.comparison.value})"


class ResolutionAction(Enum):
    PLACE = "place"
    PLACE_RENAMED = "place_renamed"
    REPLACE = "replace"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class Resolution:
    action: ResolutionAction
    identity: FileIdentity
    path: PurePosixPath
    previous_owner: Optional[FileIdentity] = None
    reason: Optional[str] = None
    identical: Optional[bool] = None

    @property
    def is_collision(self) -> bool:
        return self.action is not ResolutionAction.PLACE

    @property
    def writes(self) -> bool:
        return self.action is not ResolutionAction.SKIP


class DestinationIndex:
    """Mapping of resolved relative destination path to the file that owns it."""

    def __init__(self) -> None:
        self._entries: Dict[PurePosixPath, FileIdentity] = {}

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PurePosixPath]:
        return iter(self._entries)

    def owner(self, path: PurePosixPath) -> Optional[FileIdentity]:
        return self._entries.get(path)

    def assign(self, path: PurePosixPath, identity: FileIdentity) -> None:
        self._entries[path] = identity

    def clear(self) -> None:
        self._entries.clear()


def renamed_candidate(path: PurePosixPath, counter: int) -> PurePosixPath:
    return path.with_name(f"{path.name}.{counter:03d}")


def files_identical(first: FileIdentity, second: FileIdentity) -> Optional[bool]:
    """Compare two files by digest, or by size and modified time.

    Returns None when neither signal is available on both sides.
    """
    if first.has_digest and second.has_digest:
        return first.digest == second.digest
    if first.has_stat and second.has_stat:
        return first.size == second.size and first.modified == second.modified
    return None


class DuplicateResolver:
    def __init__(
        self,
        policy: DuplicateResolutionPolicy,
        *,
        occupant_lookup: OccupantLookup | None = None,
    ) -> None:
        self.policy = policy
        self.index = DestinationIndex()
        self._occupant_lookup = occupant_lookup
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Discard every entry so a new run starts from an empty index."""
        with self._lock:
            self.index.clear()

    def resolve(self, candidate: PurePosixPath, identity: FileIdentity) -> Resolution:
        """Decide what happens to ``identity`` at ``candidate``.

        Raises:
            ComparisonUndecidableError: the compare strategy is configured but
                the two files cannot be compared. The index is left untouched.
        """
        with self._lock:
            owner = self._current_owner(candidate)
            if owner is None:
                self.index.assign(candidate, identity)
                return Resolution(ResolutionAction.PLACE, identity, candidate)
            return self._resolve_collision(candidate, identity, owner)

    def _current_owner(self, path: PurePosixPath) -> Optional[FileIdentity]:
        owner = self.index.owner(path)
        if owner is not None or self._occupant_lookup is None:
            return owner
        occupant = self._occupant_lookup(path)
        if occupant is not None:
            self.index.assign(path, occupant)
        return occupant

    def _resolve_collision(
        self,
        candidate: PurePosixPath,
        identity: FileIdentity,
        owner: FileIdentity,
    ) -> Resolution:
        strategy = self.policy.strategy
        if strategy is DuplicateStrategy.IGNORE:
            return Resolution(ResolutionAction.SKIP, identity, candidate, previous_owner=owner, reason="destination-taken")
        if strategy is DuplicateStrategy.OVERWRITE:
            self.index.assign(candidate, identity)
            return Resolution(ResolutionAction.REPLACE, identity, candidate, previous_owner=owner)

        identical = files_identical(identity, owner)
        if identical is None:
            raise ComparisonUndecidableError(candidate, identity, owner)

        comparison = self.policy.comparison
        if comparison is Comparison.FAVOR_TARGET:
            return Resolution(
                ResolutionAction.SKIP,
                identity,
                candidate,
                previous_owner=owner,
                reason="target-favored",
                identical=identical,
            )
        if comparison is Comparison.FAVOR_SOURCE:
            self.index.assign(candidate, identity)
            return Resolution(ResolutionAction.REPLACE, identity, candidate, previous_owner=owner, identical=identical)
        return self._rename(candidate, identity, owner, identical)

    def _rename(
        self,
        candidate: PurePosixPath,
        identity: FileIdentity,
        owner: FileIdentity,
        identical: bool,
    ) -> Resolution:
        for counter in range(1, MAX_RENAME_ATTEMPTS + 1):
            renamed = renamed_candidate(candidate, counter)
            if self._current_owner(renamed) is None:
                self.index.assign(renamed, identity)
                return Resolution(
                    ResolutionAction.PLACE_RENAMED,
                    identity,
                    renamed,
                    previous_owner=owner,
                    identical=identical,
                )
        LOGGER.warning("No free name left for %s after %d attempts", candidate, MAX_RENAME_ATTEMPTS)
        return Resolution(
            ResolutionAction.SKIP,
            identity,
            candidate,
            previous_owner=owner,
            reason="rename-exhausted",
            identical=identical,
        )


__all__ = [
    "Comparison",
    "DestinationIndex",
    "DuplicateResolutionPolicy",
    "DuplicateResolver",
    "DuplicateStrategy",
    "MAX_RENAME_ATTEMPTS",
    "Resolution",
    "ResolutionAction",
    "files_identical",
    "renamed_candidate",
]
