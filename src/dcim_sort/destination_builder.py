"""Destination path building from segment chains.

This module holds the two segment chains, composes a relative directory from
a chain and a metadata bag, routes each file to the right chain, and joins
the result with the destination root while making sure the final path stays
inside it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Iterable, Tuple

from .errors import DuplicateIndexError
from .segments import Segment, evaluate
from .utils import sanitize_component

if TYPE_CHECKING:
    from .contexts import SortContext
    from .models import MetadataBag


class ChainTag(Enum):
    SUPPORTED = "supported"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class SegmentChain:
    """Segments of one pipeline, kept in ascending index order."""

    tag: ChainTag
    segments: Tuple[Segment, ...] = ()

    @classmethod
    def build(cls, tag: ChainTag, segments: Iterable[Segment]) -> "SegmentChain":
        """Order segments by index.

        Raises:
            DuplicateIndexError: two segments share an index
        """
        ordered = sorted(segments, key=lambda segment: segment.index)
        for previous, current in zip(ordered, ordered[1:]):
            if previous.index == current.index:
                raise DuplicateIndexError(f"sorter.{tag.value}.segments", current.index)
        return cls(tag=tag, segments=tuple(ordered))

    def __len__(self) -> int:
        return len(self.segments)


def compose(chain: SegmentChain, bag: MetadataBag) -> PurePosixPath:
    """Join the components of every applicable segment into a relative directory.

    Inapplicable segments add no level at all. An empty chain, or one where
    nothing applies, yields ``PurePosixPath(".")``.
    """
    levels: list[str] = []
    for segment in chain.segments:
        result = evaluate(segment, bag)
        if not result.applicable:
            continue
        component = sanitize_component(result.component)
        if component:
            levels.append(component)
    return PurePosixPath(*levels)


class Router:
    def __init__(self, context: SortContext) -> None:
        self.context = context

    def select_chain(self, bag: MetadataBag) -> SegmentChain:
        if bag.is_supported_kind:
            return self.context.supported
        return self.context.fallback

    def route(self, bag: MetadataBag) -> PurePosixPath:
        return compose(self.select_chain(bag), bag)


def build_destination(destination_dir: Path, relative: PurePosixPath) -> Path:
    """Resolve a relative destination below ``destination_dir``.

    Raises:
        ValueError: If the destination path escapes the destination directory
    """
    destination = destination_dir.joinpath(*relative.parts)

    base_dir = destination_dir.resolve()
    destination_resolved = destination.resolve(strict=False)
    if not destination_resolved.is_relative_to(base_dir):
        raise ValueError(f"destination {destination_resolved} escapes destination_dir {base_dir}")

    return destination


def format_relative_destination(destination: Path, destination_dir: Path) -> str:
    try:
        relative = destination.relative_to(destination_dir)
    except ValueError:
        return str(destination)
    return str(relative)


__all__ = [
    "ChainTag",
    "Router",
    "SegmentChain",
    "build_destination",
    "compose",
    "format_relative_destination",
]
