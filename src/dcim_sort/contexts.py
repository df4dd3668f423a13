"""Immutable run context shared by the router and the duplicate resolver."""

from __future__ import annotations

from dataclasses import dataclass, field

from .destination_builder import ChainTag, SegmentChain
from .duplicate_resolver import DuplicateResolutionPolicy


@dataclass(frozen=True, slots=True)
class SortContext:
    """Both segment chains plus the duplicate policy, built once at startup.

    Instances are never mutated after construction and may be read from any
    number of worker threads.
    """

    supported: SegmentChain = field(default_factory=lambda: SegmentChain(ChainTag.SUPPORTED))
    fallback: SegmentChain = field(default_factory=lambda: SegmentChain(ChainTag.FALLBACK))
    policy: DuplicateResolutionPolicy = field(default_factory=DuplicateResolutionPolicy)

    def __post_init__(self) -> None:
        if self.supported.tag is not ChainTag.SUPPORTED:
            raise ValueError("the supported chain must be tagged 'supported'")
        if self.fallback.tag is not ChainTag.FALLBACK:
            raise ValueError("the fallback chain must be tagged 'fallback'")
