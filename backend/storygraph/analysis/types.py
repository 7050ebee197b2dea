"""Typed pipeline values independent of transport and persistence."""

from dataclasses import dataclass, field

from storygraph.errors import ExtractionErrorKind

InteractionGraph = dict[str, dict[str, int]]
"""Character name -> other character name -> positive interaction count."""


@dataclass(frozen=True, slots=True)
class Segment:
    """Contiguous slice of the truncated input, processed as one model request."""

    index: int
    text: str


@dataclass(frozen=True, slots=True)
class PartialResult:
    """Validated extraction output for one segment."""

    segment_index: int
    interactions: InteractionGraph = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SegmentFailure:
    """Diagnostic record for a segment that contributed nothing."""

    segment_index: int
    kind: ExtractionErrorKind
    detail: str


@dataclass(frozen=True, slots=True)
class AnalysisRequest:
    """Text to analyze plus an optional stable identifier used for caching."""

    text: str
    identifier: str | None = None


@dataclass(slots=True)
class AnalysisResult:
    """Outcome of one analysis call."""

    interactions: InteractionGraph
    cache_key: str
    cache_hit: bool = False
    segments_total: int = 0
    segments_failed: int = 0
    failures: list[SegmentFailure] = field(default_factory=list)
