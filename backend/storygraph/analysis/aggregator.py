"""Fold per-segment partial graphs into one interaction graph."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from storygraph.analysis.types import InteractionGraph, PartialResult


def merge_partials(partials: Iterable[PartialResult]) -> InteractionGraph:
    """Sum interaction counts across partial results.

    Names are matched exactly ("Tom" and "tom" stay distinct) and reverse edges
    are never synthesized. The sum is independent of the order of partials.
    """

    merged: InteractionGraph = {}
    for partial in partials:
        add_interactions(merged, partial.interactions)
    return merged


def add_interactions(target: InteractionGraph, interactions: Mapping[str, Mapping[str, int]]) -> None:
    """Add every (source, other, count) triple of interactions into target in place."""

    for source, others in interactions.items():
        row = target.setdefault(source, {})
        for other, count in others.items():
            row[other] = row.get(other, 0) + count


def graph_to_wire(graph: Mapping[str, Mapping[str, int]]) -> dict[str, dict[str, dict[str, int]]]:
    """Render counts in the response shape: {A: {B: {"interactions": n}}}."""

    return {
        source: {other: {"interactions": count} for other, count in others.items()}
        for source, others in graph.items()
    }


def graph_from_wire(payload: Mapping[str, Any]) -> InteractionGraph:
    """Inverse of graph_to_wire. Raises ValueError on malformed payloads."""

    graph: InteractionGraph = {}
    for source, others in payload.items():
        if not isinstance(others, Mapping):
            raise ValueError(f"Expected an object of interactions for {source!r}")
        row: dict[str, int] = {}
        for other, entry in others.items():
            count = entry.get("interactions") if isinstance(entry, Mapping) else None
            if isinstance(count, bool) or not isinstance(count, int) or count < 1:
                raise ValueError(f"Invalid interaction count for {source!r} -> {other!r}")
            row[other] = count
        graph[source] = row
    return graph
