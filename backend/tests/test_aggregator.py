"""Tests for partial graph merging."""

from __future__ import annotations

import itertools
import unittest

from storygraph.analysis.aggregator import graph_from_wire, graph_to_wire, merge_partials
from storygraph.analysis.types import PartialResult


class MergePartialsTests(unittest.TestCase):
    def test_two_segments_merge_by_summing_counts(self) -> None:
        merged = merge_partials(
            [
                PartialResult(segment_index=0, interactions={"Alice": {"Bob": 3}}),
                PartialResult(segment_index=1, interactions={"Alice": {"Bob": 1}, "Bob": {"Carol": 5}}),
            ]
        )

        self.assertEqual(merged, {"Alice": {"Bob": 4}, "Bob": {"Carol": 5}})
        self.assertEqual(
            graph_to_wire(merged),
            {"Alice": {"Bob": {"interactions": 4}}, "Bob": {"Carol": {"interactions": 5}}},
        )

    def test_merge_is_independent_of_partial_order(self) -> None:
        partials = [
            PartialResult(segment_index=0, interactions={"Alice": {"Bob": 2}}),
            PartialResult(segment_index=1, interactions={"Bob": {"Alice": 1}, "Alice": {"Carol": 7}}),
            PartialResult(segment_index=2, interactions={"Alice": {"Bob": 5, "Carol": 1}}),
            PartialResult(segment_index=3, interactions={}),
        ]
        expected = merge_partials(partials)

        for permutation in itertools.permutations(partials):
            self.assertEqual(merge_partials(permutation), expected)
        self.assertEqual(expected, {"Alice": {"Bob": 7, "Carol": 8}, "Bob": {"Alice": 1}})

    def test_reverse_edges_are_not_synthesized(self) -> None:
        merged = merge_partials([PartialResult(segment_index=0, interactions={"Alice": {"Bob": 2}})])

        self.assertNotIn("Bob", merged)

    def test_names_are_case_sensitive(self) -> None:
        merged = merge_partials(
            [
                PartialResult(segment_index=0, interactions={"Tom": {"Huck": 1}}),
                PartialResult(segment_index=1, interactions={"tom": {"Huck": 1}}),
            ]
        )

        self.assertEqual(merged, {"Tom": {"Huck": 1}, "tom": {"Huck": 1}})

    def test_no_partials_yield_empty_graph(self) -> None:
        self.assertEqual(merge_partials([]), {})

    def test_graph_from_wire_rejects_non_positive_counts(self) -> None:
        with self.assertRaises(ValueError):
            graph_from_wire({"Alice": {"Bob": {"interactions": 0}}})
        with self.assertRaises(ValueError):
            graph_from_wire({"Alice": {"Bob": {"interactions": True}}})
        with self.assertRaises(ValueError):
            graph_from_wire({"Alice": ["Bob"]})


if __name__ == "__main__":
    unittest.main()
