"""Tests for graph presentation helpers."""

from __future__ import annotations

import unittest

from storygraph.services.graph_view import build_graph_data, character_connections


class GraphViewTests(unittest.TestCase):
    def test_nodes_sum_outgoing_counts_and_links_need_both_endpoints(self) -> None:
        data = build_graph_data(
            {
                "Alice": {"Bob": 4, "Carol": 2},
                "Bob": {"Alice": 4, "Dinah": 1},
            }
        )

        self.assertEqual({node.id: node.value for node in data.nodes}, {"Alice": 6, "Bob": 5})
        self.assertEqual(
            [(link.source, link.target, link.value) for link in data.links],
            [("Alice", "Bob", 4), ("Bob", "Alice", 4)],
        )

    def test_empty_graph(self) -> None:
        self.assertEqual(build_graph_data({}).nodes, [])
        self.assertEqual(character_connections("Alice", None), [])

    def test_connections_include_incoming_and_sort_descending(self) -> None:
        connections = character_connections(
            "Alice",
            {
                "Alice": {"Bob": 2},
                "Bob": {"Alice": 9},
                "Carol": {"Alice": 5},
            },
        )

        self.assertEqual(
            [(c.character, c.interactions) for c in connections],
            [("Carol", 5), ("Bob", 2)],
        )


if __name__ == "__main__":
    unittest.main()
