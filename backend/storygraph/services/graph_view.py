"""Presentation helpers that reshape an interaction graph for the front end."""

from __future__ import annotations

from collections.abc import Mapping

from storygraph.schemas.analysis import CharacterConnection, GraphData, GraphLink, GraphNode


def build_graph_data(interactions: Mapping[str, Mapping[str, int]] | None) -> GraphData:
    """Turn an interaction graph into nodes and links for a force layout.

    Only characters that appear as sources become nodes; their value is the sum
    of their outgoing counts. Links whose target never reports interactions of
    its own are dropped, since the layout needs both endpoints.
    """

    if not interactions:
        return GraphData()
    node_values = {character: sum(others.values()) for character, others in interactions.items()}
    nodes = [GraphNode(id=name, name=name, value=value) for name, value in node_values.items()]
    links = [
        GraphLink(source=source, target=target, value=count)
        for source, others in interactions.items()
        for target, count in others.items()
        if target in node_values
    ]
    return GraphData(nodes=nodes, links=links)


def character_connections(
    character: str,
    interactions: Mapping[str, Mapping[str, int]] | None,
) -> list[CharacterConnection]:
    """List everyone a character interacts with, busiest first.

    Outgoing edges win over incoming ones when both directions exist.
    """

    if not interactions:
        return []
    connections: dict[str, int] = dict(interactions.get(character, {}))
    for source, others in interactions.items():
        if source != character and character in others and source not in connections:
            connections[source] = others[character]
    return [
        CharacterConnection(character=name, interactions=count)
        for name, count in sorted(connections.items(), key=lambda item: -item[1])
    ]
