from __future__ import annotations

from collections import defaultdict, deque
from typing import Iterable, Sequence

from .models import GraphData, GraphEdge, GraphNode


def adjacency(links: Iterable[GraphEdge]) -> dict[str, set[str]]:
    # Links are directed on the wire but walked both ways here.
    adj: dict[str, set[str]] = defaultdict(set)
    for l in links:
        adj[l.source].add(l.target)
        adj[l.target].add(l.source)
    return adj


def visit_ids(links: Iterable[GraphEdge], center_id: str, max_depth: int = 2) -> set[str]:
    """Breadth-first: ids reachable from `center_id` within `max_depth` hops."""
    max_depth = max(0, int(max_depth))
    adj = adjacency(links)

    visited = {center_id}
    queue = deque([(center_id, 0)])
    while queue:
        node_id, depth = queue.popleft()
        if depth >= max_depth:
            continue
        for neighbor in adj.get(node_id, ()):
            if neighbor in visited:
                continue
            visited.add(neighbor)
            queue.append((neighbor, depth + 1))
    return visited


def extract_local(
    nodes: Sequence[GraphNode],
    links: Iterable[GraphEdge],
    center_id: str,
    max_depth: int = 2,
) -> list[GraphNode]:
    """Nodes within `max_depth` of the center, in their original order."""
    if not any(n.id == center_id for n in nodes):
        return []
    ids = visit_ids(links, center_id, max_depth=max_depth)
    return [n for n in nodes if n.id in ids]


def filter_links(links: Iterable[GraphEdge], node_ids: set[str]) -> list[GraphEdge]:
    return [l for l in links if l.source in node_ids and l.target in node_ids]


def local_graph(graph: GraphData, center_id: str, max_depth: int = 2) -> GraphData:
    nodes = extract_local(graph.nodes, graph.links, center_id, max_depth=max_depth)
    return GraphData.of(nodes, filter_links(graph.links, {n.id for n in nodes}))
