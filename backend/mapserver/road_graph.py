from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from .geo import euclid
from .map_errors import MapDataError


@dataclass(slots=True, eq=False)
class GraphNode:
    """A routable OSM node. Identity is the (lon, lat, id) triple; the name is display data."""

    id: int
    lon: float
    lat: float
    name: str | None = field(default=None)

    def _key(self) -> tuple[float, float, int]:
        return (self.lon, self.lat, self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphNode):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def distance_to(self, lon: float, lat: float) -> float:
        return euclid(self.lon, self.lat, lon, lat)


class RoadGraph:
    """Undirected road graph stored as an arena of nodes plus ``id -> set[id]`` adjacency.

    Built once by the OSM ingester and read-only afterwards.
    """

    def __init__(self) -> None:
        self._nodes: dict[int, GraphNode] = {}
        self._adjacency: dict[int, set[int]] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(self._nodes.values())

    # -------- construction --------

    def add_node(self, node: GraphNode) -> GraphNode:
        self._nodes[node.id] = node
        self._adjacency.setdefault(node.id, set())
        return node

    def connect(self, u: int, v: int) -> bool:
        """Add the undirected edge u-v. Self-loops and repeats are ignored."""
        if u == v or u not in self._nodes or v not in self._nodes:
            return False
        if v in self._adjacency[u]:
            return False
        self._adjacency[u].add(v)
        self._adjacency[v].add(u)
        return True

    def connect_chain(self, node_ids: Sequence[int]) -> int:
        """Link consecutive ids of a way in both directions; returns edges added."""
        added = 0
        for idx in range(1, len(node_ids)):
            if self.connect(node_ids[idx - 1], node_ids[idx]):
                added += 1
        return added

    def prune_orphans(self) -> int:
        orphans = [node_id for node_id, nbrs in self._adjacency.items() if not nbrs]
        for node_id in orphans:
            del self._adjacency[node_id]
            del self._nodes[node_id]
        return len(orphans)

    # -------- queries --------

    def node(self, node_id: int) -> GraphNode:
        return self._nodes[node_id]

    def neighbors(self, node_id: int) -> frozenset[int]:
        return frozenset(self._adjacency.get(node_id, ()))

    def iter_neighbors(self, node_id: int) -> Iterable[int]:
        return self._adjacency.get(node_id, ())

    def edge_count(self) -> int:
        return sum(len(nbrs) for nbrs in self._adjacency.values()) // 2

    def edges(self) -> Iterator[tuple[int, int]]:
        for u, nbrs in self._adjacency.items():
            for v in nbrs:
                yield (u, v)

    def find_closest(self, lon: float, lat: float) -> GraphNode:
        """Node with the smallest planar distance to (lon, lat); ties go to the smaller id."""
        if not self._nodes:
            raise MapDataError(
                reason_code="routing_graph_empty",
                message="road graph has no nodes",
            )
        return min(self._nodes.values(), key=lambda n: (n.distance_to(lon, lat), n.id))

    def components(self) -> tuple[dict[int, int], dict[int, int]]:
        """Connected components as (component_by_node, component_sizes)."""
        component_by_node: dict[int, int] = {}
        component_sizes: dict[int, int] = {}
        component_idx = 0
        for node_id in self._nodes:
            if node_id in component_by_node:
                continue
            component_idx += 1
            q: deque[int] = deque([node_id])
            size = 0
            while q:
                current = q.popleft()
                if current in component_by_node:
                    continue
                component_by_node[current] = component_idx
                size += 1
                for nxt in self._adjacency.get(current, ()):
                    if nxt not in component_by_node:
                        q.append(nxt)
            component_sizes[component_idx] = size
        return component_by_node, component_sizes

    def stats(self) -> dict[str, Any]:
        _, component_sizes = self.components()
        largest = max(component_sizes.values(), default=0)
        return {
            "nodes": len(self._nodes),
            "edges": self.edge_count(),
            "named_nodes": sum(1 for n in self._nodes.values() if n.name),
            "component_count": len(component_sizes),
            "largest_component_nodes": largest,
            "largest_component_ratio": (
                round(float(largest) / float(len(self._nodes)), 4) if self._nodes else 0.0
            ),
        }
