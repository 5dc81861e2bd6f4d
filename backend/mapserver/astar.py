from __future__ import annotations

import heapq
from dataclasses import dataclass
from math import inf

from .geo import euclid
from .road_graph import RoadGraph


@dataclass(frozen=True)
class PathResult:
    nodes: tuple[int, ...]
    cost: float
    explored: int = 0


class PathNotFoundError(ValueError):
    pass


def shortest_path(graph: RoadGraph, *, start: int, goal: int) -> PathResult:
    """A* over planar Euclidean edge lengths with a straight-line heuristic.

    g-scores and parents are local to the call, so concurrent searches over the
    same graph do not interfere and nothing needs resetting afterwards.
    """
    if start not in graph or goal not in graph:
        raise PathNotFoundError("start/goal not in graph")
    target = graph.node(goal)

    def h(node_id: int) -> float:
        n = graph.node(node_id)
        return euclid(n.lon, n.lat, target.lon, target.lat)

    best_cost: dict[int, float] = {start: 0.0}
    parent: dict[int, int] = {}
    heap: list[tuple[float, float, int]] = [(h(start), 0.0, start)]
    explored = 0
    while heap:
        _, cost, node_id = heapq.heappop(heap)
        if cost > best_cost.get(node_id, inf):
            continue  # stale entry
        explored += 1
        if node_id == goal:
            path = [goal]
            while path[-1] != start:
                path.append(parent[path[-1]])
            path.reverse()
            return PathResult(nodes=tuple(path), cost=cost, explored=explored)
        current = graph.node(node_id)
        for nxt in graph.iter_neighbors(node_id):
            nb = graph.node(nxt)
            new_cost = cost + euclid(current.lon, current.lat, nb.lon, nb.lat)
            if new_cost < best_cost.get(nxt, inf):
                best_cost[nxt] = new_cost
                parent[nxt] = node_id
                heapq.heappush(heap, (new_cost + h(nxt), new_cost, nxt))
    raise PathNotFoundError("no path")


def path_length(graph: RoadGraph, nodes: tuple[int, ...] | list[int]) -> float:
    total = 0.0
    for idx in range(1, len(nodes)):
        a = graph.node(nodes[idx - 1])
        b = graph.node(nodes[idx])
        total += euclid(a.lon, a.lat, b.lon, b.lat)
    return total
