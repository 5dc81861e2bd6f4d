"""Build the road graph from an OpenStreetMap XML extract.

The file is consumed as a stream of start/end element events. Nodes are
indexed as they arrive; a way is committed to the graph as soon as its
``highway`` tag names an allowed road class, linking its referenced nodes in
order. After the stream ends, nodes that no committed way touched are dropped.
"""
from __future__ import annotations

import logging
import re
import time
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from .logging_utils import log_event
from .road_graph import GraphNode, RoadGraph

# Non-service roads only, to keep routes off pedestrian paths where possible.
ALLOWED_HIGHWAYS = frozenset(
    {
        "motorway",
        "trunk",
        "primary",
        "secondary",
        "tertiary",
        "unclassified",
        "residential",
        "living_street",
        "motorway_link",
        "trunk_link",
        "primary_link",
        "secondary_link",
        "tertiary_link",
    }
)

_UNCLEAN_RE = re.compile(r"[^a-zA-Z ]")


def clean_string(s: str) -> str:
    """Drop everything but ASCII letters and spaces, then lowercase."""
    return _UNCLEAN_RE.sub("", s).lower()


@dataclass(frozen=True)
class Way:
    way_id: int | None
    name: str | None
    node_ids: tuple[int, ...]

    def commit(self, graph: RoadGraph) -> int:
        return graph.connect_chain(self.node_ids)


class OsmGraphHandler:
    """State machine fed with element events; see ``ingest_osm`` for the driver."""

    def __init__(self, graph: RoadGraph | None = None) -> None:
        self.graph = graph if graph is not None else RoadGraph()
        self._state = "idle"  # idle | node | way
        self._last_node: GraphNode | None = None
        self._way_id: int | None = None
        self._way_name: str | None = None
        self._refs: list[int] = []
        self.nodes_seen = 0
        self.nodes_skipped = 0
        self.ways_seen = 0
        self.ways_committed = 0
        self.named_ways = 0
        self.edges_added = 0
        self.refs_missing = 0
        self.nodes_pruned = 0

    @property
    def state(self) -> str:
        return self._state

    def start_element(self, tag: str, attrs: Mapping[str, str]) -> None:
        if tag == "node":
            self._start_node(attrs)
        elif tag == "way":
            self._state = "way"
            self.ways_seen += 1
            self._way_id = _parse_int(attrs.get("id"))
            self._way_name = None
            self._refs = []
        elif tag == "nd":
            if self._state != "way":
                return
            ref = _parse_int(attrs.get("ref"))
            if ref is None or ref not in self.graph:
                self.refs_missing += 1
                return
            self._refs.append(ref)
        elif tag == "tag":
            self._tag(attrs.get("k", ""), attrs.get("v", ""))

    def end_element(self, tag: str) -> None:
        if tag == "way":
            self._state = "idle"
            self._way_id = None
            self._way_name = None
            self._refs = []
        elif tag == "node":
            self._state = "idle"
            self._last_node = None

    def _start_node(self, attrs: Mapping[str, str]) -> None:
        self._state = "node"
        self._last_node = None
        self.nodes_seen += 1
        node_id = _parse_int(attrs.get("id"))
        try:
            lon = float(attrs["lon"])
            lat = float(attrs["lat"])
        except (KeyError, TypeError, ValueError):
            lon = lat = None  # type: ignore[assignment]
        if node_id is None or lon is None or lat is None:
            self.nodes_skipped += 1
            log_event("osm_node_skipped", level=logging.DEBUG, node_id=attrs.get("id"))
            return
        self._last_node = self.graph.add_node(GraphNode(id=node_id, lon=lon, lat=lat))

    def _tag(self, key: str, value: str) -> None:
        if self._state == "node":
            if key == "name" and self._last_node is not None:
                self._last_node.name = clean_string(value)
        elif self._state == "way":
            if key == "name":
                # Way names stay raw; only node names are cleaned.
                self._way_name = value
            elif key == "highway" and value in ALLOWED_HIGHWAYS and len(self._refs) > 1:
                way = Way(way_id=self._way_id, name=self._way_name, node_ids=tuple(self._refs))
                self.edges_added += way.commit(self.graph)
                self.ways_committed += 1
                if way.name:
                    self.named_ways += 1
                log_event(
                    "osm_way_committed",
                    level=logging.DEBUG,
                    way_id=way.way_id,
                    way_name=way.name,
                    highway=value,
                    node_count=len(way.node_ids),
                )

    def finish(self) -> RoadGraph:
        self.nodes_pruned = self.graph.prune_orphans()
        return self.graph

    def counters(self) -> dict[str, int]:
        return {
            "nodes_seen": self.nodes_seen,
            "nodes_skipped": self.nodes_skipped,
            "ways_seen": self.ways_seen,
            "ways_committed": self.ways_committed,
            "named_ways": self.named_ways,
            "edges_added": self.edges_added,
            "refs_missing": self.refs_missing,
            "nodes_pruned": self.nodes_pruned,
            "nodes_kept": len(self.graph),
        }


def _parse_int(raw: Any) -> int | None:
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


_TOP_LEVEL = frozenset({"node", "way", "relation"})


def ingest_osm(source: str | Path | IO[bytes]) -> RoadGraph:
    """Parse an OSM XML file (path or binary file object) into a pruned road graph."""
    t0 = time.perf_counter()
    handler = OsmGraphHandler()
    root: ET.Element | None = None
    for event, elem in ET.iterparse(source, events=("start", "end")):
        if event == "start":
            if root is None:
                root = elem
            handler.start_element(elem.tag, elem.attrib)
        else:
            handler.end_element(elem.tag)
            if elem.tag in _TOP_LEVEL and root is not None:
                # Drop finished elements so memory tracks the graph, not the file.
                elem.clear()
                root.clear()
    graph = handler.finish()
    log_event(
        "osm_ingest_complete",
        source=str(getattr(source, "name", source)),
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
        **handler.counters(),
    )
    return graph
