"""Request orchestration: tile selection, compositing, routing and encoding."""
from __future__ import annotations

import base64
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path

from PIL import Image

from .astar import PathNotFoundError, shortest_path
from .logging_utils import log_event
from .map_errors import MapDataError
from .models import RasterRequest, RouteRequest
from .osm_ingest import ingest_osm
from .quadtree import EMPTY_SELECTION, QuadTree, TileSelection
from .rasterer import FAILED_REPORT, RasterReport, compose
from .road_graph import RoadGraph
from .route_overlay import ROUTE_STROKE_COLOR, draw_route
from .settings import settings
from .tile_store import TileImageStore


@dataclass
class RasterResult:
    image: Image.Image | None
    report: RasterReport
    selection: TileSelection
    route: list[int] = field(default_factory=list)


def load_road_graph(path: str | Path) -> RoadGraph | None:
    """Ingest the OSM file at `path`; None (and a logged event) when it cannot be read."""
    osm_path = Path(path)
    if not osm_path.exists():
        log_event(
            "graph_load_failed",
            level=logging.WARNING,
            reason_code="routing_graph_unavailable",
            path=str(osm_path),
            error="missing",
        )
        return None
    try:
        return ingest_osm(osm_path)
    except (ET.ParseError, OSError) as exc:
        log_event(
            "graph_load_failed",
            level=logging.ERROR,
            reason_code="routing_graph_unavailable",
            path=str(osm_path),
            error=str(exc),
        )
        return None


def encode_jpeg_b64(img: Image.Image, *, quality: int = 100) -> str:
    buf = BytesIO()
    img.convert("RGB").save(buf, format="JPEG", quality=int(quality), subsampling=0)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def find_route(graph: RoadGraph, req: RouteRequest) -> list[int]:
    """Node ids from the node nearest the start to the node nearest the end.

    An unreachable destination yields an empty list.
    """
    origin = graph.find_closest(req.start_lon, req.start_lat)
    destination = graph.find_closest(req.end_lon, req.end_lat)
    try:
        result = shortest_path(graph, start=origin.id, goal=destination.id)
    except PathNotFoundError as exc:
        log_event(
            "route_not_found",
            level=logging.WARNING,
            reason_code="routing_graph_no_path",
            origin_id=origin.id,
            destination_id=destination.id,
            error=str(exc),
        )
        return []
    return list(result.nodes)


def find_and_draw_route(
    graph: RoadGraph,
    req: RouteRequest,
    report: RasterReport,
    img: Image.Image | None,
    *,
    stroke_width: float,
) -> tuple[list[int], Image.Image | None]:
    route = find_route(graph, req)
    if img is None or not report.query_success or len(route) < 2:
        return route, img
    points = [(graph.node(node_id).lon, graph.node(node_id).lat) for node_id in route]
    drawn = draw_route(img, report.box, points, stroke_width=stroke_width, color=ROUTE_STROKE_COLOR)
    return route, drawn


class MapService:
    def __init__(
        self,
        *,
        quadtree: QuadTree,
        tile_store: TileImageStore,
        graph: RoadGraph | None,
        stroke_width: float | None = None,
        jpeg_quality: int | None = None,
    ) -> None:
        self.quadtree = quadtree
        self.tile_store = tile_store
        self.graph = graph
        self.stroke_width = float(stroke_width if stroke_width is not None else settings.route_stroke_width_px)
        self.jpeg_quality = int(jpeg_quality if jpeg_quality is not None else settings.raster_jpeg_quality)

    def _require_graph(self) -> RoadGraph:
        if self.graph is None:
            raise MapDataError(
                reason_code="routing_graph_unavailable",
                message="road graph not loaded",
                details={"osm_db_path": settings.osm_db_path},
            )
        if len(self.graph) == 0:
            raise MapDataError(reason_code="routing_graph_empty", message="road graph has no nodes")
        return self.graph

    def raster(self, req: RasterRequest, *, route: RouteRequest | None = None) -> RasterResult:
        query = req.box
        ldp_goal = req.ldp_goal
        if query is None or ldp_goal <= 0:
            return RasterResult(image=None, report=FAILED_REPORT, selection=EMPTY_SELECTION)
        selection = self.quadtree.select(query, ldp_goal)
        img, report = compose(selection, self.tile_store.get_image)
        result = RasterResult(image=img, report=report, selection=selection)
        if route is None or not report.query_success:
            return result
        try:
            graph = self._require_graph()
        except MapDataError as exc:
            log_event(
                "route_skipped",
                level=logging.WARNING,
                reason_code=exc.reason_code,
                error=exc.message,
            )
            return result
        result.route, result.image = find_and_draw_route(
            graph, route, report, img, stroke_width=self.stroke_width
        )
        return result

    def route(self, req: RouteRequest) -> list[int]:
        return find_route(self._require_graph(), req)

    def encode(self, img: Image.Image) -> str:
        try:
            return encode_jpeg_b64(img, quality=self.jpeg_quality)
        except OSError as exc:
            raise MapDataError(
                reason_code="raster_encode_failed",
                message="could not encode raster as JPEG",
                details={"error": str(exc)},
            ) from exc

    def graph_stats(self) -> dict[str, object] | None:
        return self.graph.stats() if self.graph is not None else None
