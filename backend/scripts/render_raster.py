from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mapserver.map_service import MapService, load_road_graph
from mapserver.models import RasterRequest, RouteRequest
from mapserver.quadtree import QuadTree
from mapserver.tile_store import TileImageStore


def render(
    *,
    query: RasterRequest,
    img_root: Path,
    output: Path,
    osm: Path | None = None,
    route: RouteRequest | None = None,
) -> dict[str, Any]:
    graph = load_road_graph(osm) if osm is not None else None
    maps = MapService(quadtree=QuadTree(), tile_store=TileImageStore(img_root=img_root), graph=graph)
    result = maps.raster(query, route=route)
    report: dict[str, Any] = dict(result.report.as_dict())
    report["tiles"] = [tile.id for tile in result.selection.tiles]
    report["route"] = result.route
    if result.image is None:
        report["output"] = None
        return report
    output.parent.mkdir(parents=True, exist_ok=True)
    result.image.save(output)
    report["output"] = str(output)
    return report


def main() -> None:
    parser = argparse.ArgumentParser(description="Compose a map raster from the tile pyramid and write it to disk.")
    parser.add_argument("--ullon", type=float, required=True)
    parser.add_argument("--ullat", type=float, required=True)
    parser.add_argument("--lrlon", type=float, required=True)
    parser.add_argument("--lrlat", type=float, required=True)
    parser.add_argument("--width", type=float, default=1024.0, help="Viewport width in pixels.")
    parser.add_argument("--height", type=float, default=768.0, help="Viewport height in pixels.")
    parser.add_argument("--img-root", type=Path, default=Path("img"))
    parser.add_argument("--output", type=Path, default=Path("out/raster.png"))
    parser.add_argument("--osm", type=Path, default=None, help="OSM XML file; required for --route.")
    parser.add_argument(
        "--route",
        type=float,
        nargs=4,
        metavar=("START_LON", "START_LAT", "END_LON", "END_LAT"),
        default=None,
    )
    args = parser.parse_args()
    query = RasterRequest(
        ullon=args.ullon,
        ullat=args.ullat,
        lrlon=args.lrlon,
        lrlat=args.lrlat,
        w=args.width,
        h=args.height,
    )
    route = None
    if args.route is not None:
        if args.osm is None:
            parser.error("--route requires --osm")
        start_lon, start_lat, end_lon, end_lat = args.route
        route = RouteRequest(start_lon=start_lon, start_lat=start_lat, end_lon=end_lon, end_lat=end_lat)
    report = render(query=query, img_root=args.img_root, output=args.output, osm=args.osm, route=route)
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
