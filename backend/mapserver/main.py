from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from .logging_utils import configure_logging, log_event
from .map_errors import MapDataError, normalize_reason_code
from .map_service import MapService, load_road_graph
from .models import HealthResponse, RasterRequest, RasterResponse, RouteRequest, RouteResponse
from .quadtree import QuadTree
from .settings import settings
from .tile_store import TILE_STORE

# Raster requests carry the query box and the viewport size in pixels.
REQUIRED_RASTER_REQUEST_PARAMS = ("ullat", "ullon", "lrlat", "lrlon", "w", "h")
REQUIRED_ROUTE_REQUEST_PARAMS = ("start_lat", "start_lon", "end_lat", "end_lon")

HALT_RESPONSE = 403


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    graph = load_road_graph(settings.osm_db_path) if settings.graph_load_on_startup else None
    app.state.maps = MapService(quadtree=QuadTree(), tile_store=TILE_STORE, graph=graph)
    yield


app = FastAPI(title="Slippy Map Raster Server", version="0.1.0", lifespan=lifespan)

# Unauthenticated server: allow all origins.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def map_service(request: Request) -> MapService:
    maps: MapService | None = getattr(request.app.state, "maps", None)  # type: ignore[attr-defined]
    if maps is None:
        raise HTTPException(status_code=503, detail="map service not initialised")
    return maps


MapsDep = Annotated[MapService, Depends(map_service)]


def _request_params(request: Request, required: tuple[str, ...]) -> dict[str, float]:
    params: dict[str, float] = {}
    for name in required:
        raw = request.query_params.get(name)
        if raw is None:
            continue
        try:
            params[name] = float(raw)
        except ValueError as e:
            raise HTTPException(status_code=HALT_RESPONSE, detail="Incorrect parameters - provide numbers.") from e
    return params


def _has_all(params: dict[str, float], required: tuple[str, ...]) -> bool:
    return len(params) == len(required)


def _route_request(params: dict[str, float]) -> RouteRequest:
    try:
        return RouteRequest(**params)
    except ValidationError as e:
        raise HTTPException(status_code=HALT_RESPONSE, detail="Incorrect parameters - provide numbers.") from e


@app.get("/", include_in_schema=False)
def root() -> RedirectResponse:
    return RedirectResponse(url="/map.html", status_code=301)


@app.get("/health", response_model=HealthResponse)
def health(maps: MapsDep) -> HealthResponse:
    return HealthResponse(status="ok", graph=maps.graph_stats(), tiles=maps.tile_store.snapshot())


@app.get("/cache/stats")
def cache_stats(maps: MapsDep) -> dict[str, int | str]:
    return maps.tile_store.snapshot()


@app.delete("/cache")
def cache_clear(maps: MapsDep) -> dict[str, int]:
    return {"cleared": maps.tile_store.clear()}


@app.get("/raster", response_model=RasterResponse, response_model_exclude_none=True)
def raster(request: Request, maps: MapsDep) -> RasterResponse:
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()

    raster_params = _request_params(request, REQUIRED_RASTER_REQUEST_PARAMS)
    if not _has_all(raster_params, REQUIRED_RASTER_REQUEST_PARAMS):
        raise HTTPException(status_code=HALT_RESPONSE, detail="Request failed - parameters missing.")
    try:
        req = RasterRequest(**raster_params)
    except ValidationError as e:
        raise HTTPException(status_code=HALT_RESPONSE, detail="Incorrect parameters - provide numbers.") from e

    route_params = _request_params(request, REQUIRED_ROUTE_REQUEST_PARAMS)
    route_req = _route_request(route_params) if _has_all(route_params, REQUIRED_ROUTE_REQUEST_PARAMS) else None

    result = maps.raster(req, route=route_req)
    payload = RasterResponse(**result.report.as_dict())
    if result.image is not None:
        try:
            payload.b64_encoded_image_data = maps.encode(result.image)
        except MapDataError as e:
            raise HTTPException(status_code=500, detail=normalize_reason_code(e.reason_code)) from e

    log_event(
        "raster_request",
        request_id=request_id,
        query=req.model_dump(),
        ldp_goal=req.ldp_goal,
        tile_count=len(result.selection.tiles),
        cols=result.selection.cols,
        rows=result.selection.rows,
        depth=result.report.depth,
        query_success=result.report.query_success,
        route_requested=route_req is not None,
        route_length=len(result.route),
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return payload


@app.get("/route", response_model=RouteResponse)
def route(request: Request, maps: MapsDep) -> RouteResponse:
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()

    params = _request_params(request, REQUIRED_ROUTE_REQUEST_PARAMS)
    if not _has_all(params, REQUIRED_ROUTE_REQUEST_PARAMS):
        raise HTTPException(status_code=HALT_RESPONSE, detail="Request failed - parameters missing.")
    req = _route_request(params)
    try:
        node_ids = maps.route(req)
    except MapDataError as e:
        raise HTTPException(status_code=503, detail=normalize_reason_code(e.reason_code)) from e

    log_event(
        "route_request",
        request_id=request_id,
        origin={"lat": req.start_lat, "lon": req.start_lon},
        destination={"lat": req.end_lat, "lon": req.end_lon},
        route_length=len(node_ids),
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return RouteResponse(route=node_ids)


# Front-end assets; mounted last so API routes take precedence.
if Path(settings.page_dir).is_dir():
    app.mount("/", StaticFiles(directory=settings.page_dir, html=True), name="page")
