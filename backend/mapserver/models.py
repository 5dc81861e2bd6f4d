from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .geo import GeoBox


def _finite(v: float) -> float:
    if not math.isfinite(v):
        raise ValueError("value must be finite")
    return v


class RasterRequest(BaseModel):
    """Viewport query: corners in degrees, size in pixels.

    Only finiteness is enforced here. An inverted or zero-area box, or a
    non-positive width, is a well-formed query that selects no tiles.
    """

    ullat: float
    ullon: float
    lrlat: float
    lrlon: float
    w: float
    h: float

    @field_validator("ullat", "ullon", "lrlat", "lrlon", "w", "h")
    @classmethod
    def finite(cls, v: float) -> float:
        return _finite(v)

    @property
    def box(self) -> GeoBox | None:
        """The query box, or None when the corners are not north-west / south-east."""
        if not (self.ullon < self.lrlon and self.lrlat < self.ullat):
            return None
        return GeoBox(self.ullon, self.ullat, self.lrlon, self.lrlat)

    @property
    def ldp_goal(self) -> float:
        if self.w <= 0:
            return 0.0
        return (self.lrlon - self.ullon) / self.w


class RouteRequest(BaseModel):
    start_lat: float = Field(..., ge=-90, le=90)
    start_lon: float = Field(..., ge=-180, le=180)
    end_lat: float = Field(..., ge=-90, le=90)
    end_lon: float = Field(..., ge=-180, le=180)

    @field_validator("start_lat", "start_lon", "end_lat", "end_lon")
    @classmethod
    def finite(cls, v: float) -> float:
        return _finite(v)


class RasterResponse(BaseModel):
    raster_ul_lon: float
    raster_ul_lat: float
    raster_lr_lon: float
    raster_lr_lat: float
    raster_width: int
    raster_height: int
    depth: int
    query_success: bool
    b64_encoded_image_data: str | None = None


class RouteResponse(BaseModel):
    route: list[int]


class HealthResponse(BaseModel):
    status: str
    graph: dict[str, Any] | None = None
    tiles: dict[str, Any]
