"""Planar geographic primitives for the fixed map region.

Longitude grows east and latitude grows north; boxes are stored as their
upper-left (north-west) and lower-right (south-east) corners. Distances are
plain Euclidean distances in degree space, not geodesic ones.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

# Root tile of the pyramid. The tiles in the image directory are scraped for this box.
ROOT_ULLON = -122.2998046875
ROOT_ULLAT = 37.892195547244356
ROOT_LRLON = -122.2119140625
ROOT_LRLAT = 37.82280243352756

TILE_SIZE = 256
MAX_DEPTH = 7


@dataclass(frozen=True)
class GeoBox:
    ul_lon: float
    ul_lat: float
    lr_lon: float
    lr_lat: float

    def __post_init__(self) -> None:
        for value in (self.ul_lon, self.ul_lat, self.lr_lon, self.lr_lat):
            if not math.isfinite(value):
                raise ValueError("box coordinates must be finite")
        if not (self.ul_lon < self.lr_lon and self.lr_lat < self.ul_lat):
            raise ValueError("box must have ul_lon < lr_lon and lr_lat < ul_lat")

    @property
    def width(self) -> float:
        return self.lr_lon - self.ul_lon

    @property
    def height(self) -> float:
        return self.ul_lat - self.lr_lat

    @property
    def center(self) -> tuple[float, float]:
        return (self.ul_lon + self.width / 2.0, self.lr_lat + self.height / 2.0)

    def contains(self, lon: float, lat: float) -> bool:
        return self.ul_lon <= lon <= self.lr_lon and self.lr_lat <= lat <= self.ul_lat

    def overlaps(self, other: GeoBox) -> bool:
        """Open-interval overlap: boxes that only share an edge or a corner do not overlap."""
        return not (
            self.lr_lon <= other.ul_lon
            or self.ul_lon >= other.lr_lon
            or self.ul_lat <= other.lr_lat
            or self.lr_lat >= other.ul_lat
        )

    def quadrants(self) -> tuple[GeoBox, GeoBox, GeoBox, GeoBox]:
        """Split at the midpoint into (NW, NE, SW, SE)."""
        mid_lon = self.ul_lon + self.width / 2.0
        mid_lat = self.lr_lat + self.height / 2.0
        return (
            GeoBox(self.ul_lon, self.ul_lat, mid_lon, mid_lat),
            GeoBox(mid_lon, self.ul_lat, self.lr_lon, mid_lat),
            GeoBox(self.ul_lon, mid_lat, mid_lon, self.lr_lat),
            GeoBox(mid_lon, mid_lat, self.lr_lon, self.lr_lat),
        )


ROOT_BOX = GeoBox(ROOT_ULLON, ROOT_ULLAT, ROOT_LRLON, ROOT_LRLAT)


def lon_dist_per_pixel(box: GeoBox, width_px: float) -> float:
    """Longitudinal distance per pixel of `box` rendered `width_px` pixels wide."""
    if width_px <= 0:
        raise ValueError("width_px must be > 0")
    return box.width / float(width_px)


def euclid(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    return math.hypot(lon2 - lon1, lat2 - lat1)
