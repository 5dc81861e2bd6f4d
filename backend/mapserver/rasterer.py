from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from PIL import Image

from .geo import TILE_SIZE, GeoBox
from .quadtree import TileSelection

ImageLoader = Callable[[int], Image.Image]


@dataclass(frozen=True)
class RasterReport:
    raster_ul_lon: float
    raster_ul_lat: float
    raster_lr_lon: float
    raster_lr_lat: float
    raster_width: int
    raster_height: int
    depth: int
    query_success: bool

    @property
    def box(self) -> GeoBox:
        return GeoBox(self.raster_ul_lon, self.raster_ul_lat, self.raster_lr_lon, self.raster_lr_lat)

    def as_dict(self) -> dict[str, Any]:
        return {
            "raster_ul_lon": self.raster_ul_lon,
            "raster_ul_lat": self.raster_ul_lat,
            "raster_lr_lon": self.raster_lr_lon,
            "raster_lr_lat": self.raster_lr_lat,
            "raster_width": self.raster_width,
            "raster_height": self.raster_height,
            "depth": self.depth,
            "query_success": self.query_success,
        }


FAILED_REPORT = RasterReport(
    raster_ul_lon=0.0,
    raster_ul_lat=0.0,
    raster_lr_lon=0.0,
    raster_lr_lat=0.0,
    raster_width=0,
    raster_height=0,
    depth=0,
    query_success=False,
)


def raster_report(selection: TileSelection) -> RasterReport:
    if selection.empty:
        return FAILED_REPORT
    first = selection.tiles[0]
    last = selection.tiles[-1]
    return RasterReport(
        raster_ul_lon=first.box.ul_lon,
        raster_ul_lat=first.box.ul_lat,
        raster_lr_lon=last.box.lr_lon,
        raster_lr_lat=last.box.lr_lat,
        raster_width=selection.cols * TILE_SIZE,
        raster_height=selection.rows * TILE_SIZE,
        depth=first.depth,
        query_success=True,
    )


def compose(selection: TileSelection, load_image: ImageLoader) -> tuple[Image.Image | None, RasterReport]:
    """Paste the selected tiles row-major into one RGB image.

    Returns ``(None, FAILED_REPORT)`` for an empty selection.
    """
    report = raster_report(selection)
    if not report.query_success:
        return None, report
    img = Image.new("RGB", (report.raster_width, report.raster_height))
    for idx, tile in enumerate(selection.tiles):
        row, col = divmod(idx, selection.cols)
        img.paste(load_image(tile.id), (col * TILE_SIZE, row * TILE_SIZE))
    return img, report
