from __future__ import annotations

import math
from collections.abc import Sequence

from PIL import Image, ImageDraw

from .geo import GeoBox

# Cyan at roughly 78% opacity; roads are rarely wider than 5px at these zooms.
ROUTE_STROKE_COLOR = (108, 181, 230, 200)
ROUTE_STROKE_WIDTH_PX = 5.0


def _pin(value: float, size: int) -> int:
    v = int(math.floor(value))
    # The far edge of the box is the last pixel, not one past it.
    return size - 1 if v == size else v


def geo_to_pixel(lon: float, lat: float, box: GeoBox, width: int, height: int) -> tuple[int, int]:
    """Map (lon, lat) inside `box` to image pixels; y grows southward."""
    px = (lon - box.ul_lon) * width / box.width
    py = (box.ul_lat - lat) * height / box.height
    return _pin(px, width), _pin(py, height)


def draw_route(
    img: Image.Image,
    box: GeoBox,
    points: Sequence[tuple[float, float]],
    *,
    stroke_width: float = ROUTE_STROKE_WIDTH_PX,
    color: tuple[int, int, int, int] = ROUTE_STROKE_COLOR,
) -> Image.Image:
    """Stroke the (lon, lat) polyline onto a copy of `img` with round caps and joins."""
    if len(points) < 2:
        return img.copy()
    width_px = max(1, int(round(stroke_width)))
    radius = stroke_width / 2.0
    pixels = [geo_to_pixel(lon, lat, box, img.width, img.height) for lon, lat in points]

    layer = Image.new("RGBA", img.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    draw.line(pixels, fill=color, width=width_px, joint="curve")
    for x, y in (pixels[0], pixels[-1]):
        draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=color)

    composed = Image.alpha_composite(img.convert("RGBA"), layer)
    return composed.convert(img.mode)
