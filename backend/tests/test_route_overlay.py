from __future__ import annotations

from PIL import Image

from mapserver.geo import GeoBox
from mapserver.route_overlay import ROUTE_STROKE_COLOR, draw_route, geo_to_pixel

BOX = GeoBox(0.0, 1.0, 1.0, 0.0)


def test_corners_map_to_the_first_and_last_pixel() -> None:
    assert geo_to_pixel(BOX.ul_lon, BOX.ul_lat, BOX, 512, 256) == (0, 0)
    assert geo_to_pixel(BOX.lr_lon, BOX.lr_lat, BOX, 512, 256) == (511, 255)
    assert geo_to_pixel(0.5, 0.5, BOX, 512, 256) == (256, 128)


def test_points_outside_the_box_are_not_clamped() -> None:
    x, y = geo_to_pixel(-0.5, 1.5, BOX, 100, 100)

    assert x < 0
    assert y < 0


def test_draw_route_strokes_the_polyline() -> None:
    img = Image.new("RGB", (256, 256), (255, 255, 255))

    out = draw_route(img, BOX, [(0.1, 0.5), (0.9, 0.5)], stroke_width=6.0)

    assert out is not img
    assert out.mode == "RGB"
    assert out.size == img.size
    r, g, b = out.getpixel((128, 128))
    assert (r, g, b) != (255, 255, 255)
    assert b > r
    assert out.getpixel((128, 10)) == (255, 255, 255)
    assert img.getpixel((128, 128)) == (255, 255, 255)


def test_stroke_is_translucent() -> None:
    img = Image.new("RGB", (64, 64), (0, 0, 0))

    out = draw_route(img, BOX, [(0.0, 0.5), (1.0, 0.5)], stroke_width=4.0)
    r, g, b = out.getpixel((32, 32))

    assert 0 < b < ROUTE_STROKE_COLOR[2]
    assert 0 < r < ROUTE_STROKE_COLOR[0]


def test_single_point_route_draws_nothing() -> None:
    img = Image.new("RGB", (32, 32), (10, 20, 30))

    out = draw_route(img, BOX, [(0.5, 0.5)])

    assert out.getpixel((16, 16)) == (10, 20, 30)
    assert out is not img
