from __future__ import annotations

from PIL import Image

from mapserver.geo import ROOT_BOX, TILE_SIZE
from mapserver.quadtree import EMPTY_SELECTION, QuadTree
from mapserver.rasterer import FAILED_REPORT, compose, raster_report


def _color(tile_id: int) -> tuple[int, int, int]:
    return ((tile_id * 37) % 256, (tile_id * 91) % 256, (tile_id * 13) % 256)


def _solid_loader(tile_id: int) -> Image.Image:
    return Image.new("RGB", (TILE_SIZE, TILE_SIZE), _color(tile_id))


def test_report_spans_first_and_last_tile() -> None:
    selection = QuadTree().select(ROOT_BOX, ROOT_BOX.width / TILE_SIZE)
    report = raster_report(selection)

    assert report.query_success
    assert (report.raster_ul_lon, report.raster_ul_lat) == (ROOT_BOX.ul_lon, ROOT_BOX.ul_lat)
    assert (report.raster_lr_lon, report.raster_lr_lat) == (ROOT_BOX.lr_lon, ROOT_BOX.lr_lat)
    assert (report.raster_width, report.raster_height) == (2 * TILE_SIZE, 2 * TILE_SIZE)
    assert report.depth == 1
    assert report.box == ROOT_BOX


def test_compose_pastes_tiles_row_major() -> None:
    selection = QuadTree().select(ROOT_BOX, ROOT_BOX.width / TILE_SIZE)
    img, report = compose(selection, _solid_loader)

    assert img is not None
    assert img.size == (report.raster_width, report.raster_height)
    assert img.getpixel((10, 10)) == _color(1)
    assert img.getpixel((TILE_SIZE + 10, 10)) == _color(2)
    assert img.getpixel((10, TILE_SIZE + 10)) == _color(3)
    assert img.getpixel((TILE_SIZE + 10, TILE_SIZE + 10)) == _color(4)


def test_single_tile_raster() -> None:
    tree = QuadTree()
    se = tree.tile(4)
    img, report = compose(tree.select(se.box, se.ldp_view), _solid_loader)

    assert img is not None
    assert img.size == (TILE_SIZE, TILE_SIZE)
    assert img.getpixel((TILE_SIZE - 1, TILE_SIZE - 1)) == _color(4)
    assert report.box == se.box


def test_empty_selection_reports_failure_without_image() -> None:
    calls: list[int] = []

    def _loader(tile_id: int) -> Image.Image:
        calls.append(tile_id)
        return _solid_loader(tile_id)

    img, report = compose(EMPTY_SELECTION, _loader)

    assert img is None
    assert report == FAILED_REPORT
    assert not report.query_success
    assert report.as_dict()["raster_width"] == 0
    assert calls == []
