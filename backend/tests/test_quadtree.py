from __future__ import annotations

import random
import threading

import pytest

from mapserver.geo import MAX_DEPTH, ROOT_BOX, TILE_SIZE, GeoBox
from mapserver.quadtree import QuadTree, TileSelection


def _assert_minimal(tree: QuadTree, query: GeoBox, ldp_goal: float, selection: TileSelection) -> None:
    for tile in selection.tiles:
        assert tile.box.overlaps(query)
        assert tile.ldp_view <= ldp_goal or tile.depth == tree.max_depth
        parent_id = tile.id // 10
        if parent_id == 0:
            continue
        parent = tree.tile(parent_id)
        # The parent would have been emitted instead if it was fine enough.
        assert parent.ldp_view > ldp_goal


def _assert_row_major(selection: TileSelection) -> None:
    assert len(selection.tiles) == selection.cols * selection.rows
    for idx, tile in enumerate(selection.tiles):
        row, col = divmod(idx, selection.cols)
        if col + 1 < selection.cols:
            right = selection.tiles[idx + 1]
            assert right.box.ul_lon == pytest.approx(tile.box.lr_lon)
            assert right.box.ul_lat == pytest.approx(tile.box.ul_lat)
        if row + 1 < selection.rows:
            below = selection.tiles[idx + selection.cols]
            assert below.box.ul_lat == pytest.approx(tile.box.lr_lat)
            assert below.box.ul_lon == pytest.approx(tile.box.ul_lon)


def test_world_query_at_root_resolution_yields_the_four_depth_one_tiles() -> None:
    tree = QuadTree()
    selection = tree.select(ROOT_BOX, ROOT_BOX.width / TILE_SIZE)

    assert [tile.id for tile in selection.tiles] == [1, 2, 3, 4]
    assert (selection.cols, selection.rows) == (2, 2)
    assert selection.depth == 1


def test_query_equal_to_a_tile_selects_only_that_tile() -> None:
    tree = QuadTree()
    nw = tree.tile(1)
    selection = tree.select(nw.box, nw.box.width / TILE_SIZE)

    assert [tile.id for tile in selection.tiles] == [1]
    assert (selection.cols, selection.rows) == (1, 1)


def test_query_straddling_the_centre_at_depth_one_resolution() -> None:
    tree = QuadTree()
    mid_lon, mid_lat = ROOT_BOX.center
    query = GeoBox(mid_lon - 0.001, mid_lat + 0.001, mid_lon + 0.001, mid_lat - 0.001)
    selection = tree.select(query, tree.tile(1).ldp_view)

    assert [tile.id for tile in selection.tiles] == [1, 2, 3, 4]
    assert (selection.cols, selection.rows) == (2, 2)


def test_fine_resolution_descends_and_stays_minimal() -> None:
    tree = QuadTree()
    nw = tree.tile(1)
    query = GeoBox(nw.box.ul_lon, nw.box.ul_lat, nw.box.lr_lon, nw.box.lr_lat)
    ldp_goal = tree.tile(11).ldp_view
    selection = tree.select(query, ldp_goal)

    assert [tile.id for tile in selection.tiles] == [11, 12, 13, 14]
    _assert_minimal(tree, query, ldp_goal, selection)
    _assert_row_major(selection)


def test_randomized_selection_invariants() -> None:
    rng = random.Random(20260212)
    tree = QuadTree()

    for _ in range(40):
        lon_a = rng.uniform(ROOT_BOX.ul_lon, ROOT_BOX.lr_lon)
        lon_b = rng.uniform(ROOT_BOX.ul_lon, ROOT_BOX.lr_lon)
        lat_a = rng.uniform(ROOT_BOX.lr_lat, ROOT_BOX.ul_lat)
        lat_b = rng.uniform(ROOT_BOX.lr_lat, ROOT_BOX.ul_lat)
        if lon_a == lon_b or lat_a == lat_b:
            continue
        query = GeoBox(min(lon_a, lon_b), max(lat_a, lat_b), max(lon_a, lon_b), min(lat_a, lat_b))
        ldp_goal = query.width / rng.uniform(100.0, 1200.0)

        selection = tree.select(query, ldp_goal)
        assert not selection.empty
        assert len({tile.depth for tile in selection.tiles}) == 1
        _assert_minimal(tree, query, ldp_goal, selection)
        _assert_row_major(selection)


def test_resolution_beyond_max_depth_is_capped() -> None:
    tree = QuadTree()
    query = GeoBox(-122.25, 37.86, -122.249, 37.859)
    selection = tree.select(query, 1e-12)

    assert not selection.empty
    assert selection.depth == MAX_DEPTH
    assert all(len(str(tile.id)) == MAX_DEPTH for tile in selection.tiles)


def test_invalid_resolution_or_outside_query_selects_nothing() -> None:
    tree = QuadTree()
    assert tree.select(ROOT_BOX, 0.0).empty
    assert tree.select(ROOT_BOX, -1.0).empty
    assert tree.select(ROOT_BOX, float("nan")).empty

    east_of_world = GeoBox(ROOT_BOX.lr_lon, ROOT_BOX.ul_lat, ROOT_BOX.lr_lon + 0.1, ROOT_BOX.lr_lat)
    selection = tree.select(east_of_world, 1.0)
    assert selection.empty
    assert (selection.cols, selection.rows, selection.depth) == (0, 0, 0)


def test_tile_ids_encode_the_quadrant_path() -> None:
    tree = QuadTree()
    tile = tree.tile(2341)

    assert tile.depth == 4
    assert tile.path() == (2, 3, 4, 1)
    assert tile.image_name == "2341.png"
    assert [child.id for child in tile.children()] == [23411, 23412, 23413, 23414]

    nw, ne, sw, se = tree.tile(234).box.quadrants()
    assert tile.box == nw


def test_grid_position_is_a_bijection_per_depth() -> None:
    tree = QuadTree()
    depth = 3
    frontier = [tree.root]
    for _ in range(depth):
        frontier = [child for node in frontier for child in node.children()]

    positions = {node.grid_position() for node in frontier}
    assert len(positions) == 4**depth
    assert positions == {(r, c) for r in range(2**depth) for c in range(2**depth)}
    assert len({node.id for node in frontier}) == 4**depth


@pytest.mark.parametrize("bad_id", [-1, 5, 105, 12345678])
def test_tile_lookup_rejects_malformed_ids(bad_id: int) -> None:
    with pytest.raises(ValueError):
        QuadTree().tile(bad_id)


def test_children_are_materialized_once_under_concurrency() -> None:
    tree = QuadTree()
    seen: list[tuple[int, ...]] = []
    barrier = threading.Barrier(8)

    def _worker() -> None:
        barrier.wait()
        seen.append(tuple(id(child) for child in tree.root.children()))

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert tree.root.materialized
    assert len(set(seen)) == 1
