"""Fixed quad-tree over the world box used to pick raster tiles.

Tile ids spell the root-to-leaf path in decimal: the root is 0 and the child in
quadrant q (1=NW, 2=NE, 3=SW, 4=SE) of tile P is ``P.id * 10 + q``. The number
of digits of an id is therefore its depth, and ``<id>.png`` names its image.
"""
from __future__ import annotations

import math
import threading
from dataclasses import dataclass

from .geo import MAX_DEPTH, ROOT_BOX, TILE_SIZE, GeoBox

ROW_TOLERANCE = 1e-10

QUADRANTS = (1, 2, 3, 4)

# Coarse lock for lazy child materialization; children are published as one tuple.
_CHILDREN_LOCK = threading.Lock()


class TileNode:
    __slots__ = ("id", "depth", "box", "_children")

    def __init__(self, tile_id: int, depth: int, box: GeoBox) -> None:
        self.id = int(tile_id)
        self.depth = int(depth)
        self.box = box
        self._children: tuple[TileNode, TileNode, TileNode, TileNode] | None = None

    def __repr__(self) -> str:
        return f"TileNode(id={self.id}, depth={self.depth})"

    @property
    def ldp_view(self) -> float:
        return self.box.width / TILE_SIZE

    @property
    def image_name(self) -> str:
        return f"{self.id}.png"

    @property
    def materialized(self) -> bool:
        return self._children is not None

    def children(self) -> tuple[TileNode, TileNode, TileNode, TileNode]:
        children = self._children
        if children is None:
            with _CHILDREN_LOCK:
                if self._children is None:
                    self._children = tuple(  # type: ignore[assignment]
                        TileNode(self.id * 10 + q, self.depth + 1, box)
                        for q, box in zip(QUADRANTS, self.box.quadrants())
                    )
                children = self._children
        return children  # type: ignore[return-value]

    def path(self) -> tuple[int, ...]:
        """Quadrant digits from the root down to this tile."""
        if self.id == 0:
            return ()
        return tuple(int(ch) for ch in str(self.id))

    def grid_position(self) -> tuple[int, int]:
        """(row, col) of this tile within the 2**depth x 2**depth grid of its level."""
        row = 0
        col = 0
        for q in self.path():
            row = row * 2 + (1 if q in (3, 4) else 0)
            col = col * 2 + (1 if q in (2, 4) else 0)
        return row, col


@dataclass(frozen=True)
class TileSelection:
    tiles: tuple[TileNode, ...]
    cols: int
    rows: int

    @property
    def empty(self) -> bool:
        return not self.tiles

    @property
    def depth(self) -> int:
        return self.tiles[0].depth if self.tiles else 0


EMPTY_SELECTION = TileSelection(tiles=(), cols=0, rows=0)


def order_tiles(tiles: list[TileNode]) -> TileSelection:
    """Row-major order, north to south; a row keeps the order tiles arrived in.

    Rows are grouped on ``ul_lat`` with a small tolerance so float noise from
    repeated midpoint splits cannot open a spurious row.
    """
    if not tiles:
        return EMPTY_SELECTION
    buckets: list[tuple[float, list[TileNode]]] = []
    for tile in tiles:
        lat = tile.box.ul_lat
        for row_lat, row in buckets:
            if abs(row_lat - lat) < ROW_TOLERANCE:
                row.append(tile)
                break
        else:
            buckets.append((lat, [tile]))
    buckets.sort(key=lambda item: item[0], reverse=True)
    ordered = tuple(tile for _, row in buckets for tile in row)
    return TileSelection(tiles=ordered, cols=len(buckets[0][1]), rows=len(buckets))


class QuadTree:
    def __init__(self, box: GeoBox = ROOT_BOX, *, max_depth: int = MAX_DEPTH) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        self.max_depth = int(max_depth)
        self.root = TileNode(0, 0, box)

    def select(self, query: GeoBox, ldp_goal: float) -> TileSelection:
        """Pick the shallowest tiles overlapping `query` with ldp_view <= ldp_goal.

        Tiles at max depth are taken regardless of resolution. The root carries no
        image, so selection always starts at depth 1.
        """
        if not math.isfinite(ldp_goal) or ldp_goal <= 0:
            return EMPTY_SELECTION
        if not self.root.box.overlaps(query):
            return EMPTY_SELECTION
        found: list[TileNode] = []
        for child in self.root.children():
            self._collect(child, query, ldp_goal, found)
        return order_tiles(found)

    def _collect(self, tile: TileNode, query: GeoBox, ldp_goal: float, out: list[TileNode]) -> None:
        if not tile.box.overlaps(query):
            return
        if tile.ldp_view <= ldp_goal or tile.depth >= self.max_depth:
            out.append(tile)
            return
        for child in tile.children():
            self._collect(child, query, ldp_goal, out)

    def tile(self, tile_id: int) -> TileNode:
        """Walk down to the tile named by `tile_id`, materializing as needed."""
        node = self.root
        if tile_id == 0:
            return node
        digits = str(tile_id)
        if tile_id < 0 or len(digits) > self.max_depth or any(ch not in "1234" for ch in digits):
            raise ValueError(f"invalid tile id: {tile_id}")
        for ch in digits:
            node = node.children()[int(ch) - 1]
        return node
