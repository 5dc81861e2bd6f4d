from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock

from PIL import Image, UnidentifiedImageError

from .geo import TILE_SIZE
from .logging_utils import log_event
from .settings import settings


def blank_tile() -> Image.Image:
    return Image.new("RGB", (TILE_SIZE, TILE_SIZE))


class TileImageStore:
    """Process-wide cache of decoded tile images keyed by tile id.

    Decoding happens outside the lock; when two requests race on the same id
    the first published image wins and both callers get it.
    """

    def __init__(self, *, img_root: str | Path) -> None:
        self._img_root = Path(img_root)
        self._lock = Lock()
        self._items: dict[int, Image.Image] = {}
        self._missing: set[int] = set()

        self._hits = 0
        self._misses = 0

    @property
    def img_root(self) -> Path:
        return self._img_root

    def path_for(self, tile_id: int) -> Path:
        return self._img_root / f"{int(tile_id)}.png"

    def _load(self, tile_id: int) -> tuple[Image.Image, bool]:
        path = self.path_for(tile_id)
        try:
            with Image.open(path) as src:
                img = src.convert("RGB")
        except (OSError, UnidentifiedImageError) as exc:
            log_event(
                "tile_image_missing",
                level=logging.WARNING,
                tile_id=int(tile_id),
                path=str(path),
                error=type(exc).__name__,
            )
            return blank_tile(), False
        if img.size != (TILE_SIZE, TILE_SIZE):
            img = img.resize((TILE_SIZE, TILE_SIZE))
        return img, True

    def get_image(self, tile_id: int) -> Image.Image:
        key = int(tile_id)
        with self._lock:
            cached = self._items.get(key)
            if cached is not None:
                self._hits += 1
                return cached
            self._misses += 1

        img, found = self._load(key)
        with self._lock:
            existing = self._items.get(key)
            if existing is not None:
                return existing
            self._items[key] = img
            if not found:
                self._missing.add(key)
            return img

    def is_missing(self, tile_id: int) -> bool:
        with self._lock:
            return int(tile_id) in self._missing

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._items)
            self._items.clear()
            self._missing.clear()
            return cleared

    def snapshot(self) -> dict[str, int | str]:
        with self._lock:
            return {
                "size": len(self._items),
                "missing": len(self._missing),
                "hits": self._hits,
                "misses": self._misses,
                "img_root": str(self._img_root),
            }


TILE_STORE = TileImageStore(img_root=settings.img_root)

