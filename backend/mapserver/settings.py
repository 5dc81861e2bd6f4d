from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _running_in_docker() -> bool:
    """Best-effort check for container execution.

    Used only to pick sensible defaults. Environment variables always win.
    """
    return Path("/.dockerenv").exists() or os.environ.get("RUNNING_IN_DOCKER") == "1"


def _default_out_dir() -> str:
    return "/app/out" if _running_in_docker() else str(Path.cwd() / "out")


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping paths and styling out of code."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    img_root: str = Field(default="img", alias="IMG_ROOT")
    osm_db_path: str = Field(default="berkeley.osm", alias="OSM_DB_PATH")
    page_dir: str = Field(default="page", alias="PAGE_DIR")

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    raster_jpeg_quality: int = Field(default=100, ge=1, le=100, alias="RASTER_JPEG_QUALITY")
    route_stroke_width_px: float = Field(default=5.0, gt=0.0, le=64.0, alias="ROUTE_STROKE_WIDTH_PX")

    # Ingest the OSM file in the app lifespan; tests switch this off and inject a graph.
    graph_load_on_startup: bool = Field(default=True, alias="GRAPH_LOAD_ON_STARTUP")

    @model_validator(mode="after")
    def _normalize(self) -> Settings:
        self.log_level = str(self.log_level or "INFO").strip().upper() or "INFO"
        self.img_root = str(self.img_root or "img").strip() or "img"
        return self


settings = Settings()
