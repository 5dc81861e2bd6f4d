from __future__ import annotations

import argparse
import json
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mapserver.geo import ROOT_BOX
from mapserver.osm_ingest import ingest_osm


def summarize(*, source: Path, output: Path | None = None) -> dict[str, Any]:
    graph = ingest_osm(source)
    if len(graph) == 0:
        raise RuntimeError("No routable nodes were extracted from source input.")
    outside = sum(1 for node in graph if not ROOT_BOX.contains(node.lon, node.lat))
    payload = {
        "source": str(source),
        "generated_at_utc": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "as_of_utc": datetime.fromtimestamp(source.stat().st_mtime, tz=UTC).isoformat().replace("+00:00", "Z"),
        "nodes_outside_world_box": outside,
        **graph.stats(),
    }
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return payload


def main() -> None:
    parser = argparse.ArgumentParser(description="Ingest an OSM XML extract and report road graph coverage.")
    parser.add_argument("--source", type=Path, required=True, help="Path to the .osm XML file.")
    parser.add_argument("--output", type=Path, default=None, help="Optional JSON report path.")
    args = parser.parse_args()
    print(json.dumps(summarize(source=args.source, output=args.output), indent=2))


if __name__ == "__main__":
    main()
