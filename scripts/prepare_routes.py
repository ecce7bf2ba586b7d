#!/usr/bin/env python3
"""Prepare the lightweight route catalog from a GeoJSON export.

Reads route features from data/routes.geojson, keeps their metadata and a
six-point approximate path, and writes data/prepared/routes_<source>.json
in the format the catalog loader reads.

Usage:
    python scripts/prepare_routes.py [--source small] [--input data/routes.geojson]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from shapely.geometry import shape

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from rando_planner.config import DEFAULT_ROUTE_SOURCE, GEOMETRY_PATH, PREPARED_DIR  # noqa: E402
from rando_planner.ingest.catalog import routes_file_name  # noqa: E402
from rando_planner.ingest.geometry import select_path_points  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

# Route properties copied through to the prepared catalog
_KEPT_PROPERTIES = (
    "description", "difficulty", "surface", "distance", "estimatedTime",
    "ascent", "descent", "maxElevation", "minElevation", "source",
    "website", "lastUpdated",
)


def prepare_feature(feature: dict) -> dict | None:
    """Turn one GeoJSON feature into a prepared route record."""
    props = feature.get("properties") or {}
    route_id = feature.get("id", props.get("id"))
    geom = feature.get("geometry")
    if route_id is None or not geom:
        return None

    bbox = props.get("bbox") or feature.get("bbox")
    if not bbox:
        # shapely bounds are (minx, miny, maxx, maxy) = [minLng, minLat, maxLng, maxLat]
        bbox = [round(v, 6) for v in shape(geom).bounds]

    record = {
        "id": str(route_id),
        "name": props.get("name"),
        "from": props.get("from"),
        "to": props.get("to"),
        "bbox": list(bbox),
        "approximatePath": [[round(lng, 6), round(lat, 6)] for lng, lat, *_ in select_path_points(geom)],
    }
    extra = {k: props[k] for k in _KEPT_PROPERTIES if props.get(k) is not None}
    if extra:
        record["properties"] = extra
    return record


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--input", type=Path, default=GEOMETRY_PATH)
    parser.add_argument("--source", default=DEFAULT_ROUTE_SOURCE)
    args = parser.parse_args()

    logger.info("Reading route features from %s", args.input)
    with open(args.input, "r", encoding="utf-8") as f:
        features = json.load(f).get("features", [])

    routes = []
    for feature in features:
        try:
            record = prepare_feature(feature)
        except ValueError as e:
            logger.warning("Skipping feature %s: %s", feature.get("id"), e)
            continue
        if record is not None:
            routes.append(record)
    logger.info("%d / %d features prepared", len(routes), len(features))

    PREPARED_DIR.mkdir(parents=True, exist_ok=True)
    output_path = PREPARED_DIR / routes_file_name(args.source)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(routes, f, indent=2)

    size_kb = output_path.stat().st_size / 1024
    logger.info("Saved %d routes to %s (%.0f KB)", len(routes), output_path, size_kb)
    print(f"Done. {len(routes)} routes saved to {output_path} ({size_kb:.0f} KB)")


if __name__ == "__main__":
    main()
