"""Detailed route geometry from a GeoJSON FeatureCollection.

Route features are often MultiLineStrings made of many ways.  They are
merged with ``shapely.ops.linemerge``; when the parts don't join up the
longest merged piece is kept, like stitching OSM ways into one trail.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from pathlib import Path
from typing import Iterable, Protocol

from shapely import force_2d
from shapely.geometry import LineString, MultiLineString, shape
from shapely.ops import linemerge

from rando_planner.config import APPROXIMATE_PATH_POINTS, GEOMETRY_PATH
from rando_planner.models import Route

logger = logging.getLogger(__name__)


class GeometryProvider(Protocol):
    async def load_geometry(self, route_ids: Iterable[str]) -> dict[str, LineString]: ...


def to_linestring(geom) -> LineString | None:
    """Reduce a (Multi)LineString to a single 2D LineString, or None if empty.

    Elevation (Z) values are dropped; heights come from the route points.
    """
    geom = force_2d(geom)
    if isinstance(geom, LineString):
        return geom if len(geom.coords) >= 2 else None
    if isinstance(geom, MultiLineString):
        merged = linemerge(geom)
        if isinstance(merged, LineString):
            return merged if len(merged.coords) >= 2 else None
        parts = [g for g in getattr(merged, "geoms", []) if len(g.coords) >= 2]
        if not parts:
            return None
        return max(parts, key=lambda g: len(g.coords))
    return None


class GeoJsonGeometryProvider:
    """Serve route geometries from a GeoJSON file keyed by feature id."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = Path(path) if path else GEOMETRY_PATH

    def _read_features(self) -> list[dict]:
        with open(self._path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data.get("features", [])

    def _select(self, wanted: set[str]) -> dict[str, LineString]:
        result: dict[str, LineString] = {}
        for feature in self._read_features():
            feature_id = feature.get("id")
            if feature_id is None:
                feature_id = (feature.get("properties") or {}).get("id")
            if feature_id is None or str(feature_id) not in wanted:
                continue
            geom = feature.get("geometry")
            if not geom:
                continue
            line = to_linestring(shape(geom))
            if line is None:
                logger.debug("Feature %s has no usable line geometry", feature_id)
                continue
            result[str(feature_id)] = line
        return result

    async def load_geometry(self, route_ids: Iterable[str]) -> dict[str, LineString]:
        wanted = {str(i) for i in route_ids}
        if not wanted:
            return {}
        geometries = await asyncio.to_thread(self._select, wanted)
        logger.info("Loaded geometry for %d / %d routes", len(geometries), len(wanted))
        return geometries


def attach_geometry(routes: list[Route], geometries: dict[str, LineString]) -> list[Route]:
    """Return routes with detailed geometry filled in where available."""
    return [
        dataclasses.replace(r, geometry=geometries[r.id]) if r.id in geometries else r
        for r in routes
    ]


def select_path_points(geometry: dict, n_points: int = APPROXIMATE_PATH_POINTS) -> list[list[float]]:
    """Pick a handful of [lng, lat] positions sketching a raw GeoJSON line.

    Keeps the very first and very last positions plus evenly spaced ones in
    between.  MultiLineStrings with enough parts sample the start of each
    part; otherwise the parts are flattened first.  Short lines are returned
    whole.
    """
    kind = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if kind == "MultiLineString":
        parts = [p for p in coords if p]
        if not parts:
            return []
        first, last = parts[0][0], parts[-1][-1]
        if len(parts) >= n_points:
            step = len(parts) // (n_points - 1)
            middle = [parts[i * step][0] for i in range(1, n_points - 1)]
            return [list(p) for p in [first, *middle, last]]
        flat = [pos for part in parts for pos in part]
    elif kind == "LineString":
        flat = list(coords)
    else:
        raise ValueError(f"Unsupported geometry type: {kind!r}")

    if len(flat) < n_points:
        return [list(p) for p in flat]
    step = len(flat) // (n_points - 1)
    middle = [flat[i * step] for i in range(1, n_points - 1)]
    return [list(p) for p in [flat[0], *middle, flat[-1]]]
