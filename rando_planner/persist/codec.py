"""Itinerary <-> plain JSON-compatible data.

Coordinates become ``[lat, lng]`` lists, bounding boxes
``[min_lat, min_lng, max_lat, max_lng]`` and geometries ``[[lat, lng], ...]``.
Everything else is copied field by field; leg discriminants are kept verbatim.

The persisted document carries a schema version::

    {"version": 1, "itinerary": {...}}

Documents without a version are the legacy layout written by the browser
client (camelCase keys, no version) and are migrated on load.  Reading never
raises: anything unreadable is logged and treated as "no saved itinerary".
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from shapely.geometry import LineString

from rando_planner.config import SCHEMA_VERSION
from rando_planner.models import (
    BoundingBox,
    DifficultyLevel,
    HikingLeg,
    LatLng,
    Leg,
    LegType,
    RestLeg,
    Route,
    RoutePoint,
    RouteProperties,
    Station,
    SurfaceType,
)
from rando_planner.query.itinerary import Itinerary

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def _latlng_out(p: LatLng) -> list[float]:
    return [p.lat, p.lng]


def _bbox_out(b: BoundingBox) -> list[float]:
    return [b.min_lat, b.min_lng, b.max_lat, b.max_lng]


def _station_out(s: Optional[Station]) -> Optional[dict]:
    if s is None:
        return None
    return {
        "id": s.id,
        "label": s.label,
        "city": s.city,
        "line_ids": sorted(s.line_ids),
        "location": _latlng_out(s.location),
    }


def _properties_out(p: RouteProperties) -> dict:
    return {
        "description": p.description,
        "difficulty": p.difficulty.value if p.difficulty else None,
        "surface": p.surface.value if p.surface else None,
        "distance": p.distance,
        "estimated_time": p.estimated_time,
        "ascent": p.ascent,
        "descent": p.descent,
        "max_elevation": p.max_elevation,
        "min_elevation": p.min_elevation,
        "source": p.source,
        "website": p.website,
        "last_updated": p.last_updated,
    }


def _route_out(r: Route) -> dict:
    geometry = None
    if r.geometry is not None:
        geometry = [[lat, lng] for lng, lat, *_ in r.geometry.coords]
    return {
        "id": r.id,
        "name": r.name,
        "from_name": r.from_name,
        "to_name": r.to_name,
        "bbox": _bbox_out(r.bbox),
        "approximate_path": [_latlng_out(p) for p in r.approximate_path],
        "geometry": geometry,
        "points": [
            {
                "location": _latlng_out(p.location),
                "elevation": p.elevation,
                "name": p.name,
                "kind": p.kind,
                "description": p.description,
            }
            for p in r.points
        ],
        "properties": _properties_out(r.properties),
    }


def _leg_out(leg: Leg) -> dict:
    out: dict[str, Any] = {
        "id": leg.id,
        "type": leg.type.value,
        "from_station": _station_out(leg.from_station),
        "to_station": _station_out(leg.to_station),
        "distance": leg.distance,
        "estimated_time": leg.estimated_time,
    }
    if leg.type is LegType.HIKING:
        out["route"] = _route_out(leg.route)
        out["difficulty"] = leg.difficulty
        out["edited_coordinates"] = (
            [_latlng_out(p) for p in leg.edited_coordinates]
            if leg.edited_coordinates is not None else None
        )
    elif leg.type is LegType.REST:
        out["location"] = _station_out(leg.location)
        out["notes"] = leg.notes
    return out


def serialize(itinerary: Itinerary) -> dict:
    """Flatten an itinerary into JSON-compatible data."""
    return {
        "start": _station_out(itinerary.start),
        "end": _station_out(itinerary.end),
        "steps": [_station_out(s) for s in itinerary.steps],
        "legs": [_leg_out(leg) for leg in itinerary.legs],
        "total_distance": itinerary.total_distance,
        "total_time": itinerary.total_time,
    }


# ---------------------------------------------------------------------------
# Deserialization
# ---------------------------------------------------------------------------

def _latlng_in(raw: list) -> LatLng:
    lat, lng = raw
    return LatLng(float(lat), float(lng))


def _bbox_in(raw: list) -> BoundingBox:
    min_lat, min_lng, max_lat, max_lng = raw
    return BoundingBox(float(min_lat), float(min_lng), float(max_lat), float(max_lng))


def _station_in(raw: Optional[dict]) -> Optional[Station]:
    if raw is None:
        return None
    return Station(
        id=raw["id"],
        label=raw["label"],
        city=raw["city"],
        line_ids=frozenset(raw.get("line_ids", [])),
        location=_latlng_in(raw["location"]),
    )


def _properties_in(raw: Optional[dict]) -> RouteProperties:
    if not raw:
        return RouteProperties()
    difficulty = raw.get("difficulty")
    surface = raw.get("surface")
    return RouteProperties(
        description=raw.get("description"),
        difficulty=DifficultyLevel(difficulty) if difficulty else None,
        surface=SurfaceType(surface) if surface else None,
        distance=raw.get("distance"),
        estimated_time=raw.get("estimated_time"),
        ascent=raw.get("ascent"),
        descent=raw.get("descent"),
        max_elevation=raw.get("max_elevation"),
        min_elevation=raw.get("min_elevation"),
        source=raw.get("source"),
        website=raw.get("website"),
        last_updated=raw.get("last_updated"),
    )


def _route_in(raw: dict) -> Route:
    geometry = None
    if raw.get("geometry"):
        geometry = LineString([(float(lng), float(lat)) for lat, lng in raw["geometry"]])
    return Route(
        id=raw["id"],
        bbox=_bbox_in(raw["bbox"]),
        name=raw.get("name"),
        from_name=raw.get("from_name"),
        to_name=raw.get("to_name"),
        approximate_path=tuple(_latlng_in(p) for p in raw.get("approximate_path") or []),
        geometry=geometry,
        points=tuple(
            RoutePoint(
                location=_latlng_in(p["location"]),
                elevation=p.get("elevation"),
                name=p.get("name"),
                kind=p.get("kind"),
                description=p.get("description"),
            )
            for p in raw.get("points") or []
        ),
        properties=_properties_in(raw.get("properties")),
    )


def _leg_in(raw: dict) -> Leg:
    leg_type = LegType(raw["type"])
    if leg_type is LegType.HIKING:
        edited = raw.get("edited_coordinates")
        return HikingLeg(
            id=raw["id"],
            from_station=_station_in(raw["from_station"]),
            to_station=_station_in(raw["to_station"]),
            route=_route_in(raw["route"]),
            distance=raw.get("distance"),
            estimated_time=raw.get("estimated_time"),
            difficulty=raw.get("difficulty"),
            edited_coordinates=tuple(_latlng_in(p) for p in edited) if edited is not None else None,
        )
    return RestLeg(
        id=raw["id"],
        location=_station_in(raw["location"]),
        from_station=_station_in(raw["from_station"]),
        to_station=_station_in(raw["to_station"]),
        distance=raw.get("distance"),
        estimated_time=raw.get("estimated_time"),
        notes=raw.get("notes"),
    )


def deserialize(tree: Any) -> Optional[Itinerary]:
    """Rebuild an itinerary; None if *tree* can't be read."""
    if tree is None:
        return None
    try:
        return Itinerary(
            start=_station_in(tree.get("start")),
            end=_station_in(tree.get("end")),
            steps=[_station_in(s) for s in tree.get("steps", [])],
            legs=[_leg_in(leg) for leg in tree.get("legs", [])],
        )
    except Exception as exc:
        logger.error("Error restoring saved itinerary: %s", exc)
        return None


# ---------------------------------------------------------------------------
# Versioned documents
# ---------------------------------------------------------------------------

def _legacy_station(raw: Optional[dict]) -> Optional[dict]:
    if raw is None:
        return None
    return {
        "id": raw["id"],
        "label": raw["label"],
        "city": raw["city"],
        "line_ids": list(raw.get("lineIds", [])),
        "location": raw["location"],
    }


def _legacy_leg(raw: dict) -> dict:
    leg = {
        "id": raw["id"],
        "type": raw["type"],
        "from_station": _legacy_station(raw["from"]),
        "to_station": _legacy_station(raw["to"]),
        "distance": raw.get("distance"),
        "estimated_time": raw.get("estimatedTime"),
    }
    if raw["type"] == LegType.HIKING.value:
        route = raw["route"]
        leg["route"] = {
            "id": route["id"],
            "name": route.get("name"),
            "from_name": route.get("from"),
            "to_name": route.get("to"),
            "bbox": route["bbox"],
        }
        leg["difficulty"] = raw.get("difficulty")
        leg["edited_coordinates"] = raw.get("editedCoordinates")
    else:
        leg["location"] = _legacy_station(raw["location"])
        leg["notes"] = raw.get("notes")
    return leg


def _migrate_v0_to_v1(doc: dict) -> dict:
    """Legacy browser layout -> version 1."""
    return {
        "version": 1,
        "itinerary": {
            "start": _legacy_station(doc.get("start")),
            "end": _legacy_station(doc.get("end")),
            "steps": [_legacy_station(s) for s in doc.get("steps", [])],
            "legs": [_legacy_leg(leg) for leg in doc.get("legs", [])],
            "total_distance": doc.get("totalDistance"),
            "total_time": doc.get("totalTime"),
        },
    }


MIGRATIONS: dict[int, Callable[[dict], dict]] = {
    0: _migrate_v0_to_v1,
}


def migrate_document(doc: Any) -> Optional[dict]:
    """Upgrade *doc* to the current schema version, or None if unusable."""
    if not isinstance(doc, dict):
        logger.warning("Saved itinerary is not an object; ignoring it")
        return None
    version = doc.get("version", 0)
    if not isinstance(version, int) or isinstance(version, bool) or version < 0:
        logger.warning("Saved itinerary has invalid version %r; ignoring it", version)
        return None
    if version > SCHEMA_VERSION:
        logger.warning(
            "Saved itinerary has version %d, newer than supported %d; ignoring it",
            version, SCHEMA_VERSION,
        )
        return None
    try:
        while version < SCHEMA_VERSION:
            doc = MIGRATIONS[version](doc)
            logger.info("Migrated saved itinerary from version %d to %d", version, doc["version"])
            version = doc["version"]
    except Exception as exc:
        logger.error("Error migrating saved itinerary: %s", exc)
        return None
    return doc


def to_document(itinerary: Itinerary) -> dict:
    return {"version": SCHEMA_VERSION, "itinerary": serialize(itinerary)}


def from_document(doc: Any) -> Optional[Itinerary]:
    migrated = migrate_document(doc)
    if migrated is None:
        return None
    return deserialize(migrated.get("itinerary"))
