"""Great-circle distances and hiking-time estimates.

All distances are in **kilometers**, all times in **minutes**.  Points are
``LatLng`` (lat, lng) pairs in degrees; Shapely geometries use (lng, lat).
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from shapely.geometry import LineString

from rando_planner.config import (
    DESCENT_FACTOR,
    DESCENT_THRESHOLD_M,
    EARTH_RADIUS_KM,
    HIKING_SPEED_KMH,
    KM_PER_DEGREE_LAT,
    NAISMITH_CLIMB_FACTOR,
)
from rando_planner.models import BoundingBox, LatLng, Route


def haversine_distance(p1: LatLng, p2: LatLng) -> float:
    """Return the great-circle distance in km between two points."""
    phi1 = math.radians(p1.lat)
    phi2 = math.radians(p2.lat)
    d_phi = math.radians(p2.lat - p1.lat)
    d_lambda = math.radians(p2.lng - p1.lng)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def path_distance(coords: Sequence[LatLng]) -> float:
    """Sum of haversine distances between consecutive points."""
    if len(coords) < 2:
        return 0.0
    total = 0.0
    for i in range(len(coords) - 1):
        total += haversine_distance(coords[i], coords[i + 1])
    return total


def linestring_distance(line: LineString) -> float:
    """Path distance of a (lng, lat) Shapely LineString."""
    return path_distance([LatLng(lat, lng) for lng, lat, *_ in line.coords])


def estimate_distance_from_bbox(bbox: BoundingBox) -> float:
    """Rough route length from the bounding-box diagonal.

    Uses 111 km per degree of latitude and scales longitude by the cosine of
    the southern edge.  This is *not* a route-following distance: winding
    trails come out shorter than they are, so only use it when no geometry
    is available.
    """
    lat_km = (bbox.max_lat - bbox.min_lat) * KM_PER_DEGREE_LAT
    lng_km = (
        (bbox.max_lng - bbox.min_lng)
        * KM_PER_DEGREE_LAT
        * math.cos(math.radians(bbox.min_lat))
    )
    return math.sqrt(lat_km * lat_km + lng_km * lng_km)


def route_distance(route: Route) -> float:
    """Geometry path length when known, bounding-box estimate otherwise."""
    if route.has_geometry:
        distance = linestring_distance(route.geometry)
    else:
        distance = estimate_distance_from_bbox(route.bbox)
    if not math.isfinite(distance) or distance < 0:
        return 0.0
    return distance


def estimate_hiking_time(
    distance_km: float,
    ascent_m: Optional[float] = None,
    descent_m: Optional[float] = None,
) -> int:
    """Estimate hiking time in minutes using Naismith's rule.

    4 km/h on the flat, plus 1 hour per 600 m of ascent.  Descent only
    counts when it exceeds 1000 m, at 1 hour per 1200 m.  Half minutes
    round up.
    """
    hours = distance_km / HIKING_SPEED_KMH
    if ascent_m:
        hours += ascent_m / NAISMITH_CLIMB_FACTOR
    if descent_m and descent_m > DESCENT_THRESHOLD_M:
        hours += descent_m / DESCENT_FACTOR
    return max(0, math.floor(hours * 60 + 0.5))
