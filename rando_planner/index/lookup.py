"""Station and route lookups: text search, proximity, and map viewport.

Proximity queries build an STRtree over station points (lng, lat) to get a
coarse candidate set, then use haversine for the precise distance filter.
"""

from __future__ import annotations

import logging
import math

from shapely import STRtree
from shapely.geometry import Point

from rando_planner.config import KM_PER_DEGREE_LAT, NEARBY_STATION_KM
from rando_planner.index.distance import haversine_distance
from rando_planner.models import BoundingBox, LatLng, Route, Station

logger = logging.getLogger(__name__)


def search_stations(stations: list[Station], term: str) -> list[Station]:
    """Stations whose label or city contains *term* (case-insensitive)."""
    if not term:
        return stations
    needle = term.lower()
    return [
        s for s in stations
        if needle in s.label.lower() or needle in s.city.lower()
    ]


def stations_near(
    stations: list[Station],
    location: LatLng,
    max_distance_km: float = NEARBY_STATION_KM,
) -> list[Station]:
    """Stations within *max_distance_km* of *location*, nearest first."""
    if not stations:
        return []

    tree = STRtree([Point(s.location.lng, s.location.lat) for s in stations])

    # Degree padding for the coarse query; longitude degrees shrink with latitude
    lat_pad = max_distance_km / KM_PER_DEGREE_LAT
    cos_lat = max(math.cos(math.radians(location.lat)), 1e-6)
    lng_pad = lat_pad / cos_lat
    window = BoundingBox(
        location.lat - lat_pad,
        location.lng - lng_pad,
        location.lat + lat_pad,
        location.lng + lng_pad,
    )
    candidate_idx = tree.query(window.to_polygon())

    hits: list[tuple[float, Station]] = []
    for idx in candidate_idx:
        station = stations[int(idx)]
        dist = haversine_distance(location, station.location)
        if dist <= max_distance_km:
            hits.append((dist, station))

    hits.sort(key=lambda h: h[0])
    logger.debug(
        "%d stations within %.1f km of (%.4f, %.4f)",
        len(hits), max_distance_km, location.lat, location.lng,
    )
    return [s for _, s in hits]


def routes_in_view(routes: list[Route], viewport: BoundingBox) -> list[Route]:
    """Routes whose bounding box intersects the map viewport."""
    return [r for r in routes if r.bbox.intersects(viewport)]
