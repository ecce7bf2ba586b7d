"""Route selection between two stations and leg construction.

Given two stations, the candidate routes are the ones serving both of them,
shortest first.  The planner does not search the trail network: a leg is
always exactly one route picked by the user.
"""

from __future__ import annotations

import dataclasses
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from rando_planner.index.distance import estimate_hiking_time, path_distance, route_distance
from rando_planner.models import HikingLeg, LatLng, LegType, RestLeg, Route, Station

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteSelection:
    """Ranked candidate routes between two stations."""
    from_station: Station
    to_station: Station
    candidates: tuple[Route, ...]

    @property
    def has_routes(self) -> bool:
        return bool(self.candidates)

    @property
    def default(self) -> Optional[Route]:
        return self.candidates[0] if self.candidates else None


def generate_leg_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"


def _check_station(station: Optional[Station], role: str) -> Station:
    if station is None:
        raise ValueError(f"No {role} station given")
    if not isinstance(getattr(station, "line_ids", None), (set, frozenset)):
        raise ValueError(f"{role.capitalize()} station {getattr(station, 'id', '?')} has no route list")
    return station


def find_candidate_routes(
    from_station: Station,
    to_station: Station,
    routes: Iterable[Route],
) -> list[Route]:
    """Routes serving both stations, sorted by distance (stable)."""
    from_station = _check_station(from_station, "from")
    to_station = _check_station(to_station, "to")
    shared = from_station.line_ids & to_station.line_ids
    candidates = [r for r in routes if r.id in shared]
    return sorted(candidates, key=route_distance)


def select_routes(
    from_station: Station,
    to_station: Station,
    routes: Iterable[Route],
) -> RouteSelection:
    """Rank the routes between two stations.

    An empty selection means no route connects them; that is a normal
    outcome, not an error.
    """
    candidates = find_candidate_routes(from_station, to_station, routes)
    logger.info(
        "%d candidate routes between %s and %s",
        len(candidates), from_station.label, to_station.label,
    )
    return RouteSelection(from_station, to_station, tuple(candidates))


def relevant_routes(routes: Sequence[Route], stations: Sequence[Station]) -> list[Route]:
    """Routes serving at least one of *stations*; all routes when none given."""
    if not stations:
        return list(routes)
    return [r for r in routes if any(s.is_served_by(r.id) for s in stations)]


# ---------------------------------------------------------------------------
# Leg builders
# ---------------------------------------------------------------------------

def _timed(distance: float, route: Route) -> int:
    props = route.properties
    return estimate_hiking_time(distance, props.ascent, props.descent)


def build_hiking_leg(from_station: Station, to_station: Station, route: Route) -> HikingLeg:
    """Create a hiking leg over *route* with estimated distance and time."""
    distance = route_distance(route)
    difficulty = route.properties.difficulty
    return HikingLeg(
        id=generate_leg_id("hiking"),
        from_station=from_station,
        to_station=to_station,
        route=route,
        distance=distance,
        estimated_time=_timed(distance, route),
        difficulty=difficulty.value if difficulty else None,
    )


def build_rest_leg(
    station: Station,
    notes: Optional[str] = None,
    minutes: Optional[float] = None,
) -> RestLeg:
    """Create a rest stop at *station*; *minutes* is the planned dwell."""
    return RestLeg(
        id=generate_leg_id("rest"),
        location=station,
        estimated_time=minutes,
        notes=notes,
    )


def with_edited_path(leg: HikingLeg, coords: Sequence[LatLng]) -> HikingLeg:
    """Return *leg* following a user-edited path.

    Distance and time are recomputed from the edited path.  An empty path
    drops the override and reverts to the route's own distance.
    """
    if leg.type is not LegType.HIKING:
        raise ValueError(f"Leg {leg.id} is not a hiking leg")
    if len(coords) == 0:
        distance = route_distance(leg.route)
        return dataclasses.replace(
            leg,
            edited_coordinates=None,
            distance=distance,
            estimated_time=_timed(distance, leg.route),
        )
    if len(coords) < 2:
        raise ValueError("An edited path needs at least two points")
    path = tuple(LatLng(float(c[0]), float(c[1])) for c in coords)
    distance = path_distance(path)
    return dataclasses.replace(
        leg,
        edited_coordinates=path,
        distance=distance,
        estimated_time=_timed(distance, leg.route),
    )


def leg_path(leg: HikingLeg) -> list[LatLng]:
    """Coordinates to draw for a hiking leg, edited path first."""
    if leg.edited_coordinates:
        return list(leg.edited_coordinates)
    route = leg.route
    if route.has_geometry:
        return [LatLng(lat, lng) for lng, lat, *_ in route.geometry.coords]
    if route.approximate_path:
        return list(route.approximate_path)
    return [leg.from_station.location, leg.to_station.location]
