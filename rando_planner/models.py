"""Core data structures for the Rando Planner."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Union

from shapely.geometry import LineString, box
from shapely.geometry.base import BaseGeometry


class LatLng(NamedTuple):
    """A geographic coordinate in degrees."""
    lat: float
    lng: float


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle, stored as (min_lat, min_lng, max_lat, max_lng)."""
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    def to_polygon(self) -> BaseGeometry:
        """Shapely polygon in (lng, lat) order."""
        return box(self.min_lng, self.min_lat, self.max_lng, self.max_lat)

    def intersects(self, other: BoundingBox) -> bool:
        return self.to_polygon().intersects(other.to_polygon())


class DifficultyLevel(str, enum.Enum):
    EASY = "EASY"
    MODERATE = "MODERATE"
    DIFFICULT = "DIFFICULT"
    VERY_DIFFICULT = "VERY_DIFFICULT"


class SurfaceType(str, enum.Enum):
    PAVED = "PAVED"
    GRAVEL = "GRAVEL"
    DIRT = "DIRT"
    ROCKY = "ROCKY"
    MIXED = "MIXED"


@dataclass(frozen=True)
class Station:
    """A trailhead or village usable as a trip endpoint or waypoint."""
    id: str
    label: str
    city: str
    line_ids: frozenset[str]
    location: LatLng

    def is_served_by(self, route_id: str) -> bool:
        return route_id in self.line_ids


@dataclass(frozen=True)
class RouteProperties:
    """Descriptive properties of a hiking route."""
    description: Optional[str] = None
    difficulty: Optional[DifficultyLevel] = None
    surface: Optional[SurfaceType] = None
    distance: Optional[float] = None        # km
    estimated_time: Optional[float] = None  # minutes
    ascent: Optional[float] = None          # meters
    descent: Optional[float] = None         # meters
    max_elevation: Optional[float] = None
    min_elevation: Optional[float] = None
    source: Optional[str] = None
    website: Optional[str] = None
    last_updated: Optional[str] = None      # ISO date


@dataclass(frozen=True)
class RoutePoint:
    """A point of interest along a route, optionally elevation-tagged."""
    location: LatLng
    elevation: Optional[float] = None
    name: Optional[str] = None
    kind: Optional[str] = None  # "waypoint" | "poi" | "junction"
    description: Optional[str] = None


@dataclass(frozen=True)
class Route:
    """A hiking trail segment ("rando").

    ``geometry`` is a Shapely LineString in (lng, lat) order when the
    detailed path is known; light catalog entries only carry ``bbox``.
    """
    id: str
    bbox: BoundingBox
    name: Optional[str] = None
    from_name: Optional[str] = None
    to_name: Optional[str] = None
    approximate_path: tuple[LatLng, ...] = ()
    geometry: Optional[LineString] = None
    points: tuple[RoutePoint, ...] = ()
    properties: RouteProperties = field(default_factory=RouteProperties)

    @property
    def has_geometry(self) -> bool:
        return self.geometry is not None and len(self.geometry.coords) >= 2

    @property
    def elevation_profile(self) -> list[float]:
        return [p.elevation for p in self.points if p.elevation is not None]


def display_name(route: Route) -> Optional[str]:
    """Human-readable route name, falling back to its endpoints."""
    if route.name:
        return route.name
    if route.from_name and route.to_name:
        return f"{route.from_name} - {route.to_name}"
    return route.from_name or route.to_name


class LegType(str, enum.Enum):
    HIKING = "HIKING"
    REST = "REST"


@dataclass
class HikingLeg:
    """A hiking traversal of one route between two stations."""
    id: str
    from_station: Station
    to_station: Station
    route: Route
    distance: Optional[float] = None        # km
    estimated_time: Optional[float] = None  # minutes
    difficulty: Optional[str] = None
    # User-adjusted path; supersedes route.geometry when present
    edited_coordinates: Optional[tuple[LatLng, ...]] = None
    type: LegType = field(default=LegType.HIKING, init=False)


@dataclass
class RestLeg:
    """A dwell at a single station."""
    id: str
    location: Station
    from_station: Station = None  # type: ignore[assignment]
    to_station: Station = None  # type: ignore[assignment]
    distance: Optional[float] = None
    estimated_time: Optional[float] = None
    notes: Optional[str] = None
    type: LegType = field(default=LegType.REST, init=False)

    def __post_init__(self) -> None:
        if self.from_station is None:
            self.from_station = self.location
        if self.to_station is None:
            self.to_station = self.location
        if not (self.from_station.id == self.to_station.id == self.location.id):
            raise ValueError(
                f"Rest leg {self.id} must start and end at its location "
                f"({self.location.label})"
            )


Leg = Union[HikingLeg, RestLeg]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of itinerary validation."""
    valid: bool
    error: Optional[str] = None
