"""Station and route reference data.

Parses raw catalog records into immutable ``Station`` / ``Route`` objects,
loads them from local JSON files or over HTTP, and keeps a per-source route
cache.  Raw records use GeoJSON axis order for routes:

- station: ``{"id", "label", "city", "lineIds", "location": [lat, lng]}``
- route:   ``{"id", "name", "from", "to", "bbox": [minLng, minLat, maxLng, maxLat],
  "approximatePath": [[lng, lat], ...], "properties": {...}, "geometry": {...}}``

Loading is asynchronous: blocking reads run in ``asyncio.to_thread`` so the
caller's event loop stays responsive.  ``CatalogLoader`` turns provider
failures into an empty catalog with an ``error`` flag.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

import requests
from shapely.geometry import LineString

from rando_planner.config import (
    BUILTIN_ROUTE_SOURCES,
    DEFAULT_ROUTE_SOURCE,
    HTTP_TIMEOUT_S,
    PREPARED_DIR,
    ROUTES_FILE_TEMPLATE,
    STATIONS_FILE,
)
from rando_planner.models import (
    BoundingBox,
    DifficultyLevel,
    LatLng,
    Route,
    RoutePoint,
    RouteProperties,
    Station,
    SurfaceType,
)

logger = logging.getLogger(__name__)


class CatalogDataError(ValueError):
    """A catalog record is missing required fields or has the wrong shape."""


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_station(raw: dict) -> Station:
    """Build a Station from a raw record, raising CatalogDataError if malformed."""
    if not isinstance(raw, dict):
        raise CatalogDataError(f"Invalid station data format: {raw!r}")
    location = raw.get("location")
    if (
        not raw.get("id")
        or not raw.get("label")
        or not raw.get("city")
        or not isinstance(location, (list, tuple))
        or len(location) != 2
        or not all(_is_number(v) for v in location)
    ):
        raise CatalogDataError(f"Invalid station data format: {json.dumps(raw, default=str)}")

    line_ids = raw.get("lineIds", [])
    if not isinstance(line_ids, (list, tuple)):
        raise CatalogDataError(f"Station {raw['id']}: lineIds must be a list")

    return Station(
        id=str(raw["id"]),
        label=raw["label"],
        city=raw["city"],
        line_ids=frozenset(str(i) for i in line_ids),
        location=LatLng(float(location[0]), float(location[1])),
    )


def _parse_bbox(route_id: str, bbox: Any) -> BoundingBox:
    if (
        not isinstance(bbox, (list, tuple))
        or len(bbox) != 4
        or not all(_is_number(v) for v in bbox)
    ):
        raise CatalogDataError(f"Route {route_id}: bbox must be [minLng, minLat, maxLng, maxLat]")
    min_lng, min_lat, max_lng, max_lat = (float(v) for v in bbox)
    return BoundingBox(min_lat=min_lat, min_lng=min_lng, max_lat=max_lat, max_lng=max_lng)


def _parse_enum(route_id: str, enum_cls, value: Any):
    if value is None:
        return None
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise CatalogDataError(f"Route {route_id}: unknown {enum_cls.__name__} {value!r}")


def _parse_number(route_id: str, raw: dict, key: str) -> Optional[float]:
    value = raw.get(key)
    if value is None:
        return None
    if not _is_number(value):
        raise CatalogDataError(f"Route {route_id}: {key} must be a number, got {value!r}")
    return value


def _parse_properties(route_id: str, raw: Optional[dict]) -> RouteProperties:
    if not raw:
        return RouteProperties()
    if not isinstance(raw, dict):
        raise CatalogDataError(f"Route {route_id}: properties must be an object")
    return RouteProperties(
        description=raw.get("description"),
        difficulty=_parse_enum(route_id, DifficultyLevel, raw.get("difficulty")),
        surface=_parse_enum(route_id, SurfaceType, raw.get("surface")),
        distance=_parse_number(route_id, raw, "distance"),
        estimated_time=_parse_number(route_id, raw, "estimatedTime"),
        ascent=_parse_number(route_id, raw, "ascent"),
        descent=_parse_number(route_id, raw, "descent"),
        max_elevation=_parse_number(route_id, raw, "maxElevation"),
        min_elevation=_parse_number(route_id, raw, "minElevation"),
        source=raw.get("source"),
        website=raw.get("website"),
        last_updated=raw.get("lastUpdated"),
    )


def _parse_geometry(route_id: str, raw: Optional[dict]) -> tuple[Optional[LineString], tuple[RoutePoint, ...]]:
    if not raw:
        return None, ()
    coords = raw.get("coordinates") or []
    try:
        lnglat = [(float(c[0]), float(c[1])) for c in coords]
    except (TypeError, ValueError, IndexError):
        raise CatalogDataError(f"Route {route_id}: geometry coordinates must be [lng, lat] pairs")
    geometry = LineString(lnglat) if len(lnglat) >= 2 else None

    points = []
    for p in raw.get("points") or []:
        try:
            lng, lat = p["coordinates"][:2]
            location = LatLng(float(lat), float(lng))
        except (KeyError, TypeError, ValueError):
            raise CatalogDataError(f"Route {route_id}: route points need [lng, lat] coordinates")
        elevation = p.get("elevation")
        if elevation is not None and not _is_number(elevation):
            raise CatalogDataError(f"Route {route_id}: point elevation must be a number")
        points.append(
            RoutePoint(
                location=location,
                elevation=elevation,
                name=p.get("name"),
                kind=p.get("type"),
                description=p.get("description"),
            )
        )
    return geometry, tuple(points)


def parse_route(raw: dict) -> Route:
    """Build a Route from a raw record, raising CatalogDataError if malformed."""
    if not isinstance(raw, dict) or raw.get("id") in (None, ""):
        raise CatalogDataError(f"Invalid route data format: {raw!r}")
    route_id = str(raw["id"])
    bbox = _parse_bbox(route_id, raw.get("bbox"))

    try:
        approximate_path = tuple(
            LatLng(float(lat), float(lng)) for lng, lat in raw.get("approximatePath") or []
        )
    except (TypeError, ValueError):
        raise CatalogDataError(f"Route {route_id}: approximatePath must be [lng, lat] pairs")

    geometry, points = _parse_geometry(route_id, raw.get("geometry"))

    return Route(
        id=route_id,
        bbox=bbox,
        name=raw.get("name") or None,
        from_name=raw.get("from") or None,
        to_name=raw.get("to") or None,
        approximate_path=approximate_path,
        geometry=geometry,
        points=points,
        properties=_parse_properties(route_id, raw.get("properties")),
    )


def _parse_many(records: Any, parser, kind: str, skip_invalid: bool) -> list:
    if not isinstance(records, list):
        raise CatalogDataError(f"{kind.capitalize()} data is not an array")
    parsed = []
    skipped = 0
    for raw in records:
        try:
            parsed.append(parser(raw))
        except CatalogDataError as exc:
            if not skip_invalid:
                raise
            skipped += 1
            logger.warning("Skipping %s record: %s", kind, exc)
    if skipped:
        logger.info("Skipped %d invalid %s records", skipped, kind)
    return parsed


def parse_stations(records: Any, skip_invalid: bool = False) -> list[Station]:
    """Parse a list of station records.

    With ``skip_invalid`` malformed records are logged and dropped;
    otherwise the first one aborts the whole load.
    """
    return _parse_many(records, parse_station, "station", skip_invalid)


def parse_routes(records: Any, skip_invalid: bool = False) -> list[Route]:
    return _parse_many(records, parse_route, "route", skip_invalid)


def routes_file_name(source: str) -> str:
    return ROUTES_FILE_TEMPLATE.format(source=source)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

class CatalogProvider(Protocol):
    async def load_stations(self) -> list[Station]: ...

    async def load_routes(self, source_tag: str) -> list[Route]: ...


class FileCatalogProvider:
    """Read prepared catalog JSON files from a local directory.

    Unknown chunk sources fall back to the ``small`` route set when no
    chunk file exists.
    """

    def __init__(self, data_dir: Path | None = None, skip_invalid: bool = False) -> None:
        self._data_dir = Path(data_dir) if data_dir else PREPARED_DIR
        self._skip_invalid = skip_invalid

    @staticmethod
    def _read_json(path: Path) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    async def load_stations(self) -> list[Station]:
        path = self._data_dir / STATIONS_FILE
        logger.info("Loading stations from %s", path)
        data = await asyncio.to_thread(self._read_json, path)
        return parse_stations(data, skip_invalid=self._skip_invalid)

    async def load_routes(self, source_tag: str) -> list[Route]:
        path = self._data_dir / routes_file_name(source_tag)
        if source_tag not in BUILTIN_ROUTE_SOURCES and not path.exists():
            logger.info("No chunk file for %r; using the %s route set", source_tag, DEFAULT_ROUTE_SOURCE)
            path = self._data_dir / routes_file_name(DEFAULT_ROUTE_SOURCE)
        logger.info("Loading routes from %s", path)
        data = await asyncio.to_thread(self._read_json, path)
        return parse_routes(data, skip_invalid=self._skip_invalid)


class HttpCatalogProvider:
    """Fetch prepared catalog JSON files from a static HTTP host.

    Like the file provider, an unknown chunk source answered with a 404
    falls back to the ``small`` route set.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = HTTP_TIMEOUT_S,
        skip_invalid: bool = False,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._skip_invalid = skip_invalid
        self._session = session or requests.Session()

    def _get_json(self, name: str) -> Any:
        url = f"{self._base_url}/{name}"
        logger.info("Fetching %s", url)
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.Timeout:
            raise RuntimeError(f"Request for {url} timed out after {self._timeout} seconds")
        response.raise_for_status()
        return response.json()

    async def load_stations(self) -> list[Station]:
        data = await asyncio.to_thread(self._get_json, STATIONS_FILE)
        return parse_stations(data, skip_invalid=self._skip_invalid)

    def _get_routes_json(self, source_tag: str) -> Any:
        try:
            return self._get_json(routes_file_name(source_tag))
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            if source_tag in BUILTIN_ROUTE_SOURCES or status != 404:
                raise
        logger.info("No chunk file for %r; using the %s route set", source_tag, DEFAULT_ROUTE_SOURCE)
        return self._get_json(routes_file_name(DEFAULT_ROUTE_SOURCE))

    async def load_routes(self, source_tag: str) -> list[Route]:
        data = await asyncio.to_thread(self._get_routes_json, source_tag)
        return parse_routes(data, skip_invalid=self._skip_invalid)


# ---------------------------------------------------------------------------
# Cache and loader
# ---------------------------------------------------------------------------

class RouteCache:
    """Loaded route sets keyed by source tag."""

    def __init__(self) -> None:
        self._entries: dict[str, list[Route]] = {}

    def get(self, key: str) -> Optional[list[Route]]:
        return self._entries.get(key)

    def put(self, key: str, routes: list[Route]) -> None:
        self._entries[key] = routes

    def clear(self, key: str | None = None) -> None:
        """Drop one source, or everything when *key* is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


class Catalog:
    """Read-only lookup tables over stations and routes."""

    def __init__(self, stations: list[Station], routes: list[Route]) -> None:
        self.stations: tuple[Station, ...] = tuple(stations)
        self.routes: tuple[Route, ...] = tuple(routes)
        self._stations_by_id = {s.id: s for s in self.stations}
        self._routes_by_id = {r.id: r for r in self.routes}

    def get_station(self, station_id: str) -> Optional[Station]:
        return self._stations_by_id.get(station_id)

    def get_route(self, route_id: str) -> Optional[Route]:
        return self._routes_by_id.get(route_id)

    def station(self, station_id: str) -> Station:
        try:
            return self._stations_by_id[station_id]
        except KeyError:
            raise KeyError(f"Unknown station '{station_id}'")

    def route(self, route_id: str) -> Route:
        try:
            return self._routes_by_id[route_id]
        except KeyError:
            raise KeyError(f"Unknown route '{route_id}'")


class CatalogLoader:
    """Loads stations and routes from a provider, owning the route cache.

    Failures leave the corresponding list empty and set an error message.
    Only the most recent route request may update ``routes``: a slower,
    superseded request finishing late is discarded.
    """

    def __init__(self, provider: CatalogProvider, cache: RouteCache | None = None) -> None:
        self.provider = provider
        self.cache = cache or RouteCache()
        self.stations: list[Station] = []
        self.routes: list[Route] = []
        self.source: Optional[str] = None
        self.loading = False
        self.stations_error: Optional[str] = None
        self.error: Optional[str] = None
        self._request_seq = 0

    @property
    def catalog(self) -> Catalog:
        return Catalog(self.stations, self.routes)

    async def load_stations(self) -> list[Station]:
        try:
            stations = await self.provider.load_stations()
        except Exception as exc:
            logger.warning("Station catalog load failed: %s", exc)
            self.stations = []
            self.stations_error = str(exc)
            return []
        self.stations = stations
        self.stations_error = None
        logger.info("Loaded %d stations", len(stations))
        return stations

    async def load_routes(self, source: str = DEFAULT_ROUTE_SOURCE) -> list[Route]:
        self._request_seq += 1
        request_id = self._request_seq
        self.loading = True

        routes = self.cache.get(source)
        if routes is None:
            try:
                routes = await self.provider.load_routes(source)
            except Exception as exc:
                if request_id != self._request_seq:
                    logger.info("Ignoring failure of superseded route request for %s", source)
                    return self.routes
                logger.warning("Route catalog load from %s failed: %s", source, exc)
                self.routes = []
                self.source = source
                self.error = f"Failed to load route data from {source}: {exc}"
                self.loading = False
                return []
            self.cache.put(source, routes)

        if request_id != self._request_seq:
            logger.info("Discarding stale routes for %s", source)
            return self.routes

        self.routes = routes
        self.source = source
        self.error = None
        self.loading = False
        logger.info("Loaded %d routes from %s", len(routes), source)
        return routes

    async def reload(self, source: str | None = None) -> list[Route]:
        """Discard the cached set for *source* and fetch it again."""
        source = source or self.source or DEFAULT_ROUTE_SOURCE
        self.cache.clear(source)
        return await self.load_routes(source)

    async def load_all(self, source: str = DEFAULT_ROUTE_SOURCE) -> Catalog:
        await asyncio.gather(self.load_stations(), self.load_routes(source))
        return self.catalog
