"""FastAPI web app for the Rando Planner.

A JSON front end over the itinerary handlers: the map client picks stations
and routes, and every change goes through the same handler set as the CLI.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from rando_planner.config import DEFAULT_ROUTE_SOURCE
from rando_planner.index.distance import route_distance
from rando_planner.index.lookup import routes_in_view, search_stations
from rando_planner.models import BoundingBox, LatLng, Leg, LegType, Route, Station, display_name
from rando_planner.query.itinerary import Itinerary
from rando_planner.query.route_selector import leg_path
from rando_planner.query.session import PlannerSession, prepare_session

logger = logging.getLogger(__name__)

# ── Shared planner session (loaded on first request) ────────────────
_session: PlannerSession | None = None


async def _get_session() -> PlannerSession:
    """Return the shared PlannerSession, loading catalog and saved state once."""
    global _session
    if _session is None:
        _session = await prepare_session()
        logger.info(
            "PlannerSession loaded: %d stations, %d routes",
            len(_session.catalog.stations), len(_session.catalog.routes),
        )
    return _session


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
    logger.info("Starting Rando Planner web app")
    yield


app = FastAPI(title="Rando Planner", version="0.1.0", lifespan=lifespan)


# ── Pydantic request/response models ────────────────────────────────


class StationOut(BaseModel):
    id: str
    label: str
    city: str
    line_ids: list[str]
    location: list[float]  # [lat, lng]


class RouteOut(BaseModel):
    id: str
    name: Optional[str]
    bbox: list[float]  # [min_lat, min_lng, max_lat, max_lng]
    distance_km: float
    estimated: bool


class LegOut(BaseModel):
    id: str
    type: str
    from_station: StationOut
    to_station: StationOut
    distance_km: Optional[float]
    estimated_time_min: Optional[float]
    route: Optional[RouteOut] = None
    difficulty: Optional[str] = None
    path: list[list[float]] = []
    edited: bool = False
    notes: Optional[str] = None


class ValidationOut(BaseModel):
    valid: bool
    error: Optional[str] = None


class ItineraryOut(BaseModel):
    start: Optional[StationOut]
    end: Optional[StationOut]
    steps: list[StationOut]
    legs: list[LegOut]
    total_distance_km: Optional[float]
    total_time_min: Optional[float]
    validation: ValidationOut


class CandidatesOut(BaseModel):
    from_station: StationOut
    to_station: StationOut
    routes: list[RouteOut]
    default_route_id: Optional[str]


class CatalogStatusOut(BaseModel):
    source: Optional[str]
    stations: int
    routes: int
    loading: bool
    error: Optional[str]


class StationRef(BaseModel):
    station_id: Optional[str] = None


class HikingLegRequest(BaseModel):
    from_id: str
    to_id: str
    route_id: Optional[str] = None


class RestLegRequest(BaseModel):
    station_id: str
    notes: Optional[str] = None
    minutes: Optional[float] = None


class PathRequest(BaseModel):
    coordinates: list[list[float]]  # [[lat, lng], ...]


# ── Serialization helpers ────────────────────────────────────────────


def _serialize_station(s: Station) -> StationOut:
    return StationOut(
        id=s.id,
        label=s.label,
        city=s.city,
        line_ids=sorted(s.line_ids),
        location=[s.location.lat, s.location.lng],
    )


def _serialize_route(r: Route) -> RouteOut:
    b = r.bbox
    return RouteOut(
        id=r.id,
        name=display_name(r),
        bbox=[b.min_lat, b.min_lng, b.max_lat, b.max_lng],
        distance_km=round(route_distance(r), 2),
        estimated=not r.has_geometry,
    )


def _serialize_leg(leg: Leg) -> LegOut:
    out = LegOut(
        id=leg.id,
        type=leg.type.value,
        from_station=_serialize_station(leg.from_station),
        to_station=_serialize_station(leg.to_station),
        distance_km=round(leg.distance, 2) if leg.distance is not None else None,
        estimated_time_min=leg.estimated_time,
    )
    if leg.type is LegType.HIKING:
        out.route = _serialize_route(leg.route)
        out.difficulty = leg.difficulty
        out.path = [[p.lat, p.lng] for p in leg_path(leg)]
        out.edited = leg.edited_coordinates is not None
    else:
        out.notes = leg.notes
    return out


def _serialize_itinerary(it: Itinerary) -> ItineraryOut:
    return ItineraryOut(
        start=_serialize_station(it.start) if it.start else None,
        end=_serialize_station(it.end) if it.end else None,
        steps=[_serialize_station(s) for s in it.steps],
        legs=[_serialize_leg(leg) for leg in it.legs],
        total_distance_km=round(it.total_distance, 2) if it.total_distance is not None else None,
        total_time_min=it.total_time,
        validation=ValidationOut(valid=it.validation.valid, error=it.validation.error),
    )


def _station_or_404(session: PlannerSession, station_id: str) -> Station:
    station = session.catalog.get_station(station_id)
    if station is None:
        raise HTTPException(404, f"Unknown station '{station_id}'")
    return station


# ── Catalog endpoints ────────────────────────────────────────────────


@app.get("/api/stations")
async def get_stations(q: str = ""):
    """Return stations, optionally filtered by name or city."""
    session = await _get_session()
    found = search_stations(list(session.catalog.stations), q)
    return {"stations": [_serialize_station(s) for s in found]}


@app.get("/api/routes")
async def get_routes_in_view(bbox: str):
    """Routes whose bounding box intersects *bbox* (min_lat,min_lng,max_lat,max_lng)."""
    try:
        min_lat, min_lng, max_lat, max_lng = (float(v) for v in bbox.split(","))
    except ValueError:
        raise HTTPException(400, "bbox must be min_lat,min_lng,max_lat,max_lng")
    session = await _get_session()
    view = BoundingBox(min_lat, min_lng, max_lat, max_lng)
    return {"routes": [_serialize_route(r) for r in routes_in_view(list(session.catalog.routes), view)]}


@app.get("/api/routes/relevant")
async def get_relevant_routes():
    """Routes serving the itinerary's start, end or steps."""
    session = await _get_session()
    return {"routes": [_serialize_route(r) for r in session.relevant_routes()]}


@app.get("/api/routes/candidates", response_model=CandidatesOut)
async def get_candidates(from_id: str, to_id: str):
    """Ranked routes between two stations; an empty list when none connects them."""
    session = await _get_session()
    from_station = _station_or_404(session, from_id)
    to_station = _station_or_404(session, to_id)
    selection = session.candidates(from_station.id, to_station.id)
    return CandidatesOut(
        from_station=_serialize_station(from_station),
        to_station=_serialize_station(to_station),
        routes=[_serialize_route(r) for r in selection.candidates],
        default_route_id=selection.default.id if selection.default else None,
    )


@app.get("/api/catalog", response_model=CatalogStatusOut)
async def catalog_status():
    session = await _get_session()
    loader = session.loader
    return CatalogStatusOut(
        source=loader.source if loader else None,
        stations=len(session.catalog.stations),
        routes=len(session.catalog.routes),
        loading=loader.loading if loader else False,
        error=(loader.error or loader.stations_error) if loader else None,
    )


@app.post("/api/catalog/reload", response_model=CatalogStatusOut)
async def reload_catalog(source: str = DEFAULT_ROUTE_SOURCE):
    """Drop the cached route set and fetch it again."""
    session = await _get_session()
    if session.loader is None:
        raise HTTPException(409, "Catalog was not loaded through a loader")
    await session.loader.reload(source)
    session.catalog = session.loader.catalog
    return await catalog_status()


# ── Itinerary endpoints ──────────────────────────────────────────────


@app.get("/api/itinerary", response_model=ItineraryOut)
async def get_itinerary():
    session = await _get_session()
    return _serialize_itinerary(session.itinerary)


@app.put("/api/itinerary/start", response_model=ItineraryOut)
async def put_start(req: StationRef):
    session = await _get_session()
    station = _station_or_404(session, req.station_id) if req.station_id else None
    session.itinerary.set_start(station)
    return _serialize_itinerary(session.itinerary)


@app.put("/api/itinerary/end", response_model=ItineraryOut)
async def put_end(req: StationRef):
    session = await _get_session()
    station = _station_or_404(session, req.station_id) if req.station_id else None
    session.itinerary.set_end(station)
    return _serialize_itinerary(session.itinerary)


@app.post("/api/itinerary/steps", response_model=ItineraryOut)
async def post_step(req: StationRef):
    session = await _get_session()
    if not req.station_id:
        raise HTTPException(400, "station_id is required")
    session.itinerary.add_step(_station_or_404(session, req.station_id))
    return _serialize_itinerary(session.itinerary)


@app.delete("/api/itinerary/steps/{station_id}", response_model=ItineraryOut)
async def delete_step(station_id: str):
    session = await _get_session()
    session.itinerary.remove_step(_station_or_404(session, station_id))
    return _serialize_itinerary(session.itinerary)


@app.post("/api/itinerary/legs", response_model=ItineraryOut)
async def post_hiking_leg(req: HikingLegRequest):
    session = await _get_session()
    _station_or_404(session, req.from_id)
    _station_or_404(session, req.to_id)
    try:
        session.add_hiking_leg(req.from_id, req.to_id, req.route_id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _serialize_itinerary(session.itinerary)


@app.post("/api/itinerary/rests", response_model=ItineraryOut)
async def post_rest_leg(req: RestLegRequest):
    session = await _get_session()
    _station_or_404(session, req.station_id)
    session.add_rest(req.station_id, notes=req.notes, minutes=req.minutes)
    return _serialize_itinerary(session.itinerary)


@app.delete("/api/itinerary/legs/{leg_id}", response_model=ItineraryOut)
async def delete_leg(leg_id: str):
    session = await _get_session()
    session.itinerary.remove_leg(leg_id)
    return _serialize_itinerary(session.itinerary)


@app.put("/api/itinerary/legs/{leg_id}/path", response_model=ItineraryOut)
async def put_leg_path(leg_id: str, req: PathRequest):
    """Replace a hiking leg's path; an empty list resets it to the route."""
    session = await _get_session()
    if session.itinerary.get_leg(leg_id) is None:
        raise HTTPException(404, f"Unknown leg '{leg_id}'")
    try:
        coords = [LatLng(float(c[0]), float(c[1])) for c in req.coordinates]
    except (IndexError, TypeError, ValueError):
        raise HTTPException(400, "coordinates must be [lat, lng] pairs")
    try:
        session.edit_leg_path(leg_id, coords)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _serialize_itinerary(session.itinerary)


@app.delete("/api/itinerary", response_model=ItineraryOut)
async def delete_itinerary():
    session = await _get_session()
    session.itinerary.clear()
    return _serialize_itinerary(session.itinerary)
