"""Planner session: reference catalog + the user's itinerary, saved on change.

Given a loaded catalog and a local store, a session restores the saved
itinerary (or starts empty) and persists it after every mutation.  Its
helpers resolve ids against the catalog for the CLI and web front ends; all
itinerary changes still go through the itinerary handlers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from rando_planner.config import DEFAULT_ROUTE_SOURCE
from rando_planner.ingest.catalog import Catalog, CatalogLoader, CatalogProvider, FileCatalogProvider
from rando_planner.ingest.geometry import GeometryProvider, attach_geometry
from rando_planner.models import HikingLeg, LatLng, LegType, RestLeg, Route, Station
from rando_planner.persist.local_store import ItineraryStore, LocalStore
from rando_planner.query.itinerary import Itinerary
from rando_planner.query.route_selector import (
    RouteSelection,
    build_hiking_leg,
    build_rest_leg,
    relevant_routes,
    select_routes,
    with_edited_path,
)

logger = logging.getLogger(__name__)


@dataclass
class PlannerSession:
    """Catalog lookups plus the persisted itinerary."""
    catalog: Catalog
    itinerary: Itinerary
    store: ItineraryStore
    loader: Optional[CatalogLoader] = None

    def station(self, station_id: str) -> Station:
        station = self.catalog.get_station(station_id)
        if station is None:
            raise ValueError(f"Unknown station '{station_id}'")
        return station

    def route(self, route_id: str) -> Route:
        route = self.catalog.get_route(route_id)
        if route is None:
            raise ValueError(f"Unknown route '{route_id}'")
        return route

    def candidates(self, from_id: str, to_id: str) -> RouteSelection:
        return select_routes(self.station(from_id), self.station(to_id), self.catalog.routes)

    def relevant_routes(self) -> list[Route]:
        """Routes serving the start, end or any step station."""
        it = self.itinerary
        stations: list[Station] = [s for s in (it.start, it.end) if s is not None]
        stations.extend(it.steps)
        return relevant_routes(self.catalog.routes, stations)

    def add_hiking_leg(self, from_id: str, to_id: str, route_id: str | None = None) -> HikingLeg:
        """Append a hiking leg, defaulting to the shortest connecting route."""
        selection = self.candidates(from_id, to_id)
        if route_id is None:
            route = selection.default
            if route is None:
                raise ValueError(
                    f"No route connects {selection.from_station.label} "
                    f"and {selection.to_station.label}"
                )
        else:
            route = next((r for r in selection.candidates if r.id == route_id), None)
            if route is None:
                raise ValueError(
                    f"Route '{route_id}' does not serve both "
                    f"{selection.from_station.label} and {selection.to_station.label}"
                )
        leg = build_hiking_leg(selection.from_station, selection.to_station, route)
        self.itinerary.add_leg(leg)
        return leg

    def add_rest(self, station_id: str, notes: str | None = None, minutes: float | None = None) -> RestLeg:
        leg = build_rest_leg(self.station(station_id), notes=notes, minutes=minutes)
        self.itinerary.add_leg(leg)
        return leg

    def edit_leg_path(self, leg_id: str, coords: Sequence[LatLng]) -> HikingLeg:
        leg = self.itinerary.get_leg(leg_id)
        if leg is None:
            raise ValueError(f"Unknown leg '{leg_id}'")
        if leg.type is not LegType.HIKING:
            raise ValueError(f"Leg '{leg_id}' is a rest stop and has no path")
        updated = with_edited_path(leg, coords)
        self.itinerary.update_leg(updated)
        return updated


def open_session(
    catalog: Catalog,
    store: ItineraryStore,
    loader: CatalogLoader | None = None,
) -> PlannerSession:
    """Restore the saved itinerary (or start empty) and enable autosave."""
    itinerary = store.load()
    if itinerary is None:
        logger.info("No saved itinerary; starting empty")
        itinerary = Itinerary()
    itinerary.on_change = store.save
    return PlannerSession(catalog=catalog, itinerary=itinerary, store=store, loader=loader)


async def prepare_session(
    data_dir: Path | None = None,
    state_path: Path | None = None,
    source: str = DEFAULT_ROUTE_SOURCE,
    geometry: GeometryProvider | None = None,
    provider: CatalogProvider | None = None,
) -> PlannerSession:
    """Load the catalog and open the session stored at *state_path*.

    The catalog comes from *provider* when given, else from the prepared
    JSON files in *data_dir*.

    Catalog failures don't abort: the session starts with whatever loaded
    and the loader keeps the error messages.
    """
    loader = CatalogLoader(provider or FileCatalogProvider(data_dir))
    await loader.load_all(source)

    if geometry is not None and loader.routes:
        try:
            geometries = await geometry.load_geometry(r.id for r in loader.routes)
        except Exception as exc:
            logger.warning("Route geometry unavailable: %s", exc)
        else:
            loader.routes = attach_geometry(loader.routes, geometries)

    store = ItineraryStore(LocalStore(state_path))
    return open_session(loader.catalog, store, loader)
