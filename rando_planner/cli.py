"""CLI entry point for the Rando Planner."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from rando_planner.config import DEFAULT_ROUTE_SOURCE, NEARBY_STATION_KM, PREPARED_DIR, STATE_PATH
from rando_planner.index.lookup import search_stations, stations_near
from rando_planner.ingest.catalog import HttpCatalogProvider
from rando_planner.ingest.geometry import GeoJsonGeometryProvider
from rando_planner.models import LatLng
from rando_planner.output.cli_formatter import (
    print_candidates,
    print_error,
    print_itinerary,
    print_stations,
)
from rando_planner.query.session import PlannerSession, prepare_session

app = typer.Typer(help="Rando Planner: build multi-day hiking itineraries between stations.")
console = Console()


def _parse_point(value: str) -> LatLng:
    """Parse a ``lat,lng`` string."""
    try:
        lat_s, lng_s = value.split(",")
        return LatLng(float(lat_s), float(lng_s))
    except ValueError:
        raise typer.BadParameter(f"Invalid point: '{value}'. Use LAT,LNG.")


def _session(ctx: typer.Context) -> PlannerSession:
    opts = ctx.obj
    provider = HttpCatalogProvider(opts["base_url"]) if opts["base_url"] else None
    geometry = GeoJsonGeometryProvider(opts["geometry"]) if opts["geometry"] else None
    with console.status("Loading catalog...", spinner="dots"):
        session = asyncio.run(
            prepare_session(
                data_dir=opts["data_dir"],
                state_path=opts["state"],
                source=opts["source"],
                geometry=geometry,
                provider=provider,
            )
        )
    loader = session.loader
    if loader is not None and loader.stations_error:
        print_error(f"Could not load stations: {loader.stations_error}")
    if loader is not None and loader.error:
        print_error(loader.error)
    return session


def _run(ctx: typer.Context, action) -> PlannerSession:
    """Open the session and apply *action*, turning ValueErrors into exit code 1."""
    session = _session(ctx)
    try:
        action(session)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)
    return session


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Path = typer.Option(PREPARED_DIR, "--data-dir", help="Directory with prepared catalog JSON"),
    state: Path = typer.Option(STATE_PATH, "--state", help="Local state file holding the itinerary"),
    source: str = typer.Option(DEFAULT_ROUTE_SOURCE, "--source", help="Route set to load (small, full, or a chunk)"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Fetch the catalog over HTTP instead of --data-dir"),
    geometry: Optional[Path] = typer.Option(None, "--geometry", help="GeoJSON file with detailed route geometry"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Plan a hiking trip station by station."""
    # ── Logging setup ─────────────────────────────────────────────────
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.obj = {
        "data_dir": data_dir,
        "state": state,
        "source": source,
        "base_url": base_url,
        "geometry": geometry,
    }


@app.command()
def stations(
    ctx: typer.Context,
    search: str = typer.Option("", "--search", "-s", help="Filter by station or city name"),
    near: Optional[str] = typer.Option(None, "--near", help="Only stations near LAT,LNG"),
    radius: float = typer.Option(NEARBY_STATION_KM, "--radius", help="Radius for --near in km"),
) -> None:
    """List stations."""
    session = _session(ctx)
    found = search_stations(list(session.catalog.stations), search)
    if near:
        found = stations_near(found, _parse_point(near), radius)
    print_stations(found)


@app.command()
def routes(ctx: typer.Context, from_id: str, to_id: str) -> None:
    """Show the routes connecting two stations, shortest first."""
    session = _session(ctx)
    try:
        selection = session.candidates(from_id, to_id)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_candidates(selection)


@app.command("set-start")
def set_start(ctx: typer.Context, station_id: Optional[str] = typer.Argument(None)) -> None:
    """Set (or clear, without argument) the start station."""
    session = _run(
        ctx,
        lambda s: s.itinerary.set_start(s.station(station_id) if station_id else None),
    )
    print_itinerary(session.itinerary)


@app.command("set-end")
def set_end(ctx: typer.Context, station_id: Optional[str] = typer.Argument(None)) -> None:
    """Set (or clear, without argument) the end station."""
    session = _run(
        ctx,
        lambda s: s.itinerary.set_end(s.station(station_id) if station_id else None),
    )
    print_itinerary(session.itinerary)


@app.command("add-step")
def add_step(ctx: typer.Context, station_id: str) -> None:
    """Add a step station."""
    session = _run(ctx, lambda s: s.itinerary.add_step(s.station(station_id)))
    print_itinerary(session.itinerary)


@app.command("remove-step")
def remove_step(ctx: typer.Context, station_id: str) -> None:
    """Remove a step station."""
    session = _run(ctx, lambda s: s.itinerary.remove_step(s.station(station_id)))
    print_itinerary(session.itinerary)


@app.command("add-leg")
def add_leg(
    ctx: typer.Context,
    from_id: str,
    to_id: str,
    route_id: Optional[str] = typer.Option(None, "--route", "-r", help="Route to hike (default: shortest)"),
) -> None:
    """Append a hiking leg between two stations."""
    session = _run(ctx, lambda s: s.add_hiking_leg(from_id, to_id, route_id))
    print_itinerary(session.itinerary)


@app.command("add-rest")
def add_rest(
    ctx: typer.Context,
    station_id: str,
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-text notes"),
    minutes: Optional[float] = typer.Option(None, "--minutes", help="Planned rest in minutes"),
) -> None:
    """Append a rest stop at a station."""
    session = _run(ctx, lambda s: s.add_rest(station_id, notes=notes, minutes=minutes))
    print_itinerary(session.itinerary)


@app.command("remove-leg")
def remove_leg(ctx: typer.Context, leg_id: str) -> None:
    """Remove a leg by id."""
    session = _run(ctx, lambda s: s.itinerary.remove_leg(leg_id))
    print_itinerary(session.itinerary)


@app.command("edit-path")
def edit_path(
    ctx: typer.Context,
    leg_id: str,
    point: list[str] = typer.Option([], "--point", "-p", help="Path point LAT,LNG (repeatable, none to reset)"),
) -> None:
    """Replace a hiking leg's path with custom points."""
    coords = [_parse_point(p) for p in point]
    session = _run(ctx, lambda s: s.edit_leg_path(leg_id, coords))
    print_itinerary(session.itinerary)


@app.command()
def show(ctx: typer.Context) -> None:
    """Print the current itinerary."""
    print_itinerary(_session(ctx).itinerary)


@app.command()
def validate(ctx: typer.Context) -> None:
    """Check continuity; exits with status 1 when the itinerary is inconsistent."""
    result = _session(ctx).itinerary.validation
    if result.valid:
        console.print("[green]Itinerary is valid.[/green]")
        return
    console.print(f"[bold red]Invalid:[/bold red] {result.error}")
    raise typer.Exit(1)


@app.command()
def clear(ctx: typer.Context) -> None:
    """Start over with an empty itinerary."""
    session = _session(ctx)
    session.itinerary.clear()
    print_itinerary(session.itinerary)


if __name__ == "__main__":
    app()
