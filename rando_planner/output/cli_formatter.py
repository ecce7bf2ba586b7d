"""Rich CLI output for stations, route candidates and itineraries."""

from __future__ import annotations

from typing import Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rando_planner.index.distance import route_distance
from rando_planner.models import Leg, LegType, Route, Station, display_name
from rando_planner.query.itinerary import Itinerary
from rando_planner.query.route_selector import RouteSelection

console = Console()


# ── URL builders ──────────────────────────────────────────────────────

def _google_maps_url(lat: float, lng: float) -> str:
    """Google Maps pin at a station."""
    return f"https://www.google.com/maps?q={lat:.6f},{lng:.6f}"


# ── Elevation profile ─────────────────────────────────────────────────

_PROFILE_BARS = "▁▂▃▄▅▆▇█"


def _elevation_sparkline(route: Route, width: int = 24) -> str:
    """Route point elevations as ``1200m ▁▄█▂ 2400m``.

    One bar per point; longer profiles keep *width* evenly spaced points,
    always including the last one.  Empty when fewer than two points carry
    an elevation.
    """
    heights = route.elevation_profile
    if len(heights) < 2:
        return ""
    low, high = min(heights), max(heights)
    if len(heights) > width:
        heights = [heights[round(i * (len(heights) - 1) / (width - 1))] for i in range(width)]

    top = len(_PROFILE_BARS) - 1
    bars = "".join(
        _PROFILE_BARS[round((h - low) / (high - low) * top)] if high > low else _PROFILE_BARS[0]
        for h in heights
    )
    return f"[dim]{low:.0f}m[/dim] {bars} [dim]{high:.0f}m[/dim]"


# ── Formatting helpers ────────────────────────────────────────────────

def format_duration(minutes: Optional[float]) -> str:
    """Minutes as ``2h05``; ``-`` when unknown."""
    if not minutes:
        return "-"
    total = int(round(minutes))
    hours, mins = divmod(total, 60)
    if hours == 0:
        return f"{mins} min"
    return f"{hours}h{mins:02d}"


def format_distance(km: Optional[float]) -> str:
    return f"{km:.1f} km" if km else "-"


def route_label(route: Route) -> str:
    return display_name(route) or route.id


def _format_leg(idx: int, leg: Leg) -> list[str]:
    """Lines describing a single leg."""
    if leg.type is LegType.HIKING:
        lines = [
            f"[bold green]{idx}. Hiking[/bold green]  "
            f"{leg.from_station.label} -> {leg.to_station.label}",
            f"   Route: {route_label(leg.route)}"
            f"  |  {format_distance(leg.distance)}"
            f"  |  {format_duration(leg.estimated_time)}",
        ]
        if leg.difficulty:
            lines.append(f"   Difficulty: {leg.difficulty.lower().replace('_', ' ')}")
        if leg.edited_coordinates:
            lines.append(f"   [dim]Custom path with {len(leg.edited_coordinates)} points[/dim]")
        profile = _elevation_sparkline(leg.route)
        if profile:
            lines.append(f"   {profile}")
    else:
        lines = [
            f"[bold cyan]{idx}. Rest[/bold cyan]  at {leg.location.label}"
            f"  |  {format_duration(leg.estimated_time)}",
        ]
        if leg.notes:
            lines.append(f"   [dim]{leg.notes}[/dim]")
    lines.append(f"   [dim]id: {leg.id}[/dim]")
    return lines


# ── Output functions ──────────────────────────────────────────────────

def print_stations(stations: Sequence[Station], title: str = "Stations") -> None:
    """Print stations as a table."""
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Station", style="bold")
    table.add_column("City")
    table.add_column("Routes", justify="right")
    for s in stations:
        table.add_row(s.id, s.label, s.city, str(len(s.line_ids)))
    console.print(table)


def print_candidates(selection: RouteSelection) -> None:
    """Print ranked routes between two stations, or an empty-state panel."""
    if not selection.has_routes:
        print_no_routes(selection.from_station, selection.to_station)
        return

    table = Table(
        title=f"Routes {selection.from_station.label} -> {selection.to_station.label}"
    )
    table.add_column("#", justify="right")
    table.add_column("ID", style="dim")
    table.add_column("Route", style="bold")
    table.add_column("Distance", justify="right")
    table.add_column("Geometry")
    for i, route in enumerate(selection.candidates, 1):
        marker = " [green](default)[/green]" if i == 1 else ""
        table.add_row(
            str(i),
            route.id,
            route_label(route) + marker,
            format_distance(route_distance(route)),
            "detailed" if route.has_geometry else "estimated",
        )
    console.print(table)


def print_no_routes(from_station: Station, to_station: Station) -> None:
    console.print(
        Panel(
            f"No hiking route connects {from_station.label} and {to_station.label}.\n"
            "Try adding an intermediate step station.",
            title="No Routes",
            border_style="yellow",
        )
    )


def print_itinerary(itinerary: Itinerary) -> None:
    """Print the whole itinerary with totals and validation status."""
    if itinerary.is_empty:
        console.print(
            Panel(
                "Your itinerary is empty.\n"
                "Set a start with [bold]set-start[/bold] and add legs with [bold]add-leg[/bold].",
                title="Itinerary",
                border_style="blue",
            )
        )
        return

    parts: list[str] = []
    start = itinerary.start
    end = itinerary.end
    parts.append(f"Start:  {start.label} ({start.city})" if start else "Start:  -")
    parts.append(f"End:    {end.label} ({end.city})" if end else "End:    -")
    if itinerary.steps:
        parts.append("Steps:  " + ", ".join(s.label for s in itinerary.steps))
    parts.append(
        f"Total:  {format_distance(itinerary.total_distance)}"
        f"  |  {format_duration(itinerary.total_time)}"
        f"  |  {itinerary.hiking_legs} hiking / {itinerary.rest_legs} rest"
    )
    parts.append("")

    for i, leg in enumerate(itinerary.legs, 1):
        parts.extend(_format_leg(i, leg))

    if start:
        parts.append("")
        parts.append(f"[dim]Start on map: {_google_maps_url(start.location.lat, start.location.lng)}[/dim]")

    validation = itinerary.validation
    if validation.valid:
        border = "green"
    else:
        border = "red"
        parts.append("")
        parts.append(f"[bold red]Warning: {validation.error}[/bold red]")

    console.print(Panel("\n".join(parts), title="[bold]Itinerary[/bold]", border_style=border))


def print_error(message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
