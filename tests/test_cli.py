"""Tests for the typer CLI, run against prepared catalog files in tmp_path."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from rando_planner.cli import app
from rando_planner.models import BoundingBox, LatLng, Route, RoutePoint
from rando_planner.output.cli_formatter import _elevation_sparkline


runner = CliRunner()

STATIONS = [
    {"id": "a", "label": "Alpha", "city": "Chamonix", "lineIds": ["r1", "r2"], "location": [45.0, 6.0]},
    {"id": "b", "label": "Bravo", "city": "Chamonix", "lineIds": ["r2", "r3"], "location": [45.1, 6.0]},
    {"id": "c", "label": "Charlie", "city": "Argentiere", "lineIds": ["r3"], "location": [45.2, 6.0]},
]
ROUTES = [
    {"id": rid, "name": f"Route {rid}", "bbox": [6.0, 45.0, 6.05, 45.1]}
    for rid in ("r1", "r2", "r3")
]


@pytest.fixture
def cli(tmp_path):
    """Invoke the CLI with catalog and state under tmp_path."""
    data_dir = tmp_path / "prepared"
    data_dir.mkdir()
    (data_dir / "stations.json").write_text(json.dumps(STATIONS))
    (data_dir / "routes_small.json").write_text(json.dumps(ROUTES))
    state = tmp_path / "state.json"

    def invoke(*args):
        return runner.invoke(app, ["--data-dir", str(data_dir), "--state", str(state), *args])

    invoke.state = state
    return invoke


class TestCli:
    def test_stations_search(self, cli):
        result = cli("stations", "--search", "argent")
        assert result.exit_code == 0
        assert "Charlie" in result.output
        assert "Alpha" not in result.output

    def test_routes(self, cli):
        result = cli("routes", "a", "b")
        assert result.exit_code == 0
        assert "Route r2" in result.output

    def test_no_routes(self, cli):
        result = cli("routes", "a", "c")
        assert result.exit_code == 0
        assert "No hiking route connects" in result.output

    def test_build_and_validate(self, cli):
        assert cli("set-start", "a").exit_code == 0
        assert cli("add-leg", "a", "b").exit_code == 0
        assert cli("add-rest", "b", "--notes", "Refuge", "--minutes", "600").exit_code == 0
        assert cli("add-leg", "b", "c", "--route", "r3").exit_code == 0
        assert cli("validate").exit_code == 0

        saved = json.loads(cli.state.read_text())
        legs = saved["rando-planner-itinerary"]["itinerary"]["legs"]
        assert [leg["type"] for leg in legs] == ["HIKING", "REST", "HIKING"]

    def test_invalid_itinerary_exit_code(self, cli):
        cli("add-leg", "a", "b")
        cli("add-rest", "c")
        result = cli("validate")
        assert result.exit_code == 1
        assert "Discontinuity detected" in result.output

    def test_unknown_station(self, cli):
        result = cli("set-start", "zz")
        assert result.exit_code == 1
        assert "Unknown station" in result.output

    def test_bad_point(self, cli):
        result = cli("edit-path", "some-leg", "--point", "45.0")
        assert result.exit_code != 0

    def test_clear(self, cli):
        cli("add-leg", "a", "b")
        result = cli("clear")
        assert result.exit_code == 0
        assert "empty" in result.output

    def test_missing_catalog_reported(self, tmp_path):
        result = runner.invoke(app, ["--data-dir", str(tmp_path / "nope"), "--state", str(tmp_path / "s.json"), "show"])
        assert result.exit_code == 0
        assert "Failed to load route data" in result.output


def _profiled_route(*heights):
    points = tuple(RoutePoint(LatLng(45.0 + i * 0.001, 6.0), elevation=h) for i, h in enumerate(heights))
    return Route(id="p", bbox=BoundingBox(45.0, 6.0, 45.1, 6.05), points=points)


class TestElevationSparkline:
    def test_one_bar_per_point(self):
        line = _elevation_sparkline(_profiled_route(1000, 1700, 1200))
        assert line == "[dim]1000m[/dim] ▁█▃ [dim]1700m[/dim]"

    def test_needs_two_heights(self):
        assert _elevation_sparkline(_profiled_route(1500)) == ""
        assert _elevation_sparkline(Route(id="p", bbox=BoundingBox(45.0, 6.0, 45.1, 6.05))) == ""

    def test_flat_profile(self):
        assert "▁▁▁" in _elevation_sparkline(_profiled_route(900, 900, 900))

    def test_long_profile_thinned_to_width(self):
        heights = [1000 + i for i in range(49)] + [3000]
        bars = _elevation_sparkline(_profiled_route(*heights), width=10).split(" ")[1]
        assert len(bars) == 10
        assert bars[0] == "▁"
        assert bars[-1] == "█"
