"""Constants and configuration for the Rando Planner."""

from pathlib import Path

# ── Paths ──────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
PREPARED_DIR = DATA_DIR / "prepared"
STATE_PATH = DATA_DIR / "state" / "local_storage.json"
GEOMETRY_PATH = DATA_DIR / "routes.geojson"

# ── Catalog files ──────────────────────────────────────────────────────
STATIONS_FILE = "stations.json"
ROUTES_FILE_TEMPLATE = "routes_{source}.json"
DEFAULT_ROUTE_SOURCE = "small"
BUILTIN_ROUTE_SOURCES = ("small", "full")
HTTP_TIMEOUT_S = 30

# ── Local persistence ─────────────────────────────────────────────────
STORAGE_KEY = "rando-planner-itinerary"
SCHEMA_VERSION = 1

# ── Distance & time estimation ────────────────────────────────────────
EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0
HIKING_SPEED_KMH = 4.0
NAISMITH_CLIMB_FACTOR = 600    # meters of climb per extra hour
DESCENT_FACTOR = 1200          # meters of descent per extra hour
DESCENT_THRESHOLD_M = 1000     # descent only counts above this

# ── Catalog preparation / lookups ─────────────────────────────────────
APPROXIMATE_PATH_POINTS = 6
NEARBY_STATION_KM = 2.0
