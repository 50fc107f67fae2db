"""Runtime settings, read once from the environment."""

import os


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {value!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}")


STATIONS_UPSTREAM_URL = os.getenv(
    "STATIONS_UPSTREAM_URL", "https://apim.unox.no/network/networks/stations"
)
GEOCODE_UPSTREAM_URL = os.getenv(
    "GEOCODE_UPSTREAM_URL", "https://nominatim.openstreetmap.org/search"
)
# Nominatim's usage policy asks for an identifying User-Agent
USER_AGENT = os.getenv("UNOX_MAP_USER_AGENT", "Unox-Map/1.0 (contact: it@unox.no)")
# e.g. "no" to bias geocoding towards Norway; unset searches worldwide
GEOCODE_COUNTRY_CODES = os.getenv("GEOCODE_COUNTRY_CODES") or None

CACHE_CONTROL = "public, max-age=60"
HTTP_TIMEOUT = _env_float("UPSTREAM_TIMEOUT", 30.0)
GEOCODE_RATE_LIMIT = _env_float("GEOCODE_RATE_LIMIT", 1.0)  # requests per second
DEFAULT_GEOCODE_LIMIT = "8"

MIN_QUERY_LENGTH = 2
SEARCH_DEBOUNCE = _env_float("SEARCH_DEBOUNCE", 0.3)  # seconds

FIT_PADDING = 0.1  # fraction of the box height/width added on each side
SELECT_ZOOM = 14
MAP_CENTER = (
    _env_float("MAP_CENTER_LAT", 64.5),
    _env_float("MAP_CENTER_LNG", 12.0),
)
MAP_ZOOM = _env_int("MAP_ZOOM", 5)
TILE_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
TILE_ATTRIBUTION = (
    '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors'
)

HOST = os.getenv("UNOX_MAP_HOST", "127.0.0.1")
PORT = _env_int("UNOX_MAP_PORT", 8000)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
