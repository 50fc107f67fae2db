"""Data models for stations, filters, search results and map viewports."""

import math
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

FALLBACK_NAME = "unknown station"

# Station types with their own hide flag and highlight colour, in lower case
KNOWN_STATION_TYPES = ("wash", "selfservice", "truck", "charginglocation")


def _is_finite(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


class NormalizedStation(BaseModel):
    """A station record after normalization.

    ``lat`` and ``lng`` are either both finite floats or both None.
    ``last_updated`` is display-only: the upstream value when present,
    otherwise the time of normalization.
    """

    model_config = ConfigDict(frozen=True)

    name: str = FALLBACK_NAME
    lat: float | None = None
    lng: float | None = None
    last_updated: datetime | str
    station_type: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _pair_coordinates(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not (_is_finite(data.get("lat")) and _is_finite(data.get("lng"))):
            data["lat"] = None
            data["lng"] = None
        if not data.get("name"):
            data["name"] = FALLBACK_NAME
        return data

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


class TypeFilterState(BaseModel):
    """Hide flags, one per known station type. Nothing is hidden by default."""

    model_config = ConfigDict(frozen=True)

    hide_wash: bool = False
    hide_selfservice: bool = False
    hide_truck: bool = False
    hide_charginglocation: bool = False

    def hidden_types(self) -> frozenset[str]:
        """Return the known station types whose hide flag is on."""
        return frozenset(
            station_type
            for station_type in KNOWN_STATION_TYPES
            if getattr(self, f"hide_{station_type}")
        )

    def with_flag(self, station_type: str, hidden: bool) -> "TypeFilterState":
        """Return a copy with one flag changed.

        Raises:
            ValueError: if ``station_type`` is not one of the known types.
        """
        key = station_type.strip().lower()
        if key not in KNOWN_STATION_TYPES:
            raise ValueError(f"Unknown station type: {station_type!r}")
        return self.model_copy(update={f"hide_{key}": hidden})


class ColorPair(BaseModel):
    """Marker outline and fill colours."""

    model_config = ConfigDict(frozen=True)

    stroke: str
    fill: str


class SearchResult(BaseModel):
    """A geocoder hit. ``bbox`` is (south, north, west, east)."""

    display: str
    lat: float
    lon: float
    bbox: tuple[float, float, float, float] | None = None


class Viewport(BaseModel):
    """Either a bounding box to fit, or a centre point with a zoom level."""

    bounds: tuple[tuple[float, float], tuple[float, float]] | None = None
    center: tuple[float, float] | None = None
    zoom: int | None = None


class ProxyResponse(BaseModel):
    """Raw upstream response, relayed as-is by the proxy endpoints."""

    status_code: int
    reason_phrase: str = ""
    body: bytes
    content_type: str | None = None
