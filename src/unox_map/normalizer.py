"""Normalization of untyped upstream station records.

The upstream station list is an uncontrolled third-party payload: field names
vary between records (``name``/``title``/``stationName``, ``lat``/``Latitude``,
...), some fields live under a nested ``station`` object, and coordinates may
arrive as numbers or as strings with a decimal comma. Each field is resolved by
an ordered chain of small extractor functions; the first one returning a usable
value wins.
"""

import math
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from .models import FALLBACK_NAME, NormalizedStation

Extractor = Callable[[Mapping[str, Any]], Any]

LATITUDE_KEYS = ("latitude", "lat", "Latitude", "Lat")
LONGITUDE_KEYS = ("longitude", "lng", "lon", "Longitude", "Lng", "Lon")
TIMESTAMP_KEYS = ("lastUpdated", "updatedAt", "modified", "lastModified")


class StationFormatError(ValueError):
    """Raised when a station payload is neither a list nor ``{"items": [...]}``."""


def coerce_number(value: Any) -> float | None:
    """Coerce a loosely typed value to a finite float.

    Numbers must be finite. Strings are trimmed and a decimal comma is read
    as a decimal point (``"59,91"`` -> ``59.91``). Everything else, booleans
    included, is treated as absent.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _nested(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    station = raw.get("station")
    return station if isinstance(station, Mapping) else {}


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _field(key: str, nested: bool = False) -> Extractor:
    """Build an extractor reading one key, from the record or its ``station``."""

    def extract(raw: Mapping[str, Any]) -> Any:
        source = _nested(raw) if nested else raw
        return source.get(key)

    extract.__name__ = f"station.{key}" if nested else key
    return extract


def first_of(
    raw: Mapping[str, Any],
    extractors: tuple[Extractor, ...],
    accept: Callable[[Any], Any],
) -> Any:
    """Run extractors in order and return the first value ``accept`` keeps.

    ``accept`` converts a candidate into its final form, returning None to
    reject it.
    """
    for extract in extractors:
        value = accept(extract(raw))
        if value is not None:
            return value
    return None


NAME_EXTRACTORS: tuple[Extractor, ...] = (
    _field("name", nested=True),
    _field("name"),
    _field("title"),
    _field("stationName"),
)

STATION_TYPE_EXTRACTORS: tuple[Extractor, ...] = (
    _field("stationType", nested=True),
    _field("stationType"),
)

TIMESTAMP_EXTRACTORS: tuple[Extractor, ...] = tuple(_field(key) for key in TIMESTAMP_KEYS)


def _geolocation(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    """Find the mapping that holds the coordinates."""
    for candidate in (
        _nested(raw).get("geolocation"),
        raw.get("geolocation"),
        raw.get("geo"),
    ):
        if isinstance(candidate, Mapping):
            return candidate
    return raw


def _coordinate_extractors(keys: tuple[str, ...], fallback_keys: tuple[str, ...]):
    def from_geolocation(key: str) -> Extractor:
        def extract(raw: Mapping[str, Any]) -> Any:
            return _geolocation(raw).get(key)

        extract.__name__ = f"geolocation.{key}"
        return extract

    return tuple(from_geolocation(key) for key in keys) + tuple(
        _field(key) for key in fallback_keys
    )


LATITUDE_EXTRACTORS = _coordinate_extractors(LATITUDE_KEYS, ("lat", "Latitude"))
LONGITUDE_EXTRACTORS = _coordinate_extractors(LONGITUDE_KEYS, ("lng", "Longitude"))


def _timestamp(value: Any) -> datetime | str | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        return str(value) if math.isfinite(value) else None
    if isinstance(value, int):
        try:
            return str(value)
        except ValueError:
            # longer than the interpreter's int-to-str digit limit
            return None
    return _text(value)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize(raw: Any, now: Callable[[], datetime] = _utc_now) -> NormalizedStation:
    """Convert one raw upstream record into a NormalizedStation.

    Never raises: unusable fields fall back to None, the fallback name, or
    the current time for ``last_updated``.

    Args:
        raw: A record from the upstream station list, of any shape.
        now: Clock used when the record carries no timestamp.

    Returns:
        The normalized station. Coordinates are None unless both parse.
    """
    if not isinstance(raw, Mapping):
        return NormalizedStation(last_updated=now())

    name = first_of(raw, NAME_EXTRACTORS, _text) or FALLBACK_NAME
    lat = first_of(raw, LATITUDE_EXTRACTORS, coerce_number)
    lng = first_of(raw, LONGITUDE_EXTRACTORS, coerce_number)
    station_type = first_of(raw, STATION_TYPE_EXTRACTORS, _text)
    last_updated = first_of(raw, TIMESTAMP_EXTRACTORS, _timestamp)

    return NormalizedStation(
        name=name,
        lat=lat,
        lng=lng,
        last_updated=last_updated if last_updated is not None else now(),
        station_type=station_type,
    )


def extract_records(payload: Any) -> list[Any]:
    """Unwrap the station list from an upstream payload.

    Raises:
        StationFormatError: if the payload is neither a list nor a mapping
            with an ``items`` list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping) and isinstance(payload.get("items"), list):
        return payload["items"]
    raise StationFormatError(
        "Unexpected station payload: expected a list or an object with an 'items' list"
    )


def normalize_all(
    payload: Any, now: Callable[[], datetime] = _utc_now
) -> list[NormalizedStation]:
    """Normalize every record of an upstream station payload."""
    return [normalize(raw, now=now) for raw in extract_records(payload)]
