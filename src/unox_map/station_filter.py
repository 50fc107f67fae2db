"""Station type filtering and marker colours."""

from .models import KNOWN_STATION_TYPES, ColorPair, NormalizedStation, TypeFilterState

HIGHLIGHT_COLORS = ColorPair(stroke="#0b5394", fill="#3d85c6")
DEFAULT_COLORS = ColorPair(stroke="#555555", fill="#999999")


def station_type_key(station_type: str | None) -> str | None:
    """Return the known type literal matching ``station_type``, if any.

    Matching is exact after trimming and lower-casing, so ``" Wash "``
    matches ``wash`` but ``"car wash"`` matches nothing.
    """
    if not isinstance(station_type, str):
        return None
    key = station_type.strip().lower()
    return key if key in KNOWN_STATION_TYPES else None


def passes_filter(station: NormalizedStation, filter_state: TypeFilterState) -> bool:
    """Decide whether a station may be shown under the current hide flags.

    A station is hidden only when its type is one of the known literals and
    that literal's flag is on. Unknown or missing types always pass.
    """
    key = station_type_key(station.station_type)
    if key is None:
        return True
    return key not in filter_state.hidden_types()


def color_for(station_type: str | None) -> ColorPair:
    """Highlight colours for known station types, default colours otherwise."""
    if station_type_key(station_type) is None:
        return DEFAULT_COLORS
    return HIGHLIGHT_COLORS
