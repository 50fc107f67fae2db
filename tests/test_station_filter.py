"""Tests for station type filtering and marker colours."""

from datetime import datetime, timezone

import pytest

from unox_map.models import KNOWN_STATION_TYPES, NormalizedStation, TypeFilterState
from unox_map.station_filter import (
    DEFAULT_COLORS,
    HIGHLIGHT_COLORS,
    color_for,
    passes_filter,
    station_type_key,
)

NOW = datetime(2024, 5, 17, tzinfo=timezone.utc)


def make_station(station_type: str | None) -> NormalizedStation:
    return NormalizedStation(
        name="S", lat=60.0, lng=10.0, last_updated=NOW, station_type=station_type
    )


class TestTypeFilterState:
    """Test the immutable hide-flag state."""

    def test_nothing_hidden_by_default(self):
        assert TypeFilterState().hidden_types() == frozenset()

    def test_with_flag_returns_new_state(self):
        state = TypeFilterState()
        hidden = state.with_flag("Wash", True)
        assert hidden.hide_wash is True
        assert state.hide_wash is False

    def test_with_flag_unknown_type(self):
        with pytest.raises(ValueError):
            TypeFilterState().with_flag("diesel", True)


class TestPassesFilter:
    """Test that only an explicit type match with its flag on hides a station."""

    def test_case_insensitive_match_is_hidden(self):
        assert not passes_filter(make_station("Wash"), TypeFilterState(hide_wash=True))

    def test_padded_type_is_hidden(self):
        assert not passes_filter(make_station(" TRUCK "), TypeFilterState(hide_truck=True))

    def test_flag_off_passes(self):
        assert passes_filter(make_station("Wash"), TypeFilterState(hide_truck=True))

    def test_null_type_always_passes(self):
        everything = TypeFilterState(
            hide_wash=True,
            hide_selfservice=True,
            hide_truck=True,
            hide_charginglocation=True,
        )
        assert passes_filter(make_station(None), everything)

    def test_unknown_type_always_passes(self):
        everything = TypeFilterState(
            hide_wash=True,
            hide_selfservice=True,
            hide_truck=True,
            hide_charginglocation=True,
        )
        assert passes_filter(make_station("car wash"), everything)
        assert passes_filter(make_station("Charging Location"), everything)

    def test_every_known_type_has_its_own_flag(self):
        for station_type in KNOWN_STATION_TYPES:
            state = TypeFilterState().with_flag(station_type, True)
            assert not passes_filter(make_station(station_type.upper()), state)
            others = [t for t in KNOWN_STATION_TYPES if t != station_type]
            for other in others:
                assert passes_filter(make_station(other), state)


class TestColorFor:
    """Test the two-way colour classification."""

    def test_known_types_are_highlighted(self):
        for station_type in ("wash", "SelfService", "Truck", "chargingLocation"):
            assert color_for(station_type) == HIGHLIGHT_COLORS

    def test_everything_else_is_default(self):
        assert color_for(None) == DEFAULT_COLORS
        assert color_for("hydrogen") == DEFAULT_COLORS
        assert color_for("") == DEFAULT_COLORS

    def test_station_type_key(self):
        assert station_type_key(" SelfService ") == "selfservice"
        assert station_type_key("self service") is None
        assert station_type_key(None) is None
