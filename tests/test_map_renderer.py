"""Tests for marker rendering and viewport selection."""

from datetime import datetime, timezone

import folium
import pytest

from unox_map import config
from unox_map.map_renderer import MapRenderer, controls_html, viewport_for, visible_stations
from unox_map.models import NormalizedStation, SearchResult, TypeFilterState
from unox_map.normalizer import normalize_all

NOW = datetime(2024, 5, 17, tzinfo=timezone.utc)


def station(name: str, lat: float | None, lng: float | None, station_type: str | None = None):
    return NormalizedStation(
        name=name, lat=lat, lng=lng, last_updated=NOW, station_type=station_type
    )


STATIONS = [
    station("Alnabru", 59.93, 10.84, "Wash"),
    station("Sandvika", 59.89, 10.52, "Truck"),
    station("Nowhere", None, None, "Wash"),
    station("Bergen", 60.39, 5.32, None),
]


class TestVisibleStations:
    """Test which stations end up on the map."""

    def test_skips_missing_coordinates(self):
        names = [s.name for s in visible_stations(STATIONS, TypeFilterState())]
        assert names == ["Alnabru", "Sandvika", "Bergen"]

    def test_applies_filter(self):
        names = [s.name for s in visible_stations(STATIONS, TypeFilterState(hide_wash=True))]
        assert names == ["Sandvika", "Bergen"]

    def test_end_to_end_example_is_empty(self):
        """A is hidden by the wash flag, B has unusable coordinates."""
        raw = [
            {"name": "A", "lat": "60,1", "lng": "10,2", "stationType": "Wash"},
            {"name": "B", "lat": "not-a-number", "lng": "5", "stationType": "Truck"},
        ]
        stations = normalize_all(raw)
        assert len(stations) == 2
        assert stations[0].lat == pytest.approx(60.1)
        assert visible_stations(stations, TypeFilterState(hide_wash=True)) == []


class TestRender:
    """Test the full-rebuild render pipeline."""

    def test_render_returns_visible_count(self):
        renderer = MapRenderer()
        assert renderer.render(STATIONS, TypeFilterState()) == 3
        assert renderer.rendered_count == 3

    def test_render_twice_is_stable(self):
        renderer = MapRenderer()
        filter_state = TypeFilterState(hide_truck=True)
        first = renderer.render(STATIONS, filter_state)
        first_visible = list(renderer.visible)
        second = renderer.render(STATIONS, filter_state)
        assert first == second == 2
        assert renderer.visible == first_visible

    def test_render_replaces_marker_layer(self):
        renderer = MapRenderer()
        renderer.render(STATIONS, TypeFilterState())
        old_group = renderer.marker_group
        renderer.render(STATIONS, TypeFilterState(hide_wash=True))
        assert renderer.marker_group is not old_group
        assert renderer.rendered_count == 2

    def test_empty_station_list(self):
        renderer = MapRenderer()
        assert renderer.render([], TypeFilterState()) == 0

    def test_to_map(self):
        renderer = MapRenderer()
        renderer.render(STATIONS, TypeFilterState())
        assert isinstance(renderer.to_map(), folium.Map)

    def test_html_has_counter_and_attribution(self):
        renderer = MapRenderer()
        renderer.render(STATIONS, TypeFilterState())
        page = renderer.to_html()
        assert "3 stations shown" in page
        assert "openstreetmap.org/copyright" in page
        assert "Alnabru" in page

    def test_html_shows_error(self):
        renderer = MapRenderer()
        renderer.render([], TypeFilterState())
        page = renderer.to_html(error="HTTP 503 Service Unavailable")
        assert "0 stations shown" in page
        assert "HTTP 503 Service Unavailable" in page

    def test_station_names_are_escaped(self):
        renderer = MapRenderer()
        renderer.render([station("<b>Evil</b>", 60.0, 10.0)], TypeFilterState())
        assert "<b>Evil</b>" not in renderer.to_html()


class TestControls:
    """Test the hide checkboxes and search field form."""

    def test_checked_boxes_follow_filter(self):
        form = controls_html(TypeFilterState(hide_truck=True))
        assert 'name="hide_truck" value="true" checked>' in form
        assert 'name="hide_wash" value="true">' in form
        assert form.count("type=\"checkbox\"") == 4

    def test_query_is_escaped(self):
        form = controls_html(TypeFilterState(), query='a"b<c')
        assert 'value="a&quot;b&lt;c"' in form

    def test_template_braces_are_escaped(self):
        page = MapRenderer().to_html(query="{{ 7 * 7 }}")
        assert "&#123;&#123; 7 * 7 &#125;&#125;" in page

    def test_page_includes_form(self):
        page = MapRenderer().to_html(filter_state=TypeFilterState(hide_wash=True), query="Oslo")
        assert 'id="map-controls"' in page
        assert 'name="hide_wash" value="true" checked>' in page


class TestViewport:
    """Test viewport selection for search results."""

    def test_bounding_box_is_padded(self):
        result = SearchResult(display="Oslo", lat=59.9, lon=10.7, bbox=(59.0, 60.0, 10.0, 12.0))
        viewport = viewport_for(result, padding=0.1)
        (south, west), (north, east) = viewport.bounds
        assert south == pytest.approx(58.9)
        assert north == pytest.approx(60.1)
        assert west == pytest.approx(9.8)
        assert east == pytest.approx(12.2)
        assert viewport.center is None

    def test_default_padding(self):
        result = SearchResult(display="Oslo", lat=59.9, lon=10.7, bbox=(59.0, 60.0, 10.0, 12.0))
        (south, _), _ = viewport_for(result).bounds
        assert south == pytest.approx(59.0 - config.FIT_PADDING)

    def test_point_without_bounding_box(self):
        result = SearchResult(display="Bergen", lat=60.39, lon=5.32)
        viewport = viewport_for(result)
        assert viewport.center == (60.39, 5.32)
        assert viewport.zoom == config.SELECT_ZOOM
        assert viewport.bounds is None

    def test_show_result_replaces_search_marker(self):
        renderer = MapRenderer()
        renderer.show_result(SearchResult(display="Bergen", lat=60.39, lon=5.32))
        first_marker = renderer.search_marker
        viewport = renderer.show_result(
            SearchResult(display="Oslo", lat=59.9, lon=10.7, bbox=(59.0, 60.0, 10.0, 12.0))
        )
        assert renderer.search_marker is not first_marker
        assert renderer.viewport == viewport
        assert viewport.bounds is not None
        assert "Oslo" in renderer.to_html()
