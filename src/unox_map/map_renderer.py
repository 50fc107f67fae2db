"""Marker rendering on a folium (Leaflet) map.

Every render discards the previous marker layer and builds a new one from
the full station list, so the map always reflects exactly the current
station list and filter flags.
"""

import html
import logging
from collections.abc import Iterable

import folium
from folium import Element

from . import config
from .models import KNOWN_STATION_TYPES, NormalizedStation, SearchResult, TypeFilterState, Viewport
from .station_filter import color_for, passes_filter

logger = logging.getLogger(__name__)

TYPE_LABELS = {
    "wash": "wash",
    "selfservice": "self-service",
    "truck": "truck wash",
    "charginglocation": "charging locations",
}


def visible_stations(
    stations: Iterable[NormalizedStation], filter_state: TypeFilterState
) -> list[NormalizedStation]:
    """Stations that have coordinates and pass the type filter, in input order."""
    return [
        station
        for station in stations
        if station.has_coordinates and passes_filter(station, filter_state)
    ]


def viewport_for(
    result: SearchResult,
    padding: float = config.FIT_PADDING,
    zoom: int = config.SELECT_ZOOM,
) -> Viewport:
    """Viewport for a selected search result.

    With a bounding box, the box is grown by ``padding`` times its height and
    width on every side. Without one, the map centres on the point at
    ``zoom``.
    """
    if result.bbox is None:
        return Viewport(center=(result.lat, result.lon), zoom=zoom)

    south, north, west, east = result.bbox
    lat_pad = abs(north - south) * padding
    lng_pad = abs(east - west) * padding
    return Viewport(
        bounds=(
            (min(south, north) - lat_pad, min(west, east) - lng_pad),
            (max(south, north) + lat_pad, max(west, east) + lng_pad),
        )
    )


def _page_text(text: str) -> str:
    """Escape text for an Element template, which folium renders with Jinja."""
    return html.escape(text, quote=True).replace("{", "&#123;").replace("}", "&#125;")


def _popup_html(station: NormalizedStation) -> str:
    last_updated = station.last_updated
    if not isinstance(last_updated, str):
        last_updated = last_updated.strftime("%Y-%m-%d %H:%M")
    lines = [f"<b>{html.escape(station.name)}</b>"]
    if station.station_type:
        lines.append(html.escape(station.station_type))
    lines.append(f"Updated {html.escape(last_updated)}")
    return "<br>".join(lines)


def station_marker(station: NormalizedStation) -> folium.CircleMarker:
    """Circle marker coloured by station type."""
    colors = color_for(station.station_type)
    return folium.CircleMarker(
        location=[station.lat, station.lng],
        radius=7,
        color=colors.stroke,
        weight=2,
        fill=True,
        fill_color=colors.fill,
        fill_opacity=0.85,
        tooltip=html.escape(station.name),
        popup=folium.Popup(_popup_html(station), max_width=260),
    )


def controls_html(filter_state: TypeFilterState, query: str | None = None) -> str:
    """GET form reloading the map page with new hide flags and search text."""
    boxes = []
    for station_type in KNOWN_STATION_TYPES:
        field = f"hide_{station_type}"
        checked = " checked" if getattr(filter_state, field) else ""
        boxes.append(
            f'<label><input type="checkbox" name="{field}" value="true"{checked}> '
            f"Hide {TYPE_LABELS[station_type]}</label>"
        )
    return (
        '<form id="map-controls" method="get" action="/" style="position: fixed; top: 10px; '
        "left: 60px; z-index: 1000; background: white; padding: 6px 10px; border-radius: 4px; "
        'font: 13px sans-serif;">'
        f'<input type="search" name="q" placeholder="Search location" '
        f'minlength="{config.MIN_QUERY_LENGTH}" value="{_page_text(query or "")}"> '
        + " ".join(boxes)
        + ' <button type="submit">Update</button></form>'
    )


class MapRenderer:
    """Holds the current marker layer, search marker and viewport."""

    def __init__(
        self,
        center: tuple[float, float] = config.MAP_CENTER,
        zoom: int = config.MAP_ZOOM,
    ):
        self.viewport = Viewport(center=center, zoom=zoom)
        self.visible: list[NormalizedStation] = []
        self.marker_group: folium.FeatureGroup | None = None
        self.search_marker: folium.Marker | None = None

    @property
    def rendered_count(self) -> int:
        return len(self.visible)

    def render(
        self, stations: Iterable[NormalizedStation], filter_state: TypeFilterState
    ) -> int:
        """Rebuild the marker layer from scratch.

        Returns:
            Number of stations drawn: those with coordinates that pass the
            filter.
        """
        self.visible = visible_stations(stations, filter_state)
        group = folium.FeatureGroup(name="Stations")
        for station in self.visible:
            station_marker(station).add_to(group)
        self.marker_group = group
        logger.debug("Rendered %d station markers", len(self.visible))
        return len(self.visible)

    def show_result(self, result: SearchResult) -> Viewport:
        """Move the viewport to a search result and mark it, replacing any earlier mark."""
        self.viewport = viewport_for(result)
        self.search_marker = folium.Marker(
            location=[result.lat, result.lon],
            tooltip=html.escape(result.display),
            icon=folium.Icon(color="red", icon="search"),
        )
        return self.viewport

    def to_map(self) -> folium.Map:
        """Build a folium map for the current state."""
        center = self.viewport.center or config.MAP_CENTER
        zoom = self.viewport.zoom if self.viewport.zoom is not None else config.MAP_ZOOM
        m = folium.Map(location=list(center), zoom_start=zoom, tiles=None, control_scale=True)
        folium.TileLayer(
            tiles=config.TILE_URL,
            attr=config.TILE_ATTRIBUTION,
            name="OpenStreetMap",
        ).add_to(m)

        if self.marker_group is not None:
            self.marker_group.add_to(m)
        if self.search_marker is not None:
            self.search_marker.add_to(m)
        if self.viewport.bounds is not None:
            south_west, north_east = self.viewport.bounds
            m.fit_bounds([list(south_west), list(north_east)])
        return m

    def to_html(
        self,
        error: str | None = None,
        filter_state: TypeFilterState | None = None,
        query: str | None = None,
    ) -> str:
        """Render the standalone HTML page.

        The page carries the live station counter and a form with one hide
        checkbox per known station type and a location search field,
        pre-filled from ``filter_state`` and ``query``.
        """
        m = self.to_map()
        m.get_root().html.add_child(Element(controls_html(filter_state or TypeFilterState(), query)))
        status = f"{self.rendered_count} stations shown"
        if error:
            status = f"{status} &middot; {_page_text(error)}"
        m.get_root().html.add_child(
            Element(
                '<div id="station-counter" style="position: fixed; top: 10px; right: 10px; '
                "z-index: 1000; background: white; padding: 4px 8px; border-radius: 4px; "
                f'font: 13px sans-serif;">{status}</div>'
            )
        )
        return m.get_root().render()
