"""State of one map page view: station list, filter flags and load errors."""

import json
import logging
from typing import Any

import httpx

from .map_renderer import MapRenderer
from .models import NormalizedStation, ProxyResponse, TypeFilterState
from .normalizer import StationFormatError, normalize_all

logger = logging.getLogger(__name__)

STATIONS_PATH = "/api/stations"


class MapSession:
    """Owns the station list and filter state for one page view.

    Any change to either triggers a full re-render. Load failures are kept
    in ``error`` and never raised.
    """

    def __init__(
        self,
        renderer: MapRenderer | None = None,
        filter_state: TypeFilterState | None = None,
    ):
        self.renderer = renderer or MapRenderer()
        self.filter_state = filter_state or TypeFilterState()
        self.stations: list[NormalizedStation] = []
        self.error: str | None = None
        self.visible_count = 0

    def rerender(self) -> int:
        self.visible_count = self.renderer.render(self.stations, self.filter_state)
        return self.visible_count

    def load_payload(self, payload: Any) -> int:
        """Normalize an already parsed station payload and render it.

        Returns:
            The visible station count. A malformed payload clears the list
            and records the error.
        """
        try:
            self.stations = normalize_all(payload)
            self.error = None
        except StationFormatError as e:
            logger.error("Station load failed: %s", e)
            self.stations = []
            self.error = str(e)
        return self.rerender()

    def fail(self, message: str) -> int:
        """Record a load error and clear the station list."""
        logger.error("Station load failed: %s", message)
        self.stations = []
        self.error = message
        return self.rerender()

    async def load(self, client: httpx.AsyncClient) -> int:
        """Fetch stations through the stations proxy and render them.

        Args:
            client: Client whose base URL points at this app.

        Returns:
            The visible station count.
        """
        try:
            response = await client.get(STATIONS_PATH)
        except httpx.HTTPError as e:
            return self.fail(f"Could not load stations: {e}")

        return self.load_response(
            ProxyResponse(
                status_code=response.status_code,
                reason_phrase=response.reason_phrase,
                body=response.content,
                content_type=response.headers.get("content-type"),
            )
        )

    def load_response(self, response: ProxyResponse) -> int:
        """Load stations from a raw stations response.

        Error statuses and bodies that are not JSON are recorded in
        ``error`` and leave the station list empty.
        """
        if response.status_code >= 400:
            return self.fail(f"HTTP {response.status_code} {response.reason_phrase}".rstrip())

        try:
            payload = json.loads(response.body)
        except ValueError as e:
            return self.fail(f"Invalid station payload: {e}")
        return self.load_payload(payload)

    def set_filter(self, station_type: str, hidden: bool) -> int:
        """Toggle one hide flag and re-render."""
        return self.set_filter_state(self.filter_state.with_flag(station_type, hidden))

    def set_filter_state(self, filter_state: TypeFilterState) -> int:
        self.filter_state = filter_state
        return self.rerender()
