"""Debounced location search against the geocode proxy.

Typing restarts a trailing-edge debounce timer; only the last keystroke in
the window sends a query. Each query gets a sequence number and a response
is applied only if no newer query was issued after it, so a slow, superseded
request can never overwrite newer results.
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

import httpx

from . import config
from .map_renderer import viewport_for
from .models import SearchResult, Viewport
from .normalizer import coerce_number

logger = logging.getLogger(__name__)

GEOCODE_PATH = "/api/geocode"


class SearchState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    LISTED = "listed"
    NO_RESULTS = "no-results"
    ERROR = "error"


def _bbox(value: Any) -> tuple[float, float, float, float] | None:
    if not isinstance(value, (list, tuple)) or len(value) != 4:
        return None
    numbers = tuple(coerce_number(v) for v in value)
    if any(n is None for n in numbers):
        return None
    return numbers


def parse_geocode_results(payload: Any) -> list[SearchResult]:
    """Parse a Nominatim ``jsonv2`` response into search results.

    Entries that are not objects, or whose ``lat``/``lon`` are not finite
    numbers, are dropped. A malformed ``boundingbox`` is ignored rather
    than rejecting the entry.
    """
    if not isinstance(payload, list):
        return []

    results = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        lat = coerce_number(entry.get("lat"))
        lon = coerce_number(entry.get("lon"))
        if lat is None or lon is None:
            continue
        display = entry.get("display_name")
        if not isinstance(display, str) or not display.strip():
            display = f"{lat}, {lon}"
        results.append(
            SearchResult(
                display=display,
                lat=lat,
                lon=lon,
                bbox=_bbox(entry.get("boundingbox")),
            )
        )
    return results


class SearchClient:
    """Search box state: typed text, results, open/closed list, active row.

    Must be driven from a running event loop.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        on_select: Callable[[SearchResult], Any] | None = None,
        debounce: float = config.SEARCH_DEBOUNCE,
        limit: str = config.DEFAULT_GEOCODE_LIMIT,
        min_length: int = config.MIN_QUERY_LENGTH,
    ):
        self.client = client
        self.on_select = on_select
        self.debounce = debounce
        self.limit = limit
        self.min_length = min_length

        self.text = ""
        self.state = SearchState.IDLE
        self.results: list[SearchResult] = []
        self.is_open = False
        self.active_index = -1

        self._sequence = 0
        self._timer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    def _clear(self, state: SearchState) -> None:
        self.state = state
        self.results = []
        self.is_open = False
        self.active_index = -1

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def on_input(self, text: str) -> None:
        """Handle a change of the typed text."""
        self.text = text
        self._cancel_timer()

        if len(text.strip()) < self.min_length:
            # invalidates any request still in flight
            self._sequence += 1
            self._clear(SearchState.IDLE)
            return

        task = asyncio.get_running_loop().create_task(self._debounced(text.strip()))
        self._timer = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _debounced(self, query: str) -> None:
        await asyncio.sleep(self.debounce)
        # past this point new input no longer cancels the request
        self._timer = None
        await self.search(query)

    async def search(self, query: str) -> list[SearchResult]:
        """Query the geocode proxy now, bypassing the debounce timer.

        Returns:
            The results applied to the list, or an empty list if the query
            was too short, failed, or was superseded.
        """
        query = query.strip()
        if len(query) < self.min_length:
            self._sequence += 1
            self._clear(SearchState.IDLE)
            return []

        self._sequence += 1
        sequence = self._sequence
        self.state = SearchState.SEARCHING

        try:
            response = await self.client.get(
                GEOCODE_PATH, params={"q": query, "limit": self.limit}
            )
            response.raise_for_status()
            results = parse_geocode_results(response.json())
        except (httpx.HTTPError, ValueError) as e:
            if sequence != self._sequence:
                return []
            logger.warning("Location search for %r failed: %s", query, e)
            self._clear(SearchState.ERROR)
            return []

        if sequence != self._sequence:
            logger.debug("Discarding stale results for %r", query)
            return []

        self.results = results
        self.is_open = bool(results)
        self.active_index = -1
        self.state = SearchState.LISTED if results else SearchState.NO_RESULTS
        return results

    async def flush(self) -> None:
        """Wait until the pending timer and every request it started are done."""
        while any(not task.done() for task in self._tasks):
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def on_key(self, key: str) -> Viewport | None:
        """Keyboard navigation over the open result list.

        ArrowDown/ArrowUp move the active row circularly, Enter selects it
        (the first row when none is active), Escape closes the list and
        keeps the typed text.

        Returns:
            The new viewport when Enter selected a result, else None.
        """
        if not self.is_open or not self.results:
            return None

        count = len(self.results)
        if key == "ArrowDown":
            self.active_index = (self.active_index + 1) % count
        elif key == "ArrowUp":
            if self.active_index < 0:
                self.active_index = count - 1
            else:
                self.active_index = (self.active_index - 1) % count
        elif key == "Enter":
            return self.select(max(self.active_index, 0))
        elif key == "Escape":
            self.is_open = False
            self.active_index = -1
        return None

    def select(self, index: int) -> Viewport:
        """Pick a result: close the list, show its name, move the map.

        Raises:
            IndexError: if ``index`` is outside the current results.
        """
        result = self.results[index]
        self.is_open = False
        self.active_index = -1
        self.text = result.display
        if self.on_select is not None:
            self.on_select(result)
        return viewport_for(result)
