"""Web server: upstream proxies and the station map page."""

import json
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, Response

from . import config
from .map_session import MapSession
from .models import ProxyResponse, TypeFilterState
from .search_client import parse_geocode_results
from .upstream_client import UpstreamClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with UpstreamClient() as upstream:
        app.state.upstream = upstream
        yield


app = FastAPI(title="Unox Map", lifespan=lifespan)


def get_upstream(request: Request) -> UpstreamClient:
    """Upstream client shared by all requests of this app."""
    return request.app.state.upstream


def relay(upstream: ProxyResponse) -> Response:
    """Pass an upstream response through with the proxy cache header."""
    return Response(
        content=upstream.body,
        status_code=upstream.status_code,
        headers={
            "content-type": upstream.content_type or "application/json",
            "cache-control": config.CACHE_CONTROL,
        },
    )


def _bad_gateway(e: httpx.HTTPError) -> HTTPException:
    return HTTPException(status_code=502, detail=f"Upstream unavailable: {e}")


@app.get("/api/stations")
async def stations_proxy(upstream: UpstreamClient = Depends(get_upstream)) -> Response:
    """Relay the raw station list."""
    try:
        result = await upstream.fetch_stations()
    except httpx.HTTPError as e:
        raise _bad_gateway(e)
    return relay(result)


@app.get("/api/geocode")
async def geocode_proxy(
    q: str | None = None,
    limit: str = config.DEFAULT_GEOCODE_LIMIT,
    upstream: UpstreamClient = Depends(get_upstream),
) -> Response:
    """Relay a Nominatim search. Queries under two characters answer ``[]`` locally."""
    if not q or len(q.strip()) < config.MIN_QUERY_LENGTH:
        return Response(
            content=json.dumps([]),
            status_code=200,
            headers={"content-type": "application/json"},
        )
    try:
        result = await upstream.geocode(q, limit=limit)
    except httpx.HTTPError as e:
        raise _bad_gateway(e)
    return relay(result)


async def build_session(
    upstream: UpstreamClient, filter_state: TypeFilterState, query: str | None = None
) -> MapSession:
    """Load, normalize and render the stations for one page view.

    When ``query`` is given, the first geocoder hit is marked and the map
    moves to it. Failures end up in ``session.error``.
    """
    session = MapSession(filter_state=filter_state)
    try:
        result = await upstream.fetch_stations()
    except httpx.HTTPError as e:
        session.fail(f"Could not load stations: {e}")
    else:
        session.load_response(result)

    if query and len(query.strip()) >= config.MIN_QUERY_LENGTH:
        try:
            found = await upstream.geocode(query.strip(), limit="1")
            places = parse_geocode_results(json.loads(found.body)) if found.status_code < 400 else []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Location search for %r failed: %s", query, e)
            places = []
        if places:
            session.renderer.show_result(places[0])

    return session


@app.get("/", response_class=HTMLResponse)
async def map_page(
    hide_wash: bool = False,
    hide_selfservice: bool = False,
    hide_truck: bool = False,
    hide_charginglocation: bool = False,
    q: str | None = None,
    upstream: UpstreamClient = Depends(get_upstream),
) -> HTMLResponse:
    """Station map with the hide flags given as query parameters."""
    filter_state = TypeFilterState(
        hide_wash=hide_wash,
        hide_selfservice=hide_selfservice,
        hide_truck=hide_truck,
        hide_charginglocation=hide_charginglocation,
    )
    session = await build_session(upstream, filter_state, query=q)
    return HTMLResponse(
        session.renderer.to_html(error=session.error, filter_state=filter_state, query=q)
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "service": "unox-map"}


def cli():
    """Entry point for console script."""
    import uvicorn

    logging.basicConfig(level=config.LOG_LEVEL)
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    cli()
