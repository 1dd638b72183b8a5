"""
Reconciliation between the query string and the map view.

The page URL carries ``view``, ``lat``, ``lng`` and ``zoom``. On load the map
center comes from the URL when all three coordinates parse, otherwise from the
device location, otherwise from a fixed fallback. Every pan or zoom writes the
new position back into the URL without touching other parameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

VIEW_MAP = "map"
VIEW_LIST = "list"
VIEWS = (VIEW_MAP, VIEW_LIST)
DEFAULT_VIEW = VIEW_LIST

DEFAULT_CENTER = (58.5953, 25.0136)
DEFAULT_ZOOM = 15


@dataclass(frozen=True)
class MapViewState:
    lat: float
    lng: float
    zoom: int


@dataclass(frozen=True)
class ResolvedView:
    center: Tuple[float, float]
    zoom: int
    user_location: Optional[Tuple[float, float]]
    source: str  # "url", "gps" or "default"


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def parse_view(params: Mapping[str, str]) -> str:
    view = params.get("view")
    return view if view in VIEWS else DEFAULT_VIEW


def read_url_params(params: Mapping[str, str]) -> Optional[MapViewState]:
    lat = _parse_float(params.get("lat"))
    lng = _parse_float(params.get("lng"))
    zoom = _parse_int(params.get("zoom"))
    if lat is None or lng is None or zoom is None:
        return None
    return MapViewState(lat=lat, lng=lng, zoom=zoom)


def resolve_initial_view(
    url_state: Optional[MapViewState],
    gps: Optional[Tuple[float, float]] = None,
) -> ResolvedView:
    if url_state is not None:
        return ResolvedView((url_state.lat, url_state.lng), url_state.zoom, gps, "url")
    if gps is not None:
        return ResolvedView(gps, DEFAULT_ZOOM, gps, "gps")
    return ResolvedView(DEFAULT_CENTER, DEFAULT_ZOOM, None, "default")


def _with_params(url: str, updates: Mapping[str, str]) -> str:
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update(updates)
    return urlunsplit(parts._replace(query=urlencode(query)))


def update_url(url: str, lat: float, lng: float, zoom: int) -> str:
    return _with_params(url, {"lat": f"{lat:.6f}", "lng": f"{lng:.6f}", "zoom": str(int(zoom))})


def set_view(url: str, view: str) -> str:
    if view not in VIEWS:
        raise ValueError(f"Unknown view {view!r}")
    return _with_params(url, {"view": view})
