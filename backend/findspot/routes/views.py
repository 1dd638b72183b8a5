"""List and map view routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from .. import photo_service
from ..auth import AuthUser, get_current_user
from ..config import get_settings
from ..database import get_session
from ..listing import FILTER_ALL, SORT_KEYS, SORT_TIMESTAMP, build_list_view
from ..map_state import parse_view, read_url_params, resolve_initial_view
from ..schemas import ListViewResponse, MapViewResponse, MapViewStateResponse

router = APIRouter(prefix="/api/v1/views")


async def _load_every(loader, session):
    page_size = get_settings().page_size
    rows = []
    offset = 0
    while True:
        result = await loader(session, page_size, offset)
        if not result.success:
            raise HTTPException(status_code=500, detail=result.error)
        rows.extend(result.data)
        if len(result.data) < page_size:
            return rows
        offset += page_size


@router.get("/list", response_model=ListViewResponse)
async def list_view(
    sort_by: str = Query(SORT_TIMESTAMP),
    filter_by: str = Query(FILTER_ALL),
    _: AuthUser = Depends(get_current_user),
    session=Depends(get_session),
):
    if sort_by not in SORT_KEYS:
        raise HTTPException(status_code=400, detail=f"sort_by must be one of {', '.join(SORT_KEYS)}")

    photos = await _load_every(photo_service.load_photos_with_thumbnails, session)
    return build_list_view(photos, sort_by=sort_by, filter_by=filter_by)


@router.get("/map", response_model=MapViewResponse)
async def map_view(
    view: Optional[str] = None,
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    zoom: Optional[str] = None,
    gps_lat: Optional[float] = Query(None, ge=-90, le=90),
    gps_lng: Optional[float] = Query(None, ge=-180, le=180),
    _: AuthUser = Depends(get_current_user),
    session=Depends(get_session),
):
    """Resolve the initial map position and return metadata-only markers."""
    params = {k: v for k, v in {"view": view, "lat": lat, "lng": lng, "zoom": zoom}.items() if v is not None}
    gps = (gps_lat, gps_lng) if gps_lat is not None and gps_lng is not None else None
    resolved = resolve_initial_view(read_url_params(params), gps)

    markers = await _load_every(photo_service.load_photos_metadata_only, session)

    state = MapViewStateResponse(
        view=parse_view(params),
        center_lat=resolved.center[0],
        center_lng=resolved.center[1],
        zoom=resolved.zoom,
        user_lat=resolved.user_location[0] if resolved.user_location else None,
        user_lng=resolved.user_location[1] if resolved.user_location else None,
        source=resolved.source,
    )
    return MapViewResponse(state=state, markers=markers)
