"""Photo routes: capture, browse, edit and delete pins."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from .. import photo_service
from ..auth import AuthUser, get_current_user, require_admin_user
from ..config import get_settings
from ..database import get_session
from ..imaging import ThumbnailConfig
from ..photo_service import OperationResult
from ..schemas import (
    CaptureRequest,
    DetailsUpdate,
    ImagePayload,
    PhotoCreate,
    PhotoPage,
    PhotoResponse,
    TypeUpdate,
)
from ..storage import PhotoStorage, get_storage


router = APIRouter(prefix="/api/v1")

CAPTURE_TYPE = "target"

_STATUS_BY_REASON = {
    photo_service.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    photo_service.INVALID: status.HTTP_400_BAD_REQUEST,
    photo_service.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def get_photo_storage() -> PhotoStorage:
    return get_storage()


def _unwrap(result: OperationResult):
    if not result.success:
        code = _STATUS_BY_REASON.get(result.reason, status.HTTP_500_INTERNAL_SERVER_ERROR)
        raise HTTPException(status_code=code, detail=result.error or "Operation failed")
    return result.data


def _serialize(photo) -> PhotoResponse:
    return PhotoResponse.model_validate(photo.model_dump())


@router.post("/photos", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def create_photo(
    payload: PhotoCreate,
    user: AuthUser = Depends(require_admin_user),
    session=Depends(get_session),
    storage: PhotoStorage = Depends(get_photo_storage),
):
    """Store a capture: compressed copy and thumbnail inline, original in storage."""
    photo = _unwrap(await photo_service.save_photo(session, storage, payload, user))
    return _serialize(photo)


@router.post("/photos/capture", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def capture_photo(
    payload: CaptureRequest,
    user: AuthUser = Depends(require_admin_user),
    session=Depends(get_session),
    storage: PhotoStorage = Depends(get_photo_storage),
):
    """Map click-to-capture: a new pin typed as a target and named after its id."""
    create = PhotoCreate(
        lat=payload.lat,
        lng=payload.lng,
        image_data=payload.image_data,
        filename=payload.filename,
        timestamp=payload.timestamp,
        type=CAPTURE_TYPE,
    )
    photo = _unwrap(await photo_service.save_photo(session, storage, create, user))
    named = await photo_service.update_photo_details(
        session, photo.id, f"Target {photo.id}", None, user
    )
    # The pin exists either way; an unnamed one is still a successful capture
    return _serialize(named.data if named.success else photo)


@router.get("/photos", response_model=PhotoPage)
async def list_photos(
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    mode: str = Query("thumbnails", pattern="^(full|metadata|thumbnails)$"),
    _: AuthUser = Depends(get_current_user),
    session=Depends(get_session),
):
    limit = limit or get_settings().page_size
    if mode == "full":
        result = await photo_service.load_photos(session, limit, offset)
    elif mode == "metadata":
        result = await photo_service.load_photos_metadata_only(session, limit, offset)
    else:
        result = await photo_service.load_photos_with_thumbnails(session, limit, offset)
    items = _unwrap(result)
    return PhotoPage(items=items, limit=limit, offset=offset, has_more=len(items) == limit)


@router.get("/photos/all", response_model=List[PhotoResponse])
async def list_all_photos(
    _: AuthUser = Depends(get_current_user),
    session=Depends(get_session),
):
    return _unwrap(await photo_service.load_all_photos(session))


@router.get("/photos/{photo_id}/thumbnail", response_model=ImagePayload)
async def get_thumbnail(
    photo_id: int,
    _: AuthUser = Depends(get_current_user),
    session=Depends(get_session),
):
    data = _unwrap(await photo_service.load_photo_thumbnail(session, photo_id))
    return ImagePayload(id=photo_id, data=data)


@router.get("/photos/{photo_id}/image", response_model=ImagePayload)
async def get_full_image(
    photo_id: int,
    _: AuthUser = Depends(get_current_user),
    session=Depends(get_session),
):
    data = _unwrap(await photo_service.get_full_image_data(session, photo_id))
    return ImagePayload(id=photo_id, data=data)


@router.get("/photos/{photo_id}/original", response_model=ImagePayload)
async def get_original_image(
    photo_id: int,
    _: AuthUser = Depends(get_current_user),
    session=Depends(get_session),
    storage: PhotoStorage = Depends(get_photo_storage),
):
    data = _unwrap(await photo_service.get_original_image_data(session, storage, photo_id))
    return ImagePayload(id=photo_id, data=data)


@router.patch("/photos/{photo_id}/type", response_model=PhotoResponse)
async def update_type(
    photo_id: int,
    payload: TypeUpdate,
    user: AuthUser = Depends(require_admin_user),
    session=Depends(get_session),
):
    photo = _unwrap(await photo_service.update_photo_type(session, photo_id, payload.type, user))
    return _serialize(photo)


@router.patch("/photos/{photo_id}", response_model=PhotoResponse)
async def update_details(
    photo_id: int,
    payload: DetailsUpdate,
    user: AuthUser = Depends(require_admin_user),
    session=Depends(get_session),
):
    photo = _unwrap(
        await photo_service.update_photo_details(
            session, photo_id, payload.name, payload.description, user
        )
    )
    return _serialize(photo)


@router.post("/photos/{photo_id}/thumbnail", response_model=PhotoResponse)
async def regenerate_thumbnail(
    photo_id: int,
    user: AuthUser = Depends(require_admin_user),
    session=Depends(get_session),
):
    settings = get_settings()
    config = ThumbnailConfig(
        max_width=settings.thumbnail_max_width,
        max_height=settings.thumbnail_max_height,
        quality=settings.thumbnail_quality,
    )
    photo = _unwrap(await photo_service.regenerate_thumbnail(session, photo_id, user, config))
    return _serialize(photo)


@router.delete("/photos/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_photo(
    photo_id: int,
    user: AuthUser = Depends(require_admin_user),
    session=Depends(get_session),
    storage: PhotoStorage = Depends(get_photo_storage),
):
    _unwrap(await photo_service.delete_photo(session, storage, photo_id, user))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
