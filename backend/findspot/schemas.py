"""Request/response models shared by the routes and the service layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, constr


class PhotoCreate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    # Data URL (or bare base64) of the capture
    image_data: constr(strip_whitespace=True, min_length=1)
    timestamp: Optional[datetime] = None
    filename: Optional[str] = Field(None, max_length=255)
    type: Optional[str] = Field(None, max_length=100)
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None


class CaptureRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    image_data: constr(strip_whitespace=True, min_length=1)
    filename: Optional[str] = Field(None, max_length=255)
    timestamp: Optional[datetime] = None


class TypeUpdate(BaseModel):
    type: constr(strip_whitespace=True, min_length=1, max_length=100)


class DetailsUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None


class PhotoMetadata(BaseModel):
    id: int
    lat: float
    lng: float
    timestamp: datetime
    filename: Optional[str] = None
    type: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class PhotoWithThumbnail(PhotoMetadata):
    thumbnail_data: Optional[str] = None
    has_full_image: bool = False


class PhotoResponse(PhotoMetadata):
    image_data: Optional[str] = None
    thumbnail_data: Optional[str] = None
    storage_path: Optional[str] = None
    user_id: Optional[str] = None
    updated_at: Optional[datetime] = None


class PhotoPage(BaseModel):
    items: List[Dict[str, Any]]
    limit: int
    offset: int
    has_more: bool


class ImagePayload(BaseModel):
    id: int
    data: Optional[str]


class ListEntry(PhotoWithThumbnail):
    type_label: str
    coordinates: str
    map_link: str


class TypeOption(BaseModel):
    value: str
    label: str


class ListViewResponse(BaseModel):
    count: int
    sort_by: str
    filter_by: str
    types: List[TypeOption]
    items: List[ListEntry]


class MapViewStateResponse(BaseModel):
    view: str
    center_lat: float
    center_lng: float
    zoom: int
    user_lat: Optional[float] = None
    user_lng: Optional[float] = None
    source: str


class MapViewResponse(BaseModel):
    state: MapViewStateResponse
    markers: List[PhotoMetadata]


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    id: str
    email: Optional[str] = None
    role: str
    admin: bool
