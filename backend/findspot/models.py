from typing import Optional
from datetime import datetime, timezone
from decimal import Decimal
import uuid

from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"
    id: Optional[str] = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    email: str = Field(sa_column_kwargs={"unique": True}, index=True)
    password_hash: Optional[str] = None
    # Carried into issued tokens as the `admin` claim; write access hinges on it
    is_admin: bool = Field(default=False)
    created_at: Optional[datetime] = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None


class Photo(SQLModel, table=True):
    __tablename__ = "photos"
    id: Optional[int] = Field(default=None, primary_key=True)

    lat: Decimal = Field(max_digits=10, decimal_places=8, index=True)
    lng: Decimal = Field(max_digits=11, decimal_places=8, index=True)

    # JPEG data URLs. image_data is the compressed copy written at creation;
    # the storage migration may clear both when run with --cleanup.
    image_data: Optional[str] = None
    thumbnail_data: Optional[str] = None

    # Key of the original image in the storage bucket
    storage_path: Optional[str] = Field(default=None, max_length=500, index=True)

    timestamp: datetime = Field(index=True)
    filename: Optional[str] = Field(default=None, max_length=255)
    type: Optional[str] = Field(default=None, max_length=100, index=True)
    name: Optional[str] = Field(default=None, max_length=255, index=True)
    description: Optional[str] = None

    user_id: Optional[str] = Field(default=None, foreign_key="users.id", index=True)

    created_at: Optional[datetime] = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = Field(default_factory=_utcnow)


# Columns served when the caller does not need the inline image payloads
METADATA_COLUMNS = (
    "id",
    "lat",
    "lng",
    "timestamp",
    "filename",
    "type",
    "name",
    "description",
    "created_at",
)
