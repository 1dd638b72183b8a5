import os
from datetime import datetime, timezone
from typing import Callable, Dict, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine

from findspot import auth, models  # noqa: F401  (register tables on the metadata)
from findspot.models import Photo, User
from findspot.storage import LocalStorage, set_storage

from .helpers import encode_image, to_data_url

# The app talks to the database through aiosqlite; fixtures use a plain sync
# engine on the same file so setup never competes with the test's event loop
SYNC_DATABASE_URL = os.environ["DATABASE_URL"].replace("sqlite+aiosqlite", "sqlite")


@pytest.fixture(scope="session")
def sync_engine():
    engine = create_engine(SYNC_DATABASE_URL, connect_args={"check_same_thread": False})
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def fresh_db(sync_engine):
    SQLModel.metadata.drop_all(sync_engine)
    SQLModel.metadata.create_all(sync_engine)
    yield


@pytest.fixture(autouse=True)
def storage(tmp_path):
    backend = LocalStorage(tmp_path / "storage", "original-images")
    set_storage(backend)
    yield backend
    set_storage(None)


@pytest.fixture
def client():
    from findspot.main import app

    return TestClient(app)


@pytest.fixture
def make_user(sync_engine) -> Callable[..., Tuple[str, str]]:
    """Factory creating a user row and returning (id, token)."""

    def _create(email: str, admin: bool = False, password: str = "testpass") -> Tuple[str, str]:
        with Session(sync_engine) as session:
            user = User(
                email=email,
                password_hash=auth.get_password_hash(password),
                is_admin=admin,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            return user.id, auth.create_token_for_user(user)

    return _create


@pytest.fixture
def admin_headers(make_user) -> Dict[str, str]:
    _, token = make_user("admin-in-tests@example.com", admin=True)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def viewer_headers(make_user) -> Dict[str, str]:
    _, token = make_user("viewer-in-tests@example.com", admin=False)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_user(make_user) -> auth.AuthUser:
    user_id, _ = make_user("service-admin@example.com", admin=True)
    return auth.AuthUser(id=user_id, email="service-admin@example.com", admin=True)


@pytest.fixture
def viewer_user(make_user) -> auth.AuthUser:
    user_id, _ = make_user("service-viewer@example.com", admin=False)
    return auth.AuthUser(id=user_id, email="service-viewer@example.com", admin=False)


@pytest.fixture
def image_data_url() -> Callable[..., str]:
    def _make(width: int = 1600, height: int = 1200, fmt: str = "JPEG") -> str:
        mime = "image/png" if fmt == "PNG" else "image/jpeg"
        return to_data_url(encode_image(width, height, fmt=fmt), mime)

    return _make


@pytest.fixture
def insert_photo(sync_engine) -> Callable[..., int]:
    """Insert a photo row directly and return its id."""

    def _insert(**fields) -> int:
        values = {
            "lat": 58.5953,
            "lng": 25.0136,
            "timestamp": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            "filename": "find.jpg",
        }
        values.update(fields)
        with Session(sync_engine) as session:
            photo = Photo(**values)
            session.add(photo)
            session.commit()
            session.refresh(photo)
            return photo.id

    return _insert


@pytest.fixture
def fetch_photo(sync_engine) -> Callable[[int], Photo]:
    def _fetch(photo_id: int):
        with Session(sync_engine) as session:
            return session.get(Photo, photo_id)

    return _fetch
