"""
Pytest configuration and fixtures for partygallery tests.
"""

import base64
import io
import json
import tempfile
from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from PIL import Image

from partygallery.config import get_config
from partygallery.error_handling import NotFoundError, TargetUnavailableError, TransferFailedError
from partygallery.models.database import DatabaseManager, create_database, reset_database_manager
from partygallery.models.ids import MediaAssetId, new_media_asset_id
from partygallery.models.media import Dimensions, MediaAsset, MediaKind, SelectedFile
from partygallery.services.auth import UserInfo
from partygallery.services.posts import PostService
from partygallery.services.storage import UploadTarget
from partygallery.services.users import UserService


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("GCS_MEDIA_BUCKET", "test-media-bucket")
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "test-project")
    monkeypatch.setenv("GALLERY_DB_PATH", ":memory:")
    get_config().clear_cache()
    yield
    get_config().clear_cache()
    reset_database_manager()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def db() -> Generator[DatabaseManager, None, None]:
    """In-memory DuckDB with the gallery schema."""
    manager = create_database(":memory:")
    yield manager
    manager.close()


class FakeStorage:
    """In-memory stand-in for ``StorageService``."""

    def __init__(self) -> None:
        self.blobs: dict[str, tuple[bytes, str]] = {}
        self.deleted: list[str] = []
        self.targets_issued = 0
        self.fail_transfer_on: set[str] = set()

    def issue_upload_target(self, session: UserInfo | None) -> UploadTarget:
        if session is None:
            raise TargetUnavailableError("Unauthorized: You must be logged in to upload media.")
        self.targets_issued += 1
        storage_id = new_media_asset_id()
        return UploadTarget(
            storage_id=storage_id,
            url=f"https://upload.test/{storage_id}",
            expires_at=datetime.now() + timedelta(minutes=15),
        )

    def transfer_bytes(
        self,
        target: UploadTarget,
        data: bytes,
        content_type: str,
        filename: str = "",
        dimensions: Dimensions | None = None,
    ) -> MediaAsset:
        if filename in self.fail_transfer_on:
            raise TransferFailedError(filename, status_code=500)
        self.blobs[target.storage_id] = (data, content_type)
        return MediaAsset(
            storage_id=target.storage_id,
            kind=MediaKind.from_mime_type(content_type),
            size=len(data),
            content_type=content_type,
            dimensions=dimensions,
        )

    def get_media_url(self, storage_id: str | None) -> str | None:
        return f"https://media.test/{storage_id}" if storage_id else None

    def download_media(self, storage_id: str) -> tuple[bytes, str | None]:
        if storage_id not in self.blobs:
            raise NotFoundError("Media not found", details={"storage_id": storage_id})
        return self.blobs[storage_id]

    def delete_media(self, storage_id: str) -> None:
        self.deleted.append(storage_id)
        self.blobs.pop(storage_id, None)


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def user_service(db: DatabaseManager) -> UserService:
    return UserService(db=db)


@pytest.fixture
def post_service(db: DatabaseManager, fake_storage: FakeStorage, user_service: UserService) -> PostService:
    return PostService(db=db, storage=fake_storage, users=user_service)


def make_session(user_id: str, name: str | None = None) -> UserInfo:
    return UserInfo(user_id=user_id, email=f"{user_id}@example.com", name=name)


def make_assertion(payload: dict) -> str:
    """Unsigned Cloud IAP assertion carrying ``payload``."""
    segment = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")
    return f"header.{segment}.signature"


@pytest.fixture
def alice(user_service: UserService) -> UserInfo:
    """A synced guest."""
    session = make_session("alice-sub", "Alice")
    user_service.sync_user(session)
    return session


@pytest.fixture
def bob(user_service: UserService) -> UserInfo:
    """Another synced guest."""
    session = make_session("bob-sub", "Bob")
    user_service.sync_user(session)
    return session


def make_image_bytes(width: int = 64, height: int = 48, fmt: str = "JPEG", color: str = "red") -> bytes:
    buffer = io.BytesIO()
    mode = "RGBA" if fmt == "PNG" else "RGB"
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def image_file(name: str = "IMG_0001.jpg", width: int = 64, height: int = 48) -> SelectedFile:
    fmt = "PNG" if name.lower().endswith(".png") else "JPEG"
    mime_type = "image/png" if fmt == "PNG" else "image/jpeg"
    return SelectedFile(name=name, mime_type=mime_type, data=make_image_bytes(width, height, fmt))


def video_file(name: str = "IMG_0001.mov", mime_type: str = "video/quicktime", data: bytes = b"fake-video") -> SelectedFile:
    return SelectedFile(name=name, mime_type=mime_type, data=data)


def storage_id(value: str) -> MediaAssetId:
    return MediaAssetId(value)
