"""Media retrieval endpoint.

Serves a stored blob by storage id with headers that let browsers cache it
forever and read it cross-origin. The handler is framework agnostic: it takes
query parameters and returns a ``MediaResponse``.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..error_handling import NotFoundError, StorageError
from ..logging_config import get_logger
from ..services.storage import StorageService, get_storage_service

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

MEDIA_HEADERS = {
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Access-Control-Allow-Origin": "*",
    "Cache-Control": "public, max-age=31536000, immutable",
}


@dataclass(frozen=True)
class MediaResponse:
    status: int
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str | None:
        return self.headers.get("Content-Type")


def _text(status: int, message: str) -> MediaResponse:
    return MediaResponse(status=status, body=message.encode("utf-8"), headers={"Content-Type": "text/plain"})


def handle_get_media(params: Mapping[str, Any], storage: StorageService | Any | None = None) -> MediaResponse:
    """
    GET /getMedia?storageId=<id>

    Returns:
        MediaResponse: 400 without a storage id, 404 for an unknown one,
        503 if storage is unavailable, otherwise 200 with the blob
    """
    storage_id = params.get("storageId")
    if isinstance(storage_id, list):
        storage_id = storage_id[0] if storage_id else None
    if not storage_id:
        return _text(400, "Missing storageId")

    try:
        service = storage or get_storage_service()
        data, content_type = service.download_media(str(storage_id))
    except NotFoundError:
        return _text(404, "Media not found")
    except StorageError:
        return _text(503, "Storage unavailable")

    logger.debug("media_served", storage_id=storage_id, size=len(data), content_type=content_type)
    return MediaResponse(
        status=200,
        body=data,
        headers={"Content-Type": content_type or DEFAULT_CONTENT_TYPE, **MEDIA_HEADERS},
    )
