"""
Media models used by the upload pipeline.

A ``SelectedFile`` is what the user picked. The classifier turns a batch of
them into ``UploadItem`` values (a ``LivePhotoPair`` or a ``StandaloneItem``),
and a successful byte transfer turns a file into an immutable ``MediaAsset``.
"""

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from .ids import MediaAssetId

# mimetypes does not know every camera format on every platform
_EXTENSION_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
}


class MediaKind(str, Enum):
    """Kind of media derived from the MIME type."""

    IMAGE = "image"
    VIDEO = "video"

    @classmethod
    def from_mime_type(cls, mime_type: str) -> "MediaKind":
        """
        Derive the kind from a MIME type.

        Raises:
            ValueError: If the type is neither ``image/*`` nor ``video/*``
        """
        if mime_type.startswith("image/"):
            return cls.IMAGE
        if mime_type.startswith("video/"):
            return cls.VIDEO
        raise ValueError(f"Not a media MIME type: {mime_type}")


def guess_mime_type(filename: str) -> str:
    """Guess a MIME type from a filename, ``application/octet-stream`` if unknown."""
    suffix = Path(filename).suffix.lower()
    if suffix in _EXTENSION_MIME_TYPES:
        return _EXTENSION_MIME_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int


@dataclass(frozen=True)
class SelectedFile:
    """A file handle picked by the user, with its bytes already in memory."""

    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def kind(self) -> MediaKind:
        return MediaKind.from_mime_type(self.mime_type)

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/")

    @property
    def base_name(self) -> str:
        """Filename without its trailing extension, lowercased."""
        name = Path(self.name).name
        stem, dot, extension = name.rpartition(".")
        return (stem if dot and stem and extension else name).lower()

    def with_data(self, data: bytes, mime_type: str | None = None, name: str | None = None) -> "SelectedFile":
        """Copy of this file with transformed bytes."""
        return SelectedFile(name=name or self.name, mime_type=mime_type or self.mime_type, data=data)

    @classmethod
    def from_uploaded_file(cls, uploaded_file: Any) -> "SelectedFile":
        """Build from a Streamlit ``UploadedFile``."""
        mime_type = uploaded_file.type or guess_mime_type(uploaded_file.name)
        return cls(name=uploaded_file.name, mime_type=mime_type, data=uploaded_file.getvalue())

    @classmethod
    def from_path(cls, path: str | Path) -> "SelectedFile":
        """Build from a file on disk."""
        path = Path(path)
        return cls(name=path.name, mime_type=guess_mime_type(path.name), data=path.read_bytes())

    def __repr__(self) -> str:
        return f"SelectedFile(name={self.name!r}, mime_type={self.mime_type!r}, size={self.size})"


@dataclass(frozen=True)
class MediaAsset:
    """An uploaded blob. Immutable once the storage id is assigned."""

    storage_id: MediaAssetId
    kind: MediaKind
    size: int
    content_type: str
    dimensions: Dimensions | None = None

    @property
    def width(self) -> int | None:
        return self.dimensions.width if self.dimensions else None

    @property
    def height(self) -> int | None:
        return self.dimensions.height if self.dimensions else None


@dataclass(frozen=True)
class LivePhotoPair:
    """A still image and its companion clip, matched by base filename."""

    image: SelectedFile
    video: SelectedFile

    @property
    def primary(self) -> SelectedFile:
        return self.image

    @property
    def label(self) -> str:
        return self.image.name


@dataclass(frozen=True)
class StandaloneItem:
    """A file that is uploaded on its own."""

    file: SelectedFile

    @property
    def primary(self) -> SelectedFile:
        return self.file

    @property
    def label(self) -> str:
        return self.file.name


UploadItem = LivePhotoPair | StandaloneItem
