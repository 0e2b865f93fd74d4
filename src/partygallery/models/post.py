"""
Gallery records stored in DuckDB: users, posts and likes.

Rows come back from DuckDB as tuples; each model knows how to build itself
from a row in the column order declared by its ``COLUMNS`` tuple.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .ids import LikeId, MediaAssetId, PostId, UserId
from .media import MediaKind


def _as_utc(value: datetime | str | None) -> datetime | None:
    """DuckDB TIMESTAMP columns are naive UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_db_timestamp(value: datetime) -> datetime:
    """Convert an aware datetime to the naive UTC value stored in DuckDB."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class SortBy(str, Enum):
    """Feed orderings."""

    NEWEST = "newest"
    MOST_LIKED = "mostLiked"


@dataclass
class User:
    """Profile record synced from the identity provider."""

    id: UserId
    external_id: str
    name: str
    profile_image: str | None
    created_at: datetime

    COLUMNS = ("id", "external_id", "name", "profile_image", "created_at")

    @classmethod
    def from_row(cls, row: tuple) -> "User":
        return cls(
            id=UserId(row[0]),
            external_id=row[1],
            name=row[2],
            profile_image=row[3],
            created_at=_as_utc(row[4]),  # type: ignore[arg-type]
        )


@dataclass
class Post:
    """
    A published memory.

    ``companion_storage_id`` is set only for Live Photos, where it points at
    the short clip that plays when the still is held.
    """

    id: PostId
    author_id: UserId
    author_name: str
    storage_id: MediaAssetId
    companion_storage_id: MediaAssetId | None
    media_type: MediaKind
    caption: str | None
    width: int | None
    height: int | None
    created_at: datetime

    COLUMNS = (
        "id",
        "author_id",
        "author_name",
        "storage_id",
        "companion_storage_id",
        "media_type",
        "caption",
        "width",
        "height",
        "created_at",
    )

    @property
    def is_live_photo(self) -> bool:
        return self.companion_storage_id is not None

    @classmethod
    def from_row(cls, row: tuple) -> "Post":
        return cls(
            id=PostId(row[0]),
            author_id=UserId(row[1]),
            author_name=row[2],
            storage_id=MediaAssetId(row[3]),
            companion_storage_id=MediaAssetId(row[4]) if row[4] else None,
            media_type=MediaKind(row[5]),
            caption=row[6],
            width=row[7],
            height=row[8],
            created_at=_as_utc(row[9]),  # type: ignore[arg-type]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "author_id": self.author_id,
            "author_name": self.author_name,
            "storage_id": self.storage_id,
            "companion_storage_id": self.companion_storage_id,
            "media_type": self.media_type.value,
            "caption": self.caption,
            "width": self.width,
            "height": self.height,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class PostView:
    """A post as seen by a particular viewer, with resolved media URLs."""

    post: Post
    media_url: str | None
    companion_url: str | None
    like_count: int
    is_liked_by_me: bool
    is_author: bool

    @property
    def id(self) -> PostId:
        return self.post.id

    @property
    def author_name(self) -> str:
        return self.post.author_name

    @property
    def media_type(self) -> MediaKind:
        return self.post.media_type

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.post.to_dict(),
            "media_url": self.media_url,
            "companion_url": self.companion_url,
            "like_count": self.like_count,
            "is_liked_by_me": self.is_liked_by_me,
            "is_author": self.is_author,
        }


@dataclass
class Like:
    id: LikeId
    user_id: UserId
    post_id: PostId
    created_at: datetime

    COLUMNS = ("id", "user_id", "post_id", "created_at")

    @classmethod
    def from_row(cls, row: tuple) -> "Like":
        return cls(
            id=LikeId(row[0]),
            user_id=UserId(row[1]),
            post_id=PostId(row[2]),
            created_at=_as_utc(row[3]),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class UserStats:
    post_count: int
    likes_received: int
