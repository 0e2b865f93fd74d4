"""
Models module for partygallery.

- ids: tagged opaque identifiers
- media: upload pipeline inputs and outputs
- post: users, posts, likes as stored in DuckDB
- schema / database: DuckDB schema and connection management
"""

from .database import DatabaseManager, create_database, get_database_manager
from .ids import LikeId, MediaAssetId, PostId, UserId
from .media import Dimensions, LivePhotoPair, MediaAsset, MediaKind, SelectedFile, StandaloneItem, UploadItem
from .post import Like, Post, PostView, SortBy, User, UserStats

__all__ = [
    "DatabaseManager",
    "create_database",
    "get_database_manager",
    "LikeId",
    "MediaAssetId",
    "PostId",
    "UserId",
    "Dimensions",
    "LivePhotoPair",
    "MediaAsset",
    "MediaKind",
    "SelectedFile",
    "StandaloneItem",
    "UploadItem",
    "Like",
    "Post",
    "PostView",
    "SortBy",
    "User",
    "UserStats",
]
