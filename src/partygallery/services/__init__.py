"""
Services module for partygallery.

- auth: sessions from Cloud IAP headers
- classifier: validation and Live Photo pairing of selected files
- media_normalizer: dimension probing and compression
- storage: Google Cloud Storage upload targets, transfers and signed URLs
- users / posts: profile, post and like records in DuckDB
- uploader: the sequential upload pipeline
- exporter: bulk ZIP export
- access_gate: event-time gate for gallery pages
"""

from .access_gate import AccessDecision, check_access
from .auth import CloudIAPAuthService, UserInfo, get_auth_service
from .classifier import classify_files, pair_live_photos
from .exporter import ExportArchive, ExportPackager
from .media_normalizer import MediaNormalizer, NormalizedItem, get_media_normalizer
from .posts import PostService, get_post_service
from .storage import StorageService, UploadTarget, get_storage_service
from .uploader import BatchResult, ItemState, UploadSequencer
from .users import UserService, get_user_service

__all__ = [
    "AccessDecision",
    "check_access",
    "CloudIAPAuthService",
    "UserInfo",
    "get_auth_service",
    "classify_files",
    "pair_live_photos",
    "ExportArchive",
    "ExportPackager",
    "MediaNormalizer",
    "NormalizedItem",
    "get_media_normalizer",
    "PostService",
    "get_post_service",
    "StorageService",
    "UploadTarget",
    "get_storage_service",
    "BatchResult",
    "ItemState",
    "UploadSequencer",
    "UserService",
    "get_user_service",
]
