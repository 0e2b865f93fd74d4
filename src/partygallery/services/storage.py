"""Storage service for Google Cloud Storage operations."""

import os
from dataclasses import dataclass
from datetime import datetime, timedelta

import google.auth
import google.auth.transport.requests
import requests
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage  # type: ignore[attr-defined]
from google.cloud.exceptions import GoogleCloudError, NotFound

from ..error_handling import NotFoundError, StorageError, TargetUnavailableError, TransferFailedError
from ..logging_config import get_logger, log_degraded, log_user_action
from ..models.ids import MediaAssetId, new_media_asset_id
from ..models.media import Dimensions, MediaAsset, MediaKind
from .auth import UserInfo

logger = get_logger(__name__)


@dataclass(frozen=True)
class UploadTarget:
    """A one-time destination for the bytes of a single media asset."""

    storage_id: MediaAssetId
    url: str
    expires_at: datetime


class StorageService:
    """Service for Google Cloud Storage operations."""

    def __init__(self, bucket_name: str | None = None, project_id: str | None = None) -> None:
        """
        Initialize the storage service.

        Args:
            bucket_name: GCS media bucket name (defaults to GCS_MEDIA_BUCKET environment variable)
            project_id: GCP project ID (defaults to GOOGLE_CLOUD_PROJECT environment variable)
        """
        self.bucket_name = bucket_name or os.getenv("GCS_MEDIA_BUCKET")
        self.project_id = project_id or os.getenv("GOOGLE_CLOUD_PROJECT")

        self.signed_url_expiration = int(os.getenv("GCS_SIGNED_URL_EXPIRATION", "3600"))
        self.upload_url_expiration = int(os.getenv("GCS_UPLOAD_URL_EXPIRATION", "900"))

        if not self.bucket_name:
            raise StorageError("GCS_MEDIA_BUCKET environment variable is required")
        if not self.project_id:
            raise StorageError("GOOGLE_CLOUD_PROJECT environment variable is required")

        try:
            self.client = storage.Client(project=self.project_id)
            self.bucket = self.client.bucket(self.bucket_name)
            logger.info("storage_service_initialized", bucket=self.bucket_name, project_id=self.project_id)
        except Exception as e:
            raise StorageError(f"Failed to initialize GCS client: {e}", original_exception=e) from e

    @staticmethod
    def _get_media_path(storage_id: str) -> str:
        return f"media/{storage_id}"

    def _signing_credentials(self) -> dict:
        """
        Credentials for V4 signing on runtimes without a private key.

        On Cloud Run the default credentials are token based, so signing goes
        through the IAM API with the service account email and access token.
        With a key file neither is needed and an empty dict is returned.
        """
        try:
            credentials, _ = google.auth.default()
            credentials.refresh(google.auth.transport.requests.Request())
        except GoogleAuthError as e:
            logger.debug("signing_credentials_refresh_failed", error=str(e))
            return {}

        email = getattr(credentials, "service_account_email", None)
        token = getattr(credentials, "token", None)
        if email and token:
            return {"service_account_email": email, "access_token": token}
        return {}

    def issue_upload_target(self, session: UserInfo | None) -> UploadTarget:
        """
        Mint a storage id and a signed PUT URL for it.

        Args:
            session: The caller's session; uploads require one

        Raises:
            TargetUnavailableError: If there is no session or signing fails
        """
        if session is None:
            raise TargetUnavailableError("Unauthorized: You must be logged in to upload media.")

        storage_id = new_media_asset_id()
        expires_at = datetime.now() + timedelta(seconds=self.upload_url_expiration)
        try:
            blob = self.bucket.blob(self._get_media_path(storage_id))
            url: str = blob.generate_signed_url(
                expiration=expires_at,
                method="PUT",
                version="v4",
                **self._signing_credentials(),
            )
        except (GoogleCloudError, GoogleAuthError, ValueError, AttributeError) as e:
            raise TargetUnavailableError("Could not prepare the upload. Please try again.", original_exception=e) from e

        log_user_action(session.user_id, "upload_target_issued", storage_id=storage_id)
        return UploadTarget(storage_id=storage_id, url=url, expires_at=expires_at)

    def transfer_bytes(
        self,
        target: UploadTarget,
        data: bytes,
        content_type: str,
        filename: str = "",
        dimensions: Dimensions | None = None,
    ) -> MediaAsset:
        """
        PUT the bytes to an upload target.

        Returns:
            MediaAsset: The stored asset, keyed by the target's storage id

        Raises:
            TransferFailedError: On a transport error or a non-success status
        """
        label = filename or target.storage_id
        try:
            # No explicit timeout; the transport's defaults apply
            response = requests.put(  # nosec B113
                target.url,
                data=data,
                headers={"Content-Type": content_type},
            )
        except requests.RequestException as e:
            raise TransferFailedError(label, original_exception=e) from e

        if not response.ok:
            raise TransferFailedError(label, status_code=response.status_code)

        logger.info(
            "media_transferred",
            storage_id=target.storage_id,
            filename=filename,
            size=len(data),
            content_type=content_type,
        )
        return MediaAsset(
            storage_id=target.storage_id,
            kind=MediaKind.from_mime_type(content_type),
            size=len(data),
            content_type=content_type,
            dimensions=dimensions,
        )

    def get_signed_url(self, storage_id: str, expiration: int | None = None) -> str:
        """
        Generate a signed GET URL for a stored asset.

        Raises:
            StorageError: If URL generation fails
        """
        try:
            blob = self.bucket.blob(self._get_media_path(storage_id))
            expiration_time = datetime.now() + timedelta(seconds=expiration or self.signed_url_expiration)
            signed_url: str = blob.generate_signed_url(
                expiration=expiration_time,
                method="GET",
                version="v4",
                **self._signing_credentials(),
            )
            return signed_url
        except GoogleCloudError as e:
            raise StorageError(f"Failed to generate signed URL for '{storage_id}': {e}", original_exception=e) from e
        except (GoogleAuthError, ValueError, AttributeError) as e:
            raise StorageError(f"Unexpected error generating signed URL: {e}", original_exception=e) from e

    def get_media_url(self, storage_id: str | None) -> str | None:
        """Signed URL for display, or None when it cannot be produced."""
        if not storage_id:
            return None
        try:
            return self.get_signed_url(storage_id)
        except StorageError:
            log_degraded("media_url_unavailable", storage_id=storage_id)
            return None

    def download_media(self, storage_id: str) -> tuple[bytes, str | None]:
        """
        Read a stored asset.

        Returns:
            tuple: The raw bytes and the stored content type, if any

        Raises:
            NotFoundError: If no blob exists for the id
            StorageError: On any other storage failure
        """
        path = self._get_media_path(storage_id)
        try:
            blob = self.bucket.get_blob(path)
            if blob is None:
                raise NotFoundError("Media not found", details={"storage_id": storage_id})
            return blob.download_as_bytes(), blob.content_type
        except NotFound as e:
            raise NotFoundError("Media not found", details={"storage_id": storage_id}) from e
        except GoogleCloudError as e:
            raise StorageError(f"Failed to download '{storage_id}': {e}", original_exception=e) from e

    def delete_media(self, storage_id: str) -> None:
        """
        Delete a stored asset. A blob that is already gone is not an error.

        Raises:
            StorageError: If deletion fails
        """
        try:
            self.bucket.blob(self._get_media_path(storage_id)).delete()
            logger.info("media_deleted", storage_id=storage_id)
        except NotFound:
            logger.info("media_already_deleted", storage_id=storage_id)
        except GoogleCloudError as e:
            raise StorageError(f"Failed to delete '{storage_id}': {e}", original_exception=e) from e


_storage_service: StorageService | None = None


def get_storage_service(bucket_name: str | None = None, project_id: str | None = None) -> StorageService:
    """
    Get the global storage service instance.

    Args:
        bucket_name: Override for GCS_MEDIA_BUCKET (first call only)
        project_id: Override for GOOGLE_CLOUD_PROJECT (first call only)
    """
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService(bucket_name, project_id)
    return _storage_service


def reset_storage_service() -> None:
    global _storage_service
    _storage_service = None
