"""
Unit tests for the GCS storage service.
"""

from datetime import datetime
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests
from google.auth.exceptions import RefreshError
from google.cloud.exceptions import GoogleCloudError, NotFound

from partygallery.error_handling import NotFoundError, StorageError, TargetUnavailableError, TransferFailedError
from partygallery.models.ids import MediaAssetId
from partygallery.models.media import Dimensions, MediaKind
from partygallery.services.storage import StorageService, UploadTarget, get_storage_service, reset_storage_service
from tests.conftest import make_session


@pytest.fixture
def mock_client():
    with patch("partygallery.services.storage.storage.Client") as client_class:
        client = MagicMock()
        client_class.return_value = client
        yield client


@pytest.fixture
def service(mock_client):
    with patch("google.auth.default", side_effect=RefreshError("no credentials")):
        yield StorageService()


def _target(storage_id="abc"):
    return UploadTarget(storage_id=MediaAssetId(storage_id), url=f"https://upload.test/{storage_id}", expires_at=datetime.now())


class TestStorageServiceInit:
    def test_reads_environment(self, mock_client):
        service = StorageService()

        assert service.bucket_name == "test-media-bucket"
        assert service.project_id == "test-project"
        mock_client.bucket.assert_called_once_with("test-media-bucket")

    def test_missing_bucket(self, monkeypatch, mock_client):
        monkeypatch.delenv("GCS_MEDIA_BUCKET")
        with pytest.raises(StorageError, match="GCS_MEDIA_BUCKET"):
            StorageService()

    def test_missing_project(self, monkeypatch, mock_client):
        monkeypatch.delenv("GOOGLE_CLOUD_PROJECT")
        with pytest.raises(StorageError, match="GOOGLE_CLOUD_PROJECT"):
            StorageService()

    def test_client_failure(self):
        with patch("partygallery.services.storage.storage.Client", side_effect=Exception("no credentials")):
            with pytest.raises(StorageError, match="Failed to initialize GCS client"):
                StorageService()

    def test_media_path(self):
        assert StorageService._get_media_path("abc123") == "media/abc123"

    def test_singleton(self, mock_client):
        reset_storage_service()
        try:
            assert get_storage_service() is get_storage_service()
        finally:
            reset_storage_service()


class TestIssueUploadTarget:
    def test_signed_put_url(self, service, mock_client):
        blob = mock_client.bucket.return_value.blob.return_value
        blob.generate_signed_url.return_value = "https://signed.test/put"

        target = service.issue_upload_target(make_session("alice-sub"))

        assert target.url == "https://signed.test/put"
        assert len(target.storage_id) == 32
        mock_client.bucket.return_value.blob.assert_called_with(f"media/{target.storage_id}")
        kwargs = blob.generate_signed_url.call_args.kwargs
        assert kwargs["method"] == "PUT"
        assert kwargs["version"] == "v4"
        assert target.expires_at > datetime.now()

    def test_each_target_has_fresh_id(self, service, mock_client):
        mock_client.bucket.return_value.blob.return_value.generate_signed_url.return_value = "https://signed.test"
        session = make_session("alice-sub")

        first = service.issue_upload_target(session)
        second = service.issue_upload_target(session)

        assert first.storage_id != second.storage_id

    def test_requires_session(self, service, mock_client):
        with pytest.raises(TargetUnavailableError, match="You must be logged in to upload media"):
            service.issue_upload_target(None)
        mock_client.bucket.return_value.blob.assert_not_called()

    def test_signing_failure(self, service, mock_client):
        blob = mock_client.bucket.return_value.blob.return_value
        blob.generate_signed_url.side_effect = AttributeError("you need a private key to sign credentials")

        with pytest.raises(TargetUnavailableError):
            service.issue_upload_target(make_session("alice-sub"))

    def test_token_credentials_are_used_for_signing(self, mock_client):
        credentials = Mock(service_account_email="runner@test-project.iam.gserviceaccount.com", token="token-123")
        blob = mock_client.bucket.return_value.blob.return_value
        blob.generate_signed_url.return_value = "https://signed.test"

        with patch("google.auth.default", return_value=(credentials, "test-project")):
            StorageService().issue_upload_target(make_session("alice-sub"))

        kwargs = blob.generate_signed_url.call_args.kwargs
        assert kwargs["service_account_email"] == "runner@test-project.iam.gserviceaccount.com"
        assert kwargs["access_token"] == "token-123"
        credentials.refresh.assert_called_once()


class TestTransferBytes:
    @patch("partygallery.services.storage.requests.put")
    def test_successful_put(self, mock_put, service):
        mock_put.return_value = Mock(ok=True, status_code=200)

        asset = service.transfer_bytes(_target(), b"jpeg", "image/jpeg", filename="a.jpg", dimensions=Dimensions(4, 3))

        mock_put.assert_called_once_with(
            "https://upload.test/abc", data=b"jpeg", headers={"Content-Type": "image/jpeg"}
        )
        assert asset.storage_id == "abc"
        assert asset.kind is MediaKind.IMAGE
        assert asset.size == 4
        assert (asset.width, asset.height) == (4, 3)

    @patch("partygallery.services.storage.requests.put")
    def test_non_success_status(self, mock_put, service):
        mock_put.return_value = Mock(ok=False, status_code=403)

        with pytest.raises(TransferFailedError) as exc_info:
            service.transfer_bytes(_target(), b"data", "video/mp4", filename="clip.mp4")

        assert exc_info.value.status_code == 403
        assert exc_info.value.user_message == "Upload failed for clip.mp4"

    @patch("partygallery.services.storage.requests.put", side_effect=requests.ConnectionError("reset"))
    def test_transport_error(self, mock_put, service):
        with pytest.raises(TransferFailedError) as exc_info:
            service.transfer_bytes(_target("xyz"), b"data", "video/mp4")

        assert exc_info.value.user_message == "Upload failed for xyz"


class TestReadAndDelete:
    def test_get_signed_url(self, service, mock_client):
        blob = mock_client.bucket.return_value.blob.return_value
        blob.generate_signed_url.return_value = "https://signed.test/get"

        assert service.get_signed_url("abc") == "https://signed.test/get"
        assert blob.generate_signed_url.call_args.kwargs["method"] == "GET"

    def test_get_signed_url_failure(self, service, mock_client):
        blob = mock_client.bucket.return_value.blob.return_value
        blob.generate_signed_url.side_effect = GoogleCloudError("boom")

        with pytest.raises(StorageError):
            service.get_signed_url("abc")

    def test_get_media_url_degrades_to_none(self, service, mock_client):
        blob = mock_client.bucket.return_value.blob.return_value
        blob.generate_signed_url.side_effect = GoogleCloudError("boom")

        assert service.get_media_url("abc") is None
        assert service.get_media_url(None) is None

    def test_download_media(self, service, mock_client):
        blob = MagicMock(content_type="image/jpeg")
        blob.download_as_bytes.return_value = b"jpeg"
        mock_client.bucket.return_value.get_blob.return_value = blob

        assert service.download_media("abc") == (b"jpeg", "image/jpeg")
        mock_client.bucket.return_value.get_blob.assert_called_once_with("media/abc")

    def test_download_missing_blob(self, service, mock_client):
        mock_client.bucket.return_value.get_blob.return_value = None

        with pytest.raises(NotFoundError, match="Media not found"):
            service.download_media("missing")

    def test_download_not_found_from_api(self, service, mock_client):
        mock_client.bucket.return_value.get_blob.side_effect = NotFound("gone")

        with pytest.raises(NotFoundError):
            service.download_media("missing")

    def test_download_storage_failure(self, service, mock_client):
        mock_client.bucket.return_value.get_blob.side_effect = GoogleCloudError("boom")

        with pytest.raises(StorageError):
            service.download_media("abc")

    def test_delete_media(self, service, mock_client):
        service.delete_media("abc")
        mock_client.bucket.return_value.blob.assert_called_with("media/abc")
        mock_client.bucket.return_value.blob.return_value.delete.assert_called_once()

    def test_delete_missing_is_not_an_error(self, service, mock_client):
        mock_client.bucket.return_value.blob.return_value.delete.side_effect = NotFound("gone")
        service.delete_media("abc")

    def test_delete_failure(self, service, mock_client):
        mock_client.bucket.return_value.blob.return_value.delete.side_effect = GoogleCloudError("boom")
        with pytest.raises(StorageError):
            service.delete_media("abc")
