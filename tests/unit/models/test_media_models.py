"""
Unit tests for media models.
"""

import pytest

from partygallery.models.media import (
    Dimensions,
    LivePhotoPair,
    MediaAsset,
    MediaKind,
    SelectedFile,
    StandaloneItem,
    guess_mime_type,
)
from tests.conftest import image_file, video_file


class TestMediaKind:
    def test_from_mime_type(self):
        assert MediaKind.from_mime_type("image/heic") is MediaKind.IMAGE
        assert MediaKind.from_mime_type("video/webm") is MediaKind.VIDEO

    def test_from_mime_type_rejects_other_types(self):
        with pytest.raises(ValueError, match="Not a media MIME type"):
            MediaKind.from_mime_type("application/pdf")


class TestGuessMimeType:
    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("IMG_1.HEIC", "image/heic"),
            ("clip.mov", "video/quicktime"),
            ("photo.JPG", "image/jpeg"),
            ("unknown.zzz", "application/octet-stream"),
        ],
    )
    def test_guess(self, filename, expected):
        assert guess_mime_type(filename) == expected


class TestSelectedFile:
    def test_base_name_strips_last_extension_and_lowercases(self):
        assert SelectedFile("IMG_0001.HEIC", "image/heic", b"").base_name == "img_0001"
        assert SelectedFile("party.final.mov", "video/quicktime", b"").base_name == "party.final"

    def test_base_name_without_extension(self):
        assert SelectedFile("README", "image/jpeg", b"").base_name == "readme"
        assert SelectedFile(".hidden", "image/jpeg", b"").base_name == ".hidden"
        assert SelectedFile("trailing.", "image/jpeg", b"").base_name == "trailing."

    def test_kind_and_size(self):
        file = video_file(data=b"12345")
        assert file.is_video
        assert not file.is_image
        assert file.kind is MediaKind.VIDEO
        assert file.size == 5

    def test_with_data_keeps_name_unless_given(self):
        original = image_file("a.png")
        compressed = original.with_data(b"jpeg", mime_type="image/jpeg")
        assert compressed.name == "a.png"
        assert compressed.mime_type == "image/jpeg"
        assert compressed.data == b"jpeg"
        assert original.data != b"jpeg"

    def test_from_path(self, temp_dir):
        path = temp_dir / "clip.mp4"
        path.write_bytes(b"video-bytes")

        file = SelectedFile.from_path(path)

        assert file.name == "clip.mp4"
        assert file.mime_type == "video/mp4"
        assert file.data == b"video-bytes"

    def test_repr_omits_bytes(self):
        assert "size=3" in repr(SelectedFile("x.jpg", "image/jpeg", b"abc"))


class TestUploadItems:
    def test_live_photo_primary_is_image(self):
        pair = LivePhotoPair(image=image_file("IMG_1.jpg"), video=video_file("IMG_1.mov"))
        assert pair.primary is pair.image
        assert pair.label == "IMG_1.jpg"

    def test_standalone_primary(self):
        item = StandaloneItem(file=video_file("clip.mp4", "video/mp4"))
        assert item.primary.name == "clip.mp4"

    def test_media_asset_dimensions(self):
        asset = MediaAsset("abc", MediaKind.IMAGE, 10, "image/jpeg", Dimensions(4, 3))
        assert (asset.width, asset.height) == (4, 3)
        assert MediaAsset("abc", MediaKind.IMAGE, 10, "image/jpeg").width is None
