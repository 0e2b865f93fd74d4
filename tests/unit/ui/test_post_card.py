"""
Tests for the post card download action.
"""

from unittest.mock import MagicMock, patch

import pytest

from partygallery.api.media import MediaResponse
from partygallery.models.media import MediaKind
from tests.conftest import storage_id


def _columns(download_clicked: bool) -> list[MagicMock]:
    like_col, download_col, delete_col = MagicMock(), MagicMock(), MagicMock()
    like_col.button.return_value = False
    download_col.button.return_value = download_clicked
    delete_col.button.return_value = False
    return [like_col, download_col, delete_col]


@pytest.fixture
def view(post_service, alice):
    post_service.create_post(alice, storage_id("s1"), MediaKind.IMAGE)
    return post_service.list_posts(alice)[0]


class TestPostCardDownload:
    @patch("partygallery.ui.components.posts.handle_get_media")
    @patch("partygallery.ui.components.posts.st")
    def test_fetched_file_stays_downloadable_after_rerun(self, mock_st, mock_get_media, view, alice):
        from partygallery.ui.components.posts import render_post_card

        mock_st.session_state = {}
        mock_get_media.return_value = MediaResponse(
            status=200, body=b"jpeg-bytes", headers={"Content-Type": "image/jpeg"}
        )

        clicked = _columns(download_clicked=True)
        mock_st.columns.return_value = clicked
        render_post_card(view, alice)

        rerun = _columns(download_clicked=False)
        mock_st.columns.return_value = rerun
        render_post_card(view, alice)

        mock_get_media.assert_called_once_with({"storageId": "s1"})
        clicked[1].download_button.assert_called_once()
        rerun[1].download_button.assert_called_once()
        kwargs = rerun[1].download_button.call_args.kwargs
        assert kwargs["data"] == b"jpeg-bytes"
        assert kwargs["mime"] == "image/jpeg"
        assert kwargs["file_name"] == f"{view.id}.jpg"

    @patch("partygallery.ui.components.posts.handle_get_media")
    @patch("partygallery.ui.components.posts.st")
    def test_failed_fetch_shows_error(self, mock_st, mock_get_media, view, alice):
        from partygallery.ui.components.posts import render_post_card

        mock_st.session_state = {}
        mock_get_media.return_value = MediaResponse(status=404, body=b"Media not found")
        columns = _columns(download_clicked=True)
        mock_st.columns.return_value = columns

        render_post_card(view, alice)

        mock_st.error.assert_called_once_with("Media not found")
        columns[1].download_button.assert_not_called()
        assert mock_st.session_state == {}
