"""Post rendering shared by the feed and profile pages."""

import streamlit as st
import structlog

from partygallery.api.media import handle_get_media
from partygallery.error_handling import GalleryError
from partygallery.models.media import MediaKind
from partygallery.models.post import PostView
from partygallery.services.auth import UserInfo
from partygallery.services.posts import get_post_service
from partygallery.ui.components.error_display import get_error_display_manager

logger = structlog.get_logger()


def render_media(view: PostView) -> None:
    if not view.media_url:
        st.info("Media unavailable")
        return
    if view.media_type is MediaKind.VIDEO:
        st.video(view.media_url)
    else:
        st.image(view.media_url, use_container_width=True)
    if view.companion_url:
        with st.expander("▶️ Live"):
            st.video(view.companion_url, loop=True, autoplay=True, muted=True)


def render_post_card(view: PostView, session: UserInfo | None, key_prefix: str = "post") -> None:
    """One post with its like and delete actions."""
    with st.container(border=True):
        st.markdown(f"**{view.author_name}** · {view.post.created_at:%d %b %H:%M}")
        render_media(view)
        if view.post.caption:
            st.caption(view.post.caption)

        like_col, download_col, delete_col = st.columns([1, 1, 1])
        heart = "❤️" if view.is_liked_by_me else "🤍"
        if like_col.button(f"{heart} {view.like_count}", key=f"{key_prefix}_like_{view.id}"):
            try:
                get_post_service().toggle_like(session, view.id)
            except GalleryError as e:
                get_error_display_manager().display_error(e.get_error_info())
            else:
                st.rerun()

        download_key = f"{key_prefix}_download_{view.id}"
        if download_col.button("⬇️", key=f"{key_prefix}_fetch_{view.id}", help="Download"):
            response = handle_get_media({"storageId": view.post.storage_id})
            if response.ok:
                st.session_state[download_key] = (response.body, response.content_type)
            else:
                st.session_state.pop(download_key, None)
                st.error(response.body.decode("utf-8", errors="replace"))

        if download_key in st.session_state:
            data, mime = st.session_state[download_key]
            extension = "mp4" if view.media_type is MediaKind.VIDEO else "jpg"
            download_col.download_button(
                "Save file",
                data=data,
                file_name=f"{view.id}.{extension}",
                mime=mime,
                key=f"{key_prefix}_save_{view.id}",
                on_click="ignore",
            )

        if view.is_author and delete_col.button("🗑️", key=f"{key_prefix}_delete_{view.id}", help="Delete"):
            try:
                get_post_service().delete_post(session, view.id)
            except GalleryError as e:
                get_error_display_manager().display_error(e.get_error_info())
            else:
                logger.info("post_deleted_from_ui", post_id=view.id)
                st.rerun()
