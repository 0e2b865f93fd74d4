"""Profile page for partygallery."""

import streamlit as st

from partygallery.error_handling import GalleryError
from partygallery.services.posts import get_post_service
from partygallery.services.users import MAX_NAME_LENGTH, get_user_service
from partygallery.ui.auth_handlers import get_session
from partygallery.ui.components.common import render_empty_state
from partygallery.ui.components.error_display import error_context, get_error_display_manager
from partygallery.ui.components.posts import render_post_card


def render_profile_page() -> None:
    """Stats, display name and the guest's own posts."""
    session = get_session()
    user = get_user_service().current_user(session)

    if user is None:
        render_empty_state("Profile not ready", "Your profile is still being set up. Try again shortly.", icon="⏳")
        return

    st.markdown(f"## {user.name}")

    with error_context("load_profile"):
        stats = get_post_service().get_user_stats(session)
        col1, col2 = st.columns(2)
        col1.metric("Memories shared", stats.post_count)
        col2.metric("Likes received", stats.likes_received)

    with st.form("rename_form"):
        new_name = st.text_input("Display name", value=user.name, max_chars=MAX_NAME_LENGTH)
        if st.form_submit_button("Save"):
            try:
                get_user_service().rename(session, new_name)
            except GalleryError as e:
                get_error_display_manager().display_error(e.get_error_info())
            else:
                st.rerun()

    st.divider()
    st.markdown("### Your memories")
    with error_context("load_user_posts"):
        views = get_post_service().list_user_posts(session)
        if not views:
            render_empty_state("Nothing shared yet", "Your memories will appear here.", icon="📷")
            return
        for view in views:
            render_post_card(view, session, key_prefix="profile")
