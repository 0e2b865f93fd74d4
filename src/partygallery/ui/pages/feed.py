"""Feed page for partygallery."""

import streamlit as st
import structlog

from partygallery.models.post import SortBy
from partygallery.services.posts import get_post_service
from partygallery.ui.auth_handlers import get_session
from partygallery.ui.components.common import render_empty_state
from partygallery.ui.components.error_display import error_context
from partygallery.ui.components.posts import render_post_card
from partygallery.ui.upload_drawer import render_upload_button, render_upload_drawer

logger = structlog.get_logger(__name__)

SORT_OPTIONS = {"Newest": SortBy.NEWEST, "Most liked": SortBy.MOST_LIKED}


def render_feed_page() -> None:
    """Render the social feed with search and sort."""
    session = get_session()

    render_upload_button()
    render_upload_drawer(session)

    col1, col2 = st.columns([2, 1])
    with col1:
        search_term = st.text_input("Search by author", key="feed_search", placeholder="Name...")
    with col2:
        sort_label = st.selectbox("Sort", list(SORT_OPTIONS), key="feed_sort")

    with error_context("load_feed"):
        views = get_post_service().list_posts(session, SORT_OPTIONS[sort_label], search_term)

        if not views:
            if search_term:
                render_empty_state("No matches", f"Nobody called '{search_term}' has shared yet.", icon="🔍")
            else:
                render_empty_state("No memories yet", "Be the first to share one!", icon="📷")
            return

        for view in views:
            render_post_card(view, session, key_prefix="feed")
