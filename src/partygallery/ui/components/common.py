"""Reusable UI components for partygallery."""

import html

import streamlit as st
import structlog

logger = structlog.get_logger()

NAV_PAGES = {"🏠 Home": "home", "🎉 Feed": "feed", "🖼️ Photos": "photos", "👤 Profile": "profile"}


def navigate_to(page: str) -> None:
    """Switch page on the next script run."""
    logger.info("page_navigation", from_page=st.session_state.get("current_page"), to_page=page)
    st.session_state.next_page = page
    st.rerun()


def render_empty_state(
    title: str,
    description: str,
    icon: str = "📭",
    action_text: str | None = None,
    action_page: str | None = None,
) -> None:
    """
    Render an empty state message with optional action button.

    Args:
        title: Main title for the empty state
        description: Description text
        icon: Emoji icon to display
        action_text: Text for action button (optional)
        action_page: Page to navigate to when action button is clicked (optional)
    """
    col1, col2, col3 = st.columns([1, 2, 1])

    with col2:
        st.markdown(
            f"""
        <div style='text-align: center; padding: 2rem 0;'>
            <div style='font-size: 4rem; margin-bottom: 1rem;'>{icon}</div>
            <h3 style='color: #666; margin-bottom: 1rem;'>{html.escape(title)}</h3>
            <p style='color: #888; margin-bottom: 2rem;'>{html.escape(description)}</p>
        </div>
        """,
            unsafe_allow_html=True,
        )

        if action_text and action_page:
            if st.button(action_text, use_container_width=True, type="primary"):
                navigate_to(action_page)


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Returns:
        str: Formatted file size (e.g., "1.5 MB")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes / (1024 * 1024):.1f} MB"


def render_countdown(seconds_left: float) -> None:
    """Time remaining until the gallery opens."""
    total = max(0, int(seconds_left))
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)

    cols = st.columns(4)
    for col, (value, label) in zip(cols, [(days, "days"), (hours, "hours"), (minutes, "min"), (seconds, "sec")]):
        col.metric(label, f"{value:02d}")


def render_sidebar(unlocked: bool) -> None:
    """Navigation between pages; gallery pages stay hidden until the event starts."""
    with st.sidebar:
        st.markdown("### 🎉 Party Gallery")
        st.divider()

        current_page = st.session_state.current_page
        for page_name, page_key in NAV_PAGES.items():
            if page_key != "home" and not unlocked:
                continue
            if st.button(
                page_name,
                key=f"nav_{page_key}",
                use_container_width=True,
                type="primary" if page_key == current_page else "secondary",
            ):
                navigate_to(page_key)

        st.divider()

        session = st.session_state.get("session")
        if session is not None:
            st.markdown(f"📧 {session.email}")
        elif st.session_state.get("auth_error"):
            st.error(st.session_state.auth_error)


def render_footer() -> None:
    st.divider()
    st.markdown(
        "<div style='text-align: center; color: #666; font-size: 0.8em;'><strong>Party Gallery</strong></div>",
        unsafe_allow_html=True,
    )
