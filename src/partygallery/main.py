"""
Main Streamlit application for partygallery.

Run with ``streamlit run src/partygallery/main.py``.
"""

from datetime import UTC, datetime

import streamlit as st

from partygallery.config import get_config, get_event_instant
from partygallery.logging_config import configure_structured_logging, get_logger
from partygallery.services.access_gate import HOME_ROUTE, check_access, is_unlocked
from partygallery.ui.auth_handlers import authenticate_user
from partygallery.ui.components.common import render_footer, render_sidebar
from partygallery.ui.components.error_display import error_context, get_error_display_manager
from partygallery.ui.pages.feed import render_feed_page
from partygallery.ui.pages.home import render_home_page
from partygallery.ui.pages.photos import render_photos_page
from partygallery.ui.pages.profile import render_profile_page
from partygallery.ui.upload_drawer import get_drawer_state, set_drawer_state

configure_structured_logging()
logger = get_logger(__name__)

PAGES = {
    "home": render_home_page,
    "feed": render_feed_page,
    "photos": render_photos_page,
    "profile": render_profile_page,
}


def initialize_session_state() -> None:
    """Initialize session state variables."""
    if "session" not in st.session_state:
        st.session_state.session = None

    if "auth_error" not in st.session_state:
        st.session_state.auth_error = None

    if "current_page" not in st.session_state:
        st.session_state.current_page = HOME_ROUTE


def apply_navigation() -> None:
    """Move to the page requested in the previous run, if any."""
    next_page = st.session_state.pop("next_page", None)
    if not next_page:
        return

    previous_page = st.session_state.current_page
    st.session_state.current_page = next_page
    logger.info("page_navigated", from_page=previous_page, to_page=next_page)

    # Leaving a page tears down the drawer and whatever it had staged
    if previous_page != next_page and get_drawer_state().is_open:
        set_drawer_state(get_drawer_state().close())


def resolve_page(page: str) -> str:
    """The page to actually render, after the access gate."""
    if page not in PAGES:
        logger.warning("unknown_page_requested", page=page)
        return HOME_ROUTE

    decision = check_access(page, st.session_state.session)
    if not decision.allowed:
        logger.info("page_redirected", page=page, redirect_to=decision.redirect_to, reason=decision.reason)
        return decision.redirect_to or HOME_ROUTE
    return page


def main() -> None:
    """Main application entry point."""
    st.set_page_config(
        page_title="Party Gallery",
        page_icon="🎉",
        layout="centered",
        initial_sidebar_state="collapsed",
        menu_items={"Get Help": None, "Report a bug": None, "About": "Party Gallery"},
    )

    initialize_session_state()
    apply_navigation()

    try:
        authenticate_user()
    except Exception as e:
        logger.error("authentication_error", error=str(e))
        get_error_display_manager().display_exception(e, context={"operation": "authenticate"})

    page = resolve_page(st.session_state.current_page)
    st.session_state.current_page = page

    render_sidebar(unlocked=is_unlocked(datetime.now(UTC), get_event_instant()))

    with error_context(f"render_{page}"):
        PAGES[page]()

    render_footer()

    if get_config().get("DEBUG", False, bool):
        with st.expander("Debug Info"):
            st.write("Session State:", dict(st.session_state))


if __name__ == "__main__":
    main()
