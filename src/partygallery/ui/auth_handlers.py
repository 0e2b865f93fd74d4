"""Authentication handlers for partygallery."""

import streamlit as st
import structlog

from partygallery.error_handling import GalleryError
from partygallery.services.auth import UserInfo, get_auth_service
from partygallery.services.users import get_user_service

logger = structlog.get_logger()


def authenticate_user() -> UserInfo | None:
    """
    Resolve the session from Cloud IAP headers (or the development user).

    On the first successful sign-in of a browser session the profile record
    is synced, so posts can be attributed to it.

    Returns:
        UserInfo | None: The session, also stored in ``st.session_state.session``
    """
    auth_service = get_auth_service()

    headers: dict[str, str] = {}
    if hasattr(st, "context") and hasattr(st.context, "headers"):
        headers = dict(st.context.headers)

    session = auth_service.parse_iap_header(headers)
    if session is None:
        st.session_state.session = None
        st.session_state.auth_error = "Please sign in to see the gallery."
        return None

    st.session_state.session = session
    st.session_state.auth_error = None

    if st.session_state.get("synced_user") != session.external_id:
        try:
            get_user_service().sync_user(session)
            st.session_state.synced_user = session.external_id
        except GalleryError as e:
            # Retried on the next run; posting reports AuthorNotFound meanwhile
            logger.warning("user_sync_failed", external_id=session.external_id, error=str(e))

    return session


def get_session() -> UserInfo | None:
    return st.session_state.get("session")
