"""Landing page for partygallery."""

from datetime import UTC, datetime

import streamlit as st

from partygallery.config import get_event_instant
from partygallery.services.access_gate import is_unlocked
from partygallery.ui.components.common import navigate_to, render_countdown, render_empty_state


def render_home_page() -> None:
    """Countdown before the party, entry points after it."""
    event_at = get_event_instant()
    now = datetime.now(UTC)

    st.markdown("## 🎉 Party Gallery")

    if not is_unlocked(now, event_at):
        st.markdown(f"The gallery opens on **{event_at:%d %B %Y, %H:%M}**.")
        render_countdown((event_at - now).total_seconds())
        return

    if st.session_state.get("session") is None:
        render_empty_state(
            title="Sign in required",
            description=st.session_state.get("auth_error") or "Sign in to share and see the party memories.",
            icon="🔐",
        )
        return

    col1, col2 = st.columns(2)
    with col1:
        if st.button("🎉 Open the feed", use_container_width=True, type="primary"):
            navigate_to("feed")
    with col2:
        if st.button("🖼️ Browse and download", use_container_width=True):
            navigate_to("photos")
