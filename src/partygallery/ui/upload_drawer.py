"""
Upload drawer.

``UploadDrawerState`` is an immutable value: opening, closing and staging
return a new state, and the page keeps the current one in
``st.session_state.upload_drawer``. Closing the drawer discards whatever was
staged.
"""

import time
from collections.abc import Iterable
from dataclasses import dataclass, replace

import streamlit as st
import structlog

from partygallery.config import get_max_staged_items, get_success_dwell_seconds
from partygallery.error_handling import GalleryError
from partygallery.models.media import LivePhotoPair, SelectedFile, UploadItem
from partygallery.services.auth import UserInfo
from partygallery.services.classifier import ACCEPTED_EXTENSIONS, classify_files
from partygallery.services.uploader import UploadProgress, UploadSequencer
from partygallery.ui.components.common import format_file_size, navigate_to
from partygallery.ui.components.error_display import get_error_display_manager

logger = structlog.get_logger()

STATE_KEY = "upload_drawer"


@dataclass(frozen=True)
class UploadDrawerState:
    is_open: bool = False
    staged: tuple[UploadItem, ...] = ()
    caption: str = ""

    @property
    def staged_count(self) -> int:
        return len(self.staged)

    def open(self) -> "UploadDrawerState":
        return replace(self, is_open=True)

    def close(self) -> "UploadDrawerState":
        """Closed and empty; staged items are dropped."""
        return UploadDrawerState()

    def stage(self, files: Iterable[SelectedFile], max_items: int | None = None) -> "UploadDrawerState":
        """
        Add a freshly selected batch.

        Raises:
            ValidationError: If any file has an unsupported type
            CapacityError: If the staged total would exceed the cap
        """
        items = classify_files(files, already_staged=self.staged_count, max_items=max_items)
        return replace(self, staged=self.staged + tuple(items))

    def remove(self, index: int) -> "UploadDrawerState":
        return replace(self, staged=self.staged[:index] + self.staged[index + 1 :])

    def with_caption(self, caption: str) -> "UploadDrawerState":
        return replace(self, caption=caption)


def get_drawer_state() -> UploadDrawerState:
    if STATE_KEY not in st.session_state:
        st.session_state[STATE_KEY] = UploadDrawerState()
    return st.session_state[STATE_KEY]


def set_drawer_state(state: UploadDrawerState) -> None:
    st.session_state[STATE_KEY] = state


def render_upload_button() -> None:
    """Button that opens the drawer."""
    if st.button("➕ Share memories", type="primary", use_container_width=True):
        set_drawer_state(get_drawer_state().open())
        st.rerun()


def _item_caption(item: UploadItem) -> str:
    if isinstance(item, LivePhotoPair):
        return f"📸 {item.image.name} (Live, {format_file_size(item.image.size + item.video.size)})"
    icon = "🎬" if item.primary.is_video else "🖼️"
    return f"{icon} {item.primary.name} ({format_file_size(item.primary.size)})"


def _stage_selection(state: UploadDrawerState, uploaded_files: list) -> None:
    files = [SelectedFile.from_uploaded_file(uploaded) for uploaded in uploaded_files]
    try:
        set_drawer_state(state.stage(files))
    except GalleryError as e:
        st.session_state.upload_drawer_error = e.user_message
    # A new key clears the widget so the same batch is not staged twice
    st.session_state.uploader_key = st.session_state.get("uploader_key", 0) + 1
    st.rerun()


def render_upload_drawer(session: UserInfo | None) -> None:
    """Render the drawer when it is open."""
    state = get_drawer_state()
    if not state.is_open:
        return

    with st.container(border=True):
        header, close = st.columns([4, 1])
        header.markdown("### Share your memories")
        if close.button("✖", key="close_upload_drawer", help="Close"):
            set_drawer_state(state.close())
            st.session_state.pop("upload_drawer_error", None)
            st.rerun()

        error = st.session_state.pop("upload_drawer_error", None)
        if error:
            st.error(error)

        remaining = get_max_staged_items() - state.staged_count
        if remaining > 0:
            uploaded_files = st.file_uploader(
                f"Photos and videos (up to {remaining} more)",
                type=ACCEPTED_EXTENSIONS,
                accept_multiple_files=True,
                key=f"uploader_{st.session_state.get('uploader_key', 0)}",
            )
            if uploaded_files:
                _stage_selection(state, uploaded_files)

        for index, item in enumerate(state.staged):
            label, remove = st.columns([5, 1])
            label.write(_item_caption(item))
            if remove.button("🗑️", key=f"remove_staged_{index}"):
                set_drawer_state(state.remove(index))
                st.rerun()

        caption = st.text_input("Caption (optional)", value=state.caption, max_chars=500)
        if caption != state.caption:
            state = state.with_caption(caption)
            set_drawer_state(state)

        if st.button(
            f"Share {state.staged_count} {'memory' if state.staged_count == 1 else 'memories'}",
            type="primary",
            use_container_width=True,
            disabled=state.staged_count == 0,
        ):
            _run_upload(session, state)


def _run_upload(session: UserInfo | None, state: UploadDrawerState) -> None:
    progress_bar = st.progress(0, text="Preparing...")

    def on_progress(progress: UploadProgress) -> None:
        current = progress.current
        text = f"{current.label}: {current.state.value}" if current else "Preparing..."
        progress_bar.progress(int(progress.progress_percentage), text=text)

    result = UploadSequencer().run(session, state.staged, caption=state.caption, on_progress=on_progress)

    if result.error is not None:
        logger.warning("upload_drawer_batch_failed", committed=result.committed_items, code=result.error.code)
        if result.post_ids:
            st.warning(result.message)
        get_error_display_manager().display_error(result.error)
        # Keep what has not been shared yet so the guest can retry it
        set_drawer_state(replace(state, staged=state.staged[result.committed_items :]))
        return

    progress_bar.progress(100, text="Done")
    st.success(f"🎉 {result.message}!")
    st.balloons()
    time.sleep(get_success_dwell_seconds())
    set_drawer_state(state.close())
    navigate_to("feed")
