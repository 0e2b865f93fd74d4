"""Photos page: grid browsing and bulk ZIP download."""

import streamlit as st
import structlog

from partygallery.error_handling import GalleryError
from partygallery.models.media import MediaKind
from partygallery.models.post import PostView, SortBy
from partygallery.services.exporter import ExportPackager, select_posts
from partygallery.services.posts import get_post_service
from partygallery.ui.auth_handlers import get_session
from partygallery.ui.components.common import format_file_size, render_empty_state
from partygallery.ui.components.error_display import error_context, get_error_display_manager

logger = structlog.get_logger(__name__)

GRID_COLUMNS = 3
SELECTION_KEY = "export_selection"
ARCHIVE_KEY = "export_archive"


def _selection() -> set[str]:
    if SELECTION_KEY not in st.session_state:
        st.session_state[SELECTION_KEY] = set()
    return st.session_state[SELECTION_KEY]


def render_photo_grid(views: list[PostView]) -> None:
    selection = _selection()
    for start in range(0, len(views), GRID_COLUMNS):
        columns = st.columns(GRID_COLUMNS)
        for column, view in zip(columns, views[start : start + GRID_COLUMNS]):
            with column:
                if view.media_url:
                    if view.media_type is MediaKind.VIDEO:
                        st.video(view.media_url)
                    else:
                        st.image(view.media_url, use_container_width=True)
                label = f"{view.author_name}{' · Live' if view.companion_url else ''}"
                key = f"select_{view.id}"
                if key not in st.session_state:
                    st.session_state[key] = view.id in selection
                if st.checkbox(label, key=key):
                    selection.add(view.id)
                else:
                    selection.discard(view.id)


def render_export_controls(views: list[PostView]) -> None:
    selection = _selection()
    visible_ids = {view.id for view in views}
    selection.intersection_update(visible_ids)

    col1, col2, col3 = st.columns([1, 1, 2])
    if col1.button("Select all", use_container_width=True):
        selection.update(visible_ids)
        for view in views:
            st.session_state[f"select_{view.id}"] = True
        st.rerun()
    if col2.button("Clear", use_container_width=True, disabled=not selection):
        selection.clear()
        for view in views:
            st.session_state[f"select_{view.id}"] = False
        st.rerun()

    if col3.button(f"📦 Prepare {len(selection)} for download", type="primary", disabled=not selection):
        selected = select_posts(views, selection)
        progress_bar = st.progress(0, text="Packing...")

        def on_progress(done: int, total: int) -> None:
            progress_bar.progress(int(done / total * 100), text=f"Packing {done}/{total}")

        try:
            archive = ExportPackager().package(selected, on_progress)
        except GalleryError as e:
            st.session_state.pop(ARCHIVE_KEY, None)
            get_error_display_manager().display_error(e.get_error_info())
            return

        st.session_state[ARCHIVE_KEY] = (frozenset(selection), archive)
        logger.info("export_ready", selected=len(selected), entries=len(archive.entries))

    prepared = st.session_state.get(ARCHIVE_KEY)
    if prepared is None:
        return
    packed_ids, archive = prepared
    # A changed selection needs a fresh archive
    if packed_ids != selection:
        st.session_state.pop(ARCHIVE_KEY, None)
        return

    if archive.skipped:
        st.warning(f"{len(archive.skipped)} memories could not be fetched and were left out.")
    st.download_button(
        f"⬇️ Download {archive.filename} ({format_file_size(archive.size)})",
        data=archive.data,
        file_name=archive.filename,
        mime="application/zip",
        use_container_width=True,
        on_click="ignore",
    )


def render_photos_page() -> None:
    """Render the selectable photo grid."""
    session = get_session()

    col1, col2 = st.columns([2, 1])
    with col1:
        search_term = st.text_input("Search by author", key="photos_search")
    with col2:
        most_liked = st.toggle("Most liked first", key="photos_most_liked")

    with error_context("load_photos"):
        sort_by = SortBy.MOST_LIKED if most_liked else SortBy.NEWEST
        views = get_post_service().list_posts(session, sort_by, search_term)
        if not views:
            render_empty_state("Nothing here yet", "Shared memories will show up here.", icon="🖼️")
            return

        render_export_controls(views)
        st.divider()
        render_photo_grid(views)
