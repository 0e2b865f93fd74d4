"""
Bulk export of selected posts as a single ZIP archive.

Each post's media is fetched from its signed URL and stored under a shared
folder as ``NNN_Author_Name.jpg`` (``.mp4`` for videos), with Live Photo clips
as ``NNN_Author_Name_LIVE.mov``. A post whose media cannot be fetched is
skipped and does not use up a sequence number. Media is already compressed,
so entries are stored without deflate.
"""

import io
import re
import zipfile
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

import requests

from ..config import get_export_archive_name
from ..error_handling import ExportError
from ..logging_config import get_logger, log_degraded, log_performance
from ..models.ids import PostId
from ..models.media import MediaKind
from ..models.post import PostView

logger = get_logger(__name__)

ExportProgress = Callable[[int, int], None]

_UNSAFE_NAME_CHARS = re.compile(r"[^\w.-]+")


def sanitize_author_name(name: str) -> str:
    """Author name made safe for an archive entry name, whitespace becoming ``_``."""
    cleaned = _UNSAFE_NAME_CHARS.sub("_", name.strip()).strip("._")
    return cleaned or "Guest"


def select_posts(posts: Iterable[PostView], selected_ids: Iterable[PostId]) -> list[PostView]:
    """The selected posts in feed order."""
    wanted = set(selected_ids)
    return [post for post in posts if post.id in wanted]


@dataclass(frozen=True)
class ExportArchive:
    """A finished archive, ready to hand to the browser."""

    filename: str
    data: bytes
    entries: list[str] = field(default_factory=list)
    skipped: list[PostId] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.data)


class ExportPackager:
    """Fetches selected posts' media and packs it into a store-only ZIP."""

    def __init__(self, http: requests.Session | None = None, archive_name: str | None = None):
        self.http = http or requests.Session()
        self.archive_name = archive_name or get_export_archive_name()

    def fetch(self, url: str) -> bytes:
        """
        Download one media file.

        Raises:
            requests.RequestException: On transport errors and non-success statuses
        """
        response = self.http.get(url)  # nosec B113
        response.raise_for_status()
        return response.content

    @staticmethod
    def entry_name(index: int, post: PostView, companion: bool = False) -> str:
        stem = f"{index:03d}_{sanitize_author_name(post.author_name)}"
        if companion:
            return f"{stem}_LIVE.mov"
        extension = "mp4" if post.media_type is MediaKind.VIDEO else "jpg"
        return f"{stem}.{extension}"

    def package(self, posts: Sequence[PostView], on_progress: ExportProgress | None = None) -> ExportArchive:
        """
        Build the archive for ``posts``.

        Args:
            posts: Selected posts, in the order they should be numbered
            on_progress: Called with (posts handled, total posts) after each post

        Returns:
            ExportArchive: Every file that could be fetched

        Raises:
            ExportError: If the archive itself cannot be assembled
        """
        start_time = datetime.now()
        files: list[tuple[str, bytes]] = []
        skipped: list[PostId] = []
        index = 1

        for handled, post in enumerate(posts, start=1):
            fetched = self._fetch_post(post, index)
            if fetched:
                files.extend(fetched)
                index += 1
            else:
                skipped.append(post.id)
            if on_progress:
                on_progress(handled, len(posts))

        data, entries = self._assemble(files)

        log_performance(
            "export_package",
            (datetime.now() - start_time).total_seconds(),
            selected=len(posts),
            files=len(entries),
            skipped=len(skipped),
            size=len(data),
        )
        return ExportArchive(filename=f"{self.archive_name}.zip", data=data, entries=entries, skipped=skipped)

    def _fetch_post(self, post: PostView, index: int) -> list[tuple[str, bytes]]:
        """Files for one post; empty when its primary media is unreachable."""
        if not post.media_url:
            log_degraded("fetch_skipped", post_id=post.id, reason="no_media_url")
            return []

        try:
            files = [(self.entry_name(index, post), self.fetch(post.media_url))]
        except requests.RequestException as e:
            log_degraded("fetch_skipped", post_id=post.id, error=str(e))
            return []

        if post.companion_url:
            try:
                files.append((self.entry_name(index, post, companion=True), self.fetch(post.companion_url)))
            except requests.RequestException as e:
                log_degraded("fetch_skipped", post_id=post.id, companion=True, error=str(e))

        return files

    def _assemble(self, files: list[tuple[str, bytes]]) -> tuple[bytes, list[str]]:
        buffer = io.BytesIO()
        entries = []
        try:
            with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
                for name, content in files:
                    entry = f"{self.archive_name}/{name}"
                    archive.writestr(entry, content)
                    entries.append(entry)
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise ExportError(f"Failed to assemble export archive: {e}", original_exception=e) from e

        logger.info("export_archive_assembled", entries=len(entries), size=buffer.tell())
        return buffer.getvalue(), entries
