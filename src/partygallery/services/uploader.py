"""
Upload sequencer.

Runs staged items one at a time through normalize, transfer and commit:

    pending -> processing -> uploading -> done
                   |             |
                   +-> error <---+

The first failing item halts the queue. Items committed before it stay
committed; there is no rollback, so a batch can end partially shared.
A bad caption or a failed profile lookup rejects the batch before anything
is transferred.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from ..error_handling import ErrorInfo, handle_error
from ..logging_config import get_logger, log_performance
from ..models.ids import MediaAssetId, PostId
from ..models.media import LivePhotoPair, UploadItem
from .auth import UserInfo
from .media_normalizer import MediaNormalizer, get_media_normalizer
from .posts import PostService, get_post_service, validate_caption
from .storage import StorageService, get_storage_service
from .users import UserService, get_user_service

logger = get_logger(__name__)


class ItemState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"


_TRANSITIONS = {
    ItemState.PENDING: {ItemState.PROCESSING},
    ItemState.PROCESSING: {ItemState.UPLOADING, ItemState.ERROR},
    ItemState.UPLOADING: {ItemState.DONE, ItemState.ERROR},
    ItemState.DONE: set(),
    ItemState.ERROR: set(),
}

# Per-item progress milestones, in percent
PAIR_PROCESSED = 45.0
PAIR_IMAGE_UPLOADED = 70.0
PAIR_VIDEO_UPLOADED = 90.0
SINGLE_PROCESSED = 90.0
SINGLE_UPLOADED = 95.0
COMMITTED = 100.0


@dataclass
class ItemProgress:
    """State and progress of one upload item."""

    label: str
    is_live_photo: bool = False
    state: ItemState = ItemState.PENDING
    percentage: float = 0.0
    error: str | None = None
    post_id: PostId | None = None

    def transition(self, state: ItemState) -> None:
        """
        Move to ``state``.

        Raises:
            ValueError: If the transition is not allowed
        """
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Invalid transition {self.state.value} -> {state.value}")
        self.state = state

    def advance(self, percentage: float) -> None:
        """Raise progress to ``percentage``; progress never goes backwards."""
        self.percentage = max(self.percentage, min(100.0, percentage))

    @property
    def processing_ceiling(self) -> float:
        return PAIR_PROCESSED if self.is_live_photo else SINGLE_PROCESSED


class UploadProgress:
    """Helper class for tracking batch upload progress."""

    def __init__(self, items: Sequence[UploadItem]):
        self.items = [ItemProgress(label=item.label, is_live_photo=isinstance(item, LivePhotoPair)) for item in items]
        self.start_time = datetime.now()
        self.current_index: int | None = None

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def completed_items(self) -> int:
        return sum(1 for item in self.items if item.state is ItemState.DONE)

    @property
    def progress_percentage(self) -> float:
        """Each item contributes an equal share of the overall bar."""
        if not self.items:
            return 0.0
        percentage = sum(item.percentage for item in self.items) / len(self.items)
        return max(0.0, min(100.0, percentage))

    @property
    def current(self) -> ItemProgress | None:
        if self.current_index is None:
            return None
        return self.items[self.current_index]

    @property
    def elapsed_time(self) -> timedelta:
        return datetime.now() - self.start_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_items": self.total_items,
            "completed_items": self.completed_items,
            "progress_percentage": self.progress_percentage,
            "elapsed_time": self.elapsed_time.total_seconds(),
            "items": [
                {"label": item.label, "state": item.state.value, "percentage": item.percentage, "error": item.error}
                for item in self.items
            ],
        }


ProgressListener = Callable[[UploadProgress], None]


@dataclass
class BatchResult:
    """Outcome of one sequencer run."""

    total_items: int
    post_ids: list[PostId] = field(default_factory=list)
    error: ErrorInfo | None = None
    failed_item: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and len(self.post_ids) == self.total_items

    @property
    def committed_items(self) -> int:
        return len(self.post_ids)

    @property
    def message(self) -> str:
        if self.success:
            return f"Shared {self.committed_items} memories"
        if self.post_ids:
            return f"Some memories shared ({self.committed_items} of {self.total_items})"
        return "No memories were shared"


class UploadSequencer:
    """Uploads classified items strictly one after another."""

    def __init__(
        self,
        storage: StorageService | Any | None = None,
        posts: PostService | None = None,
        users: UserService | None = None,
        normalizer: MediaNormalizer | None = None,
    ):
        self._storage = storage
        self._posts = posts
        self._users = users
        self._normalizer = normalizer

    @property
    def storage(self) -> StorageService:
        if self._storage is None:
            self._storage = get_storage_service()
        return self._storage

    @property
    def posts(self) -> PostService:
        if self._posts is None:
            self._posts = get_post_service()
        return self._posts

    @property
    def users(self) -> UserService:
        if self._users is None:
            self._users = get_user_service()
        return self._users

    @property
    def normalizer(self) -> MediaNormalizer:
        if self._normalizer is None:
            self._normalizer = get_media_normalizer()
        return self._normalizer

    def run(
        self,
        session: UserInfo | None,
        items: Sequence[UploadItem],
        caption: str | None = None,
        on_progress: ProgressListener | None = None,
    ) -> BatchResult:
        """
        Upload a batch of items in selection order.

        Args:
            session: The uploader's session
            items: Classified items, processed in this order
            caption: Caption shared by every post in the batch
            on_progress: Called with the tracker after every progress change

        Returns:
            BatchResult: Committed post ids, and the error that halted the run, if any
        """
        tracker = UploadProgress(items)
        result = BatchResult(total_items=len(items))
        notify = on_progress or (lambda _: None)

        if not items:
            return result

        try:
            caption = validate_caption(caption)
            author_name = self.users.resolve_display_name(session)
        except Exception as e:
            result.error = handle_error(e, {"operation": "upload_batch", "total_items": len(items)})
            logger.warning("upload_batch_rejected", total_items=len(items), code=result.error.code)
            return result

        logger.info("upload_batch_started", total_items=len(items), author_name=author_name)

        for index, item in enumerate(items):
            tracker.current_index = index
            progress = tracker.items[index]
            try:
                post_id = self._upload_item(session, item, progress, tracker, notify, author_name, caption)
            except Exception as e:
                info = handle_error(e, {"operation": "upload_item", "item": item.label, "index": index})
                if progress.state in (ItemState.PROCESSING, ItemState.UPLOADING):
                    progress.transition(ItemState.ERROR)
                progress.error = info.user_message
                notify(tracker)

                result.error = info
                result.failed_item = item.label
                logger.warning(
                    "upload_batch_halted",
                    failed_item=item.label,
                    index=index,
                    committed=len(result.post_ids),
                    code=info.code,
                )
                break

            result.post_ids.append(post_id)

        log_performance(
            "upload_batch",
            tracker.elapsed_time.total_seconds(),
            total_items=result.total_items,
            committed=result.committed_items,
            success=result.success,
        )
        return result

    def _upload_item(
        self,
        session: UserInfo | None,
        item: UploadItem,
        progress: ItemProgress,
        tracker: UploadProgress,
        notify: ProgressListener,
        author_name: str,
        caption: str | None,
    ) -> PostId:
        progress.transition(ItemState.PROCESSING)
        notify(tracker)

        ceiling = progress.processing_ceiling

        def on_normalize_progress(fraction: float) -> None:
            progress.advance(fraction * ceiling)
            notify(tracker)

        normalized = self.normalizer.normalize(item, on_normalize_progress)
        progress.advance(ceiling)

        progress.transition(ItemState.UPLOADING)
        notify(tracker)

        primary = normalized.primary
        target = self.storage.issue_upload_target(session)
        asset = self.storage.transfer_bytes(
            target, primary.data, primary.mime_type, filename=primary.name, dimensions=normalized.dimensions
        )
        progress.advance(PAIR_IMAGE_UPLOADED if progress.is_live_photo else SINGLE_UPLOADED)
        notify(tracker)

        companion_id: MediaAssetId | None = None
        if normalized.companion is not None:
            companion = normalized.companion
            companion_target = self.storage.issue_upload_target(session)
            companion_asset = self.storage.transfer_bytes(
                companion_target, companion.data, companion.mime_type, filename=companion.name
            )
            companion_id = companion_asset.storage_id
            progress.advance(PAIR_VIDEO_UPLOADED)
            notify(tracker)

        post_id = self.posts.create_post(
            session,
            storage_id=asset.storage_id,
            media_type=asset.kind,
            caption=caption,
            companion_storage_id=companion_id,
            width=asset.width,
            height=asset.height,
            author_name=author_name,
        )

        progress.post_id = post_id
        progress.transition(ItemState.DONE)
        progress.advance(COMMITTED)
        notify(tracker)

        logger.info("upload_item_committed", item=item.label, post_id=post_id, live_photo=companion_id is not None)
        return post_id
