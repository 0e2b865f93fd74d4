"""File classification for the upload pipeline.

Splits a batch of selected files into Live Photo pairs and standalone items.
Pairing is a filename convention: an image and a video whose names match once
the extension is stripped (case-insensitive) belong together. It is a
best-effort heuristic, not a guarantee that the two files came from the same
capture.
"""

from collections.abc import Iterable, Sequence

from ..config import get_max_staged_items
from ..error_handling import CapacityError, ValidationError
from ..logging_config import get_logger
from ..models.media import LivePhotoPair, SelectedFile, StandaloneItem, UploadItem

logger = get_logger(__name__)

ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/heic",
        "image/heif",
        "video/mp4",
        "video/quicktime",
        "video/webm",
    }
)

# Extensions offered in the file picker; the MIME allow-list is what is enforced
ACCEPTED_EXTENSIONS = ["jpg", "jpeg", "png", "webp", "heic", "heif", "mp4", "mov", "webm"]


def validate_mime_types(files: Sequence[SelectedFile]) -> None:
    """
    Reject the whole batch if any file has an unsupported type.

    Raises:
        ValidationError: If at least one file is outside the allow-list
    """
    invalid = [f for f in files if f.mime_type not in ALLOWED_MIME_TYPES]
    if invalid:
        logger.warning(
            "unsupported_files_rejected",
            invalid_files=[(f.name, f.mime_type) for f in invalid],
            batch_size=len(files),
        )
        raise ValidationError(
            f"{len(invalid)} file(s) have unsupported formats: {', '.join(f.name for f in invalid)}",
            code="unsupported_type",
            user_message=f"{len(invalid)} file(s) have unsupported formats.",
            details={"invalid_files": [f.name for f in invalid]},
        )


def pair_live_photos(files: Sequence[SelectedFile]) -> list[UploadItem]:
    """
    Partition files into Live Photo pairs and standalone items.

    Every image looks for the first still-unmatched video with the same base
    name; a match consumes both. Pairs come first, then standalone files,
    each group in selection order.

    Args:
        files: Already validated files in selection order

    Returns:
        list[UploadItem]: Every input file appears in exactly one item
    """
    unmatched_videos = [f for f in files if f.is_video]
    paired: set[int] = set()
    pairs: list[UploadItem] = []

    for image in (f for f in files if f.is_image):
        match = next((v for v in unmatched_videos if v.base_name == image.base_name), None)
        if match is None:
            continue
        unmatched_videos.remove(match)
        paired.add(id(image))
        paired.add(id(match))
        pairs.append(LivePhotoPair(image=image, video=match))

    standalone: list[UploadItem] = [StandaloneItem(file=f) for f in files if id(f) not in paired]
    return pairs + standalone


def classify_files(
    files: Iterable[SelectedFile],
    already_staged: int = 0,
    max_items: int | None = None,
) -> list[UploadItem]:
    """
    Validate and pair a freshly selected batch.

    Nothing is staged unless the whole batch passes: type check first, then
    the capacity check on the paired item count plus what is already staged.

    Args:
        files: Selected files in selection order
        already_staged: Number of items already waiting for upload
        max_items: Capacity cap, ``MAX_STAGED_ITEMS`` by default

    Returns:
        list[UploadItem]: The new items to stage

    Raises:
        ValidationError: On an unsupported type
        CapacityError: If the staged total would exceed the cap
    """
    batch = list(files)
    limit = max_items if max_items is not None else get_max_staged_items()

    validate_mime_types(batch)
    items = pair_live_photos(batch)

    requested = already_staged + len(items)
    if requested > limit:
        raise CapacityError(requested=requested, limit=limit)

    live_count = sum(1 for item in items if isinstance(item, LivePhotoPair))
    logger.info(
        "files_classified",
        files=len(batch),
        items=len(items),
        live_photos=live_count,
        standalone=len(items) - live_count,
        already_staged=already_staged,
    )
    return items
