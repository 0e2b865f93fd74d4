"""
Batch upload of a local directory.

    invoke -c partygallery.cli.batch_upload batch-upload --directory ./party --external-id guest-42
"""

import os

import structlog
from dotenv import load_dotenv
from invoke import Context, task

from partygallery.error_handling import GalleryError
from partygallery.logging_config import configure_structured_logging
from partygallery.models.media import LivePhotoPair, SelectedFile
from partygallery.services.auth import UserInfo
from partygallery.services.classifier import ACCEPTED_EXTENSIONS, classify_files
from partygallery.services.uploader import UploadSequencer
from partygallery.services.users import get_user_service

logger = structlog.get_logger()

SUPPORTED_EXTENSIONS = {f".{extension}" for extension in ACCEPTED_EXTENSIONS}


def find_media_files(directory: str, recursive: bool = False) -> list[str]:
    """Supported media files under ``directory``, sorted by path."""
    found = []
    if recursive:
        for root, _, files in os.walk(directory):
            for name in files:
                if os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                    found.append(os.path.join(root, name))
    else:
        for name in os.listdir(directory):
            path = os.path.join(directory, name)
            if os.path.isfile(path) and os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                found.append(path)
    return sorted(found)


@task
def batch_upload(
    c: Context,
    directory: str,
    external_id: str,
    name: str = "",
    caption: str = "",
    env_file: str = ".env",
    recursive: bool = False,
    dry_run: bool = False,
):
    """
    Upload photos and videos from a local directory as one guest.

    Live Photo pairs are detected the same way as in the app. The drawer's
    staging cap does not apply here.

    Args:
        c (Context): Invoke context.
        directory (str): Directory containing media.
        external_id (str): Identity subject of the guest to post as.
        name (str): Display name for the guest's profile, if it has to be created.
        caption (str): Caption shared by every post.
        env_file (str): Path to the environment file. Default is '.env'.
        recursive (bool): Search subdirectories too. Default is False.
        dry_run (bool): List the upload items without uploading. Default is False.
    """
    if os.path.exists(env_file):
        load_dotenv(dotenv_path=env_file)
    configure_structured_logging()

    if not os.path.isdir(directory):
        logger.error("directory_not_found", directory=directory)
        return

    paths = find_media_files(directory, recursive)
    if not paths:
        logger.warning("no_media_files_found", directory=directory)
        return

    files = [SelectedFile.from_path(path) for path in paths]
    try:
        items = classify_files(files, max_items=len(files))
    except GalleryError as e:
        logger.error("batch_classification_failed", error=e.user_message)
        return

    logger.info("batch_upload_planned", directory=directory, files=len(files), items=len(items), dry_run=dry_run)

    if dry_run:
        print("\n--- Dry Run Mode: items to be uploaded ---")
        for item in items:
            print(f"- {item.label}{' (Live Photo)' if isinstance(item, LivePhotoPair) else ''}")
        print("--- End of Dry Run ---")
        return

    session = UserInfo(user_id=external_id, email=f"{external_id}@cli.local", name=name or None)
    get_user_service().sync_user(session)

    result = UploadSequencer().run(session, items, caption=caption or None)
    if result.error is not None:
        logger.error("batch_upload_halted", failed_item=result.failed_item, error=result.error.user_message)

    logger.info("batch_upload_finished", committed=result.committed_items, total=result.total_items)
    print(f"\nBatch upload complete. {result.message}.")
