"""
Unit tests for the upload sequencer and progress tracking.
"""

import pytest

from partygallery.error_handling import ErrorCategory
from partygallery.models.media import Dimensions, LivePhotoPair, StandaloneItem
from partygallery.services.media_normalizer import NormalizedItem
from partygallery.services.uploader import (
    BatchResult,
    ItemProgress,
    ItemState,
    UploadProgress,
    UploadSequencer,
)
from tests.conftest import image_file, make_session, video_file


class PassthroughNormalizer:
    """Reports a little progress and returns the item unchanged."""

    def __init__(self):
        self.normalized = []

    def normalize(self, item, on_progress=None):
        self.normalized.append(item.label)
        if on_progress:
            on_progress(0.5)
            on_progress(1.0)
        companion = item.video if isinstance(item, LivePhotoPair) else None
        return NormalizedItem(primary=item.primary, companion=companion, dimensions=Dimensions(40, 30))


@pytest.fixture
def normalizer():
    return PassthroughNormalizer()


@pytest.fixture
def sequencer(fake_storage, post_service, user_service, normalizer):
    return UploadSequencer(storage=fake_storage, posts=post_service, users=user_service, normalizer=normalizer)


def _pair(base="IMG_1"):
    return LivePhotoPair(image=image_file(f"{base}.jpg"), video=video_file(f"{base}.mov", data=b"clip-bytes"))


def _single(name="solo.jpg"):
    return StandaloneItem(file=image_file(name))


class TestItemProgress:
    def test_valid_lifecycle(self):
        progress = ItemProgress(label="a.jpg")
        for state in (ItemState.PROCESSING, ItemState.UPLOADING, ItemState.DONE):
            progress.transition(state)
        assert progress.state is ItemState.DONE

    @pytest.mark.parametrize(
        "start,target",
        [
            (ItemState.PENDING, ItemState.UPLOADING),
            (ItemState.PENDING, ItemState.ERROR),
            (ItemState.DONE, ItemState.ERROR),
            (ItemState.ERROR, ItemState.PROCESSING),
        ],
    )
    def test_invalid_transitions(self, start, target):
        progress = ItemProgress(label="a.jpg", state=start)
        with pytest.raises(ValueError, match="Invalid transition"):
            progress.transition(target)

    def test_advance_never_goes_backwards(self):
        progress = ItemProgress(label="a.jpg")
        progress.advance(60)
        progress.advance(30)
        progress.advance(150)
        assert progress.percentage == 100.0

    def test_processing_ceiling(self):
        assert ItemProgress(label="a", is_live_photo=True).processing_ceiling == 45.0
        assert ItemProgress(label="a").processing_ceiling == 90.0


class TestUploadProgress:
    def test_overall_is_mean_of_items(self):
        tracker = UploadProgress([_single("a.jpg"), _single("b.jpg")])
        tracker.items[0].advance(100)
        tracker.items[1].advance(50)

        assert tracker.progress_percentage == 75.0

    def test_empty_batch(self):
        tracker = UploadProgress([])
        assert tracker.progress_percentage == 0.0
        assert tracker.current is None

    def test_to_dict(self):
        tracker = UploadProgress([_pair()])
        data = tracker.to_dict()
        assert data["total_items"] == 1
        assert data["items"][0] == {"label": "IMG_1.jpg", "state": "pending", "percentage": 0.0, "error": None}


class TestBatchResult:
    def test_messages(self):
        assert BatchResult(total_items=2, post_ids=["a", "b"]).message == "Shared 2 memories"
        assert BatchResult(total_items=3, post_ids=["a"], error=object()).message == "Some memories shared (1 of 3)"
        assert BatchResult(total_items=3, error=object()).message == "No memories were shared"


class TestUploadSequencer:
    def test_uploads_items_in_order(self, sequencer, post_service, normalizer, alice):
        items = [_single("first.jpg"), _pair("IMG_2"), _single("third.jpg")]

        result = sequencer.run(alice, items, caption="Dance floor")

        assert result.success
        assert result.committed_items == 3
        assert normalizer.normalized == ["first.jpg", "IMG_2.jpg", "third.jpg"]
        feed = post_service.list_posts(alice)
        assert [view.id for view in feed] == list(reversed(result.post_ids))
        assert {view.post.caption for view in feed} == {"Dance floor"}

    def test_live_photo_gets_companion_and_single_does_not(self, sequencer, post_service, fake_storage, alice):
        result = sequencer.run(alice, [_pair(), _single()])

        live = post_service.get_post(result.post_ids[0])
        single = post_service.get_post(result.post_ids[1])
        assert live.companion_storage_id is not None
        assert fake_storage.blobs[live.companion_storage_id] == (b"clip-bytes", "video/quicktime")
        assert single.companion_storage_id is None
        assert fake_storage.targets_issued == 3

    def test_dimensions_are_recorded(self, sequencer, post_service, alice):
        result = sequencer.run(alice, [_single()])
        post = post_service.get_post(result.post_ids[0])
        assert (post.width, post.height) == (40, 30)

    def test_author_name_resolved_from_profile(self, sequencer, post_service, user_service, alice):
        user_service.rename(alice, "Alice in Partyland")

        result = sequencer.run(alice, [_single()])

        assert post_service.get_post(result.post_ids[0]).author_name == "Alice in Partyland"

    def test_failure_halts_remaining_items(self, sequencer, fake_storage, post_service, alice):
        fake_storage.fail_transfer_on.add("second.jpg")
        items = [_single("first.jpg"), _single("second.jpg"), _single("third.jpg")]
        states = []

        result = sequencer.run(alice, items, on_progress=lambda tracker: states.append(
            [item.state for item in tracker.items]
        ))

        assert not result.success
        assert result.committed_items == 1
        assert result.failed_item == "second.jpg"
        assert result.error.code == "transfer_failed"
        assert result.error.user_message == "Upload failed for second.jpg"
        assert result.message == "Some memories shared (1 of 3)"
        assert states[-1] == [ItemState.DONE, ItemState.ERROR, ItemState.PENDING]
        assert len(post_service.list_posts(alice)) == 1

    def test_failure_on_companion_upload_commits_nothing_for_item(self, sequencer, fake_storage, post_service, alice):
        fake_storage.fail_transfer_on.add("IMG_1.mov")

        result = sequencer.run(alice, [_pair()])

        assert result.committed_items == 0
        assert result.message == "No memories were shared"
        assert post_service.list_posts(alice) == []

    def test_missing_session_fails_first_item(self, sequencer, fake_storage):
        result = sequencer.run(None, [_single(), _single("b.jpg")])

        assert result.committed_items == 0
        assert result.error.user_message == "Unauthorized: You must be logged in to upload media."
        assert fake_storage.targets_issued == 0

    def test_unsynced_user_cannot_commit(self, sequencer, fake_storage):
        ghost = make_session("ghost-sub", "Ghost")

        result = sequencer.run(ghost, [_single()])

        assert result.error.code == "author_not_found"
        assert result.error.category is ErrorCategory.AUTHENTICATION
        assert result.error.retry_suggested is True
        assert len(fake_storage.blobs) == 1

    def test_profile_lookup_failure_rejects_batch(self, sequencer, fake_storage, user_service, alice):
        user_service.db.execute("DROP TABLE users")
        seen = []

        result = sequencer.run(alice, [_single(), _single("b.jpg")], on_progress=seen.append)

        assert result.error.code == "database_error"
        assert result.error.category is ErrorCategory.DATABASE
        assert result.committed_items == 0
        assert result.message == "No memories were shared"
        assert fake_storage.targets_issued == 0
        assert seen == []

    def test_overlong_caption_rejected_before_transfer(self, sequencer, fake_storage, post_service, alice):
        result = sequencer.run(alice, [_single(), _single("b.jpg")], caption="x" * 501)

        assert result.error.code == "caption_too_long"
        assert result.committed_items == 0
        assert fake_storage.targets_issued == 0
        assert fake_storage.blobs == {}
        assert post_service.list_posts(alice) == []

    def test_caption_is_trimmed_once_for_every_post(self, sequencer, post_service, alice):
        result = sequencer.run(alice, [_single(), _single("b.jpg")], caption="  Cheers!  ")

        assert [post_service.get_post(post_id).caption for post_id in result.post_ids] == ["Cheers!", "Cheers!"]

    def test_progress_is_monotonic_and_reaches_100(self, sequencer, alice):
        overall = []
        per_item = []

        sequencer.run(
            alice,
            [_pair(), _single()],
            on_progress=lambda tracker: (
                overall.append(tracker.progress_percentage),
                per_item.append([item.percentage for item in tracker.items]),
            ),
        )

        assert overall == sorted(overall)
        assert overall[-1] == 100.0
        for index in range(2):
            series = [snapshot[index] for snapshot in per_item]
            assert series == sorted(series)

    def test_live_photo_milestones(self, sequencer, alice):
        seen = []

        sequencer.run(alice, [_pair()], on_progress=lambda tracker: seen.append(tracker.items[0].percentage))

        for milestone in (45.0, 70.0, 90.0, 100.0):
            assert milestone in seen

    def test_empty_batch(self, sequencer, alice):
        result = sequencer.run(alice, [])
        assert result.total_items == 0
        assert result.success
