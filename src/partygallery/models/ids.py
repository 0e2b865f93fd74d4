"""
Opaque identifiers for partygallery entities.

Each entity gets its own ``NewType`` over ``str`` so a storage id can never be
passed where a post id is expected without the type checker noticing.
"""

import uuid
from typing import NewType

MediaAssetId = NewType("MediaAssetId", str)
PostId = NewType("PostId", str)
UserId = NewType("UserId", str)
LikeId = NewType("LikeId", str)


def new_media_asset_id() -> MediaAssetId:
    return MediaAssetId(uuid.uuid4().hex)


def new_post_id() -> PostId:
    return PostId(str(uuid.uuid4()))


def new_user_id() -> UserId:
    return UserId(str(uuid.uuid4()))


def new_like_id() -> LikeId:
    return LikeId(str(uuid.uuid4()))
