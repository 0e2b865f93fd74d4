"""
Post service for partygallery.

Posts, likes and the per-viewer feed projection live here. Every query runs
against the shared DuckDB store; like counts and the "liked by me" and
"is author" flags are derived at read time, never stored.
"""

from datetime import UTC, datetime
from typing import Any

import duckdb

from ..error_handling import DatabaseError, ForbiddenError, NotFoundError, StorageError, ValidationError
from ..logging_config import get_logger, log_degraded, log_error, log_performance, log_user_action
from ..models.database import DatabaseManager, get_database_manager
from ..models.ids import MediaAssetId, PostId, UserId, new_like_id, new_post_id
from ..models.media import MediaKind
from ..models.post import Like, Post, PostView, SortBy, UserStats, to_db_timestamp
from .auth import UserInfo
from .storage import StorageService, get_storage_service
from .users import UserService, get_user_service

logger = get_logger(__name__)

MAX_CAPTION_LENGTH = 500

_POST_SELECT = ", ".join(f"p.{column}" for column in Post.COLUMNS)


def validate_caption(caption: str | None) -> str | None:
    """
    Normalize a caption, blank meaning none.

    Raises:
        ValidationError: If the caption is too long
    """
    text = (caption or "").strip() or None
    if text and len(text) > MAX_CAPTION_LENGTH:
        raise ValidationError(
            f"Caption longer than {MAX_CAPTION_LENGTH} characters",
            code="caption_too_long",
            user_message=f"Captions can be at most {MAX_CAPTION_LENGTH} characters.",
        )
    return text


class PostService:
    """Create, list, like and delete posts."""

    def __init__(
        self,
        db: DatabaseManager | None = None,
        storage: StorageService | Any | None = None,
        users: UserService | None = None,
    ):
        self._db = db
        self._storage = storage
        self._users = users

    @property
    def db(self) -> DatabaseManager:
        if self._db is None:
            self._db = get_database_manager()
        return self._db

    @property
    def storage(self) -> StorageService:
        if self._storage is None:
            self._storage = get_storage_service()
        return self._storage

    @property
    def users(self) -> UserService:
        if self._users is None:
            self._users = UserService(db=self.db) if self._db is not None else get_user_service()
        return self._users

    # Writes

    def create_post(
        self,
        session: UserInfo | None,
        storage_id: MediaAssetId,
        media_type: MediaKind | str,
        caption: str | None = None,
        companion_storage_id: MediaAssetId | None = None,
        width: int | None = None,
        height: int | None = None,
        author_name: str | None = None,
    ) -> PostId:
        """
        Record a post for media that has already been transferred.

        Args:
            session: The caller's session
            storage_id: Primary media
            media_type: Kind of the primary media
            caption: Optional caption, blank means none
            companion_storage_id: Live Photo clip, if any
            width: Natural width of the primary media, if known
            height: Natural height of the primary media, if known
            author_name: Display name to store, resolved from the profile if omitted

        Returns:
            PostId: The new post's id

        Raises:
            UnauthorizedError: If there is no session
            AuthorNotFoundError: If the session has no profile record
        """
        user = self.users.require_user(session, "share a memory")
        kind = MediaKind(media_type)
        text = validate_caption(caption)
        name = (author_name or "").strip() or self.users.resolve_display_name(session)

        post_id = new_post_id()
        try:
            self.db.execute(
                f"INSERT INTO posts ({', '.join(Post.COLUMNS)}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    post_id,
                    user.id,
                    name,
                    storage_id,
                    companion_storage_id,
                    kind.value,
                    text,
                    width,
                    height,
                    to_db_timestamp(datetime.now(UTC)),
                ),
            )
        except duckdb.Error as e:
            log_error(e, {"operation": "create_post", "user_id": user.id, "storage_id": storage_id})
            raise DatabaseError(f"Failed to create post: {e}", original_exception=e) from e

        log_user_action(
            user.id,
            "post_created",
            post_id=post_id,
            media_type=kind.value,
            live_photo=companion_storage_id is not None,
        )
        return post_id

    def toggle_like(self, session: UserInfo | None, post_id: PostId) -> bool:
        """
        Flip the caller's like on a post.

        The check and the write run in one transaction, so concurrent toggles
        by the same user converge on a consistent state.

        Returns:
            bool: True if the post is now liked by the caller

        Raises:
            UnauthorizedError: If there is no session
            AuthorNotFoundError: If the session has no profile record
            NotFoundError: If the post does not exist
        """
        user = self.users.require_user(session, "like a memory")

        try:
            with self.db.transaction() as conn:
                if conn.execute("SELECT 1 FROM posts WHERE id = ?", (post_id,)).fetchone() is None:
                    raise NotFoundError("Post not found", details={"post_id": post_id})

                existing = conn.execute(
                    "SELECT id FROM likes WHERE user_id = ? AND post_id = ?",
                    (user.id, post_id),
                ).fetchone()
                if existing:
                    conn.execute("DELETE FROM likes WHERE id = ?", (existing[0],))
                    liked = False
                else:
                    conn.execute(
                        "INSERT INTO likes (id, user_id, post_id, created_at) VALUES (?, ?, ?, ?)",
                        (new_like_id(), user.id, post_id, to_db_timestamp(datetime.now(UTC))),
                    )
                    liked = True
        except duckdb.Error as e:
            log_error(e, {"operation": "toggle_like", "user_id": user.id, "post_id": post_id})
            raise DatabaseError(f"Failed to toggle like: {e}", original_exception=e) from e

        log_user_action(user.id, "post_liked" if liked else "post_unliked", post_id=post_id)
        return liked

    def delete_post(self, session: UserInfo | None, post_id: PostId) -> None:
        """
        Delete one of the caller's posts together with its likes.

        The media blobs are removed afterwards; a failure there is logged and
        leaves an orphaned blob, not a half-deleted post.

        Raises:
            UnauthorizedError: If there is no session
            ForbiddenError: If the caller is not the author
            NotFoundError: If the post does not exist
        """
        user = self.users.require_user(session, "delete a memory")
        post = self.get_post(post_id)
        if post is None:
            raise NotFoundError("Post not found", details={"post_id": post_id})
        if post.author_id != user.id:
            raise ForbiddenError(
                "Unauthorized: only the author can delete this memory",
                details={"post_id": post_id, "user_id": user.id},
            )

        try:
            with self.db.transaction() as conn:
                conn.execute("DELETE FROM likes WHERE post_id = ?", (post_id,))
                conn.execute("DELETE FROM posts WHERE id = ?", (post_id,))
        except duckdb.Error as e:
            log_error(e, {"operation": "delete_post", "post_id": post_id})
            raise DatabaseError(f"Failed to delete post: {e}", original_exception=e) from e

        log_user_action(user.id, "post_deleted", post_id=post_id)

        for storage_id in (post.storage_id, post.companion_storage_id):
            if not storage_id:
                continue
            try:
                self.storage.delete_media(storage_id)
            except StorageError:
                log_degraded("media_cleanup_failed", post_id=post_id, storage_id=storage_id)

    # Reads

    def get_post(self, post_id: PostId) -> Post | None:
        row = self.db.fetchone(f"SELECT {', '.join(Post.COLUMNS)} FROM posts WHERE id = ?", (post_id,))
        return Post.from_row(row) if row else None

    def list_likes(self, post_id: PostId) -> list[Like]:
        rows = self.db.fetchall(
            f"SELECT {', '.join(Like.COLUMNS)} FROM likes WHERE post_id = ? ORDER BY created_at",
            (post_id,),
        )
        return [Like.from_row(row) for row in rows]

    def list_posts(
        self,
        session: UserInfo | None,
        sort_by: SortBy | str = SortBy.NEWEST,
        search_term: str | None = None,
    ) -> list[PostView]:
        """
        The feed as seen by the caller.

        Args:
            session: The viewer, may be None
            sort_by: ``newest`` or ``mostLiked``; like-count ties keep newest-first order
            search_term: Case-insensitive substring of the author name

        Returns:
            list[PostView]: Posts with media URLs, like counts and viewer flags
        """
        start_time = datetime.now()
        order = SortBy(sort_by)
        viewer = self.users.current_user(session)
        viewer_id = viewer.id if viewer else None

        term = (search_term or "").strip()
        where = ""
        parameters: list[Any] = [viewer_id]
        if term:
            where = "WHERE strpos(lower(p.author_name), lower(?)) > 0"
            parameters.append(term)

        views = self._query_views(where, parameters, viewer_id)
        if order is SortBy.MOST_LIKED:
            views.sort(key=lambda view: view.like_count, reverse=True)

        log_performance(
            "list_posts",
            (datetime.now() - start_time).total_seconds(),
            sort_by=order.value,
            search_term=term or None,
            count=len(views),
        )
        return views

    def list_user_posts(self, session: UserInfo | None) -> list[PostView]:
        """The caller's own posts, newest first. Empty when signed out."""
        viewer = self.users.current_user(session)
        if viewer is None:
            return []
        return self._query_views("WHERE p.author_id = ?", [viewer.id, viewer.id], viewer.id)

    def _query_views(self, where: str, parameters: list[Any], viewer_id: UserId | None) -> list[PostView]:
        query = f"""
            SELECT {_POST_SELECT},
                   (SELECT count(*) FROM likes l WHERE l.post_id = p.id) AS like_count,
                   EXISTS (SELECT 1 FROM likes l WHERE l.post_id = p.id AND l.user_id = ?) AS liked_by_me
            FROM posts p
            {where}
            ORDER BY p.created_at DESC, p.rowid DESC
        """  # nosec B608
        try:
            rows = self.db.fetchall(query, parameters)
        except duckdb.Error as e:
            log_error(e, {"operation": "list_posts"})
            raise DatabaseError(f"Failed to list posts: {e}", original_exception=e) from e

        column_count = len(Post.COLUMNS)
        views = []
        for row in rows:
            post = Post.from_row(row[:column_count])
            views.append(
                PostView(
                    post=post,
                    media_url=self.storage.get_media_url(post.storage_id),
                    companion_url=self.storage.get_media_url(post.companion_storage_id),
                    like_count=int(row[column_count]),
                    is_liked_by_me=bool(row[column_count + 1]),
                    is_author=viewer_id is not None and post.author_id == viewer_id,
                )
            )
        return views

    def get_user_stats(self, session: UserInfo | None) -> UserStats:
        """Post count and likes received for the caller. Zeros when signed out."""
        viewer = self.users.current_user(session)
        if viewer is None:
            return UserStats(post_count=0, likes_received=0)

        row = self.db.fetchone(
            """
            SELECT
                (SELECT count(*) FROM posts WHERE author_id = ?),
                (SELECT count(*) FROM likes l JOIN posts p ON p.id = l.post_id WHERE p.author_id = ?)
            """,
            (viewer.id, viewer.id),
        )
        post_count, likes_received = row if row else (0, 0)
        return UserStats(post_count=int(post_count), likes_received=int(likes_received))


_post_service: PostService | None = None


def get_post_service() -> PostService:
    """Get the global post service instance."""
    global _post_service
    if _post_service is None:
        _post_service = PostService()
    return _post_service
