"""
User profile service.

Profiles mirror the identity provider: ``sync_user`` upserts a row keyed on
the provider subject every time a guest signs in. The display name can then
be changed in the app; renaming also rewrites the name stored on every post
the user has authored, so the feed and search stay consistent.
"""

from datetime import UTC, datetime

import duckdb

from ..config import get_default_guest_name
from ..error_handling import AuthorNotFoundError, DatabaseError, ValidationError
from ..logging_config import get_logger, log_error, log_user_action
from ..models.database import DatabaseManager, get_database_manager
from ..models.ids import UserId, new_user_id
from ..models.post import User, to_db_timestamp
from .auth import CloudIAPAuthService, UserInfo, get_auth_service

logger = get_logger(__name__)

MAX_NAME_LENGTH = 60


class UserService:
    """Profile records in DuckDB."""

    def __init__(self, db: DatabaseManager | None = None, auth: CloudIAPAuthService | None = None):
        self._db = db
        self._auth = auth

    @property
    def db(self) -> DatabaseManager:
        if self._db is None:
            self._db = get_database_manager()
        return self._db

    @property
    def auth(self) -> CloudIAPAuthService:
        if self._auth is None:
            self._auth = get_auth_service()
        return self._auth

    def get_by_external_id(self, external_id: str) -> User | None:
        try:
            row = self.db.fetchone(
                f"SELECT {', '.join(User.COLUMNS)} FROM users WHERE external_id = ?",
                (external_id,),
            )
        except duckdb.Error as e:
            log_error(e, {"operation": "get_user", "external_id": external_id})
            raise DatabaseError(f"Failed to load user: {e}", original_exception=e) from e
        return User.from_row(row) if row else None

    def sync_user(self, session: UserInfo, name: str | None = None, profile_image: str | None = None) -> UserId:
        """
        Create or refresh the profile for a session.

        An existing profile keeps its id and its display name, which may have
        been changed in the app; only the avatar is refreshed unless ``name``
        is given explicitly.

        Args:
            session: The signed-in session
            name: Display name, defaults to the identity name for new profiles
            profile_image: Avatar URL, defaults to the identity picture

        Returns:
            UserId: The profile id
        """
        explicit_name = (name or "").strip()
        display_name = explicit_name or (session.name or "").strip() or get_default_guest_name()
        image = profile_image if profile_image is not None else session.picture

        try:
            with self.db.transaction() as conn:
                row = conn.execute("SELECT id FROM users WHERE external_id = ?", (session.external_id,)).fetchone()
                if row:
                    if explicit_name:
                        conn.execute("UPDATE users SET name = ? WHERE id = ?", (explicit_name, row[0]))
                        conn.execute("UPDATE posts SET author_name = ? WHERE author_id = ?", (explicit_name, row[0]))
                    conn.execute("UPDATE users SET profile_image = ? WHERE id = ?", (image, row[0]))
                    user_id = UserId(row[0])
                    action = "user_profile_refreshed"
                else:
                    user_id = new_user_id()
                    conn.execute(
                        "INSERT INTO users (id, external_id, name, profile_image, created_at) VALUES (?, ?, ?, ?, ?)",
                        (user_id, session.external_id, display_name, image, to_db_timestamp(datetime.now(UTC))),
                    )
                    action = "user_profile_created"
        except duckdb.Error as e:
            log_error(e, {"operation": "sync_user", "external_id": session.external_id})
            raise DatabaseError(f"Failed to sync user: {e}", original_exception=e) from e

        log_user_action(user_id, action, external_id=session.external_id)
        return user_id

    def current_user(self, session: UserInfo | None) -> User | None:
        """Profile for the session, or None when signed out or not yet synced."""
        if session is None:
            return None
        return self.get_by_external_id(session.external_id)

    def require_user(self, session: UserInfo | None, action: str = "continue") -> User:
        """
        Profile for the session.

        Raises:
            UnauthorizedError: If there is no session
            AuthorNotFoundError: If the session has no profile yet
        """
        session = self.auth.ensure_authenticated(session, action)
        user = self.get_by_external_id(session.external_id)
        if user is None:
            raise AuthorNotFoundError(session.external_id)
        return user

    def resolve_display_name(self, session: UserInfo | None) -> str:
        """Profile name, else identity name, else the guest fallback."""
        user = self.current_user(session)
        if user and user.name.strip():
            return user.name
        if session and session.name and session.name.strip():
            return session.name
        return get_default_guest_name()

    def rename(self, session: UserInfo | None, new_name: str) -> None:
        """
        Change the caller's display name and backfill it onto their posts.

        Renaming to the current name does nothing.

        Raises:
            ValidationError: If the name is blank or too long
            UnauthorizedError: If there is no session
            AuthorNotFoundError: If the session has no profile yet
        """
        name = " ".join(new_name.split())
        if not name:
            raise ValidationError("Display name is empty", code="invalid_name", user_message="Please enter a name.")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"Display name longer than {MAX_NAME_LENGTH} characters",
                code="invalid_name",
                user_message=f"Names can be at most {MAX_NAME_LENGTH} characters.",
            )

        user = self.require_user(session, "change your name")
        if user.name == name:
            logger.debug("rename_unchanged", user_id=user.id)
            return

        try:
            with self.db.transaction() as conn:
                conn.execute("UPDATE users SET name = ? WHERE id = ?", (name, user.id))
                conn.execute("UPDATE posts SET author_name = ? WHERE author_id = ?", (name, user.id))
        except duckdb.Error as e:
            log_error(e, {"operation": "rename", "user_id": user.id})
            raise DatabaseError(f"Failed to rename user: {e}", original_exception=e) from e

        log_user_action(user.id, "user_renamed", old_name=user.name, new_name=name)


_user_service: UserService | None = None


def get_user_service() -> UserService:
    """Get the global user service instance."""
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
