"""Configuration management for partygallery.

Values come from environment variables first and Streamlit secrets second,
cast to the requested type and cached per key.
"""

import os
from datetime import datetime
from typing import Any

try:
    import streamlit as st

    STREAMLIT_AVAILABLE = True
except ImportError:
    STREAMLIT_AVAILABLE = False

from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_EVENT_AT = "2026-03-20T18:00:00+01:00"


class Config:
    """Centralized configuration backed by environment variables."""

    def __init__(self):
        self._cache: dict[str, Any] = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get a configuration value.

        Args:
            key: Configuration key
            default: Value used when the key is not set anywhere
            cast_type: Type to cast the value to (str, int, bool, float)

        Returns:
            The value cast to ``cast_type``, or ``default`` when missing or uncastable
        """
        cache_key = f"{key}:{cast_type.__name__}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = os.getenv(key)

        if value is None and STREAMLIT_AVAILABLE:
            try:
                value = st.secrets.get(key)
            except Exception:  # nosec B110
                # No secrets file, or not running inside Streamlit
                pass

        if value is None:
            value = default

        if value is not None:
            try:
                if cast_type is bool:
                    if isinstance(value, str):
                        value = value.lower() in ("true", "1", "yes", "on")
                    else:
                        value = bool(value)
                elif cast_type is not str:
                    value = cast_type(value)
            except (ValueError, TypeError) as e:
                logger.warning("config_cast_failed", key=key, cast_type=cast_type.__name__, error=str(e))
                value = default

        self._cache[cache_key] = value
        return value

    def get_required(self, key: str, cast_type: type = str) -> Any:
        """Get a configuration value that must be present.

        Raises:
            ValueError: If the key is not configured
        """
        value = self.get(key, cast_type=cast_type)
        if value is None:
            raise ValueError(f"Required configuration '{key}' not found")
        return value

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.get("ENVIRONMENT", "development").lower() in ["development", "dev", "local", "test"]

    def clear_cache(self):
        """Clear configuration cache."""
        self._cache.clear()


_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    """Shortcut for ``get_config().get``."""
    return get_config().get(key, default, cast_type)


def get_required_env(key: str, cast_type: type = str) -> Any:
    """Shortcut for ``get_config().get_required``."""
    return get_config().get_required(key, cast_type)


def is_development() -> bool:
    """Check if running in development mode."""
    return get_config().is_development()


def get_event_instant() -> datetime:
    """Get the instant the gallery unlocks.

    ``GALLERY_EVENT_AT`` must be ISO-8601 with a UTC offset; a naive or
    unparsable value falls back to the built-in party date.
    """
    raw = str(get_env("GALLERY_EVENT_AT", DEFAULT_EVENT_AT))
    try:
        instant = datetime.fromisoformat(raw)
    except ValueError:
        logger.warning("invalid_event_instant", value=raw, fallback=DEFAULT_EVENT_AT)
        return datetime.fromisoformat(DEFAULT_EVENT_AT)
    if instant.tzinfo is None:
        logger.warning("naive_event_instant", value=raw, fallback=DEFAULT_EVENT_AT)
        return datetime.fromisoformat(DEFAULT_EVENT_AT)
    return instant


def get_db_path() -> str:
    """Get the DuckDB file path."""
    return str(get_env("GALLERY_DB_PATH", "/tmp/partygallery/gallery.db"))  # nosec B108


def get_max_staged_items() -> int:
    """Maximum number of upload units (pairs count once) staged at a time."""
    return int(get_env("MAX_STAGED_ITEMS", 10, int))


def get_default_guest_name() -> str:
    """Display name used when neither profile nor identity carries one."""
    return str(get_env("DEFAULT_GUEST_NAME", "Party Guest"))


def get_export_archive_name() -> str:
    """Stem of the bulk export archive and its top-level folder."""
    return str(get_env("EXPORT_ARCHIVE_NAME", "Party-Memories"))


def get_success_dwell_seconds() -> float:
    """How long the upload success state is shown before switching to the feed."""
    return float(get_env("SUCCESS_DWELL_SECONDS", 2.0, float))
