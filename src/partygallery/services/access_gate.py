"""Time-based access gate for the gallery pages."""

from dataclasses import dataclass
from datetime import UTC, datetime

from ..config import get_event_instant
from ..logging_config import get_logger, log_security_event
from .auth import UserInfo

logger = get_logger(__name__)

HOME_ROUTE = "home"
GATED_ROUTES = frozenset({"feed", "photos", "profile"})


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    redirect_to: str | None = None
    reason: str | None = None


def is_gated(route: str) -> bool:
    return route in GATED_ROUTES


def is_unlocked(now: datetime | None = None, event_at: datetime | None = None) -> bool:
    """Whether the event instant has been reached."""
    now = now or datetime.now(UTC)
    event_at = event_at or get_event_instant()
    return now >= event_at


def check_access(
    route: str,
    session: UserInfo | None,
    now: datetime | None = None,
    event_at: datetime | None = None,
) -> AccessDecision:
    """
    Decide whether ``route`` may be shown.

    Gated routes redirect home before the event instant no matter who is
    asking, and after it only when there is no session. Other routes are
    always allowed.

    Args:
        route: Page name
        session: The visitor's session, if any
        now: Current time, timezone aware
        event_at: Unlock instant, ``GALLERY_EVENT_AT`` by default
    """
    if not is_gated(route):
        return AccessDecision(allowed=True)

    if not is_unlocked(now, event_at):
        logger.debug("gallery_locked", route=route)
        return AccessDecision(allowed=False, redirect_to=HOME_ROUTE, reason="locked")

    if session is None:
        log_security_event("gated_route_without_session", route=route)
        return AccessDecision(allowed=False, redirect_to=HOME_ROUTE, reason="unauthenticated")

    return AccessDecision(allowed=True)
