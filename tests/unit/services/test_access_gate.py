"""
Tests for the time-based page gate.
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from partygallery.services.access_gate import HOME_ROUTE, check_access, is_gated, is_unlocked
from tests.conftest import make_session

EVENT_AT = datetime(2026, 3, 20, 18, 0, tzinfo=timezone(timedelta(hours=1)))


class TestAccessGate:
    """Gated routes open at the event instant, for signed-in guests only."""

    def test_gated_routes(self):
        assert is_gated("feed")
        assert is_gated("photos")
        assert is_gated("profile")
        assert not is_gated("home")

    def test_unlock_is_inclusive(self):
        assert is_unlocked(EVENT_AT, EVENT_AT)
        assert not is_unlocked(EVENT_AT - timedelta(seconds=1), EVENT_AT)

    def test_unlock_compares_instants_across_offsets(self):
        """17:00 UTC is the same instant as 18:00 at +01:00."""
        assert is_unlocked(datetime(2026, 3, 20, 17, 0, tzinfo=UTC), EVENT_AT)

    @pytest.mark.parametrize("route", ["feed", "photos", "profile"])
    def test_locked_before_event_even_when_signed_in(self, route):
        decision = check_access(route, make_session("alice-sub"), now=EVENT_AT - timedelta(days=1), event_at=EVENT_AT)

        assert decision.allowed is False
        assert decision.redirect_to == HOME_ROUTE
        assert decision.reason == "locked"

    def test_unlocked_without_session_redirects_home(self):
        decision = check_access("feed", None, now=EVENT_AT, event_at=EVENT_AT)

        assert decision.allowed is False
        assert decision.redirect_to == HOME_ROUTE
        assert decision.reason == "unauthenticated"

    def test_unlocked_with_session(self):
        decision = check_access("photos", make_session("alice-sub"), now=EVENT_AT + timedelta(hours=1), event_at=EVENT_AT)
        assert decision.allowed is True
        assert decision.redirect_to is None

    def test_home_is_always_allowed(self):
        assert check_access("home", None, now=EVENT_AT - timedelta(days=30), event_at=EVENT_AT).allowed

    def test_event_instant_from_environment(self, monkeypatch):
        from partygallery.config import get_config

        monkeypatch.setenv("GALLERY_EVENT_AT", "2000-01-01T00:00:00+00:00")
        get_config().clear_cache()

        assert check_access("feed", make_session("alice-sub")).allowed
