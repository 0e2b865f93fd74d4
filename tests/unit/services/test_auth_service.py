"""
Tests for reading Cloud IAP identity headers.
"""

import pytest

from partygallery.error_handling import UnauthorizedError
from partygallery.services.auth import CloudIAPAuthService, UserInfo
from tests.conftest import make_assertion


@pytest.fixture
def production_auth(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    return CloudIAPAuthService()


class TestParseIapHeader:
    def test_valid_assertion(self, production_auth):
        token = make_assertion({"sub": "accounts.google.com:123", "email": "guest@example.com", "name": "Guest One"})

        session = production_auth.parse_iap_header({"X-Goog-IAP-JWT-Assertion": token})

        assert session == UserInfo(user_id="accounts.google.com:123", email="guest@example.com", name="Guest One")
        assert session.external_id == "accounts.google.com:123"

    def test_lowercase_header_name(self, production_auth):
        token = make_assertion({"sub": "123", "email": "guest@example.com"})

        session = production_auth.parse_iap_header({"x-goog-iap-jwt-assertion": token})

        assert session.user_id == "123"
        assert session.name is None

    def test_missing_header(self, production_auth):
        assert production_auth.parse_iap_header({}) is None

    @pytest.mark.parametrize(
        "token",
        [
            "not-a-jwt",
            "a.%%%.c",
            make_assertion({"sub": "123"}),
            make_assertion({"email": "guest@example.com"}),
        ],
    )
    def test_invalid_assertions(self, production_auth, token):
        assert production_auth.parse_iap_header({"X-Goog-IAP-JWT-Assertion": token}) is None

    def test_identifiers_are_escaped_and_name_kept(self, production_auth):
        token = make_assertion({"sub": "<1>", "email": "a@example.com", "name": "Zoe O'Brien & <b>Bob</b>"})

        session = production_auth.parse_iap_header({"X-Goog-IAP-JWT-Assertion": token})

        assert session.user_id == "&lt;1&gt;"
        assert session.name == "Zoe O'Brien & <b>Bob</b>"

    def test_development_user(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "development")
        monkeypatch.setenv("DEV_USER_ID", "local-1")
        monkeypatch.setenv("DEV_USER_NAME", "Local Guest")

        session = CloudIAPAuthService().parse_iap_header({})

        assert session.user_id == "local-1"
        assert session.name == "Local Guest"


class TestEnsureAuthenticated:
    def test_returns_session(self):
        session = UserInfo(user_id="1", email="a@example.com")
        assert CloudIAPAuthService().ensure_authenticated(session) is session

    def test_raises_without_session(self):
        with pytest.raises(UnauthorizedError) as exc_info:
            CloudIAPAuthService().ensure_authenticated(None, "like a memory")

        assert str(exc_info.value) == "Unauthorized: You must be logged in to like a memory."
        assert exc_info.value.code == "user_not_authenticated"
