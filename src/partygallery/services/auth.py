"""Session handling for partygallery.

Identity is delegated to Cloud IAP, which puts a signed JWT assertion in a
request header. This module only reads the identity claims out of it; the
resulting ``UserInfo`` is the session every backend operation receives.
"""

import base64
import html
import json
import os
from dataclasses import dataclass
from typing import Any

from ..error_handling import UnauthorizedError
from ..logging_config import get_logger, log_error, log_security_event, log_user_action

logger = get_logger(__name__)


@dataclass(frozen=True)
class UserInfo:
    """An authenticated session, as asserted by the identity provider."""

    user_id: str
    email: str
    name: str | None = None
    picture: str | None = None

    @property
    def external_id(self) -> str:
        """Identity-provider subject, the key users are synced on."""
        return self.user_id


class CloudIAPAuthService:
    """Reads Cloud IAP identity headers into sessions."""

    IAP_HEADER_NAME = "X-Goog-IAP-JWT-Assertion"

    def __init__(self) -> None:
        self._development_mode = self._is_development_mode()
        if self._development_mode:
            logger.info("development_auth_mode_enabled")

    def _is_development_mode(self) -> bool:
        environment = os.getenv("ENVIRONMENT", "development").lower().strip()
        return environment in ["development", "dev", "local", "test"]

    def _get_development_user(self) -> UserInfo:
        """Fixed local user, overridable through ``DEV_USER_*`` variables."""
        dev_email = os.getenv("DEV_USER_EMAIL", "guest@example.com")
        dev_name = os.getenv("DEV_USER_NAME", "Development Guest")
        dev_user_id = os.getenv("DEV_USER_ID", "dev-guest-1")

        if "@" not in dev_email:
            logger.warning("invalid_dev_user_email", email=dev_email)
            dev_email = "guest@example.com"

        return UserInfo(user_id=dev_user_id.strip() or "dev-guest-1", email=dev_email, name=dev_name.strip() or None)

    def parse_iap_header(self, headers: dict[str, str]) -> UserInfo | None:
        """
        Extract the session from request headers.

        Args:
            headers: Request headers

        Returns:
            UserInfo | None: The session, or None when no valid assertion is present
        """
        if self._development_mode:
            return self._get_development_user()

        jwt_token = headers.get(self.IAP_HEADER_NAME) or headers.get(self.IAP_HEADER_NAME.lower())
        if not jwt_token:
            log_security_event("missing_iap_header", headers_present=sorted(headers.keys()))
            return None

        try:
            user_info = self._decode_jwt_payload(jwt_token)
        except ValueError as e:
            log_error(e, {"operation": "parse_iap_header"})
            log_security_event("authentication_failure", error=str(e))
            return None

        log_user_action(user_info.user_id, "authentication_success", email=user_info.email)
        return user_info

    def _decode_jwt_payload(self, jwt_token: str) -> UserInfo:
        """Decode the claims segment of the assertion.

        The load balancer has already verified the signature before the
        request reached the app.
        """
        parts = jwt_token.split(".")
        if len(parts) != 3:
            raise ValueError("Invalid JWT token format")

        payload_b64 = parts[1]
        payload_b64 += "=" * (-len(payload_b64) % 4)

        try:
            payload = json.loads(base64.urlsafe_b64decode(payload_b64).decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            raise ValueError(f"Failed to decode JWT payload: {e}") from e

        return self._extract_user_info(payload)

    def _extract_user_info(self, payload: dict[str, Any]) -> UserInfo:
        email = payload.get("email")
        sub = payload.get("sub")

        if not email:
            raise ValueError("Email not found in JWT payload")
        if not sub:
            raise ValueError("Subject (user ID) not found in JWT payload")

        name = payload.get("name")
        picture = payload.get("picture")
        return UserInfo(
            user_id=html.escape(str(sub)),
            email=html.escape(str(email)),
            name=str(name) if name else None,
            picture=str(picture) if picture else None,
        )

    def ensure_authenticated(self, session: UserInfo | None, action: str = "continue") -> UserInfo:
        """
        Require a session.

        Args:
            session: The caller's session, if any
            action: What the caller was trying to do, for the error message

        Raises:
            UnauthorizedError: If there is no session
        """
        if session is None:
            raise UnauthorizedError(
                f"Unauthorized: You must be logged in to {action}.",
                code="user_not_authenticated",
                details={"action": action},
            )
        return session


auth_service = CloudIAPAuthService()


def get_auth_service() -> CloudIAPAuthService:
    """Get the global authentication service instance."""
    return auth_service
