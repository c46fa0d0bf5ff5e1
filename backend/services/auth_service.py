"""Simple admin token authentication service."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class AuthenticationError(Exception):
    """Base authentication failure."""


class AdminTokenNotConfiguredError(AuthenticationError):
    """Raised when ADMIN_TOKEN is missing."""


class InvalidAdminTokenError(AuthenticationError):
    """Raised when provided token is invalid."""


class SessionExpiredError(InvalidAdminTokenError):
    """Raised when the bearer session outlived its TTL."""


class AuthService:
    """Validates the admin login and the bearer session it issues.

    Stands in for the external identity provider: one operator session is
    held in memory and expires after ``admin_session_ttl_minutes``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock or datetime.now
        self._session_token: str | None = None
        self._session_expires_at: datetime | None = None

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def _expected_token(self) -> str:
        if not self._settings.admin_token:
            raise AdminTokenNotConfiguredError(
                "ADMIN_TOKEN is not configured. Set ADMIN_TOKEN in environment variables."
            )
        return self._settings.admin_token

    def login(self, provided_admin_token: str) -> str:
        expected = self._expected_token()
        if not secrets.compare_digest(provided_admin_token, expected):
            logger.warning("Admin login rejected")
            raise InvalidAdminTokenError("Invalid admin token")
        self._session_token = secrets.token_urlsafe(32)
        self._session_expires_at = self._clock() + timedelta(
            minutes=self._settings.admin_session_ttl_minutes
        )
        logger.info("Admin session issued | expires_at=%s", self._session_expires_at.isoformat())
        return self._session_token

    def validate_bearer_token(self, bearer_token: str) -> None:
        if not self.auth_enabled:
            return
        if self._session_token is None:
            raise InvalidAdminTokenError("No active session. Login first.")
        if not secrets.compare_digest(bearer_token, self._session_token):
            raise InvalidAdminTokenError("Invalid bearer token")
        if self._session_expires_at is not None and self._clock() >= self._session_expires_at:
            self._session_token = None
            self._session_expires_at = None
            raise SessionExpiredError("Session expired. Login again.")
