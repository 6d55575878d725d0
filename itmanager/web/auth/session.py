"""Cookie-based session tokens naming a server-side workspace."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time

import structlog

logger = structlog.get_logger(__name__)

COOKIE_NAME = "session"


class SessionAuth:
    """Issues and verifies signed ``raw.issued_at.signature`` tokens.

    Tokens carry no server state: the raw part keys a workspace and its
    durable storage, so a token stays valid across restarts until it expires.
    """

    def __init__(self, secret_key: str, max_age: int = 86400) -> None:
        self._secret = secret_key.encode()
        self._max_age = max_age

    @property
    def max_age(self) -> int:
        return self._max_age

    def create_session(self) -> str:
        """Create a new token and return it."""
        raw = secrets.token_urlsafe(32)
        issued_at = str(int(time.time()))
        payload = f"{raw}.{issued_at}"
        logger.info("session_created")
        return f"{payload}.{self._sign(payload)}"

    def validate_session(self, token: str | None) -> str | None:
        """Return the workspace key of a valid token, None otherwise."""
        if not token or token.count(".") != 2:
            return None

        raw, issued_at, signature = token.split(".")
        expected_sig = self._sign(f"{raw}.{issued_at}")
        if not hmac.compare_digest(signature, expected_sig):
            return None

        try:
            issued = int(issued_at)
        except ValueError:
            return None
        if time.time() - issued > self._max_age:
            logger.info("session_expired")
            return None

        return raw

    def _sign(self, data: str) -> str:
        """Create HMAC signature for a token."""
        return hmac.new(self._secret, data.encode(), hashlib.sha256).hexdigest()[:32]
