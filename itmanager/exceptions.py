"""Exception hierarchy for IT Manager."""

from __future__ import annotations

from typing import Any


class ITManagerError(Exception):
    """Base exception for all IT Manager errors."""


class ConfigError(ITManagerError):
    """Raised when configuration is invalid."""


class UnknownTableError(ITManagerError):
    """Raised when a table name is not present in the table registry."""


class SessionCorrupt(ITManagerError):
    """Raised when the durable session record cannot be parsed."""


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthError(ITManagerError):
    """Base class for sign-in / sign-up failures."""


class InvalidCredentials(AuthError):
    """No active principal matches the supplied email and password."""


class NoSystemAccess(AuthError):
    """The principal exists but has not been granted access to this system."""


class RegistrationDisabled(AuthError):
    """Self-service registration is not available."""


class NotAuthenticated(AuthError):
    """An operation required a signed-in principal."""


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------


class TenantError(ITManagerError):
    """Base class for tenant resolution failures."""


class NoTenantAssigned(TenantError):
    """The principal has no tenant associations."""


class TenantNotAvailable(TenantError):
    """The requested tenant is not among the principal's tenants."""


class TenantNotReady(TenantError):
    """A tenant-scoped operation was requested before a tenant was pinned."""


class StaleTenantContext(TenantError):
    """A response arrived after the current tenant changed and was discarded."""


# ---------------------------------------------------------------------------
# Remote database
# ---------------------------------------------------------------------------


class RemoteCallError(ITManagerError):
    """Raised when the remote database returns an error or cannot be reached.

    The remote payload is kept verbatim so callers can surface it unchanged.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: Any = None,
        hint: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.status_code = status_code

    def __repr__(self) -> str:
        return (
            f"RemoteCallError(message={self.message!r}, code={self.code!r}, "
            f"status_code={self.status_code!r})"
        )
