"""Identity and tenancy data contracts."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel

_WHITESPACE = re.compile(r"\s+")


class Principal(BaseModel):
    """An authenticated user account from the shared user directory."""

    user_id: str
    email: str
    name: str = ""
    is_active: bool = True
    is_super_admin: bool = False


class Tenant(BaseModel):
    id: str
    name: str
    slug: str
    is_active: bool = True

    @classmethod
    def from_client_row(cls, row: dict[str, Any]) -> Tenant:
        """Build a Tenant from a ``bmr_client`` row."""
        name = str(row.get("name") or "")
        return cls(
            id=str(row["client_id"]),
            name=name,
            slug=_WHITESPACE.sub("-", name.lower()),
            is_active=True,
        )


class TenantAssociation(BaseModel):
    """A row of ``bmr_user_clients``: principal-to-tenant membership."""

    client_id: str
    is_primary: bool = False


class SystemAccess(BaseModel):
    """A row of ``bmr_user_system_access``."""

    user_id: str
    system_id: str
    profile: str | None = None


class Session(BaseModel):
    """The durable "who is logged in" record."""

    principal: Principal
    access_token: str
    token_type: str = "bearer"
    expires_at: float
    system_id: str
    profile: str | None = None
