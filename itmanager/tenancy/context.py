"""Tenant context for tenant-scoped data access."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TenantContext:
    """Immutable tenant scope handed to every query-construction call.

    ``epoch`` increases each time the current tenant is pinned or cleared,
    so a context captured before a switch can be recognised as stale.
    """

    principal_id: str
    tenant_id: str
    epoch: int = 0

    def __post_init__(self) -> None:
        if not self.tenant_id:
            msg = "tenant_id must not be empty"
            raise ValueError(msg)
        if not self.principal_id:
            msg = "principal_id must not be empty"
            raise ValueError(msg)
