"""Enums and type aliases for IT Manager."""

from enum import StrEnum


class TenantState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    RESOLVING = "resolving"
    READY = "ready"
    DENIED = "denied"


class SprintStatus(StrEnum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"
