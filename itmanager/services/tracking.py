"""Issue and risk registers."""

from __future__ import annotations

from itmanager.models.tables import Tables
from itmanager.services.base import EntityService


class IssueService(EntityService):
    table = Tables.ISSUE
    entity = "issues"
    filter_fields = ("project_id",)


class RiskService(EntityService):
    table = Tables.RISK
    entity = "risks"
    filter_fields = ("project_id",)
