from __future__ import annotations

from typing import Any

from semon.api.controllers.common import InputError, read_int, require_value
from semon.api.responses import ApiResponse, ok, validation_failed
from semon.infra.audit import list_audit_logs
from semon.services.dashboard_service import DashboardService

MAX_HISTORY_LIMIT = 200


class DashboardController:
    def __init__(self, service: DashboardService | None = None) -> None:
        self.service = service or DashboardService()

    def get_data(self, data: dict[str, Any], user_id: str) -> ApiResponse:
        try:
            year = read_int(data, "year")
        except InputError as exc:
            return validation_failed(exc.errors)
        return ok(self.service.get_data(user_id, year=year))


def revision_history(data: dict[str, Any]) -> ApiResponse:
    try:
        entity_id = require_value(data, "entity_id", "id", field="entity_id")
        limit = read_int(data, "limit") or 50
    except InputError as exc:
        return validation_failed(exc.errors)
    logs = list_audit_logs(
        entity_type=data.get("entity_type"),
        entity_id=entity_id,
        limit=max(1, min(limit, MAX_HISTORY_LIMIT)),
    )
    return ok([item.model_dump() for item in logs])
