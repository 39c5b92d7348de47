from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from semon.api.controllers.common import InputError, require_value, without_keys
from semon.api.responses import ApiResponse, fail, ok, validation_errors, validation_failed
from semon.domain.models import AnalysisItemCreate, AnalysisItemUpdate, SwotCategory
from semon.infra.audit import AUDIT_CREATE, AUDIT_DELETE, AUDIT_UPDATE, write_audit_log
from semon.services.swot_service import NotFoundError, SwotService


class SwotController:
    def __init__(self, service: SwotService | None = None) -> None:
        self.service = service or SwotService()

    def list_items(self, data: dict[str, Any]) -> ApiResponse:
        try:
            goal_id = require_value(data, "goal_id")
            category = SwotCategory(data["category"]) if data.get("category") else None
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValueError:
            return validation_failed({"category": "Unknown SWOT category"})
        items = self.service.list_items(goal_id, category)
        return ok(
            {
                "items": [item.model_dump() for item in items],
                "summary": self.service.summary(goal_id),
            }
        )

    def matrix(self, data: dict[str, Any]) -> ApiResponse:
        try:
            return ok(self.service.matrix(require_value(data, "goal_id")))
        except InputError as exc:
            return validation_failed(exc.errors)

    def impact(self, data: dict[str, Any]) -> ApiResponse:
        try:
            return ok(self.service.impact_analysis(require_value(data, "goal_id")))
        except InputError as exc:
            return validation_failed(exc.errors)

    def create_item(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            item = self.service.create_item(AnalysisItemCreate.model_validate(data), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="AnalysisItem",
            entity_id=item.id,
            description=f"Created {item.category} {item.code}",
        )
        return ok(item.model_dump(), "SWOT item created successfully")

    def update_item(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            item_id = require_value(data, "id", "item_id", field="id")
            payload = AnalysisItemUpdate.model_validate(without_keys(data, "id", "item_id"))
            item = self.service.update_item(item_id, payload)
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="AnalysisItem",
            entity_id=item.id,
            description=f"Updated {item.code}",
        )
        return ok(item.model_dump(), "SWOT item updated successfully")

    def delete_item(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            item = self.service.delete_item(require_value(data, "id", "item_id", field="id"))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_DELETE,
            entity_type="AnalysisItem",
            entity_id=item.id,
            description=f"Deleted {item.code}",
        )
        return ok({"id": item.id}, "SWOT item deleted successfully")
