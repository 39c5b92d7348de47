from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from semon.api.controllers.common import InputError, read_bool, read_int, require_value, without_keys
from semon.api.responses import ApiResponse, fail, ok, validation_errors, validation_failed
from semon.domain.models import (
    GoalCreate,
    MissionCreate,
    StrategicPeriodCreate,
    StrategicPeriodUpdate,
    VisionCreate,
)
from semon.infra.audit import AUDIT_CREATE, AUDIT_DELETE, AUDIT_UPDATE, write_audit_log
from semon.services.strategic_service import ConflictError, NotFoundError, StrategicService


class StrategicController:
    def __init__(self, service: StrategicService | None = None) -> None:
        self.service = service or StrategicService()

    # Periods

    def list_periods(self, data: dict[str, Any]) -> ApiResponse:
        return ok([item.model_dump() for item in self.service.list_periods()])

    def get_active_period(self, data: dict[str, Any]) -> ApiResponse:
        period = self.service.get_active_period()
        return ok(period.model_dump() if period else None)

    def create_period(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            period = self.service.create_period(StrategicPeriodCreate.model_validate(data), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="StrategicPeriod",
            entity_id=period.id,
            description=f"Created period {period.name} ({period.start_year}-{period.end_year})",
        )
        return ok(period.model_dump(), "Strategic period created successfully")

    def update_period(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            period_id = require_value(data, "id", "period_id", field="id")
            payload = StrategicPeriodUpdate.model_validate(without_keys(data, "id", "period_id"))
            period = self.service.update_period(period_id, payload)
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except ConflictError as exc:
            return validation_failed({"end_year": str(exc)})
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="StrategicPeriod",
            entity_id=period.id,
            description=f"Updated period {period.name}",
        )
        return ok(period.model_dump(), "Strategic period updated successfully")

    def set_active_period(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            period = self.service.set_active_period(require_value(data, "id", "period_id", field="id"))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="StrategicPeriod",
            entity_id=period.id,
            description=f"Activated period {period.name}",
        )
        return ok(period.model_dump(), "Active period set")

    def deletion_impact(self, data: dict[str, Any]) -> ApiResponse:
        try:
            return ok(self.service.period_deletion_impact(require_value(data, "id", "period_id", field="id")))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))

    def delete_period(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            period_id = require_value(data, "id", "period_id", field="id")
            impact = self.service.delete_period(period_id, cascade=bool(read_bool(data, "cascade")))
        except InputError as exc:
            return validation_failed(exc.errors)
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_DELETE,
            entity_type="StrategicPeriod",
            entity_id=period_id,
            description=f"Deleted period with {impact['total']} dependent records",
        )
        return ok(impact, "Strategic period deleted successfully")

    # Visions and missions

    def list_visions(self, data: dict[str, Any]) -> ApiResponse:
        return ok([item.model_dump() for item in self.service.list_visions(data.get("period_id"))])

    def create_vision(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            vision = self.service.create_vision(VisionCreate.model_validate(data), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="Vision",
            entity_id=vision.id,
            description="Created vision",
        )
        return ok(vision.model_dump(), "Vision created successfully")

    def approve_vision(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            vision = self.service.approve_vision(require_value(data, "id", "vision_id", field="id"), actor_id)
        except InputError as exc:
            return validation_failed(exc.errors)
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="Vision",
            entity_id=vision.id,
            description="Approved vision",
        )
        return ok(vision.model_dump(), "Vision approved")

    def list_missions(self, data: dict[str, Any]) -> ApiResponse:
        return ok([item.model_dump() for item in self.service.list_missions(data.get("period_id"))])

    def create_mission(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            mission = self.service.create_mission(MissionCreate.model_validate(data), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="Mission",
            entity_id=mission.id,
            description="Created mission",
        )
        return ok(mission.model_dump(), "Mission created successfully")

    # Goals

    def list_goals(self, data: dict[str, Any]) -> ApiResponse:
        try:
            year = read_int(data, "year")
        except InputError as exc:
            return validation_failed(exc.errors)
        goals = self.service.list_goals(period_id=data.get("period_id"), year=year)
        return ok([item.model_dump() for item in goals])

    def create_goal(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            goal = self.service.create_goal(GoalCreate.model_validate(data), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="OrganizationalGoal",
            entity_id=goal.id,
            description=f"Created goal {goal.code} - {goal.name}",
        )
        return ok(goal.model_dump(), "Goal created successfully")
