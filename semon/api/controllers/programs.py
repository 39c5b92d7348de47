from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from semon.api.controllers.common import InputError, read_int, require_value, without_keys
from semon.api.responses import ApiResponse, fail, ok, validation_errors, validation_failed
from semon.domain.models import ActivityCreate, ActivityUpdate, ProgramCreate, ProgramUpdate
from semon.infra.audit import AUDIT_CREATE, AUDIT_DELETE, AUDIT_UPDATE, write_audit_log
from semon.services.program_service import ConflictError, NotFoundError, ProgramService


class ProgramController:
    def __init__(self, service: ProgramService | None = None) -> None:
        self.service = service or ProgramService()

    def list_programs(self, data: dict[str, Any]) -> ApiResponse:
        try:
            year = read_int(data, "year")
        except InputError as exc:
            return validation_failed(exc.errors)
        programs = self.service.list_programs(
            year=year,
            work_unit_id=data.get("work_unit_id"),
            goal_id=data.get("goal_id"),
        )
        return ok([item.model_dump() for item in programs])

    def get_program(self, data: dict[str, Any]) -> ApiResponse:
        try:
            program = self.service.get_program(require_value(data, "id", "program_id", field="id"))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        activities = self.service.list_activities(program.id)
        return ok({**program.model_dump(), "activities": [item.model_dump() for item in activities]})

    def create_program(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            program = self.service.create_program(ProgramCreate.model_validate(data), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except ConflictError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="Program",
            entity_id=program.id,
            description=f"Created program {program.code} - {program.name}",
        )
        return ok(program.model_dump(), "Program created successfully")

    def update_program(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            program_id = require_value(data, "id", "program_id", field="id")
            payload = ProgramUpdate.model_validate(without_keys(data, "id", "program_id"))
            program = self.service.update_program(program_id, payload)
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="Program",
            entity_id=program.id,
            description=f"Updated program {program.code}",
        )
        return ok(program.model_dump(), "Program updated successfully")

    def delete_program(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            program = self.service.delete_program(require_value(data, "id", "program_id", field="id"))
        except InputError as exc:
            return validation_failed(exc.errors)
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_DELETE,
            entity_type="Program",
            entity_id=program.id,
            description=f"Deleted program {program.code}",
        )
        return ok({"id": program.id}, "Program deleted successfully")

    def list_activities(self, data: dict[str, Any]) -> ApiResponse:
        activities = self.service.list_activities(data.get("program_id"))
        return ok([item.model_dump() for item in activities])

    def create_activity(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            activity = self.service.create_activity(ActivityCreate.model_validate(data), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="Activity",
            entity_id=activity.id,
            description=f"Created activity {activity.code} - {activity.name}",
        )
        return ok(activity.model_dump(), "Activity created successfully")

    def update_activity(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            activity_id = require_value(data, "id", "activity_id", field="id")
            payload = ActivityUpdate.model_validate(without_keys(data, "id", "activity_id"))
            activity = self.service.update_activity(activity_id, payload)
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="Activity",
            entity_id=activity.id,
            description=f"Updated activity {activity.code}",
        )
        return ok(activity.model_dump(), "Activity updated successfully")

    def delete_activity(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            activity = self.service.delete_activity(require_value(data, "id", "activity_id", field="id"))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_DELETE,
            entity_type="Activity",
            entity_id=activity.id,
            description=f"Deleted activity {activity.code}",
        )
        return ok({"id": activity.id}, "Activity deleted successfully")
