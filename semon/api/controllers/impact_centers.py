from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from semon.api.controllers.common import InputError, read_int, require_value, without_keys
from semon.api.responses import ApiResponse, fail, ok, validation_errors, validation_failed
from semon.domain.models import (
    ImpactCenterCreate,
    ImpactCenterProgressCreate,
    ImpactCenterUpdate,
    ImpactCenterWorkUnitCreate,
)
from semon.infra.audit import AUDIT_CREATE, AUDIT_DELETE, AUDIT_UPDATE, write_audit_log
from semon.services.impact_center_service import ConflictError, ImpactCenterService, NotFoundError

ID_KEYS = ("id", "impact_center_id", "ic_id")


def _center_id(data: dict[str, Any]) -> str:
    return require_value(data, *ID_KEYS, field="id")


class ImpactCenterController:
    def __init__(self, service: ImpactCenterService | None = None) -> None:
        self.service = service or ImpactCenterService()

    def list_centers(self, data: dict[str, Any]) -> ApiResponse:
        try:
            year = read_int(data, "year")
        except InputError as exc:
            return validation_failed(exc.errors)
        centers = self.service.list_centers(year=year, goal_id=data.get("goal_id"))
        return ok([item.model_dump() for item in centers])

    def get_center(self, data: dict[str, Any]) -> ApiResponse:
        try:
            center = self.service.get_center(_center_id(data))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        return ok(center.model_dump())

    def create_center(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            center = self.service.create_center(ImpactCenterCreate.model_validate(data), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="ImpactCenter",
            entity_id=center.id,
            description=f"Created impact center {center.code} - {center.name}",
        )
        return ok(center.model_dump(), "Impact center created successfully")

    def update_center(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            center_id = _center_id(data)
            payload = ImpactCenterUpdate.model_validate(without_keys(data, *ID_KEYS))
            center = self.service.update_center(center_id, payload)
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="ImpactCenter",
            entity_id=center.id,
            description=f"Updated impact center {center.code}",
        )
        return ok(center.model_dump(), "Impact center updated successfully")

    def delete_center(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            center = self.service.delete_center(_center_id(data))
        except InputError as exc:
            return validation_failed(exc.errors)
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_DELETE,
            entity_type="ImpactCenter",
            entity_id=center.id,
            description=f"Deleted impact center {center.code}",
        )
        return ok({"id": center.id}, "Impact center deleted successfully")

    def submit_progress(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        payload_data = dict(data)
        payload_data.setdefault("impact_center_id", data.get("ic_id") or data.get("id"))
        try:
            progress = self.service.submit_progress(
                ImpactCenterProgressCreate.model_validate(without_keys(payload_data, "id", "ic_id")),
                actor_id,
            )
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="ImpactCenterProgress",
            entity_id=progress.id,
            description=(
                f"Progress {progress.year}-{progress.month:02d}: {progress.completion_percentage}%"
            ),
        )
        return ok(progress.model_dump(), "Progress submitted successfully")

    def list_progress(self, data: dict[str, Any]) -> ApiResponse:
        try:
            center_id = _center_id(data)
            year = read_int(data, "year")
            rows = self.service.list_progress(center_id, year)
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        return ok([item.model_dump() for item in rows])

    def assign_work_unit(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        payload_data = dict(data)
        payload_data.setdefault("impact_center_id", data.get("ic_id") or data.get("id"))
        try:
            mapping = self.service.assign_work_unit(
                ImpactCenterWorkUnitCreate.model_validate(without_keys(payload_data, "id", "ic_id")),
                actor_id,
            )
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="ImpactCenterWorkUnit",
            entity_id=mapping.id,
            description=f"Assigned work unit {mapping.work_unit_id} to impact center {mapping.impact_center_id}",
        )
        return ok(mapping.model_dump(), "Work unit assigned successfully")

    def list_work_units(self, data: dict[str, Any]) -> ApiResponse:
        try:
            rows = self.service.list_work_units(_center_id(data))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        return ok(rows)

    def remove_work_unit(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            mapping_id = require_value(data, "mapping_id", "assignment_id", "id", field="mapping_id")
            mapping = self.service.remove_work_unit(mapping_id)
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_DELETE,
            entity_type="ImpactCenterWorkUnit",
            entity_id=mapping.id,
            description=f"Removed work unit {mapping.work_unit_id} from impact center {mapping.impact_center_id}",
        )
        return ok({"id": mapping.id}, "Work unit removed successfully")

    def summary(self, data: dict[str, Any]) -> ApiResponse:
        try:
            year = read_int(data, "year")
        except InputError as exc:
            return validation_failed(exc.errors)
        return ok(self.service.summary(year))
