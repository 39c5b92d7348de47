from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from semon.api.controllers.common import InputError, read_bool, require_value, without_keys
from semon.api.responses import ApiResponse, fail, ok, validation_errors, validation_failed
from semon.domain.models import (
    AffairCreate,
    AffairUpdate,
    DirectorateCreate,
    DirectorateUpdate,
    PositionAssignmentCreate,
    PositionAssignmentUpdate,
    PositionCreate,
    PositionUpdate,
    WorkUnitCreate,
    WorkUnitUpdate,
)
from semon.infra.audit import AUDIT_CREATE, AUDIT_DELETE, AUDIT_UPDATE, write_audit_log
from semon.infra.store import RecordStore
from semon.services.organization_service import (
    AffairModel,
    ConflictError,
    ContainerModel,
    DirectorateModel,
    HierarchyModel,
    NotFoundError,
    PositionAssignmentModel,
    PositionModel,
    WorkUnitModel,
    find_dangling_references,
    format_display,
)


def _list_filters(data: dict[str, Any]) -> dict[str, Any]:
    filters = dict(data)
    if "is_active" in filters:
        filters["is_active"] = read_bool(data, "is_active")
    return filters


class HierarchyController:
    def __init__(
        self,
        model: HierarchyModel,
        create_schema: type[BaseModel],
        update_schema: type[BaseModel],
        id_key: str,
    ) -> None:
        self.model = model
        self.create_schema = create_schema
        self.update_schema = update_schema
        self.id_key = id_key

    @property
    def label(self) -> str:
        return self.model.label.capitalize()

    def _entity_id(self, data: dict[str, Any]) -> str:
        return require_value(data, "id", self.id_key, field="id")

    def _audit(self, actor_id: str | None, action: str, row: dict[str, Any], description: str) -> None:
        write_audit_log(
            actor_id=actor_id,
            action=action,
            entity_type=self.model.entity_type,
            entity_id=row["id"],
            description=description,
        )

    def list(self, data: dict[str, Any]) -> ApiResponse:
        try:
            rows = self.model.get_all(_list_filters(data))
        except InputError as exc:
            return validation_failed(exc.errors)
        return ok(rows)

    def get(self, data: dict[str, Any]) -> ApiResponse:
        try:
            entity_id = self._entity_id(data)
        except InputError as exc:
            return validation_failed(exc.errors)
        row = self.model.find_by_id(entity_id)
        if row is None:
            return fail(f"{self.label} not found")
        return ok(row)

    def create(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            payload = self.create_schema.model_validate(data)
            row = self.model.create(payload.model_dump(), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        self._audit(actor_id, AUDIT_CREATE, row, f"Created {self.model.label} {format_display(row)}")
        return ok(row, f"{self.label} created successfully")

    def update(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            entity_id = self._entity_id(data)
            payload = self.update_schema.model_validate(without_keys(data, "id", self.id_key))
            row = self.model.update(entity_id, payload.model_dump(exclude_unset=True), actor_id)
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        self._audit(actor_id, AUDIT_UPDATE, row, f"Updated {self.model.label} {format_display(row)}")
        return ok(row, f"{self.label} updated successfully")

    def delete(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            row = self.model.delete(self._entity_id(data))
        except InputError as exc:
            return validation_failed(exc.errors)
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        self._audit(actor_id, AUDIT_DELETE, row, f"Deleted {self.model.label} {format_display(row)}")
        return ok({"id": row["id"]}, f"{self.label} deleted successfully")

    def check_children(self, data: dict[str, Any]) -> ApiResponse:
        try:
            return ok(self.model.check_children(self._entity_id(data)))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))

    def generate_code(self, data: dict[str, Any]) -> ApiResponse:
        return ok({"code": self.model.generate_code()})


class ContainerController(HierarchyController):
    model: ContainerModel

    def get_alternatives(self, data: dict[str, Any]) -> ApiResponse:
        try:
            return ok(self.model.get_alternatives(self._entity_id(data)))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))

    def delete_cascade(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            entity_id = self._entity_id(data)
            removed = self.model.cascade_delete(entity_id)
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        for entity_type, row in removed:
            write_audit_log(
                actor_id=actor_id,
                action=AUDIT_DELETE,
                entity_type=entity_type,
                entity_id=row["id"],
                description=f"Cascade delete of {self.model.label}: removed {format_display(row)}",
            )
        return ok(
            {"id": entity_id, "deleted": len(removed), "descendants": len(removed) - 1},
            f"{self.label} and {len(removed) - 1} descendants deleted",
        )

    def delete_reassign(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        parent_key = f"new_{self.id_key}"
        try:
            entity_id = self._entity_id(data)
            new_parent_id = require_value(data, "new_parent_id", parent_key, field="new_parent_id")
            current = self.model.get(entity_id)
            moved = self.model.reassign_and_delete(entity_id, new_parent_id, actor_id)
        except InputError as exc:
            return validation_failed(exc.errors)
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        for entity_type, row in moved:
            write_audit_log(
                actor_id=actor_id,
                action=AUDIT_UPDATE,
                entity_type=entity_type,
                entity_id=row["id"],
                description=f"Reassigned {format_display(row)} from {entity_id} to {new_parent_id}",
            )
        self._audit(
            actor_id,
            AUDIT_DELETE,
            current,
            f"Deleted {self.model.label} {format_display(current)} after reassigning {len(moved)} children",
        )
        return ok(
            {"id": entity_id, "new_parent_id": new_parent_id, "reassigned": len(moved)},
            f"{self.label} deleted, {len(moved)} children reassigned",
        )


class PositionAssignmentController:
    entity_type = "PositionAssignment"

    def __init__(self, store: RecordStore) -> None:
        self.model = PositionAssignmentModel(store)

    def _audit(self, actor_id: str | None, action: str, row: dict[str, Any], description: str) -> None:
        write_audit_log(
            actor_id=actor_id,
            action=action,
            entity_type=self.entity_type,
            entity_id=row["id"],
            description=description,
        )

    def list(self, data: dict[str, Any]) -> ApiResponse:
        try:
            filters = dict(data)
            if "is_primary" in filters:
                filters["is_primary"] = read_bool(data, "is_primary")
        except InputError as exc:
            return validation_failed(exc.errors)
        return ok(self.model.get_all(filters))

    def by_user(self, data: dict[str, Any]) -> ApiResponse:
        try:
            user_id = require_value(data, "user_id")
        except InputError as exc:
            return validation_failed(exc.errors)
        return ok(self.model.get_by_user(user_id))

    def primary_position(self, data: dict[str, Any]) -> ApiResponse:
        try:
            user_id = require_value(data, "user_id")
        except InputError as exc:
            return validation_failed(exc.errors)
        return ok(self.model.get_primary_position(user_id))

    def create(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            payload = PositionAssignmentCreate.model_validate(data)
            row = self.model.create(payload.model_dump(), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except NotFoundError as exc:
            return fail(str(exc))
        self._audit(
            actor_id,
            AUDIT_CREATE,
            row,
            f"Assigned user {row['user_id']} to position {row['position_id']}",
        )
        return ok(row, "Assignment created successfully")

    def update(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            assignment_id = require_value(data, "id", "assignment_id", field="id")
            payload = PositionAssignmentUpdate.model_validate(without_keys(data, "id", "assignment_id"))
            row = self.model.update(assignment_id, payload.model_dump(exclude_unset=True), actor_id)
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except NotFoundError as exc:
            return fail(str(exc))
        self._audit(actor_id, AUDIT_UPDATE, row, "Updated assignment")
        return ok(row, "Assignment updated successfully")

    def end(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            assignment_id = require_value(data, "id", "assignment_id", field="id")
            payload = PositionAssignmentUpdate.model_validate({"end_date": data.get("end_date")})
            row = self.model.end_assignment(assignment_id, actor_id, payload.end_date)
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        self._audit(actor_id, AUDIT_UPDATE, row, "Ended assignment")
        return ok(row, "Assignment ended")

    def delete(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            row = self.model.delete(require_value(data, "id", "assignment_id", field="id"))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        self._audit(actor_id, AUDIT_DELETE, row, "Deleted assignment")
        return ok({"id": row["id"]}, "Assignment deleted successfully")


def directorates(store: RecordStore) -> ContainerController:
    return ContainerController(DirectorateModel(store), DirectorateCreate, DirectorateUpdate, "directorate_id")


def work_units(store: RecordStore) -> ContainerController:
    return ContainerController(WorkUnitModel(store), WorkUnitCreate, WorkUnitUpdate, "work_unit_id")


def affairs(store: RecordStore) -> ContainerController:
    return ContainerController(AffairModel(store), AffairCreate, AffairUpdate, "affair_id")


def positions(store: RecordStore) -> HierarchyController:
    return HierarchyController(PositionModel(store), PositionCreate, PositionUpdate, "position_id")


def assignments(store: RecordStore) -> PositionAssignmentController:
    return PositionAssignmentController(store)


def integrity_report(store: RecordStore) -> ApiResponse:
    dangling = find_dangling_references(store)
    return ok({"dangling": dangling, "count": len(dangling)})
