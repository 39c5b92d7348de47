"""KPI and weekly OKR controllers."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from semon.api.controllers.common import InputError, read_int, require_value, without_keys
from semon.api.responses import ApiResponse, fail, ok, validation_errors, validation_failed
from semon.domain.models import (
    KpiCreate,
    KpiProgressCreate,
    KpiStatus,
    KpiUpdate,
    OkrCreate,
    OkrReviewRequest,
    OkrUpdate,
)
from semon.infra.audit import AUDIT_CREATE, AUDIT_UPDATE, write_audit_log
from semon.services import kpi_service, okr_service
from semon.services.kpi_service import KpiService
from semon.services.okr_service import OkrService


class KpiController:
    def __init__(self, service: KpiService | None = None) -> None:
        self.service = service or KpiService()

    def list_kpis(self, data: dict[str, Any]) -> ApiResponse:
        try:
            year = read_int(data, "year")
            status = KpiStatus(data["status"]) if data.get("status") else None
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValueError:
            return validation_failed({"status": "Unknown KPI status"})
        kpis = self.service.list_kpis(work_unit_id=data.get("work_unit_id"), year=year, status=status)
        return ok([item.model_dump() for item in kpis])

    def create_kpi(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            kpi = self.service.create_kpi(KpiCreate.model_validate(data), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except kpi_service.ConflictError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="KPI",
            entity_id=kpi.id,
            description=f"Created KPI {kpi.code} - {kpi.name}",
        )
        return ok(kpi.model_dump(), "KPI created successfully")

    def update_kpi(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            kpi_id = require_value(data, "id", "kpi_id", field="id")
            kpi = self.service.update_kpi(kpi_id, KpiUpdate.model_validate(without_keys(data, "id", "kpi_id")))
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except kpi_service.NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="KPI",
            entity_id=kpi.id,
            description=f"Updated KPI {kpi.code}",
        )
        return ok(kpi.model_dump(), "KPI updated successfully")

    def record_progress(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            progress = self.service.record_progress(KpiProgressCreate.model_validate(data), actor_id)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except kpi_service.NotFoundError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="KPIProgress",
            entity_id=progress.id,
            description=f"Recorded {progress.value} for {progress.period_label} ({progress.status})",
        )
        return ok(progress.model_dump(), "Progress recorded successfully")

    def verify_progress(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            progress_id = require_value(data, "id", "progress_id", field="id")
            progress = self.service.verify_progress(progress_id, actor_id)
        except InputError as exc:
            return validation_failed(exc.errors)
        except (kpi_service.NotFoundError, kpi_service.ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="KPIProgress",
            entity_id=progress.id,
            description="Verified progress",
        )
        return ok(progress.model_dump(), "Progress verified")

    def list_progress(self, data: dict[str, Any]) -> ApiResponse:
        try:
            rows = self.service.list_progress(require_value(data, "kpi_id", "id", field="kpi_id"))
        except InputError as exc:
            return validation_failed(exc.errors)
        except kpi_service.NotFoundError as exc:
            return fail(str(exc))
        return ok([item.model_dump() for item in rows])


class OkrController:
    def __init__(self, service: OkrService | None = None) -> None:
        self.service = service or OkrService()

    def list_okrs(self, data: dict[str, Any], user_id: str) -> ApiResponse:
        try:
            year = read_int(data, "year")
            quarter = read_int(data, "quarter")
        except InputError as exc:
            return validation_failed(exc.errors)
        owner = data.get("user_id") or user_id
        okrs = self.service.list_by_user(owner, year=year, quarter=quarter)
        return ok([item.model_dump() for item in okrs])

    def current_week(self, data: dict[str, Any]) -> ApiResponse:
        return ok(self.service.current_week())

    def pending_reviews(self, data: dict[str, Any]) -> ApiResponse:
        return ok([item.model_dump() for item in self.service.pending_reviews()])

    def create_okr(self, data: dict[str, Any], user_id: str) -> ApiResponse:
        try:
            okr = self.service.create_okr(user_id, OkrCreate.model_validate(data))
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except okr_service.ConflictError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=user_id,
            action=AUDIT_CREATE,
            entity_type="OKR",
            entity_id=okr.id,
            description=f"Created OKR for week {okr.week_number}/{okr.year}",
        )
        return ok(okr.model_dump(), "OKR created successfully")

    def update_okr(self, data: dict[str, Any], user_id: str) -> ApiResponse:
        try:
            okr_id = require_value(data, "id", "okr_id", field="id")
            okr = self.service.update_okr(okr_id, user_id, OkrUpdate.model_validate(without_keys(data, "id", "okr_id")))
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (okr_service.NotFoundError, okr_service.ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=user_id,
            action=AUDIT_UPDATE,
            entity_type="OKR",
            entity_id=okr.id,
            description="Updated OKR",
        )
        return ok(okr.model_dump(), "OKR updated successfully")

    def submit_okr(self, data: dict[str, Any], user_id: str) -> ApiResponse:
        try:
            okr = self.service.submit_okr(require_value(data, "id", "okr_id", field="id"), user_id)
        except InputError as exc:
            return validation_failed(exc.errors)
        except (okr_service.NotFoundError, okr_service.ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=user_id,
            action=AUDIT_UPDATE,
            entity_type="OKR",
            entity_id=okr.id,
            description="Submitted OKR for review",
        )
        return ok(okr.model_dump(), "OKR submitted for review")

    def review_okr(self, data: dict[str, Any], reviewer_id: str) -> ApiResponse:
        try:
            okr_id = require_value(data, "id", "okr_id", field="id")
            payload = OkrReviewRequest.model_validate(without_keys(data, "id", "okr_id"))
            okr = self.service.review_okr(okr_id, reviewer_id, payload)
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (okr_service.NotFoundError, okr_service.ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=reviewer_id,
            action=AUDIT_UPDATE,
            entity_type="OKR",
            entity_id=okr.id,
            description=f"Reviewed OKR: {okr.status}",
        )
        return ok(okr.model_dump(), "OKR reviewed")
