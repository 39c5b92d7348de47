from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from semon.domain.state_machine import AssignmentStatus, OkrStatus, VisionStatus


def now_utc() -> datetime:
    return datetime.now(UTC)


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str = Field(index=True)
    entity_type: str = Field(index=True)
    entity_id: str | None = Field(default=None, index=True)
    description: str = ""
    ts: datetime = Field(default_factory=now_utc, index=True)


# Organization hierarchy. Parent references are plain columns: referential
# integrity is maintained by the services, not by the store.


class HierarchyFields(SQLModel):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    code: str = Field(index=True)
    name: str
    description: str = ""
    active_from: datetime | None = None
    active_until: datetime | None = None
    is_active: bool = Field(default=True, index=True)
    sort_order: int = 0
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None
    updated_at: datetime = Field(default_factory=now_utc)
    updated_by: str | None = None
    notes: str = ""


class Directorate(HierarchyFields, table=True):
    __tablename__ = "directorates"

    director_position_id: str | None = None


class WorkUnit(HierarchyFields, table=True):
    __tablename__ = "work_units"

    directorate_id: str = Field(index=True)
    deputy_position_id: str | None = None


class Affair(HierarchyFields, table=True):
    __tablename__ = "affairs"

    work_unit_id: str = Field(index=True)
    assistant_deputy_position_id: str | None = None


class Position(HierarchyFields, table=True):
    __tablename__ = "positions"

    position_type: str = Field(default="STRUCTURAL", index=True)
    position_level: str | None = Field(default=None, index=True)
    parent_position_id: str | None = Field(default=None, index=True)
    directorate_id: str | None = Field(default=None, index=True)
    work_unit_id: str | None = Field(default=None, index=True)
    affair_id: str | None = Field(default=None, index=True)
    responsibilities: str = ""


class PositionAssignment(SQLModel, table=True):
    __tablename__ = "position_assignments"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(index=True)
    position_id: str = Field(index=True)
    assignment_date: datetime = Field(default_factory=now_utc)
    start_date: datetime = Field(default_factory=now_utc)
    end_date: datetime | None = None
    is_primary: bool = False
    assignment_status: AssignmentStatus = Field(default=AssignmentStatus.ACTIVE, index=True)
    assignment_letter_number: str | None = None
    notes: str = ""
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None
    updated_at: datetime = Field(default_factory=now_utc)
    updated_by: str | None = None


# Identity


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str | None = Field(default=None, index=True)
    full_name: str = ""
    password_hash: str
    role_id: str | None = Field(default=None, index=True)
    work_unit_id: str | None = Field(default=None, index=True)
    is_active: bool = Field(default=True)
    active_from: datetime | None = None
    active_until: datetime | None = None
    last_login: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Role(SQLModel, table=True):
    __tablename__ = "roles"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    code: str = Field(index=True, unique=True)
    name: str = Field(index=True)
    description: str = ""
    permissions: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    is_system_role: bool = False
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


# Strategic planning


class StrategicPeriod(SQLModel, table=True):
    __tablename__ = "strategic_periods"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str
    start_year: int
    end_year: int
    description: str = ""
    is_active: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None
    updated_at: datetime = Field(default_factory=now_utc)


class Vision(SQLModel, table=True):
    __tablename__ = "visions"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    period_id: str = Field(index=True)
    vision_text: str
    status: VisionStatus = Field(default=VisionStatus.DRAFT, index=True)
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None


class StrategicMission(SQLModel, table=True):
    __tablename__ = "missions"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    period_id: str = Field(index=True)
    vision_id: str | None = Field(default=None, index=True)
    mission_text: str
    sort_order: int = 0
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None


class OrganizationalGoal(SQLModel, table=True):
    __tablename__ = "organizational_goals"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    code: str = Field(index=True)
    period_id: str = Field(index=True)
    name: str
    description: str = ""
    year: int = Field(index=True)
    sort_order: int = 0
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None


# Programs


class ProgramStatus(StrEnum):
    PLANNING = "PLANNING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Program(SQLModel, table=True):
    __tablename__ = "programs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    code: str = Field(index=True)
    name: str
    description: str = ""
    work_unit_id: str | None = Field(default=None, index=True)
    goal_id: str | None = Field(default=None, index=True)
    year: int = Field(index=True)
    start_date: date | None = None
    end_date: date | None = None
    budget_allocated: float = 0.0
    budget_spent: float = 0.0
    status: ProgramStatus = Field(default=ProgramStatus.PLANNING, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None
    updated_at: datetime = Field(default_factory=now_utc)


class Activity(SQLModel, table=True):
    __tablename__ = "activities"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    code: str = Field(index=True)
    program_id: str = Field(index=True)
    name: str
    description: str = ""
    unit: str = ""
    unit_price: float = 0.0
    quantity: float = 0.0
    total_cost: float = 0.0
    status: ProgramStatus = Field(default=ProgramStatus.PLANNING)
    start_date: date | None = None
    end_date: date | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None
    updated_at: datetime = Field(default_factory=now_utc)


# KPIs


class KpiTrend(StrEnum):
    HIGHER_BETTER = "HIGHER_BETTER"
    LOWER_BETTER = "LOWER_BETTER"


class KpiStatus(StrEnum):
    ON_TRACK = "ON_TRACK"
    AT_RISK = "AT_RISK"
    OFF_TRACK = "OFF_TRACK"
    UNKNOWN = "UNKNOWN"


class Kpi(SQLModel, table=True):
    __tablename__ = "kpis"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    code: str = Field(index=True)
    name: str
    description: str = ""
    work_unit_id: str | None = Field(default=None, index=True)
    goal_id: str | None = Field(default=None, index=True)
    year: int = Field(index=True)
    unit: str = ""
    target_value: float = 0.0
    current_value: float = 0.0
    trend: KpiTrend = Field(default=KpiTrend.HIGHER_BETTER)
    status: KpiStatus = Field(default=KpiStatus.UNKNOWN, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None
    updated_at: datetime = Field(default_factory=now_utc)


class KpiProgress(SQLModel, table=True):
    __tablename__ = "kpi_progress"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    kpi_id: str = Field(index=True)
    period_label: str = Field(index=True)
    value: float
    achievement_pct: float | None = None
    status: KpiStatus = Field(default=KpiStatus.UNKNOWN)
    notes: str = ""
    is_verified: bool = False
    verified_by: str | None = None
    verified_at: datetime | None = None
    recorded_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


# Impact centers


class ImpactCenter(SQLModel, table=True):
    __tablename__ = "impact_centers"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    code: str = Field(index=True)
    name: str
    description: str = ""
    year: int = Field(index=True)
    goal_id: str | None = Field(default=None, index=True)
    target_description: str = ""
    completion_percentage: float = 0.0
    is_active: bool = True
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None
    updated_at: datetime = Field(default_factory=now_utc)


class ImpactCenterProgress(SQLModel, table=True):
    __tablename__ = "impact_center_progress"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    impact_center_id: str = Field(index=True)
    year: int = Field(index=True)
    month: int
    completion_percentage: float
    achievement_notes: str = ""
    issues: str = ""
    reported_by: str | None = None
    reported_at: datetime = Field(default_factory=now_utc, index=True)


class ImpactCenterWorkUnit(SQLModel, table=True):
    __tablename__ = "impact_center_work_units"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    impact_center_id: str = Field(index=True)
    work_unit_id: str = Field(index=True)
    contribution: str = ""
    created_at: datetime = Field(default_factory=now_utc)
    created_by: str | None = None


# OKRs


class Okr(SQLModel, table=True):
    __tablename__ = "okrs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(index=True)
    year: int = Field(index=True)
    quarter: int = Field(index=True)
    week_number: int = Field(index=True)
    week_start: date
    week_end: date
    objective: str
    key_results: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    progress: float = 0.0
    status: OkrStatus = Field(default=OkrStatus.DRAFT, index=True)
    submitted_at: datetime | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str = ""
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


# SWOT


class AnalysisType(StrEnum):
    INTERNAL = "INTERNAL"
    EXTERNAL = "EXTERNAL"


class SwotCategory(StrEnum):
    STRENGTH = "STRENGTH"
    WEAKNESS = "WEAKNESS"
    OPPORTUNITY = "OPPORTUNITY"
    THREAT = "THREAT"


class ImpactLevel(StrEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


CATEGORY_ANALYSIS_TYPE: dict[SwotCategory, AnalysisType] = {
    SwotCategory.STRENGTH: AnalysisType.INTERNAL,
    SwotCategory.WEAKNESS: AnalysisType.INTERNAL,
    SwotCategory.OPPORTUNITY: AnalysisType.EXTERNAL,
    SwotCategory.THREAT: AnalysisType.EXTERNAL,
}


class AnalysisItem(SQLModel, table=True):
    __tablename__ = "analysis_items"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    code: str = Field(index=True)
    goal_id: str = Field(index=True)
    analysis_type: AnalysisType
    category: SwotCategory = Field(index=True)
    description: str
    impact_level: ImpactLevel = Field(default=ImpactLevel.MEDIUM)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    created_by: str | None = None
    updated_at: datetime = Field(default_factory=now_utc)


# Request and read schemas


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class DispatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    data: dict[str, Any] = PydanticField(default_factory=dict)
    session_token: str | None = PydanticField(default=None, alias="sessionToken")


class HierarchyCreate(BaseModel):
    code: str | None = None
    name: str = PydanticField(min_length=1, max_length=200)
    description: str = ""
    active_from: datetime | None = None
    active_until: datetime | None = None
    is_active: bool = True
    sort_order: int = 0
    notes: str = ""


def reject_null(value: Any) -> Any:
    """Partial updates may omit a required column but never clear it."""
    if value is None:
        raise ValueError("Field cannot be null")
    return value


class HierarchyUpdate(BaseModel):
    code: str | None = PydanticField(default=None, min_length=1)
    name: str | None = PydanticField(default=None, min_length=1, max_length=200)
    description: str | None = None
    active_from: datetime | None = None
    active_until: datetime | None = None
    is_active: bool | None = None
    sort_order: int | None = None
    notes: str | None = None

    @field_validator("code", "name", "description", "is_active", "sort_order", "notes")
    @classmethod
    def _required_columns(cls, value: Any) -> Any:
        return reject_null(value)


class DirectorateCreate(HierarchyCreate):
    director_position_id: str | None = None


class DirectorateUpdate(HierarchyUpdate):
    director_position_id: str | None = None


class WorkUnitCreate(HierarchyCreate):
    directorate_id: str = PydanticField(min_length=1)
    deputy_position_id: str | None = None


class WorkUnitUpdate(HierarchyUpdate):
    directorate_id: str | None = PydanticField(default=None, min_length=1)
    deputy_position_id: str | None = None

    @field_validator("directorate_id")
    @classmethod
    def _parent_required(cls, value: Any) -> Any:
        return reject_null(value)


class AffairCreate(HierarchyCreate):
    work_unit_id: str = PydanticField(min_length=1)
    assistant_deputy_position_id: str | None = None


class AffairUpdate(HierarchyUpdate):
    work_unit_id: str | None = PydanticField(default=None, min_length=1)
    assistant_deputy_position_id: str | None = None

    @field_validator("work_unit_id")
    @classmethod
    def _parent_required(cls, value: Any) -> Any:
        return reject_null(value)


class PositionCreate(HierarchyCreate):
    position_type: str = "STRUCTURAL"
    position_level: str | None = None
    parent_position_id: str | None = None
    directorate_id: str | None = None
    work_unit_id: str | None = None
    affair_id: str | None = None
    responsibilities: str = ""


class PositionUpdate(HierarchyUpdate):
    position_type: str | None = None
    position_level: str | None = None
    parent_position_id: str | None = None
    directorate_id: str | None = None
    work_unit_id: str | None = None
    affair_id: str | None = None
    responsibilities: str | None = None

    @field_validator("position_type", "responsibilities")
    @classmethod
    def _position_columns(cls, value: Any) -> Any:
        return reject_null(value)


class PositionAssignmentCreate(BaseModel):
    user_id: str = PydanticField(min_length=1)
    position_id: str = PydanticField(min_length=1)
    assignment_date: datetime | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_primary: bool = False
    assignment_letter_number: str | None = None
    notes: str = ""


class PositionAssignmentUpdate(BaseModel):
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_primary: bool | None = None
    assignment_letter_number: str | None = None
    notes: str | None = None

    @field_validator("start_date", "is_primary", "notes")
    @classmethod
    def _required_columns(cls, value: Any) -> Any:
        return reject_null(value)


class LoginRequest(BaseModel):
    username: str = PydanticField(min_length=1)
    password: str = PydanticField(min_length=1)


class ChangePasswordRequest(BaseModel):
    old_password: str = PydanticField(min_length=1)
    new_password: str = PydanticField(min_length=8)


class BootstrapAdminRequest(BaseModel):
    username: str = PydanticField(min_length=1)
    password: str = PydanticField(min_length=8)
    email: str | None = None
    full_name: str = "System Administrator"


class UserCreate(BaseModel):
    username: str = PydanticField(min_length=3, max_length=100)
    password: str = PydanticField(min_length=8)
    email: str | None = None
    full_name: str = ""
    role_id: str | None = None
    work_unit_id: str | None = None
    is_active: bool = True
    active_from: datetime | None = None
    active_until: datetime | None = None


class UserUpdate(BaseModel):
    email: str | None = None
    full_name: str | None = None
    password: str | None = PydanticField(default=None, min_length=8)
    role_id: str | None = None
    work_unit_id: str | None = None
    is_active: bool | None = None
    active_from: datetime | None = None
    active_until: datetime | None = None

    @field_validator("full_name", "is_active")
    @classmethod
    def _required_columns(cls, value: Any) -> Any:
        return reject_null(value)


class UserRead(ORMReadModel):
    id: str
    username: str
    email: str | None
    full_name: str
    role_id: str | None
    work_unit_id: str | None
    is_active: bool
    active_from: datetime | None
    active_until: datetime | None
    last_login: datetime | None
    created_at: datetime


class RoleCreate(BaseModel):
    code: str = PydanticField(min_length=1, max_length=50)
    name: str = PydanticField(min_length=1, max_length=100)
    description: str = ""
    permissions: dict[str, dict[str, bool]] = PydanticField(default_factory=dict)


class RoleUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=1, max_length=100)
    description: str | None = None
    permissions: dict[str, dict[str, bool]] | None = None


class RoleCloneRequest(BaseModel):
    source_role_id: str = PydanticField(min_length=1)
    code: str = PydanticField(min_length=1, max_length=50)
    name: str = PydanticField(min_length=1, max_length=100)


class StrategicPeriodCreate(BaseModel):
    name: str = PydanticField(min_length=1, max_length=200)
    start_year: int = PydanticField(ge=2000, le=2100)
    end_year: int = PydanticField(ge=2000, le=2100)
    description: str = ""

    @model_validator(mode="after")
    def _check_years(self) -> StrategicPeriodCreate:
        if self.end_year <= self.start_year:
            raise ValueError("End year must be after start year")
        return self


class StrategicPeriodUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=1, max_length=200)
    start_year: int | None = PydanticField(default=None, ge=2000, le=2100)
    end_year: int | None = PydanticField(default=None, ge=2000, le=2100)
    description: str | None = None


class VisionCreate(BaseModel):
    period_id: str = PydanticField(min_length=1)
    vision_text: str = PydanticField(min_length=1, max_length=1000)


class MissionCreate(BaseModel):
    period_id: str = PydanticField(min_length=1)
    vision_id: str | None = None
    mission_text: str = PydanticField(min_length=1, max_length=1500)
    sort_order: int = 0


class GoalCreate(BaseModel):
    period_id: str = PydanticField(min_length=1)
    code: str | None = None
    name: str = PydanticField(min_length=1, max_length=300)
    description: str = ""
    year: int = PydanticField(ge=2000, le=2100)
    sort_order: int = 0


class ProgramCreate(BaseModel):
    code: str | None = None
    name: str = PydanticField(min_length=1, max_length=300)
    description: str = ""
    work_unit_id: str | None = None
    goal_id: str | None = None
    year: int = PydanticField(ge=2000, le=2100)
    start_date: date | None = None
    end_date: date | None = None
    budget_allocated: float = PydanticField(default=0.0, ge=0)


class ProgramUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=1, max_length=300)
    description: str | None = None
    work_unit_id: str | None = None
    goal_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    budget_allocated: float | None = PydanticField(default=None, ge=0)
    status: ProgramStatus | None = None

    @field_validator("name", "description", "budget_allocated", "status")
    @classmethod
    def _required_columns(cls, value: Any) -> Any:
        return reject_null(value)


class ActivityCreate(BaseModel):
    program_id: str = PydanticField(min_length=1)
    code: str | None = None
    name: str = PydanticField(min_length=1, max_length=300)
    description: str = ""
    unit: str = ""
    unit_price: float = PydanticField(default=0.0, ge=0)
    quantity: float = PydanticField(default=0.0, ge=0)
    start_date: date | None = None
    end_date: date | None = None


class ActivityUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=1, max_length=300)
    description: str | None = None
    unit: str | None = None
    unit_price: float | None = PydanticField(default=None, ge=0)
    quantity: float | None = PydanticField(default=None, ge=0)
    status: ProgramStatus | None = None
    start_date: date | None = None
    end_date: date | None = None


class KpiCreate(BaseModel):
    code: str = PydanticField(min_length=1, max_length=50)
    name: str = PydanticField(min_length=1, max_length=300)
    description: str = ""
    work_unit_id: str | None = None
    goal_id: str | None = None
    year: int = PydanticField(ge=2000, le=2100)
    unit: str = ""
    target_value: float
    trend: KpiTrend = KpiTrend.HIGHER_BETTER


class KpiUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=1, max_length=300)
    description: str | None = None
    work_unit_id: str | None = None
    goal_id: str | None = None
    unit: str | None = None
    target_value: float | None = None
    trend: KpiTrend | None = None


class KpiProgressCreate(BaseModel):
    kpi_id: str = PydanticField(min_length=1)
    period_label: str = PydanticField(min_length=1, max_length=50)
    value: float
    notes: str = ""


class ImpactCenterCreate(BaseModel):
    code: str | None = None
    name: str = PydanticField(min_length=1, max_length=300)
    description: str = ""
    year: int = PydanticField(ge=2000, le=2100)
    goal_id: str | None = None
    target_description: str = ""


class ImpactCenterUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=1, max_length=300)
    description: str | None = None
    goal_id: str | None = None
    target_description: str | None = None
    is_active: bool | None = None

    @field_validator("name", "description", "target_description", "is_active")
    @classmethod
    def _required_columns(cls, value: Any) -> Any:
        return reject_null(value)


class ImpactCenterProgressCreate(BaseModel):
    impact_center_id: str = PydanticField(min_length=1)
    year: int = PydanticField(ge=2000, le=2100)
    month: int = PydanticField(ge=1, le=12)
    completion_percentage: float = PydanticField(ge=0, le=100)
    achievement_notes: str = ""
    issues: str = ""


class ImpactCenterWorkUnitCreate(BaseModel):
    impact_center_id: str = PydanticField(min_length=1)
    work_unit_id: str = PydanticField(min_length=1)
    contribution: str = ""


class OkrCreate(BaseModel):
    objective: str = PydanticField(min_length=1, max_length=500)
    key_results: list[dict[str, Any]] = PydanticField(default_factory=list)
    week_of: date | None = None
    progress: float = PydanticField(default=0.0, ge=0, le=100)


class OkrUpdate(BaseModel):
    objective: str | None = PydanticField(default=None, min_length=1, max_length=500)
    key_results: list[dict[str, Any]] | None = None
    progress: float | None = PydanticField(default=None, ge=0, le=100)


class OkrReviewRequest(BaseModel):
    approved: bool
    review_notes: str = ""


class AnalysisItemCreate(BaseModel):
    goal_id: str = PydanticField(min_length=1)
    category: SwotCategory
    description: str = PydanticField(min_length=1, max_length=1000)
    impact_level: ImpactLevel = ImpactLevel.MEDIUM


class AnalysisItemUpdate(BaseModel):
    description: str | None = PydanticField(default=None, min_length=1, max_length=1000)
    impact_level: ImpactLevel | None = None
