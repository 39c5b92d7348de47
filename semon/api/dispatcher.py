"""Single entry point from action names to controller calls.

Every supported operation is a member of ``Action``; ``ROUTES`` binds each
member to the access rule checked before the call and to its handler. Action
strings arrive as ``resource.verb`` or ``resource/verb``; camelCase and
snake_case segments are folded to kebab-case, so ``workUnits.getAlternatives``
resolves to ``work-units.get-alternatives``.

Order of checks: rate limit (only when a session token is supplied), action
lookup, session resolution, permission matrix, handler.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from semon.api.controllers import organization
from semon.api.controllers.dashboard import DashboardController, revision_history
from semon.api.controllers.identity import IdentityController
from semon.api.controllers.impact_centers import ImpactCenterController
from semon.api.controllers.performance import KpiController, OkrController
from semon.api.controllers.programs import ProgramController
from semon.api.controllers.strategic import StrategicController
from semon.api.controllers.swot import SwotController
from semon.api.deps import resolve_session_user
from semon.api.responses import ApiResponse, fail
from semon.domain.models import User
from semon.domain.permissions import (
    ForbiddenError,
    Module,
    UnauthorizedError,
    Verb,
    require_permission,
)
from semon.infra import redis_state
from semon.infra.store import RecordStore
from semon.services.identity_service import IdentityService

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


class Action(StrEnum):
    AUTH_LOGIN = "auth.login"
    AUTH_LOGOUT = "auth.logout"
    AUTH_CURRENT_USER = "auth.get-current-user"
    AUTH_CHANGE_PASSWORD = "auth.change-password"
    AUTH_BOOTSTRAP_ADMIN = "auth.bootstrap-admin"

    DATABASE_INITIALIZE = "database.initialize"
    DATABASE_STATS = "database.get-stats"
    DATABASE_INTEGRITY_CHECK = "database.integrity-check"

    USERS_LIST = "users.list"
    USERS_GET = "users.get-by-id"
    USERS_CREATE = "users.create"
    USERS_UPDATE = "users.update"
    USERS_DELETE = "users.delete"

    ROLES_LIST = "roles.list"
    ROLES_CREATE = "roles.create"
    ROLES_UPDATE = "roles.update"
    ROLES_DELETE = "roles.delete"
    ROLES_CLONE = "roles.clone"

    DIRECTORATES_LIST = "directorates.list"
    DIRECTORATES_GET = "directorates.get"
    DIRECTORATES_CREATE = "directorates.create"
    DIRECTORATES_UPDATE = "directorates.update"
    DIRECTORATES_DELETE = "directorates.delete"
    DIRECTORATES_CHECK_CHILDREN = "directorates.check-children"
    DIRECTORATES_ALTERNATIVES = "directorates.get-alternatives"
    DIRECTORATES_DELETE_CASCADE = "directorates.delete-cascade"
    DIRECTORATES_DELETE_REASSIGN = "directorates.delete-reassign"
    DIRECTORATES_GENERATE_CODE = "directorates.generate-code"

    WORK_UNITS_LIST = "work-units.list"
    WORK_UNITS_GET = "work-units.get"
    WORK_UNITS_CREATE = "work-units.create"
    WORK_UNITS_UPDATE = "work-units.update"
    WORK_UNITS_DELETE = "work-units.delete"
    WORK_UNITS_CHECK_CHILDREN = "work-units.check-children"
    WORK_UNITS_ALTERNATIVES = "work-units.get-alternatives"
    WORK_UNITS_DELETE_CASCADE = "work-units.delete-cascade"
    WORK_UNITS_DELETE_REASSIGN = "work-units.delete-reassign"
    WORK_UNITS_GENERATE_CODE = "work-units.generate-code"

    AFFAIRS_LIST = "affairs.list"
    AFFAIRS_GET = "affairs.get"
    AFFAIRS_CREATE = "affairs.create"
    AFFAIRS_UPDATE = "affairs.update"
    AFFAIRS_DELETE = "affairs.delete"
    AFFAIRS_CHECK_CHILDREN = "affairs.check-children"
    AFFAIRS_ALTERNATIVES = "affairs.get-alternatives"
    AFFAIRS_DELETE_CASCADE = "affairs.delete-cascade"
    AFFAIRS_DELETE_REASSIGN = "affairs.delete-reassign"
    AFFAIRS_GENERATE_CODE = "affairs.generate-code"

    POSITIONS_LIST = "positions.list"
    POSITIONS_GET = "positions.get"
    POSITIONS_CREATE = "positions.create"
    POSITIONS_UPDATE = "positions.update"
    POSITIONS_DELETE = "positions.delete"
    POSITIONS_CHECK_CHILDREN = "positions.check-children"
    POSITIONS_GENERATE_CODE = "positions.generate-code"

    ASSIGNMENTS_LIST = "position-assignments.list"
    ASSIGNMENTS_BY_USER = "position-assignments.get-by-user"
    ASSIGNMENTS_PRIMARY = "position-assignments.get-primary-position"
    ASSIGNMENTS_CREATE = "position-assignments.create"
    ASSIGNMENTS_UPDATE = "position-assignments.update"
    ASSIGNMENTS_END = "position-assignments.end"
    ASSIGNMENTS_DELETE = "position-assignments.delete"

    PERIODS_LIST = "periods.list"
    PERIODS_GET_ACTIVE = "periods.get-active"
    PERIODS_CREATE = "periods.create"
    PERIODS_UPDATE = "periods.update"
    PERIODS_SET_ACTIVE = "periods.set-active"
    PERIODS_DELETION_IMPACT = "periods.deletion-impact"
    PERIODS_DELETE = "periods.delete"
    VISIONS_LIST = "visions.list"
    VISIONS_CREATE = "visions.create"
    VISIONS_APPROVE = "visions.approve"
    MISSIONS_LIST = "missions.list"
    MISSIONS_CREATE = "missions.create"
    GOALS_LIST = "goals.list"
    GOALS_CREATE = "goals.create"

    KPIS_LIST = "kpis.list"
    KPIS_CREATE = "kpis.create"
    KPIS_UPDATE = "kpis.update"
    KPIS_PROGRESS_RECORD = "kpis.progress.record"
    KPIS_PROGRESS_VERIFY = "kpis.progress.verify"
    KPIS_PROGRESS_LIST = "kpis.progress.list"

    IMPACT_CENTERS_LIST = "impact-centers.list"
    IMPACT_CENTERS_GET = "impact-centers.get"
    IMPACT_CENTERS_CREATE = "impact-centers.create"
    IMPACT_CENTERS_UPDATE = "impact-centers.update"
    IMPACT_CENTERS_DELETE = "impact-centers.delete"
    IMPACT_CENTERS_PROGRESS_SUBMIT = "impact-centers.progress.submit"
    IMPACT_CENTERS_PROGRESS_LIST = "impact-centers.progress.list"
    IMPACT_CENTERS_WORK_UNITS_ASSIGN = "impact-centers.work-units.assign"
    IMPACT_CENTERS_WORK_UNITS_LIST = "impact-centers.work-units.list"
    IMPACT_CENTERS_WORK_UNITS_REMOVE = "impact-centers.work-units.remove"

    PROGRAMS_LIST = "programs.list"
    PROGRAMS_GET = "programs.get"
    PROGRAMS_CREATE = "programs.create"
    PROGRAMS_UPDATE = "programs.update"
    PROGRAMS_DELETE = "programs.delete"
    ACTIVITIES_LIST = "activities.list"
    ACTIVITIES_CREATE = "activities.create"
    ACTIVITIES_UPDATE = "activities.update"
    ACTIVITIES_DELETE = "activities.delete"

    OKRS_GET = "okrs.get"
    OKRS_CURRENT_WEEK = "okrs.get-current-week"
    OKRS_PENDING_REVIEWS = "okrs.pending-reviews"
    OKRS_CREATE = "okrs.create"
    OKRS_UPDATE = "okrs.update"
    OKRS_SUBMIT = "okrs.submit"
    OKRS_REVIEW = "okrs.review"

    SWOT_LIST = "swot.list"
    SWOT_MATRIX = "swot.matrix"
    SWOT_IMPACT = "swot.impact"
    SWOT_CREATE = "swot.create"
    SWOT_UPDATE = "swot.update"
    SWOT_DELETE = "swot.delete"

    DASHBOARD_GET_DATA = "dashboard.get-data"
    DASHBOARD_IMPACT_CENTERS = "dashboard.get-impact-center-data"
    REVISIONS_HISTORY = "revisions.get-history"


@dataclass
class ActionContext:
    store: RecordStore
    token: str | None = None
    user: User | None = None

    @property
    def actor_id(self) -> str | None:
        return self.user.id if self.user is not None else None

    @property
    def current_user(self) -> User:
        if self.user is None:
            raise UnauthorizedError("Session token is required")
        return self.user


Handler = Callable[[ActionContext, dict[str, Any]], ApiResponse]


@dataclass(frozen=True)
class Access:
    public: bool = False
    module: Module | None = None
    verb: Verb | None = None


@dataclass(frozen=True)
class Route:
    access: Access
    handler: Handler


PUBLIC = Access(public=True)
AUTHENTICATED = Access()


def _perm(module: Module, verb: Verb) -> Access:
    return Access(module=module, verb=verb)


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_action(raw: str) -> str:
    segments = [segment for segment in re.split(r"[./]", raw.strip()) if segment]
    return ".".join(_CAMEL_BOUNDARY.sub("-", segment).replace("_", "-").lower() for segment in segments)


def parse_action(raw: str) -> Action | None:
    try:
        return Action(normalize_action(raw))
    except ValueError:
        return None


def _container_routes(
    factory: Callable[[RecordStore], organization.ContainerController],
    actions: tuple[Action, ...],
) -> dict[Action, Route]:
    (
        list_,
        get,
        create,
        update,
        delete,
        check_children,
        alternatives,
        cascade,
        reassign,
        generate_code,
    ) = actions
    read = _perm(Module.ORGANIZATION, Verb.READ)
    remove = _perm(Module.ORGANIZATION, Verb.DELETE)
    return {
        list_: Route(read, lambda ctx, data: factory(ctx.store).list(data)),
        get: Route(read, lambda ctx, data: factory(ctx.store).get(data)),
        create: Route(
            _perm(Module.ORGANIZATION, Verb.CREATE),
            lambda ctx, data: factory(ctx.store).create(data, ctx.actor_id),
        ),
        update: Route(
            _perm(Module.ORGANIZATION, Verb.UPDATE),
            lambda ctx, data: factory(ctx.store).update(data, ctx.actor_id),
        ),
        delete: Route(remove, lambda ctx, data: factory(ctx.store).delete(data, ctx.actor_id)),
        check_children: Route(read, lambda ctx, data: factory(ctx.store).check_children(data)),
        alternatives: Route(read, lambda ctx, data: factory(ctx.store).get_alternatives(data)),
        cascade: Route(remove, lambda ctx, data: factory(ctx.store).delete_cascade(data, ctx.actor_id)),
        reassign: Route(remove, lambda ctx, data: factory(ctx.store).delete_reassign(data, ctx.actor_id)),
        generate_code: Route(read, lambda ctx, data: factory(ctx.store).generate_code(data)),
    }


ROUTES: dict[Action, Route] = {
    # Sessions
    Action.AUTH_LOGIN: Route(PUBLIC, lambda ctx, data: IdentityController().login(data)),
    Action.AUTH_LOGOUT: Route(PUBLIC, lambda ctx, data: IdentityController().logout(ctx.token)),
    Action.AUTH_BOOTSTRAP_ADMIN: Route(PUBLIC, lambda ctx, data: IdentityController().bootstrap_admin(data)),
    Action.AUTH_CURRENT_USER: Route(
        AUTHENTICATED,
        lambda ctx, data: IdentityController().current_user(ctx.current_user, ctx.store),
    ),
    Action.AUTH_CHANGE_PASSWORD: Route(
        AUTHENTICATED,
        lambda ctx, data: IdentityController().change_password(data, ctx.current_user),
    ),
    # Database
    Action.DATABASE_INITIALIZE: Route(
        _perm(Module.SETTINGS, Verb.UPDATE),
        lambda ctx, data: IdentityController().initialize_database(data),
    ),
    Action.DATABASE_STATS: Route(
        _perm(Module.SETTINGS, Verb.READ),
        lambda ctx, data: IdentityController().database_stats(data),
    ),
    Action.DATABASE_INTEGRITY_CHECK: Route(
        _perm(Module.ORGANIZATION, Verb.READ),
        lambda ctx, data: organization.integrity_report(ctx.store),
    ),
    # Users and roles
    Action.USERS_LIST: Route(_perm(Module.USERS, Verb.READ), lambda ctx, data: IdentityController().list_users(data)),
    Action.USERS_GET: Route(_perm(Module.USERS, Verb.READ), lambda ctx, data: IdentityController().get_user(data)),
    Action.USERS_CREATE: Route(
        _perm(Module.USERS, Verb.CREATE),
        lambda ctx, data: IdentityController().create_user(data, ctx.actor_id),
    ),
    Action.USERS_UPDATE: Route(
        _perm(Module.USERS, Verb.UPDATE),
        lambda ctx, data: IdentityController().update_user(data, ctx.actor_id),
    ),
    Action.USERS_DELETE: Route(
        _perm(Module.USERS, Verb.DELETE),
        lambda ctx, data: IdentityController().delete_user(data, ctx.actor_id),
    ),
    Action.ROLES_LIST: Route(_perm(Module.ROLES, Verb.READ), lambda ctx, data: IdentityController().list_roles(data)),
    Action.ROLES_CREATE: Route(
        _perm(Module.ROLES, Verb.CREATE),
        lambda ctx, data: IdentityController().create_role(data, ctx.actor_id),
    ),
    Action.ROLES_UPDATE: Route(
        _perm(Module.ROLES, Verb.UPDATE),
        lambda ctx, data: IdentityController().update_role(data, ctx.actor_id),
    ),
    Action.ROLES_DELETE: Route(
        _perm(Module.ROLES, Verb.DELETE),
        lambda ctx, data: IdentityController().delete_role(data, ctx.actor_id),
    ),
    Action.ROLES_CLONE: Route(
        _perm(Module.ROLES, Verb.CREATE),
        lambda ctx, data: IdentityController().clone_role(data, ctx.actor_id),
    ),
    # Organization hierarchy
    **_container_routes(
        organization.directorates,
        (
            Action.DIRECTORATES_LIST,
            Action.DIRECTORATES_GET,
            Action.DIRECTORATES_CREATE,
            Action.DIRECTORATES_UPDATE,
            Action.DIRECTORATES_DELETE,
            Action.DIRECTORATES_CHECK_CHILDREN,
            Action.DIRECTORATES_ALTERNATIVES,
            Action.DIRECTORATES_DELETE_CASCADE,
            Action.DIRECTORATES_DELETE_REASSIGN,
            Action.DIRECTORATES_GENERATE_CODE,
        ),
    ),
    **_container_routes(
        organization.work_units,
        (
            Action.WORK_UNITS_LIST,
            Action.WORK_UNITS_GET,
            Action.WORK_UNITS_CREATE,
            Action.WORK_UNITS_UPDATE,
            Action.WORK_UNITS_DELETE,
            Action.WORK_UNITS_CHECK_CHILDREN,
            Action.WORK_UNITS_ALTERNATIVES,
            Action.WORK_UNITS_DELETE_CASCADE,
            Action.WORK_UNITS_DELETE_REASSIGN,
            Action.WORK_UNITS_GENERATE_CODE,
        ),
    ),
    **_container_routes(
        organization.affairs,
        (
            Action.AFFAIRS_LIST,
            Action.AFFAIRS_GET,
            Action.AFFAIRS_CREATE,
            Action.AFFAIRS_UPDATE,
            Action.AFFAIRS_DELETE,
            Action.AFFAIRS_CHECK_CHILDREN,
            Action.AFFAIRS_ALTERNATIVES,
            Action.AFFAIRS_DELETE_CASCADE,
            Action.AFFAIRS_DELETE_REASSIGN,
            Action.AFFAIRS_GENERATE_CODE,
        ),
    ),
    Action.POSITIONS_LIST: Route(
        _perm(Module.ORGANIZATION, Verb.READ),
        lambda ctx, data: organization.positions(ctx.store).list(data),
    ),
    Action.POSITIONS_GET: Route(
        _perm(Module.ORGANIZATION, Verb.READ),
        lambda ctx, data: organization.positions(ctx.store).get(data),
    ),
    Action.POSITIONS_CREATE: Route(
        _perm(Module.ORGANIZATION, Verb.CREATE),
        lambda ctx, data: organization.positions(ctx.store).create(data, ctx.actor_id),
    ),
    Action.POSITIONS_UPDATE: Route(
        _perm(Module.ORGANIZATION, Verb.UPDATE),
        lambda ctx, data: organization.positions(ctx.store).update(data, ctx.actor_id),
    ),
    Action.POSITIONS_DELETE: Route(
        _perm(Module.ORGANIZATION, Verb.DELETE),
        lambda ctx, data: organization.positions(ctx.store).delete(data, ctx.actor_id),
    ),
    Action.POSITIONS_CHECK_CHILDREN: Route(
        _perm(Module.ORGANIZATION, Verb.READ),
        lambda ctx, data: organization.positions(ctx.store).check_children(data),
    ),
    Action.POSITIONS_GENERATE_CODE: Route(
        _perm(Module.ORGANIZATION, Verb.READ),
        lambda ctx, data: organization.positions(ctx.store).generate_code(data),
    ),
    Action.ASSIGNMENTS_LIST: Route(
        _perm(Module.ORGANIZATION, Verb.READ),
        lambda ctx, data: organization.assignments(ctx.store).list(data),
    ),
    Action.ASSIGNMENTS_BY_USER: Route(
        _perm(Module.ORGANIZATION, Verb.READ),
        lambda ctx, data: organization.assignments(ctx.store).by_user(data),
    ),
    Action.ASSIGNMENTS_PRIMARY: Route(
        _perm(Module.ORGANIZATION, Verb.READ),
        lambda ctx, data: organization.assignments(ctx.store).primary_position(data),
    ),
    Action.ASSIGNMENTS_CREATE: Route(
        _perm(Module.ORGANIZATION, Verb.CREATE),
        lambda ctx, data: organization.assignments(ctx.store).create(data, ctx.actor_id),
    ),
    Action.ASSIGNMENTS_UPDATE: Route(
        _perm(Module.ORGANIZATION, Verb.UPDATE),
        lambda ctx, data: organization.assignments(ctx.store).update(data, ctx.actor_id),
    ),
    Action.ASSIGNMENTS_END: Route(
        _perm(Module.ORGANIZATION, Verb.UPDATE),
        lambda ctx, data: organization.assignments(ctx.store).end(data, ctx.actor_id),
    ),
    Action.ASSIGNMENTS_DELETE: Route(
        _perm(Module.ORGANIZATION, Verb.DELETE),
        lambda ctx, data: organization.assignments(ctx.store).delete(data, ctx.actor_id),
    ),
    # Strategic plan
    Action.PERIODS_LIST: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.READ),
        lambda ctx, data: StrategicController().list_periods(data),
    ),
    Action.PERIODS_GET_ACTIVE: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.READ),
        lambda ctx, data: StrategicController().get_active_period(data),
    ),
    Action.PERIODS_CREATE: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.CREATE),
        lambda ctx, data: StrategicController().create_period(data, ctx.actor_id),
    ),
    Action.PERIODS_UPDATE: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.UPDATE),
        lambda ctx, data: StrategicController().update_period(data, ctx.actor_id),
    ),
    Action.PERIODS_SET_ACTIVE: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.UPDATE),
        lambda ctx, data: StrategicController().set_active_period(data, ctx.actor_id),
    ),
    Action.PERIODS_DELETION_IMPACT: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.READ),
        lambda ctx, data: StrategicController().deletion_impact(data),
    ),
    Action.PERIODS_DELETE: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.DELETE),
        lambda ctx, data: StrategicController().delete_period(data, ctx.actor_id),
    ),
    Action.VISIONS_LIST: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.READ),
        lambda ctx, data: StrategicController().list_visions(data),
    ),
    Action.VISIONS_CREATE: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.CREATE),
        lambda ctx, data: StrategicController().create_vision(data, ctx.actor_id),
    ),
    Action.VISIONS_APPROVE: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.APPROVE),
        lambda ctx, data: StrategicController().approve_vision(data, ctx.actor_id),
    ),
    Action.MISSIONS_LIST: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.READ),
        lambda ctx, data: StrategicController().list_missions(data),
    ),
    Action.MISSIONS_CREATE: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.CREATE),
        lambda ctx, data: StrategicController().create_mission(data, ctx.actor_id),
    ),
    Action.GOALS_LIST: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.READ),
        lambda ctx, data: StrategicController().list_goals(data),
    ),
    Action.GOALS_CREATE: Route(
        _perm(Module.STRATEGIC_PLAN, Verb.CREATE),
        lambda ctx, data: StrategicController().create_goal(data, ctx.actor_id),
    ),
    # KPIs
    Action.KPIS_LIST: Route(_perm(Module.KPI, Verb.READ), lambda ctx, data: KpiController().list_kpis(data)),
    Action.KPIS_CREATE: Route(
        _perm(Module.KPI, Verb.CREATE),
        lambda ctx, data: KpiController().create_kpi(data, ctx.actor_id),
    ),
    Action.KPIS_UPDATE: Route(
        _perm(Module.KPI, Verb.UPDATE),
        lambda ctx, data: KpiController().update_kpi(data, ctx.actor_id),
    ),
    Action.KPIS_PROGRESS_RECORD: Route(
        _perm(Module.KPI, Verb.UPDATE),
        lambda ctx, data: KpiController().record_progress(data, ctx.actor_id),
    ),
    Action.KPIS_PROGRESS_VERIFY: Route(
        _perm(Module.KPI, Verb.APPROVE),
        lambda ctx, data: KpiController().verify_progress(data, ctx.actor_id),
    ),
    Action.KPIS_PROGRESS_LIST: Route(
        _perm(Module.KPI, Verb.READ),
        lambda ctx, data: KpiController().list_progress(data),
    ),
    # Impact centers
    Action.IMPACT_CENTERS_LIST: Route(
        _perm(Module.IMPACT_CENTER, Verb.READ),
        lambda ctx, data: ImpactCenterController().list_centers(data),
    ),
    Action.IMPACT_CENTERS_GET: Route(
        _perm(Module.IMPACT_CENTER, Verb.READ),
        lambda ctx, data: ImpactCenterController().get_center(data),
    ),
    Action.IMPACT_CENTERS_CREATE: Route(
        _perm(Module.IMPACT_CENTER, Verb.CREATE),
        lambda ctx, data: ImpactCenterController().create_center(data, ctx.actor_id),
    ),
    Action.IMPACT_CENTERS_UPDATE: Route(
        _perm(Module.IMPACT_CENTER, Verb.UPDATE),
        lambda ctx, data: ImpactCenterController().update_center(data, ctx.actor_id),
    ),
    Action.IMPACT_CENTERS_DELETE: Route(
        _perm(Module.IMPACT_CENTER, Verb.DELETE),
        lambda ctx, data: ImpactCenterController().delete_center(data, ctx.actor_id),
    ),
    Action.IMPACT_CENTERS_PROGRESS_SUBMIT: Route(
        _perm(Module.IMPACT_CENTER, Verb.UPDATE),
        lambda ctx, data: ImpactCenterController().submit_progress(data, ctx.actor_id),
    ),
    Action.IMPACT_CENTERS_PROGRESS_LIST: Route(
        _perm(Module.IMPACT_CENTER, Verb.READ),
        lambda ctx, data: ImpactCenterController().list_progress(data),
    ),
    Action.IMPACT_CENTERS_WORK_UNITS_ASSIGN: Route(
        _perm(Module.IMPACT_CENTER, Verb.UPDATE),
        lambda ctx, data: ImpactCenterController().assign_work_unit(data, ctx.actor_id),
    ),
    Action.IMPACT_CENTERS_WORK_UNITS_LIST: Route(
        _perm(Module.IMPACT_CENTER, Verb.READ),
        lambda ctx, data: ImpactCenterController().list_work_units(data),
    ),
    Action.IMPACT_CENTERS_WORK_UNITS_REMOVE: Route(
        _perm(Module.IMPACT_CENTER, Verb.UPDATE),
        lambda ctx, data: ImpactCenterController().remove_work_unit(data, ctx.actor_id),
    ),
    # Programs
    Action.PROGRAMS_LIST: Route(
        _perm(Module.PROGRAMS, Verb.READ),
        lambda ctx, data: ProgramController().list_programs(data),
    ),
    Action.PROGRAMS_GET: Route(
        _perm(Module.PROGRAMS, Verb.READ),
        lambda ctx, data: ProgramController().get_program(data),
    ),
    Action.PROGRAMS_CREATE: Route(
        _perm(Module.PROGRAMS, Verb.CREATE),
        lambda ctx, data: ProgramController().create_program(data, ctx.actor_id),
    ),
    Action.PROGRAMS_UPDATE: Route(
        _perm(Module.PROGRAMS, Verb.UPDATE),
        lambda ctx, data: ProgramController().update_program(data, ctx.actor_id),
    ),
    Action.PROGRAMS_DELETE: Route(
        _perm(Module.PROGRAMS, Verb.DELETE),
        lambda ctx, data: ProgramController().delete_program(data, ctx.actor_id),
    ),
    Action.ACTIVITIES_LIST: Route(
        _perm(Module.PROGRAMS, Verb.READ),
        lambda ctx, data: ProgramController().list_activities(data),
    ),
    Action.ACTIVITIES_CREATE: Route(
        _perm(Module.PROGRAMS, Verb.CREATE),
        lambda ctx, data: ProgramController().create_activity(data, ctx.actor_id),
    ),
    Action.ACTIVITIES_UPDATE: Route(
        _perm(Module.PROGRAMS, Verb.UPDATE),
        lambda ctx, data: ProgramController().update_activity(data, ctx.actor_id),
    ),
    Action.ACTIVITIES_DELETE: Route(
        _perm(Module.PROGRAMS, Verb.DELETE),
        lambda ctx, data: ProgramController().delete_activity(data, ctx.actor_id),
    ),
    # OKRs
    Action.OKRS_GET: Route(
        _perm(Module.OKR, Verb.READ),
        lambda ctx, data: OkrController().list_okrs(data, ctx.current_user.id),
    ),
    Action.OKRS_CURRENT_WEEK: Route(
        _perm(Module.OKR, Verb.READ),
        lambda ctx, data: OkrController().current_week(data),
    ),
    Action.OKRS_PENDING_REVIEWS: Route(
        _perm(Module.OKR, Verb.APPROVE),
        lambda ctx, data: OkrController().pending_reviews(data),
    ),
    Action.OKRS_CREATE: Route(
        _perm(Module.OKR, Verb.CREATE),
        lambda ctx, data: OkrController().create_okr(data, ctx.current_user.id),
    ),
    Action.OKRS_UPDATE: Route(
        _perm(Module.OKR, Verb.UPDATE),
        lambda ctx, data: OkrController().update_okr(data, ctx.current_user.id),
    ),
    Action.OKRS_SUBMIT: Route(
        _perm(Module.OKR, Verb.UPDATE),
        lambda ctx, data: OkrController().submit_okr(data, ctx.current_user.id),
    ),
    Action.OKRS_REVIEW: Route(
        _perm(Module.OKR, Verb.APPROVE),
        lambda ctx, data: OkrController().review_okr(data, ctx.current_user.id),
    ),
    # SWOT
    Action.SWOT_LIST: Route(_perm(Module.SWOT, Verb.READ), lambda ctx, data: SwotController().list_items(data)),
    Action.SWOT_MATRIX: Route(_perm(Module.SWOT, Verb.READ), lambda ctx, data: SwotController().matrix(data)),
    Action.SWOT_IMPACT: Route(_perm(Module.SWOT, Verb.READ), lambda ctx, data: SwotController().impact(data)),
    Action.SWOT_CREATE: Route(
        _perm(Module.SWOT, Verb.CREATE),
        lambda ctx, data: SwotController().create_item(data, ctx.actor_id),
    ),
    Action.SWOT_UPDATE: Route(
        _perm(Module.SWOT, Verb.UPDATE),
        lambda ctx, data: SwotController().update_item(data, ctx.actor_id),
    ),
    Action.SWOT_DELETE: Route(
        _perm(Module.SWOT, Verb.DELETE),
        lambda ctx, data: SwotController().delete_item(data, ctx.actor_id),
    ),
    # Dashboard and history
    Action.DASHBOARD_GET_DATA: Route(
        _perm(Module.DASHBOARD, Verb.READ),
        lambda ctx, data: DashboardController().get_data(data, ctx.current_user.id),
    ),
    Action.DASHBOARD_IMPACT_CENTERS: Route(
        _perm(Module.DASHBOARD, Verb.READ),
        lambda ctx, data: ImpactCenterController().summary(data),
    ),
    Action.REVISIONS_HISTORY: Route(
        _perm(Module.AUDIT, Verb.READ),
        lambda ctx, data: revision_history(data),
    ),
}


class Dispatcher:
    def __init__(self, store: RecordStore, identity: IdentityService | None = None) -> None:
        self.store = store
        self.identity = identity or IdentityService()

    def dispatch(self, action: str, data: dict[str, Any] | None, token: str | None) -> ApiResponse:
        """Run one action and always return a response envelope."""
        try:
            if token and not redis_state.check_rate_limit(token):
                return fail(RATE_LIMIT_MESSAGE)

            kind = parse_action(action)
            if kind is None:
                return fail(f"Unknown action: {action}")
            route = ROUTES[kind]

            context = ActionContext(store=self.store, token=token)
            if not route.access.public:
                context.user = resolve_session_user(self.identity, token)
                if route.access.module is not None and route.access.verb is not None:
                    require_permission(
                        self.identity.get_permissions(context.user),
                        route.access.module,
                        route.access.verb,
                    )

            logger.info("dispatch %s actor=%s", kind.value, context.actor_id)
            return route.handler(context, data or {})
        except UnauthorizedError as exc:
            return fail("Unauthorized", error=str(exc))
        except ForbiddenError as exc:
            return fail("Forbidden", error=str(exc))
        except Exception as exc:
            logger.exception("dispatch %s failed", action)
            return fail("Internal server error", error=str(exc))
