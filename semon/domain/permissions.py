from __future__ import annotations

from enum import StrEnum
from typing import Any


class Module(StrEnum):
    SETTINGS = "settings"
    USERS = "users"
    ROLES = "roles"
    ORGANIZATION = "organization"
    STRATEGIC_PLAN = "strategic_plan"
    KPI = "kpi"
    IMPACT_CENTER = "impact_center"
    OKR = "okr"
    PROGRAMS = "programs"
    SWOT = "swot"
    DASHBOARD = "dashboard"
    AUDIT = "audit"


class Verb(StrEnum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"


PermissionMatrix = dict[str, dict[str, bool]]


class UnauthorizedError(Exception):
    pass


class ForbiddenError(Exception):
    pass


def build_matrix(grants: dict[Module, set[Verb]]) -> PermissionMatrix:
    matrix: PermissionMatrix = {}
    for module in Module:
        allowed = grants.get(module, set())
        matrix[module.value] = {verb.value: verb in allowed for verb in Verb}
    return matrix


ALL_VERBS = set(Verb)
READ_ONLY = {Verb.READ}
WRITE_VERBS = {Verb.READ, Verb.CREATE, Verb.UPDATE}

ROLE_TEMPLATES: tuple[dict[str, Any], ...] = (
    {
        "code": "SUPER_ADMIN",
        "name": "Super Administrator",
        "description": "full access to every module",
        "permissions": build_matrix({module: ALL_VERBS for module in Module}),
    },
    {
        "code": "MANAGER",
        "name": "Manager",
        "description": "manages organization and planning data, approves submissions",
        "permissions": build_matrix(
            {
                Module.USERS: READ_ONLY,
                Module.ROLES: READ_ONLY,
                Module.ORGANIZATION: ALL_VERBS,
                Module.STRATEGIC_PLAN: ALL_VERBS,
                Module.KPI: ALL_VERBS,
                Module.IMPACT_CENTER: ALL_VERBS,
                Module.OKR: ALL_VERBS,
                Module.PROGRAMS: ALL_VERBS,
                Module.SWOT: ALL_VERBS,
                Module.DASHBOARD: READ_ONLY,
                Module.AUDIT: READ_ONLY,
            }
        ),
    },
    {
        "code": "STAFF",
        "name": "Staff",
        "description": "records progress and weekly OKRs",
        "permissions": build_matrix(
            {
                Module.ORGANIZATION: READ_ONLY,
                Module.STRATEGIC_PLAN: READ_ONLY,
                Module.KPI: WRITE_VERBS,
                Module.IMPACT_CENTER: WRITE_VERBS,
                Module.OKR: WRITE_VERBS,
                Module.PROGRAMS: READ_ONLY,
                Module.SWOT: READ_ONLY,
                Module.DASHBOARD: READ_ONLY,
            }
        ),
    },
    {
        "code": "VIEWER",
        "name": "Viewer",
        "description": "read-only access",
        "permissions": build_matrix(
            {
                Module.ORGANIZATION: READ_ONLY,
                Module.STRATEGIC_PLAN: READ_ONLY,
                Module.KPI: READ_ONLY,
                Module.IMPACT_CENTER: READ_ONLY,
                Module.OKR: READ_ONLY,
                Module.PROGRAMS: READ_ONLY,
                Module.SWOT: READ_ONLY,
                Module.DASHBOARD: READ_ONLY,
            }
        ),
    },
)

SUPER_ADMIN_ROLE_CODE = "SUPER_ADMIN"


def has_permission(matrix: dict[str, Any] | None, module: Module, verb: Verb) -> bool:
    if not isinstance(matrix, dict):
        return False
    verbs = matrix.get(module.value)
    if not isinstance(verbs, dict):
        return False
    return verbs.get(verb.value) is True


def require_permission(matrix: dict[str, Any] | None, module: Module, verb: Verb) -> None:
    if not has_permission(matrix, module, verb):
        raise ForbiddenError(f"Missing permission: {module.value}.{verb.value}")
