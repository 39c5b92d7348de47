from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from semon.api.controllers.common import InputError, read_bool, require_value, without_keys
from semon.api.responses import ApiResponse, fail, ok, validation_errors, validation_failed
from semon.domain.models import (
    BootstrapAdminRequest,
    ChangePasswordRequest,
    LoginRequest,
    Role,
    RoleCloneRequest,
    RoleCreate,
    RoleUpdate,
    User,
    UserCreate,
    UserRead,
    UserUpdate,
)
from semon.infra.audit import AUDIT_CREATE, AUDIT_DELETE, AUDIT_LOGIN, AUDIT_UPDATE, write_audit_log
from semon.infra.store import RecordStore
from semon.services.identity_service import AuthError, ConflictError, IdentityService, NotFoundError
from semon.services.organization_service import PositionAssignmentModel


def _user_data(user: User) -> dict[str, Any]:
    return UserRead.model_validate(user).model_dump()


def _role_data(role: Role) -> dict[str, Any]:
    return role.model_dump()


class IdentityController:
    def __init__(self, service: IdentityService | None = None) -> None:
        self.service = service or IdentityService()

    # Sessions

    def login(self, data: dict[str, Any]) -> ApiResponse:
        try:
            payload = LoginRequest.model_validate(data)
            result = self.service.login(payload.username, payload.password)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except AuthError as exc:
            return fail(str(exc))
        user: User = result["user"]
        write_audit_log(
            actor_id=user.id,
            action=AUDIT_LOGIN,
            entity_type="User",
            entity_id=user.id,
            description=f"User {user.username} logged in",
        )
        return ok(
            {
                "session_token": result["session_token"],
                "expires_in": result["expires_in"],
                "user": _user_data(user),
                "permissions": self.service.get_permissions(user),
            },
            "Login successful",
        )

    def logout(self, token: str | None) -> ApiResponse:
        if token:
            self.service.logout(token)
        return ok(None, "Logged out")

    def current_user(self, user: User, store: RecordStore) -> ApiResponse:
        primary = PositionAssignmentModel(store).get_primary_position(user.id)
        return ok(
            {
                "user": _user_data(user),
                "permissions": self.service.get_permissions(user),
                "primary_position": primary,
            }
        )

    def change_password(self, data: dict[str, Any], user: User) -> ApiResponse:
        try:
            payload = ChangePasswordRequest.model_validate(data)
            self.service.change_password(user.id, payload.old_password, payload.new_password)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (AuthError, NotFoundError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=user.id,
            action=AUDIT_UPDATE,
            entity_type="User",
            entity_id=user.id,
            description="Password changed",
        )
        return ok(None, "Password changed successfully")

    def bootstrap_admin(self, data: dict[str, Any]) -> ApiResponse:
        try:
            payload = BootstrapAdminRequest.model_validate(data)
            user = self.service.bootstrap_admin(payload)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except ConflictError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=user.id,
            action=AUDIT_CREATE,
            entity_type="User",
            entity_id=user.id,
            description=f"Bootstrapped administrator {user.username}",
        )
        return ok(_user_data(user), "Administrator created")

    # Users

    def list_users(self, data: dict[str, Any]) -> ApiResponse:
        try:
            is_active = read_bool(data, "is_active")
        except InputError as exc:
            return validation_failed(exc.errors)
        users = self.service.list_users(
            role_id=data.get("role_id"),
            work_unit_id=data.get("work_unit_id"),
            is_active=is_active,
        )
        return ok([_user_data(item) for item in users])

    def get_user(self, data: dict[str, Any]) -> ApiResponse:
        try:
            user = self.service.get_user(require_value(data, "id", "user_id", field="id"))
        except InputError as exc:
            return validation_failed(exc.errors)
        except NotFoundError as exc:
            return fail(str(exc))
        return ok(_user_data(user))

    def create_user(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            user = self.service.create_user(UserCreate.model_validate(data))
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="User",
            entity_id=user.id,
            description=f"Created user {user.username}",
        )
        return ok(_user_data(user), "User created successfully")

    def update_user(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            user_id = require_value(data, "id", "user_id", field="id")
            payload = UserUpdate.model_validate(without_keys(data, "id", "user_id"))
            user = self.service.update_user(user_id, payload)
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="User",
            entity_id=user.id,
            description=f"Updated user {user.username}",
        )
        return ok(_user_data(user), "User updated successfully")

    def delete_user(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            user = self.service.delete_user(require_value(data, "id", "user_id", field="id"), actor_id)
        except InputError as exc:
            return validation_failed(exc.errors)
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_DELETE,
            entity_type="User",
            entity_id=user.id,
            description=f"Deleted user {user.username}",
        )
        return ok({"id": user.id}, "User deleted successfully")

    # Roles

    def list_roles(self, data: dict[str, Any]) -> ApiResponse:
        return ok([_role_data(item) for item in self.service.list_roles()])

    def create_role(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            role = self.service.create_role(RoleCreate.model_validate(data))
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except ConflictError as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="Role",
            entity_id=role.id,
            description=f"Created role {role.code}",
        )
        return ok(_role_data(role), "Role created successfully")

    def update_role(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            role_id = require_value(data, "id", "role_id", field="id")
            role = self.service.update_role(role_id, RoleUpdate.model_validate(without_keys(data, "id", "role_id")))
        except InputError as exc:
            return validation_failed(exc.errors)
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_UPDATE,
            entity_type="Role",
            entity_id=role.id,
            description=f"Updated role {role.code}",
        )
        return ok(_role_data(role), "Role updated successfully")

    def delete_role(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            role = self.service.delete_role(require_value(data, "id", "role_id", field="id"))
        except InputError as exc:
            return validation_failed(exc.errors)
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_DELETE,
            entity_type="Role",
            entity_id=role.id,
            description=f"Deleted role {role.code}",
        )
        return ok({"id": role.id}, "Role deleted successfully")

    def clone_role(self, data: dict[str, Any], actor_id: str | None) -> ApiResponse:
        try:
            role = self.service.clone_role(RoleCloneRequest.model_validate(data))
        except ValidationError as exc:
            return validation_failed(validation_errors(exc))
        except (NotFoundError, ConflictError) as exc:
            return fail(str(exc))
        write_audit_log(
            actor_id=actor_id,
            action=AUDIT_CREATE,
            entity_type="Role",
            entity_id=role.id,
            description=f"Cloned role {role.code}",
        )
        return ok(_role_data(role), "Role cloned successfully")

    # Database

    def initialize_database(self, data: dict[str, Any]) -> ApiResponse:
        return ok(self.service.initialize_database(), "Database initialized")

    def database_stats(self, data: dict[str, Any]) -> ApiResponse:
        return ok(self.service.database_stats())
