from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, SQLModel, col, select

from semon.domain.models import (
    BootstrapAdminRequest,
    Role,
    RoleCloneRequest,
    RoleCreate,
    RoleUpdate,
    User,
    UserCreate,
    UserUpdate,
    now_utc,
)
from semon.domain.permissions import ROLE_TEMPLATES, SUPER_ADMIN_ROLE_CODE
from semon.infra import auth
from semon.infra.db import get_engine, init_db


class IdentityError(Exception):
    pass


class NotFoundError(IdentityError):
    pass


class ConflictError(IdentityError):
    pass


class AuthError(IdentityError):
    pass


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class IdentityService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _ensure_default_roles(self, session: Session) -> list[Role]:
        existing = {item.code for item in session.exec(select(Role)).all()}
        created: list[Role] = []
        for template in ROLE_TEMPLATES:
            if template["code"] in existing:
                continue
            role = Role(
                code=template["code"],
                name=template["name"],
                description=template["description"],
                permissions=template["permissions"],
                is_system_role=True,
            )
            session.add(role)
            created.append(role)
        if created:
            session.commit()
        return created

    def initialize_database(self) -> dict[str, Any]:
        init_db()
        with self._session() as session:
            created = self._ensure_default_roles(session)
        return {
            "tables": sorted(SQLModel.metadata.tables),
            "roles_created": [item.code for item in created],
        }

    def database_stats(self) -> dict[str, int]:
        stats: dict[str, int] = {}
        with self._session() as session:
            for name, table in sorted(SQLModel.metadata.tables.items()):
                count = session.exec(select(func.count()).select_from(table)).one()
                stats[name] = int(count)
        return stats

    def bootstrap_admin(self, payload: BootstrapAdminRequest) -> User:
        init_db()
        with self._session() as session:
            if session.exec(select(User)).first() is not None:
                raise ConflictError("System already has users; bootstrap is disabled")
            self._ensure_default_roles(session)
            role = session.exec(select(Role).where(Role.code == SUPER_ADMIN_ROLE_CODE)).one()
            user = User(
                username=payload.username,
                email=payload.email,
                full_name=payload.full_name,
                password_hash=auth.hash_password(payload.password),
                role_id=role.id,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    # Sessions

    def login(self, username: str, password: str) -> dict[str, Any]:
        if auth.is_locked_out(username):
            raise AuthError("Account locked. Try again later.")
        with self._session() as session:
            user = session.exec(select(User).where(User.username == username)).first()
            if user is None or not auth.verify_password(password, user.password_hash):
                attempts = auth.record_failed_login(username)
                if attempts >= auth.MAX_LOGIN_ATTEMPTS:
                    raise AuthError("Account locked. Try again later.")
                raise AuthError("Invalid username or password")
            if not user.is_active:
                raise AuthError("Account is inactive")
            now = now_utc()
            active_from = _as_utc(user.active_from)
            active_until = _as_utc(user.active_until)
            if (active_from is not None and active_from > now) or (
                active_until is not None and active_until < now
            ):
                raise AuthError("Account is outside its active period")
            auth.clear_failed_logins(username)
            user.last_login = now
            session.add(user)
            session.commit()
            session.refresh(user)
        token = auth.create_session_token(user_id=user.id)
        return {
            "session_token": token,
            "expires_in": auth.session_ttl_seconds(),
            "user": user,
        }

    def logout(self, token: str) -> bool:
        return auth.revoke_session(token)

    def get_session_user(self, token: str) -> User | None:
        user_id = auth.resolve_session(token)
        if user_id is None:
            return None
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None or not user.is_active:
                return None
            return user

    def get_permissions(self, user: User) -> dict[str, Any]:
        if user.role_id is None:
            return {}
        with self._session() as session:
            role = session.get(Role, user.role_id)
            if role is None:
                return {}
            return dict(role.permissions)

    def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")
            if not auth.verify_password(old_password, user.password_hash):
                raise AuthError("Current password is incorrect")
            user.password_hash = auth.hash_password(new_password)
            user.updated_at = now_utc()
            session.add(user)
            session.commit()

    # Users

    def list_users(
        self,
        *,
        role_id: str | None = None,
        work_unit_id: str | None = None,
        is_active: bool | None = None,
    ) -> list[User]:
        with self._session() as session:
            statement = select(User)
            if role_id is not None:
                statement = statement.where(User.role_id == role_id)
            if work_unit_id is not None:
                statement = statement.where(User.work_unit_id == work_unit_id)
            if is_active is not None:
                statement = statement.where(User.is_active == is_active)
            return list(session.exec(statement.order_by(col(User.created_at))).all())

    def get_user(self, user_id: str) -> User:
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")
            return user

    def _check_role(self, session: Session, role_id: str | None) -> None:
        if role_id is not None and session.get(Role, role_id) is None:
            raise NotFoundError("Role not found")

    def create_user(self, payload: UserCreate) -> User:
        with self._session() as session:
            duplicate = session.exec(select(User).where(User.username == payload.username)).first()
            if duplicate is not None:
                raise ConflictError(f"Username already exists: {payload.username}")
            self._check_role(session, payload.role_id)
            user = User(
                username=payload.username,
                email=payload.email,
                full_name=payload.full_name,
                password_hash=auth.hash_password(payload.password),
                role_id=payload.role_id,
                work_unit_id=payload.work_unit_id,
                is_active=payload.is_active,
                active_from=payload.active_from,
                active_until=payload.active_until,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def update_user(self, user_id: str, payload: UserUpdate) -> User:
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")
            changes = payload.model_dump(exclude_unset=True)
            if "role_id" in changes:
                self._check_role(session, changes["role_id"])
            password = changes.pop("password", None)
            if password:
                user.password_hash = auth.hash_password(password)
            for key, value in changes.items():
                setattr(user, key, value)
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def delete_user(self, user_id: str, actor_id: str | None) -> User:
        if user_id == actor_id:
            raise ConflictError("Cannot delete your own account")
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")
            session.delete(user)
            session.commit()
            return user

    # Roles

    def list_roles(self) -> list[Role]:
        with self._session() as session:
            return list(session.exec(select(Role).order_by(col(Role.created_at))).all())

    def get_role(self, role_id: str) -> Role:
        with self._session() as session:
            role = session.get(Role, role_id)
            if role is None:
                raise NotFoundError("Role not found")
            return role

    def _check_role_unique(self, session: Session, code: str, name: str, exclude_id: str | None = None) -> None:
        for role in session.exec(select(Role)).all():
            if role.id == exclude_id:
                continue
            if role.code == code:
                raise ConflictError(f"Role code already exists: {code}")
            if role.name.lower() == name.lower():
                raise ConflictError(f"Role name already exists: {name}")

    def create_role(self, payload: RoleCreate) -> Role:
        with self._session() as session:
            self._check_role_unique(session, payload.code, payload.name)
            role = Role(
                code=payload.code,
                name=payload.name,
                description=payload.description,
                permissions=payload.permissions,
            )
            session.add(role)
            session.commit()
            session.refresh(role)
            return role

    def update_role(self, role_id: str, payload: RoleUpdate) -> Role:
        with self._session() as session:
            role = session.get(Role, role_id)
            if role is None:
                raise NotFoundError("Role not found")
            if role.is_system_role:
                raise ConflictError("System roles cannot be modified")
            changes = payload.model_dump(exclude_unset=True)
            if "name" in changes and changes["name"] is not None:
                self._check_role_unique(session, role.code, changes["name"], exclude_id=role.id)
            for key, value in changes.items():
                if value is not None:
                    setattr(role, key, value)
            role.updated_at = now_utc()
            session.add(role)
            session.commit()
            session.refresh(role)
            return role

    def delete_role(self, role_id: str) -> Role:
        with self._session() as session:
            role = session.get(Role, role_id)
            if role is None:
                raise NotFoundError("Role not found")
            if role.is_system_role:
                raise ConflictError("System roles cannot be deleted")
            if session.exec(select(User).where(User.role_id == role_id)).first() is not None:
                raise ConflictError("Role is assigned to users")
            session.delete(role)
            session.commit()
            return role

    def clone_role(self, payload: RoleCloneRequest) -> Role:
        with self._session() as session:
            source = session.get(Role, payload.source_role_id)
            if source is None:
                raise NotFoundError("Role not found")
            self._check_role_unique(session, payload.code, payload.name)
            role = Role(
                code=payload.code,
                name=payload.name,
                description=f"Cloned from {source.name}",
                permissions=dict(source.permissions),
            )
            session.add(role)
            session.commit()
            session.refresh(role)
            return role
