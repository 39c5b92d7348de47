from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header
from fastapi.security import OAuth2PasswordBearer

from semon.domain.models import User
from semon.domain.permissions import UnauthorizedError
from semon.infra.store import RecordStore, SqlRecordStore
from semon.services.identity_service import IdentityService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_record_store() -> RecordStore:
    return SqlRecordStore()


def get_identity_service() -> IdentityService:
    return IdentityService()


def get_header_token(
    bearer: Annotated[str | None, Depends(oauth2_scheme)],
    x_session_token: Annotated[str | None, Header()] = None,
) -> str | None:
    return bearer or x_session_token


def resolve_session_user(identity: IdentityService, token: str | None) -> User:
    if not token:
        raise UnauthorizedError("Session token is required")
    user = identity.get_session_user(token)
    if user is None:
        raise UnauthorizedError("Invalid or expired session")
    return user
