from __future__ import annotations

import hashlib
import hmac
import os
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from semon.infra import redis_state

SESSION_SECRET = os.getenv("SESSION_SECRET", "dev-secret-change-me")
SESSION_ALGORITHM = os.getenv("SESSION_ALGORITHM", "HS256")
SESSION_TIMEOUT_MINUTES = int(os.getenv("SESSION_TIMEOUT_MINUTES", "60"))
MAX_LOGIN_ATTEMPTS = int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"))
LOCKOUT_DURATION_MINUTES = int(os.getenv("LOCKOUT_DURATION_MINUTES", "30"))


def hash_password(raw_password: str) -> str:
    salt = os.getenv("PASSWORD_SALT", "semon-dev-salt")
    return hashlib.sha256(f"{salt}:{raw_password}".encode()).hexdigest()


def verify_password(raw_password: str, password_hash: str) -> bool:
    return hmac.compare_digest(hash_password(raw_password), password_hash)


def _session_key(session_id: str) -> str:
    return f"session:{session_id}"


def _attempts_key(username: str) -> str:
    return f"login_attempts:{username.lower()}"


def session_ttl_seconds() -> int:
    return SESSION_TIMEOUT_MINUTES * 60


def create_session_token(*, user_id: str) -> str:
    """Issue a signed token and register its session id in Redis."""
    now = datetime.now(UTC)
    session_id = uuid4().hex
    # The JWT outlives the Redis key so expiry is decided by the sliding TTL.
    payload: dict[str, Any] = {
        "sub": user_id,
        "jti": session_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=1, minutes=SESSION_TIMEOUT_MINUTES)).timestamp()),
    }
    redis_state.get_redis().set(_session_key(session_id), user_id, ex=session_ttl_seconds())
    return jwt.encode(payload, SESSION_SECRET, algorithm=SESSION_ALGORITHM)


def decode_session_token(token: str) -> dict[str, Any]:
    decoded = jwt.decode(token, SESSION_SECRET, algorithms=[SESSION_ALGORITHM])
    if not isinstance(decoded, dict) or "jti" not in decoded or "sub" not in decoded:
        raise ValueError("Invalid token payload")
    return decoded


def resolve_session(token: str) -> str | None:
    """Return the user id bound to ``token`` and refresh its expiry."""
    try:
        claims = decode_session_token(token)
    except (jwt.PyJWTError, ValueError):
        return None
    client = redis_state.get_redis()
    key = _session_key(str(claims["jti"]))
    user_id = client.get(key)
    if user_id is None or user_id != claims["sub"]:
        return None
    client.expire(key, session_ttl_seconds())
    return str(user_id)


def revoke_session(token: str) -> bool:
    try:
        claims = decode_session_token(token)
    except (jwt.PyJWTError, ValueError):
        return False
    return bool(redis_state.get_redis().delete(_session_key(str(claims["jti"]))))


def is_locked_out(username: str) -> bool:
    raw = redis_state.get_redis().get(_attempts_key(username))
    return raw is not None and int(raw) >= MAX_LOGIN_ATTEMPTS


def record_failed_login(username: str) -> int:
    client = redis_state.get_redis()
    key = _attempts_key(username)
    attempts = int(client.incr(key))
    if attempts == 1 or attempts >= MAX_LOGIN_ATTEMPTS:
        client.expire(key, LOCKOUT_DURATION_MINUTES * 60)
    return attempts


def clear_failed_logins(username: str) -> None:
    redis_state.get_redis().delete(_attempts_key(username))
