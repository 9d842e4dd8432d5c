from __future__ import annotations

import re
import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from passlib.context import CryptContext
from jose import JWTError, jwt

from app.core.settings import settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

_PASSWORD_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain at least one special character"),
]


def password_problems(password: str) -> list[str]:
    problems: list[str] = []
    min_len = settings.password_min_length
    if len(password) < min_len:
        problems.append(f"Password must be at least {min_len} characters long")
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(password):
            problems.append(message)
    return problems


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


@lru_cache(maxsize=1)
def _unknown_user_hash() -> str:
    return get_password_hash(secrets.token_urlsafe(32))


def constant_time_verify(hashed_password: str | None, password: str) -> bool:
    """Verify a login password, burning a bcrypt round even when the email is unknown."""
    if hashed_password:
        return verify_password(password, hashed_password)
    verify_password(password, _unknown_user_hash())
    return False


def create_session_token(
    *,
    user_id: str,
    email: str,
    role: str,
    token_version: int = 0,
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or settings.session_lifetime)
    to_encode: dict[str, Any] = {
        "sub": user_id,
        "userId": user_id,
        "email": email,
        "role": role,
        "tv": token_version,
        "iat": int(now.timestamp()),
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError("Invalid or expired token") from exc
    if not payload.get("userId") or not payload.get("role"):
        raise ValueError("Invalid token payload")
    return payload


def session_cookie_max_age() -> int:
    return int(settings.session_lifetime.total_seconds())
