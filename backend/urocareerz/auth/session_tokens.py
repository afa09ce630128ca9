from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from jose import JWTError, jwt

from ..modules.identity.roles import normalize_role
from ..settings import settings

ALGORITHM = "HS256"

_DEV_SECRET = "urocareerz-dev-session-secret"


class SessionTokenError(Exception):
    pass


@dataclass
class SessionUser:
    user_id: str
    email: str | None
    role: str
    claims: dict[str, Any]


def _secret() -> str:
    s = str(settings.jwt_secret or "").strip()
    if s:
        return s
    if settings.is_production:
        raise RuntimeError("JWT_SECRET is not set")
    return _DEV_SECRET


def session_ttl_seconds() -> int:
    return max(1, int(settings.session_ttl_hours or 24)) * 3600


def issue_session_token(user: dict[str, Any]) -> str:
    now = int(time.time())
    claims = {
        "userId": str(user.get("userId") or user.get("id") or ""),
        "email": user.get("email"),
        "role": normalize_role(user.get("role")) or "MENTEE",
        "iat": now,
        "exp": now + session_ttl_seconds(),
    }
    return jwt.encode(claims, _secret(), algorithm=ALGORITHM)


def verify_session_token(token: str) -> SessionUser:
    if not token:
        raise SessionTokenError("missing token")
    try:
        # jose verifies exp (and iat when present).
        claims = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    except JWTError as e:
        raise SessionTokenError("invalid token") from e

    user_id = str(claims.get("userId") or "").strip()
    role = normalize_role(claims.get("role"))
    if not user_id or not role:
        raise SessionTokenError("invalid claims")
    return SessionUser(user_id=user_id, email=claims.get("email"), role=role, claims=claims)
