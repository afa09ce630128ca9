from __future__ import annotations

from typing import Any

ROLE_MENTEE = "MENTEE"
ROLE_MENTOR = "MENTOR"
ROLE_ADMIN = "ADMIN"

ALL_ROLES = (ROLE_MENTEE, ROLE_MENTOR, ROLE_ADMIN)
# Roles a visitor may pick on the public register form.
SELF_SERVICE_ROLES = (ROLE_MENTEE, ROLE_MENTOR)


def normalize_role(value: Any) -> str | None:
    """
    Canonical role string, or None when the value is not a known role.
    Stored roles are upper-case: MENTEE/MENTOR/ADMIN.
    """
    s = str(value or "").strip().upper()
    return s if s in ALL_ROLES else None


def is_admin(role: Any) -> bool:
    return normalize_role(role) == ROLE_ADMIN


def is_mentor(role: Any) -> bool:
    return normalize_role(role) == ROLE_MENTOR


def is_mentee(role: Any) -> bool:
    return normalize_role(role) == ROLE_MENTEE
