from __future__ import annotations

from enum import Enum
from typing import Any

from ..identity.roles import is_admin


class UserStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    REJECTED = "REJECTED"


class OpportunityStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"
    CONVERTED = "CONVERTED"


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class DiscussionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


class InvalidTransition(ValueError):
    """A status change that the lifecycle does not allow from the current state."""


# Moderation only ever leaves PENDING.
_OPPORTUNITY_TRANSITIONS: dict[OpportunityStatus, frozenset[OpportunityStatus]] = {
    OpportunityStatus.PENDING: frozenset(
        {OpportunityStatus.APPROVED, OpportunityStatus.REJECTED, OpportunityStatus.CONVERTED}
    ),
}

_APPLICATION_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset(
        {ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN}
    ),
}

_USER_TRANSITIONS: dict[UserStatus, frozenset[UserStatus]] = {
    UserStatus.PENDING: frozenset({UserStatus.ACTIVE, UserStatus.INACTIVE, UserStatus.REJECTED}),
    UserStatus.ACTIVE: frozenset({UserStatus.INACTIVE, UserStatus.REJECTED}),
    UserStatus.INACTIVE: frozenset({UserStatus.ACTIVE, UserStatus.REJECTED}),
}


def _coerce(enum_cls: type[Enum], value: Any) -> Any:
    try:
        return enum_cls(str(value or "").strip().upper())
    except ValueError:
        return None


def parse_opportunity_status(value: Any) -> OpportunityStatus | None:
    return _coerce(OpportunityStatus, value)


def parse_application_status(value: Any) -> ApplicationStatus | None:
    return _coerce(ApplicationStatus, value)


def parse_discussion_status(value: Any) -> DiscussionStatus | None:
    return _coerce(DiscussionStatus, value)


def parse_user_status(value: Any) -> UserStatus | None:
    return _coerce(UserStatus, value)


def approve_target(convert: bool) -> OpportunityStatus:
    return OpportunityStatus.CONVERTED if convert else OpportunityStatus.APPROVED


def ensure_pending(opportunity: dict[str, Any]) -> None:
    if parse_opportunity_status(opportunity.get("status")) is not OpportunityStatus.PENDING:
        raise InvalidTransition("Opportunity is not in pending status")


def ensure_opportunity_transition(current: Any, target: OpportunityStatus) -> None:
    cur = parse_opportunity_status(current)
    if cur is None or target not in _OPPORTUNITY_TRANSITIONS.get(cur, frozenset()):
        raise InvalidTransition("Opportunity is not in pending status")


def ensure_application_transition(current: Any, target: ApplicationStatus) -> None:
    cur = parse_application_status(current)
    if cur is None or target not in _APPLICATION_TRANSITIONS.get(cur, frozenset()):
        if target is ApplicationStatus.WITHDRAWN:
            raise InvalidTransition("Only pending applications can be withdrawn")
        raise InvalidTransition("Application has already been reviewed")


def ensure_user_transition(current: Any, target: UserStatus) -> None:
    cur = parse_user_status(current) or UserStatus.PENDING
    if cur is target:
        return
    if target not in _USER_TRANSITIONS.get(cur, frozenset()):
        raise InvalidTransition(f"User cannot move from {cur.value} to {target.value}")


def can_sign_in(user: dict[str, Any]) -> bool:
    if str(user.get("deletedAt") or "").strip():
        return False
    status = parse_user_status(user.get("status")) or UserStatus.PENDING
    return status in (UserStatus.PENDING, UserStatus.ACTIVE)


def can_comment(thread: dict[str, Any]) -> bool:
    return parse_discussion_status(thread.get("status")) is DiscussionStatus.ACTIVE


def can_manage_thread(thread: dict[str, Any], *, user_id: str, role: Any) -> bool:
    return str(thread.get("authorId") or "") == str(user_id or "") or is_admin(role)
