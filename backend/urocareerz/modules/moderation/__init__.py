from __future__ import annotations

from .lifecycle import (
    ApplicationStatus,
    DiscussionStatus,
    InvalidTransition,
    OpportunityStatus,
    UserStatus,
    approve_target,
    can_comment,
    can_manage_thread,
    can_sign_in,
    ensure_application_transition,
    ensure_opportunity_transition,
    ensure_pending,
    ensure_user_transition,
    parse_application_status,
    parse_discussion_status,
    parse_opportunity_status,
    parse_user_status,
)

__all__ = [
    "ApplicationStatus",
    "DiscussionStatus",
    "InvalidTransition",
    "OpportunityStatus",
    "UserStatus",
    "approve_target",
    "can_comment",
    "can_manage_thread",
    "can_sign_in",
    "ensure_application_transition",
    "ensure_opportunity_transition",
    "ensure_pending",
    "ensure_user_transition",
    "parse_application_status",
    "parse_discussion_status",
    "parse_opportunity_status",
    "parse_user_status",
]
