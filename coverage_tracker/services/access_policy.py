"""
Access Policy — who may do what to which story.

Stateless decision functions evaluated once per request. Each one matches
exhaustively over ``UserRole``; adding a role without extending every
function fails loudly at the ``assert_never`` arm.

Usage:
    from coverage_tracker.services.access_policy import authorize, can_assign_reviewer

    authorize(can_assign_reviewer(user.role), "assign reviewers")

Denials never degrade into silent no-ops or narrowed queries: callers turn
a False into ``ForbiddenError`` via ``authorize()``.
"""

from typing import assert_never

from coverage_tracker.core.exceptions import ForbiddenError
from coverage_tracker.models.user import UserRole


def _coerce(role) -> UserRole:
    """Accept a ``UserRole`` or its string value; reject anything else."""
    return role if isinstance(role, UserRole) else UserRole(role)


def can_create_story(role) -> bool:
    match _coerce(role):
        case UserRole.MANAGER | UserRole.ENGINEER:
            return True
        case UserRole.REVIEWER:
            return False
        case unreachable:
            assert_never(unreachable)


def can_assign_reviewer(role) -> bool:
    match _coerce(role):
        case UserRole.MANAGER:
            return True
        case UserRole.ENGINEER | UserRole.REVIEWER:
            return False
        case unreachable:
            assert_never(unreachable)


def can_edit_coverage(role, story, acting_user_id: str) -> bool:
    """Managers always; reviewers only on stories assigned to them.

    Engineers are denied even on stories they created.
    """
    match _coerce(role):
        case UserRole.MANAGER:
            return True
        case UserRole.REVIEWER:
            return story.reviewer_id is not None and story.reviewer_id == acting_user_id
        case UserRole.ENGINEER:
            return False
        case unreachable:
            assert_never(unreachable)


def can_view_story(role, story, acting_user_id: str) -> bool:
    """Managers see everything; others see stories they created or review."""
    match _coerce(role):
        case UserRole.MANAGER:
            return True
        case UserRole.ENGINEER | UserRole.REVIEWER:
            return acting_user_id in (story.creator_id, story.reviewer_id)
        case unreachable:
            assert_never(unreachable)


def can_view_team_analytics(role) -> bool:
    match _coerce(role):
        case UserRole.MANAGER:
            return True
        case UserRole.ENGINEER | UserRole.REVIEWER:
            return False
        case unreachable:
            assert_never(unreachable)


def can_list_all_users(role) -> bool:
    return can_view_team_analytics(role)


def authorize(allowed: bool, action: str) -> None:
    """Raise ``ForbiddenError`` unless ``allowed``.

    The message names the action only, never the reason for the denial.
    """
    if not allowed:
        raise ForbiddenError(f"Not authorized to {action}")
