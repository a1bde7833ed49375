"""
Story Service — story creation, reviewer assignment and coverage updates.

Every public function takes the ``Repositories`` bundle and the
already-authenticated acting ``User``. Blueprints do no business checks of
their own: permissions, validation and transaction boundaries live here.

Coverage update (the one multi-step write):
    1. load the story under a row lock       → NotFoundError
    2. access policy                         → ForbiddenError
    3. score validation                      → ValidationError
    4. append CoverageHistory(previous → new)
    5. update the story (score, status, comments, date_completed)
    Steps 1–5 run in a single ``repos.transaction()``: a failure at any step
    leaves no history row and an unchanged story.

Status is forward-only: pending → in_review → reviewed. A coverage update
always lands on "reviewed", pass or fail.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import assert_never

from coverage_tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from coverage_tracker.models.story import STATUS_ORDER, StoryStatus
from coverage_tracker.models.user import UserRole
from coverage_tracker.services.access_policy import (
    authorize,
    can_assign_reviewer,
    can_create_story,
    can_edit_coverage,
    can_view_story,
)

logger = logging.getLogger(__name__)

MIN_SCORE = Decimal("0")
MAX_SCORE = Decimal("100")
_TWO_PLACES = Decimal("0.01")

TICKET_ID_MAX_LENGTH = 64


# ── Validation helpers ────────────────────────────────────────────────────────


def validate_score(value) -> Decimal:
    """Return ``value`` as a two-decimal ``Decimal`` in [0, 100].

    Only real numbers are accepted: booleans, strings, NaN and infinities
    are rejected along with anything outside the range.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationError(
            "Score must be a number between 0 and 100",
            details={"score": "must be numeric"},
        )
    score = value if isinstance(value, Decimal) else Decimal(str(value))
    if not score.is_finite():
        raise ValidationError(
            "Score must be a number between 0 and 100",
            details={"score": "must be finite"},
        )
    if score < MIN_SCORE or score > MAX_SCORE:
        raise ValidationError(
            "Score must be between 0 and 100",
            details={"score": f"{value} is out of range"},
        )
    return score.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def _required_text(value, field: str, max_length: int | None = None) -> str:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "must be a string"})
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required", details={field: "required"})
    if max_length and len(text) > max_length:
        raise ValidationError(
            f"{field} must be ≤ {max_length} characters",
            details={field: "too long"},
        )
    return text


def _optional_text(value, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "must be a string"})
    return value.strip() or None


def _get_story_or_404(repos, story_id, for_update: bool = False):
    if not story_id or not isinstance(story_id, str):
        raise ValidationError("A valid story id is required", details={"story_id": "invalid"})
    story = repos.stories.get(story_id, for_update=for_update)
    if story is None:
        raise NotFoundError("Story", story_id)
    return story


# ── Reads ─────────────────────────────────────────────────────────────────────


def list_stories_for(repos, user) -> list:
    """Stories visible on the caller's dashboard, newest first.

    manager  → every story
    reviewer → stories assigned to them
    engineer → stories they created
    """
    match UserRole(user.role):
        case UserRole.MANAGER:
            return repos.stories.list_all()
        case UserRole.REVIEWER:
            return repos.stories.list_by_reviewer(user.id)
        case UserRole.ENGINEER:
            return repos.stories.list_by_creator(user.id)
        case unreachable:
            assert_never(unreachable)


def list_review_queue(repos, user) -> list:
    """Stories assigned to ``user`` for review, whatever their role."""
    return repos.stories.list_by_reviewer(user.id)


def get_story(repos, story_id: str, acting_user):
    story = _get_story_or_404(repos, story_id)
    authorize(can_view_story(acting_user.role, story, acting_user.id), "view this story")
    return story


def get_coverage_history(repos, story_id: str, acting_user) -> list:
    """Audit trail for a story, newest first."""
    story = get_story(repos, story_id, acting_user)
    return repos.history.list_by_story(story.id)


def story_details(repos, stories) -> list[dict]:
    """Serialise stories with their creator and reviewer resolved.

    Each distinct user is looked up once per call.
    """
    users: dict[str, dict | None] = {}

    def _user(user_id):
        if user_id is None:
            return None
        if user_id not in users:
            u = repos.users.get(user_id)
            users[user_id] = u.to_dict() if u else None
        return users[user_id]

    result = []
    for story in stories:
        d = story.to_dict()
        d["creator"] = _user(story.creator_id)
        d["reviewer"] = _user(story.reviewer_id)
        result.append(d)
    return result


def history_details(repos, records) -> list[dict]:
    """Serialise history rows with the updating user resolved."""
    users: dict[str, dict | None] = {}
    result = []
    for record in records:
        if record.updated_by_id not in users:
            u = repos.users.get(record.updated_by_id)
            users[record.updated_by_id] = u.to_dict() if u else None
        d = record.to_dict()
        d["updated_by"] = users[record.updated_by_id]
        result.append(d)
    return result


# ── Writes ────────────────────────────────────────────────────────────────────


def create_story(repos, acting_user, ticket_id, title, comments=None):
    """Create a pending, unassigned, unscored story owned by ``acting_user``."""
    authorize(can_create_story(acting_user.role), "create stories")
    ticket_id = _required_text(ticket_id, "ticket_id", TICKET_ID_MAX_LENGTH)
    title = _required_text(title, "title")
    comments = _optional_text(comments, "comments")

    with repos.transaction():
        if repos.stories.get_by_ticket_id(ticket_id) is not None:
            raise ConflictError("Story", "ticket_id", ticket_id)
        now = datetime.now(timezone.utc)
        story = repos.stories.create(
            ticket_id=ticket_id,
            title=title,
            creator_id=acting_user.id,
            reviewer_id=None,
            coverage_score=None,
            status=StoryStatus.PENDING,
            comments=comments,
            date_completed=None,
            created_at=now,
            updated_at=now,
        )

    logger.info(
        "Story created",
        extra={
            "event_type": "story_created",
            "story_id": story.id,
            "user_id": acting_user.id,
        },
    )
    return story


def assign_reviewer(repos, story_id, reviewer_id, acting_user):
    """Bind a reviewer to a story (managers only).

    The reviewer's role is not checked: any existing user can be assigned.
    The story moves to in_review unless it has already been reviewed.
    """
    authorize(can_assign_reviewer(acting_user.role), "assign reviewers")
    if not reviewer_id or not isinstance(reviewer_id, str):
        raise ValidationError("reviewer_id is required", details={"reviewer_id": "required"})

    with repos.transaction():
        story = _get_story_or_404(repos, story_id, for_update=True)
        reviewer = repos.users.get(reviewer_id)
        if reviewer is None:
            raise NotFoundError("User", reviewer_id)
        if reviewer.role == UserRole.ENGINEER:
            logger.warning(
                "Assigning engineer %s as reviewer of story %s", reviewer_id, story.id,
            )

        patch = {"reviewer_id": reviewer.id}
        if STATUS_ORDER[StoryStatus(story.status)] < STATUS_ORDER[StoryStatus.IN_REVIEW]:
            patch["status"] = StoryStatus.IN_REVIEW
        story = repos.stories.update(story.id, patch)

    logger.info(
        "Reviewer assigned",
        extra={
            "event_type": "reviewer_assigned",
            "story_id": story.id,
            "user_id": acting_user.id,
            "reviewer_id": reviewer_id,
        },
    )
    return story


def update_coverage(repos, story_id, new_score, acting_user, comments=None):
    """Record a coverage score and append the audit-trail row atomically.

    ``comments=None`` keeps the story's existing comments; any string
    replaces them (blank clears).
    """
    with repos.transaction():
        story = _get_story_or_404(repos, story_id, for_update=True)
        authorize(
            can_edit_coverage(acting_user.role, story, acting_user.id),
            "update coverage for this story",
        )
        score = validate_score(new_score)
        comments_text = _optional_text(comments, "comments")

        previous_score = story.coverage_score
        repos.history.append(
            story_id=story.id,
            updated_by_id=acting_user.id,
            previous_score=previous_score,
            new_score=score,
            comments=comments_text,
            created_at=datetime.now(timezone.utc),
        )

        patch = {
            "coverage_score": score,
            "status": StoryStatus.REVIEWED,
            "date_completed": datetime.now(timezone.utc),
        }
        if comments is not None:
            patch["comments"] = comments_text
        story = repos.stories.update(story.id, patch)

    logger.info(
        "Coverage updated",
        extra={
            "event_type": "coverage_updated",
            "story_id": story.id,
            "user_id": acting_user.id,
            "previous_score": str(previous_score) if previous_score is not None else None,
            "new_score": str(score),
        },
    )
    return story
