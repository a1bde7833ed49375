"""
Dashboard filters for story and user listings.

Query params (all optional):
    date_from   YYYY-MM-DD | DD.MM.YYYY — created on or after this day
    date_to     YYYY-MM-DD | DD.MM.YYYY — created on or before this day
    user_id     creator id (stories) / user id (user stats)
    status      all | pass | fail | pending

Status on stories is derived from the score, not the stored review status:
pass = score ≥ 90, fail = score < 90, pending = no score yet. Users are
never "pending", so that filter matches no users.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from coverage_tracker.core.exceptions import ValidationError
from coverage_tracker.services.coverage_stats import CoverageStatus, classify_score
from coverage_tracker.utils.helpers import as_date, parse_date

STATUS_FILTERS = frozenset({"pass", "fail", "pending"})


@dataclass(frozen=True)
class StoryFilter:
    date_from: date | None = None
    date_to: date | None = None
    user_id: str | None = None
    status: str | None = None

    @classmethod
    def from_args(cls, args) -> "StoryFilter":
        """Build a filter from a request args mapping, validating each value."""
        try:
            date_from = parse_date(args.get("date_from"))
            date_to = parse_date(args.get("date_to"))
        except ValueError as exc:
            raise ValidationError(str(exc), details={"date": "invalid format"})
        if date_from and date_to and date_from > date_to:
            raise ValidationError(
                "date_from must not be after date_to",
                details={"date_from": "after date_to"},
            )

        status = (args.get("status") or "").strip().lower() or None
        if status == "all":
            status = None
        if status is not None and status not in STATUS_FILTERS:
            raise ValidationError(
                f"Invalid status '{status}'. Must be one of: all, "
                f"{', '.join(sorted(STATUS_FILTERS))}",
                details={"status": "invalid"},
            )
        user_id = (args.get("user_id") or "").strip() or None
        return cls(date_from=date_from, date_to=date_to, user_id=user_id, status=status)


def _story_matches(story, f: StoryFilter) -> bool:
    created = as_date(story.created_at)
    if f.date_from and (created is None or created < f.date_from):
        return False
    if f.date_to and (created is None or created > f.date_to):
        return False
    if f.user_id and story.creator_id != f.user_id:
        return False
    if f.status:
        verdict = classify_score(story.coverage_score)
        if f.status == "pending":
            return verdict is None
        return verdict is not None and verdict.value == f.status
    return True


def filter_stories(stories, f: StoryFilter) -> list:
    return [s for s in stories if _story_matches(s, f)]


def filter_user_stats(user_stats, f: StoryFilter) -> list:
    """Apply the user and status parts of the filter to ``UserStats`` rows."""
    result = []
    for stats in user_stats:
        if f.user_id and stats.user.id != f.user_id:
            continue
        if f.status == "pending":
            continue
        if f.status and stats.status != CoverageStatus(f.status):
            continue
        result.append(stats)
    return result
