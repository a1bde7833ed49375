"""
Coverage Aggregator — read-only statistics over a snapshot of stories.

Pure functions: callers pass in already-loaded stories and users, nothing
here touches the database.

Rules:
    - Averages are arithmetic means over PRESENT scores only. Unscored
      stories are excluded from the mean, never counted as zero.
    - With no scored stories the average is 0.
    - pass  ⇔ average ≥ PASS_THRESHOLD, else fail. A user with no stories
      therefore fails (0 < 90).
    - Pass/fail is derived here and never stored on the story; a scored
      story's status stays "reviewed" whatever the score.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable

from coverage_tracker.models.story import StoryStatus

PASS_THRESHOLD = Decimal("90")


class CoverageStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"


@dataclass
class UserStats:
    user: object
    total_stories: int
    average_coverage: Decimal
    status: CoverageStatus

    def to_dict(self) -> dict:
        d = self.user.to_dict()
        d.update({
            "total_stories": self.total_stories,
            "average_coverage": round(float(self.average_coverage), 2),
            "status": self.status.value,
        })
        return d


@dataclass
class TeamStats:
    total_stories: int
    average_coverage: Decimal
    users_below_90: int
    pending_reviews: int

    def to_dict(self) -> dict:
        return {
            "total_stories": self.total_stories,
            "average_coverage": round(float(self.average_coverage), 2),
            "users_below_90": self.users_below_90,
            "pending_reviews": self.pending_reviews,
        }


def _to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def average_coverage(stories: Iterable) -> Decimal:
    """Mean of the present coverage scores; 0 when none are present."""
    scores = [_to_decimal(s.coverage_score) for s in stories if s.coverage_score is not None]
    if not scores:
        return Decimal("0")
    return sum(scores, Decimal("0")) / len(scores)


def classify_average(average: Decimal) -> CoverageStatus:
    return CoverageStatus.PASS if average >= PASS_THRESHOLD else CoverageStatus.FAIL


def classify_score(score) -> CoverageStatus | None:
    """Pass/fail for a single story score; None when the story is unscored."""
    if score is None:
        return None
    return classify_average(_to_decimal(score))


def compute_user_stats(user, stories_created_by_user: Iterable) -> UserStats:
    stories = list(stories_created_by_user)
    avg = average_coverage(stories)
    return UserStats(
        user=user,
        total_stories=len(stories),
        average_coverage=avg,
        status=classify_average(avg),
    )


def compute_all_user_stats(users: Iterable, stories: Iterable) -> list[UserStats]:
    """Stats for every user, grouping one story snapshot by creator."""
    by_creator: dict[str, list] = {}
    for story in stories:
        by_creator.setdefault(story.creator_id, []).append(story)
    return [compute_user_stats(u, by_creator.get(u.id, [])) for u in users]


def compute_team_stats(all_stories: Iterable, all_users_with_stats: Iterable[UserStats]) -> TeamStats:
    stories = list(all_stories)
    return TeamStats(
        total_stories=len(stories),
        average_coverage=average_coverage(stories),
        users_below_90=sum(
            1 for s in all_users_with_stats if s.average_coverage < PASS_THRESHOLD
        ),
        pending_reviews=sum(1 for s in stories if s.status == StoryStatus.PENDING),
    )
