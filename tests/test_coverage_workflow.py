"""
Story workflow tests against in-memory repositories.

Covers:
  - create_story: permissions, validation, duplicate ticket ids
  - assign_reviewer: manager-only, missing story / reviewer, forward-only status
  - update_coverage: history chain, score validation, reviewer scoping,
    comment preservation, atomic rollback
  - the end-to-end engineer → manager → reviewer scenario
  - role-scoped listings and analytics
"""

from decimal import Decimal

import pytest

from coverage_tracker.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from coverage_tracker.models.story import StoryStatus
from coverage_tracker.services import analytics_service, story_service
from coverage_tracker.services.coverage_stats import CoverageStatus


@pytest.fixture()
def team(repos):
    return {
        "manager": repos.add_user("mia", "manager"),
        "engineer": repos.add_user("eli", "engineer"),
        "reviewer": repos.add_user("rae", "reviewer"),
        "other_reviewer": repos.add_user("rob", "reviewer"),
    }


@pytest.fixture()
def assigned_story(repos, team):
    return repos.add_story(
        "QA-1", team["engineer"], reviewer=team["reviewer"], status=StoryStatus.IN_REVIEW,
    )


# ═══════════════════════════════════════════════════════════════
# validate_score
# ═══════════════════════════════════════════════════════════════

@pytest.mark.parametrize("value,expected", [
    (0, Decimal("0.00")),
    (100, Decimal("100.00")),
    (85.5, Decimal("85.50")),
    (Decimal("72.345"), Decimal("72.35")),
    (99.999, Decimal("100.00")),
])
def test_validate_score_quantises(value, expected):
    assert story_service.validate_score(value) == expected


@pytest.mark.parametrize("value", [
    -1, 101, -0.01, 100.01, "85", None, True, float("nan"), float("inf"), [90],
])
def test_validate_score_rejects(value):
    with pytest.raises(ValidationError):
        story_service.validate_score(value)


# ═══════════════════════════════════════════════════════════════
# create_story
# ═══════════════════════════════════════════════════════════════

def test_engineer_creates_pending_story(repos, team):
    story = story_service.create_story(
        repos, team["engineer"], ticket_id="  QA-7 ", title="Login flow",
    )
    assert story.ticket_id == "QA-7"
    assert story.creator_id == team["engineer"].id
    assert story.status == StoryStatus.PENDING
    assert story.reviewer_id is None
    assert story.coverage_score is None


def test_reviewer_cannot_create_story(repos, team):
    with pytest.raises(ForbiddenError):
        story_service.create_story(repos, team["reviewer"], ticket_id="QA-7", title="x")
    assert repos.stories.rows == {}


@pytest.mark.parametrize("ticket_id,title", [("", "Title"), ("QA-8", "   "), (None, "t")])
def test_create_story_requires_ticket_and_title(repos, team, ticket_id, title):
    with pytest.raises(ValidationError):
        story_service.create_story(repos, team["engineer"], ticket_id=ticket_id, title=title)


def test_duplicate_ticket_id_conflicts(repos, team):
    story_service.create_story(repos, team["engineer"], ticket_id="QA-9", title="a")
    with pytest.raises(ConflictError):
        story_service.create_story(repos, team["manager"], ticket_id="QA-9", title="b")
    assert len(repos.stories.rows) == 1


# ═══════════════════════════════════════════════════════════════
# assign_reviewer
# ═══════════════════════════════════════════════════════════════

def test_manager_assigns_reviewer(repos, team):
    story = repos.add_story("QA-2", team["engineer"])
    updated = story_service.assign_reviewer(repos, story.id, team["reviewer"].id, team["manager"])
    assert updated.reviewer_id == team["reviewer"].id
    assert updated.status == StoryStatus.IN_REVIEW
    assert story.id in repos.stories.locked


@pytest.mark.parametrize("role", ["engineer", "reviewer"])
def test_only_manager_assigns_reviewer(repos, team, role):
    story = repos.add_story("QA-2", team["engineer"])
    with pytest.raises(ForbiddenError):
        story_service.assign_reviewer(repos, story.id, team["reviewer"].id, team[role])
    assert story.reviewer_id is None


def test_assign_reviewer_missing_story(repos, team):
    with pytest.raises(NotFoundError):
        story_service.assign_reviewer(repos, "nope", team["reviewer"].id, team["manager"])


def test_assign_reviewer_missing_user(repos, team):
    story = repos.add_story("QA-2", team["engineer"])
    with pytest.raises(NotFoundError) as exc_info:
        story_service.assign_reviewer(repos, story.id, "ghost", team["manager"])
    assert exc_info.value.resource == "User"
    assert story.status == StoryStatus.PENDING


def test_assign_reviewer_requires_reviewer_id(repos, team):
    story = repos.add_story("QA-2", team["engineer"])
    with pytest.raises(ValidationError):
        story_service.assign_reviewer(repos, story.id, None, team["manager"])


def test_reassigning_reviewed_story_keeps_status(repos, team):
    story = repos.add_story(
        "QA-3", team["engineer"], reviewer=team["reviewer"],
        score=Decimal("91"), status=StoryStatus.REVIEWED,
    )
    updated = story_service.assign_reviewer(
        repos, story.id, team["other_reviewer"].id, team["manager"],
    )
    assert updated.reviewer_id == team["other_reviewer"].id
    assert updated.status == StoryStatus.REVIEWED


# ═══════════════════════════════════════════════════════════════
# update_coverage
# ═══════════════════════════════════════════════════════════════

def test_two_updates_chain_history(repos, team, assigned_story):
    story_service.update_coverage(repos, assigned_story.id, 70, team["reviewer"])
    story_service.update_coverage(repos, assigned_story.id, 92.5, team["manager"])

    records = repos.history.list_by_story(assigned_story.id)
    assert len(records) == 2
    latest, first = records
    assert first.previous_score is None
    assert first.new_score == Decimal("70.00")
    assert latest.previous_score == first.new_score
    assert latest.new_score == Decimal("92.50")
    assert latest.updated_by_id == team["manager"].id


@pytest.mark.parametrize("score", [-1, 101])
def test_out_of_range_score_writes_nothing(repos, team, assigned_story, score):
    with pytest.raises(ValidationError):
        story_service.update_coverage(repos, assigned_story.id, score, team["reviewer"])
    assert repos.history.list_by_story(assigned_story.id) == []
    assert assigned_story.coverage_score is None
    assert assigned_story.status == StoryStatus.IN_REVIEW


def test_reviewer_assigned_elsewhere_is_forbidden(repos, team, assigned_story):
    with pytest.raises(ForbiddenError):
        story_service.update_coverage(repos, assigned_story.id, 95, team["other_reviewer"])
    assert repos.history.rows == {}


def test_reviewer_on_unassigned_story_is_forbidden(repos, team):
    story = repos.add_story("QA-4", team["engineer"])
    with pytest.raises(ForbiddenError):
        story_service.update_coverage(repos, story.id, 95, team["reviewer"])


def test_engineer_cannot_score_own_story(repos, team, assigned_story):
    with pytest.raises(ForbiddenError):
        story_service.update_coverage(repos, assigned_story.id, 95, team["engineer"])


def test_missing_story_is_not_found_before_score_check(repos, team):
    with pytest.raises(NotFoundError):
        story_service.update_coverage(repos, "missing", 500, team["manager"])


def test_forbidden_before_score_validation(repos, team, assigned_story):
    with pytest.raises(ForbiddenError):
        story_service.update_coverage(repos, assigned_story.id, 500, team["engineer"])


def test_failing_score_still_marks_reviewed(repos, team, assigned_story):
    story = story_service.update_coverage(repos, assigned_story.id, 40, team["reviewer"])
    assert story.status == StoryStatus.REVIEWED
    assert story.date_completed is not None


def test_blank_comments_clear_existing(repos, team, assigned_story):
    story_service.update_coverage(repos, assigned_story.id, 80, team["reviewer"], comments="todo")
    story = story_service.update_coverage(repos, assigned_story.id, 85, team["reviewer"], comments="  ")
    assert story.comments is None


def test_failed_story_update_rolls_back_history(repos, team, assigned_story, monkeypatch):
    def _boom(story_id, patch):
        raise RuntimeError("write failed")

    monkeypatch.setattr(repos.stories, "update", _boom)
    with pytest.raises(RuntimeError):
        story_service.update_coverage(repos, assigned_story.id, 88, team["reviewer"])

    assert repos.history.rows == {}
    assert repos.rollbacks == 1
    assert assigned_story.coverage_score is None


def test_failed_history_append_leaves_story_unchanged(repos, team, assigned_story):
    repos.history.fail_on_append = True
    with pytest.raises(RuntimeError):
        story_service.update_coverage(repos, assigned_story.id, 88, team["reviewer"])
    assert assigned_story.status == StoryStatus.IN_REVIEW
    assert assigned_story.coverage_score is None


# ═══════════════════════════════════════════════════════════════
# End-to-end scenario
# ═══════════════════════════════════════════════════════════════

def test_engineer_manager_reviewer_scenario(repos, team):
    e, m, r = team["engineer"], team["manager"], team["reviewer"]

    story = story_service.create_story(repos, e, ticket_id="QA-100", title="Checkout")
    assert story.status == StoryStatus.PENDING

    story = story_service.assign_reviewer(repos, story.id, r.id, m)
    assert story.status == StoryStatus.IN_REVIEW
    assert story.reviewer_id == r.id

    story = story_service.update_coverage(
        repos, story.id, 85, r, comments="needs more edge cases",
    )
    assert story.status == StoryStatus.REVIEWED
    assert story.coverage_score == Decimal("85.00")
    assert story.comments == "needs more edge cases"

    story = story_service.update_coverage(repos, story.id, 95, m)
    assert story.coverage_score == Decimal("95.00")
    assert story.comments == "needs more edge cases"

    latest, first = repos.history.list_by_story(story.id)
    assert (first.previous_score, first.new_score) == (None, Decimal("85.00"))
    assert (latest.previous_score, latest.new_score) == (Decimal("85.00"), Decimal("95.00"))
    assert first.comments == "needs more edge cases"
    assert latest.comments is None

    assert analytics_service.get_user_stats(repos, e).status == CoverageStatus.PASS


# ═══════════════════════════════════════════════════════════════
# Reads
# ═══════════════════════════════════════════════════════════════

def test_list_stories_is_role_scoped(repos, team):
    mine = repos.add_story("QA-10", team["engineer"], reviewer=team["reviewer"])
    repos.add_story("QA-11", team["manager"], reviewer=team["other_reviewer"])

    assert len(story_service.list_stories_for(repos, team["manager"])) == 2
    assert story_service.list_stories_for(repos, team["engineer"]) == [mine]
    assert story_service.list_stories_for(repos, team["reviewer"]) == [mine]
    assert story_service.list_review_queue(repos, team["reviewer"]) == [mine]


def test_get_story_visibility(repos, team, assigned_story):
    assert story_service.get_story(repos, assigned_story.id, team["reviewer"]) is assigned_story
    with pytest.raises(ForbiddenError):
        story_service.get_story(repos, assigned_story.id, team["other_reviewer"])
    with pytest.raises(NotFoundError):
        story_service.get_story(repos, "missing", team["manager"])


def test_story_details_resolves_users(repos, team, assigned_story):
    [d] = story_service.story_details(repos, [assigned_story])
    assert d["creator"]["username"] == "eli"
    assert d["reviewer"]["username"] == "rae"


def test_team_analytics_is_manager_only(repos, team):
    repos.add_story("QA-20", team["engineer"], score=Decimal("95"), status=StoryStatus.REVIEWED)
    repos.add_story("QA-21", team["manager"], score=Decimal("80"), status=StoryStatus.REVIEWED)

    stats = analytics_service.get_team_stats(repos, team["manager"])
    assert stats.total_stories == 2
    # engineer 95 passes; manager 80 and both reviewers (no stories) fail
    assert stats.users_below_90 == 3

    with pytest.raises(ForbiddenError):
        analytics_service.get_team_stats(repos, team["engineer"])
    with pytest.raises(ForbiddenError):
        analytics_service.get_all_users_with_stats(repos, team["reviewer"])
