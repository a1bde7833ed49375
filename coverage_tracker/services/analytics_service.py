"""
Analytics Service — loads a fresh snapshot and hands it to the aggregator.

Nothing is cached between calls: each function reads users and stories once
and groups them in memory.
"""

from coverage_tracker.services.access_policy import (
    authorize,
    can_list_all_users,
    can_view_team_analytics,
)
from coverage_tracker.services.coverage_stats import (
    compute_all_user_stats,
    compute_team_stats,
    compute_user_stats,
)


def get_user_stats(repos, user):
    """Personal stats over the stories ``user`` created."""
    return compute_user_stats(user, repos.stories.list_by_creator(user.id))


def get_all_users_with_stats(repos, acting_user):
    authorize(can_list_all_users(acting_user.role), "view user analytics")
    return compute_all_user_stats(repos.users.list_all(), repos.stories.list_all())


def get_team_stats(repos, acting_user):
    authorize(can_view_team_analytics(acting_user.role), "view team analytics")
    stories = repos.stories.list_all()
    user_stats = compute_all_user_stats(repos.users.list_all(), stories)
    return compute_team_stats(stories, user_stats)
