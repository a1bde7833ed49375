"""
Authentication decorator for route protection.

Usage:
    @story_bp.route("/<story_id>/coverage", methods=["PATCH"])
    @login_required
    def update_coverage(story_id):
        user = g.current_user
        ...

The acting user is reloaded from the repository on every request, so role
changes take effect immediately and deleted users lose access even while
their token is still valid.
"""

import functools
import logging

from flask import g

from coverage_tracker.repositories import request_repositories
from coverage_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def login_required(f):
    """Decorator: require a valid bearer token for an existing user."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user_id = getattr(g, "jwt_user_id", None)
        if not user_id:
            return api_error(E.UNAUTHORIZED, "Authentication required")

        user = request_repositories().users.get(user_id)
        if user is None:
            logger.warning("Token for unknown user %s on %s", user_id, f.__name__)
            return api_error(E.UNAUTHORIZED, "User not found")

        g.current_user = user
        return f(*args, **kwargs)

    return decorated
