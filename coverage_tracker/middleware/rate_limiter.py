"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in coverage_tracker/__init__.py with no
default limits; this module applies granular limits per route category.

Usage:
    from coverage_tracker.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

AUTH_LIMIT = "10/minute"
STORY_LIMIT = "60/minute"
ANALYTICS_LIMIT = "200/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Auth endpoints:      10/minute  (credential stuffing)
        - Story endpoints:     60/minute
        - Analytics / users:  200/minute  (dashboard reads)
        - Health check:        exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("auth_bp")
    if bp:
        limiter.limit(AUTH_LIMIT)(bp)

    bp = app.blueprints.get("story_bp")
    if bp:
        limiter.limit(STORY_LIMIT)(bp)

    bp = app.blueprints.get("analytics_bp")
    if bp:
        limiter.limit(ANALYTICS_LIMIT)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — auth: %s, stories: %s, analytics: %s",
        AUTH_LIMIT, STORY_LIMIT, ANALYTICS_LIMIT,
    )
