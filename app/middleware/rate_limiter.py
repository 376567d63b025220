"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in app/__init__.py with no default limits; this module applies
granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

# Mutation-heavy repair blueprints
WRITE_LIMIT = "120/minute"
WRITE_BLUEPRINTS = ("repair_items", "repair_pricing", "repair_outcomes", "repair_workflow")


def rate_limit_key():
    """Dynamic rate limit key: organisation if authenticated, else remote IP."""
    auth = getattr(g, "auth", None)
    if auth is not None:
        return f"org:{auth.org_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per organisation, falling back to remote IP):
        - Repair write endpoints: 120/minute
        - Health check:           exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(
                WRITE_LIMIT,
                key_func=rate_limit_key,
                exempt_when=lambda: flask_request.method == "GET",
            )(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    logger.info("Rate limiter configured — repair writes: %s", WRITE_LIMIT)
