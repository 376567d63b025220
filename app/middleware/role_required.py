"""
Role Decorators — route protection based on the JWT ``role`` claim.

Usage:
    @bp.route("/repair-items/<int:item_id>/authorise", methods=["POST"])
    @require_role(*MUTATION_ROLES)
    def authorise(item_id):
        ...
"""

import functools
import logging

from flask import g

from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Roles allowed to mutate repair items
MUTATION_ROLES = ("super_admin", "org_admin", "site_admin", "service_advisor")


def require_role(*roles: str):
    """
    Decorator: require the authenticated user's role to be one of *roles*.

    The JWT middleware has already rejected anonymous requests; a missing
    ``g.auth`` here is treated as unauthenticated.
    """
    allowed = frozenset(roles)

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            auth = getattr(g, "auth", None)
            if auth is None:
                return api_error(E.UNAUTHORIZED, "Authentication required")
            if auth.role not in allowed:
                logger.warning(
                    "User %s denied: role '%s' not in %s on %s",
                    auth.user_id, auth.role, sorted(allowed), f.__name__,
                )
                return api_error(
                    E.FORBIDDEN, "Insufficient role",
                    details={"required": sorted(allowed)},
                )
            return f(*args, **kwargs)
        return decorated
    return decorator
