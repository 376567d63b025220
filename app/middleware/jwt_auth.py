"""
JWT Auth Middleware — parses the Bearer token and sets ``g.auth``.

Every ``/api/v1/`` route except the liveness probe requires a valid access
token; the request is rejected with 401 otherwise.

    g.auth = AuthContext(org_id=..., user_id=..., role=...)
"""

import logging
from dataclasses import dataclass

import jwt as pyjwt
from flask import g, request

from app.services.jwt_service import decode_access_token
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# Liveness probes skip JWT auth ("/api/v1/health-checks/..." does not)
JWT_SKIP_PATHS = frozenset({"/api/v1/health", "/api/v1/health/ready"})


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller: organisation, user and role."""

    org_id: int
    user_id: int
    role: str


def _unauthorized(message):
    return api_error(E.UNAUTHORIZED, message)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.auth = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return None
        if request.method == "OPTIONS":
            return None
        if path in JWT_SKIP_PATHS:
            return None

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return _unauthorized("Authentication required")

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
            g.auth = AuthContext(
                org_id=int(payload["org_id"]),
                user_id=int(payload["sub"]),
                role=str(payload.get("role") or ""),
            )
        except pyjwt.ExpiredSignatureError:
            return _unauthorized("Token expired")
        except (pyjwt.InvalidTokenError, TypeError, ValueError) as exc:
            logger.warning("Rejected token on %s: %s", path, exc)
            return _unauthorized("Invalid token")
        return None
