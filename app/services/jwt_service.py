"""
JWT Service — access token generation and verification.

Tokens are minted by the account service; this module verifies them and
provides a generator used by local tooling and tests.

Access token:  15 minutes (configurable via JWT_ACCESS_EXPIRES)
Algorithm:     HS256

Token payload (access):
{
    "sub": "<user_id>",
    "org_id": <organization_id>,
    "role": "service_advisor",
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


# ─── Defaults ────────────────────────────────────────────────
DEFAULT_ACCESS_EXPIRES = 900       # 15 minutes
ALGORITHM = "HS256"


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_access_token(user_id: int, org_id: int, role: str) -> str:
    """Generate a short-lived access token."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),   # RFC 7519: sub is a string
        "org_id": org_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, ...).
    """
    payload = jwt.decode(
        token, _get_secret(), algorithms=[ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")
    if payload.get("org_id") is None:
        raise jwt.InvalidTokenError("Token carries no org_id")
    return payload
