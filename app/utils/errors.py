"""Standardised API error responses.

Usage
-----
    from app.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Repair item not found")
    return api_error(E.VALIDATION_REQUIRED, "name is required")
    return api_error(E.CONFLICT_STATE, "Cannot authorise", details={"current": "deleted"})

Blueprints call ``register_error_handlers(bp)`` once so service exceptions
map onto these bodies.
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Rate limiting – HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


# HTTP status → code for werkzeug exceptions raised inside a blueprint
_HTTP_CODES: dict[int, str] = {
    401: E.UNAUTHORIZED,
    403: E.FORBIDDEN,
    404: E.NOT_FOUND,
    409: E.CONFLICT_STATE,
    429: E.RATE_LIMITED,
    500: E.INTERNAL,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (current state, per-field errors, ...).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


# ── Blueprint error handlers ──────────────────────────────────────────


def register_error_handlers(bp):
    """Map service exceptions onto ``api_error`` bodies for one blueprint."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(error.code, str(error), status=400, details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(error.code, str(error), status=409, details=error.details)

    @bp.errorhandler(HTTPException)
    def _handle_http(error: HTTPException):
        return api_error(_HTTP_CODES.get(error.code, E.VALIDATION_INVALID),
                         error.description or error.name, status=error.code)

    @bp.errorhandler(SQLAlchemyError)
    def _handle_db(error: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.DATABASE, "Database error")

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
