"""Standardised API error responses.

Usage
-----
    from coverage_tracker.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Story not found")
    return api_error(E.VALIDATION_REQUIRED, "ticket_id is required")

Service exceptions are mapped once, app-wide, by ``register_error_handlers``.
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from coverage_tracker.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from coverage_tracker.services.user_service import UserServiceError

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Authentication – HTTP 401
    UNAUTHORIZED = "ERR_UNAUTHORIZED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"

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
    E.DATABASE: 500,
    E.INTERNAL: 500,
}

_STATUS_CODES: dict[int, str] = {
    400: E.VALIDATION_INVALID,
    401: E.UNAUTHORIZED,
    403: E.FORBIDDEN,
    404: E.NOT_FOUND,
    409: E.CONFLICT_DUPLICATE,
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
        Extra structured payload (field-level validation errors).

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


def register_error_handlers(app):
    """Map service exceptions and HTTP errors to ``api_error`` responses."""

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        logger.info("Not found: %s", error)
        return api_error(E.NOT_FOUND, error.public_message)

    @app.errorhandler(ForbiddenError)
    def _handle_forbidden(error: ForbiddenError):
        logger.warning("Forbidden on %s %s: %s", request.method, request.path, error)
        return api_error(E.FORBIDDEN, str(error))

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @app.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error), details={"field": error.field})

    @app.errorhandler(UserServiceError)
    def _handle_user_service(error: UserServiceError):
        code = _STATUS_CODES.get(error.status_code, E.VALIDATION_INVALID)
        return api_error(code, error.message, status=error.status_code)

    @app.errorhandler(IntegrityError)
    def _handle_integrity(error: IntegrityError):
        logger.warning("Integrity error: %s", error.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")

    @app.errorhandler(SQLAlchemyError)
    def _handle_database(error: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.path)
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(404)
    def _handle_404(error):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def _handle_405(error):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(413)
    def _handle_413(error):
        return api_error(E.VALIDATION_INVALID, "Request body too large", status=413)

    @app.errorhandler(429)
    def _handle_429(error):
        return api_error(
            E.VALIDATION_INVALID, "Too many requests",
            status=429, details={"retry_after": str(error.description)},
        )

    @app.errorhandler(500)
    def _handle_500(error):
        logger.error("500 error: %s", error, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
