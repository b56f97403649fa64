"""Standardised API error responses.

Usage
-----
    from testhub.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Project not found")
    return api_error(E.VALIDATION_REQUIRED, "name is required")
"""

from __future__ import annotations

import logging

from flask import jsonify
from sqlalchemy.exc import IntegrityError, OperationalError

from testhub.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ExpiredError,
    ForbiddenError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from testhub.models import db

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Authentication – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Expired – HTTP 410
    EXPIRED = "ERR_EXPIRED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.EXPIRED: 410,
    E.DATABASE: 500,
    E.INTERNAL: 500,
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
        Extra structured payload (field errors etc.).

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


# Domain exception -> error code. Subclasses (NotMemberError,
# InsufficientRoleError) resolve through their ForbiddenError base.
_DOMAIN_CODES: tuple[tuple[type[Exception], str], ...] = (
    (NotFoundError, E.NOT_FOUND),
    (ValidationError, E.VALIDATION_INVALID),
    (ConflictError, E.CONFLICT_DUPLICATE),
    (StateConflictError, E.CONFLICT_STATE),
    (ForbiddenError, E.FORBIDDEN),
    (ExpiredError, E.EXPIRED),
    (AuthenticationError, E.UNAUTHENTICATED),
)


def _render_domain_error(code: str, error: Exception):
    if isinstance(error, NotFoundError):
        # The looked-up id stays in the log line only.
        logger.debug("Not found: %s", error)
        return api_error(code, error.public_message)
    if isinstance(error, ValidationError):
        return api_error(code, str(error), details=error.details)
    if isinstance(error, AuthenticationError):
        return api_error(code, str(error) or "Authentication required")
    return api_error(code, str(error))


def register_error_handlers(app):
    """Map the ``testhub.core.exceptions`` hierarchy to JSON responses.

    Every handler rolls the session back first so a failed unit of work never
    leaks partial writes into a later commit.
    """
    for exc_type, code in _DOMAIN_CODES:
        def _handle(error, _code=code):
            db.session.rollback()
            return _render_domain_error(_code, error)

        app.register_error_handler(exc_type, _handle)

    @app.errorhandler(IntegrityError)
    def _integrity(error):
        db.session.rollback()
        logger.warning("Integrity error: %s", error.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Resource already exists")

    @app.errorhandler(OperationalError)
    def _operational(error):
        db.session.rollback()
        logger.error("Database unavailable: %s", error.orig)
        return api_error(E.DATABASE, "Database error", status=503)
