"""Request-parsing and commit helpers shared by blueprints and services."""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError, OperationalError

from testhub.core.exceptions import ConflictError, ValidationError
from testhub.models import db

logger = logging.getLogger(__name__)


def require_text(data: dict, field: str, *, max_length: int | None = None) -> str:
    """Return a stripped, non-empty string field or raise ValidationError."""
    value = str(data.get(field, "") or "").strip()
    if not value:
        raise ValidationError(f"{field} is required", details={field: "required"})
    if max_length and len(value) > max_length:
        raise ValidationError(
            f"{field} must be ≤ {max_length} characters", details={field: "too long"},
        )
    return value


def optional_text(data: dict, field: str, default: str | None = "") -> str | None:
    if field not in data or data.get(field) is None:
        return default
    return str(data.get(field)).strip()


def normalize_email(value, field: str = "email") -> str:
    """Validate an e-mail address (syntax only, no DNS) and lower-case it."""
    raw = str(value or "").strip()
    if not raw:
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        info = validate_email(raw, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError(str(exc), details={field: "invalid"}) from exc
    return info.normalized.lower()


def choice(value, allowed, field: str, *, default=None):
    """Upper-case ``value`` and check it against ``allowed``."""
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return default
    normalized = str(value).strip().upper()
    if normalized not in allowed:
        raise ValidationError(
            f"Invalid {field}. Must be one of: {list(allowed)}",
            details={field: "invalid choice"},
        )
    return normalized


def positive_int(value, field: str, *, required: bool = True) -> int | None:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer", details={field: "invalid"})
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer", details={field: "invalid"})
    if number < 1:
        raise ValidationError(f"{field} must be a positive integer", details={field: "invalid"})
    return number


# ── Database commit helper ───────────────────────────────────────────────────

def commit_unit(conflict: Exception | None = None):
    """Commit the current unit of work or roll it back completely.

    IntegrityError → ``conflict`` (or a generic ConflictError) after rollback.
    OperationalError (timeouts, lock waits) is logged and re-raised.

    Usage::

        db.session.add(suite)
        commit_unit(ConflictError("TestSuite", "name", name))
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise (conflict or ConflictError("Resource", "key")) from exc
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        raise


def flush_unit(conflict: Exception | None = None):
    """Flush pending rows so key violations surface as ``conflict`` before side effects."""
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on flush: %s", exc.orig)
        raise (conflict or ConflictError("Resource", "key")) from exc
