"""
Audit & soft-delete columns shared by every hierarchy entity.

The three timestamps are embedded into each table by a column factory and
read back as a single immutable value, ``AuditStamp``. Entities compose the
stamp instead of inheriting it.

Usage:
    class Project(db.Model):
        created_at, updated_at, deleted_at = audit_columns()
        audit = audit_property()

    project.audit.is_deleted
    mark_deleted(project)
    Project.query.filter(active(Project))
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from testhub.models import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class AuditStamp:
    """Creation / modification / deletion timestamps of one entity."""

    created_at: datetime | None
    updated_at: datetime | None
    deleted_at: datetime | None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict:
        return {
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }


def audit_columns():
    """Return fresh (created_at, updated_at, deleted_at) columns for one table."""
    return (
        db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow),
        db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow),
        db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True),
    )


def audit_property():
    """Read-only ``AuditStamp`` view over the embedded columns."""
    return property(lambda self: AuditStamp(
        created_at=as_utc(self.created_at),
        updated_at=as_utc(self.updated_at),
        deleted_at=as_utc(self.deleted_at),
    ))


def mark_deleted(entity, when: datetime | None = None) -> bool:
    """Stamp ``deleted_at`` unless already set. Returns True if it changed."""
    if entity.deleted_at is not None:
        return False
    entity.deleted_at = when or utcnow()
    return True


def clear_deleted(entity) -> bool:
    """Clear ``deleted_at``. Returns True if the entity was deleted."""
    if entity.deleted_at is None:
        return False
    entity.deleted_at = None
    return True


def active(model):
    """SQL criterion selecting non-deleted rows of ``model``."""
    return model.deleted_at.is_(None)
