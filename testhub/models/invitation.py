"""
Company invitation model and its state machine.

    PENDING ──accept──▶ ACCEPTED
        │
        ├──reject──▶ REJECTED
        │
        └──expire──▶ EXPIRED

All three targets are terminal. Expiry is detected lazily (on accept) or by
an optional external sweep; nothing in this package schedules it.
"""

import secrets
from datetime import timedelta

from sqlalchemy import text

from testhub.models import db
from testhub.models.soft_delete import as_utc, utcnow


INVITATION_STATUSES = ("PENDING", "ACCEPTED", "REJECTED", "EXPIRED")

INVITATION_TRANSITIONS = {
    "PENDING":  ["ACCEPTED", "REJECTED", "EXPIRED"],
    "ACCEPTED": [],
    "REJECTED": [],
    "EXPIRED":  [],
}

DEFAULT_INVITATION_TTL_DAYS = 7

# At most one PENDING invitation per (email, company).
_PENDING = text("status = 'PENDING'")


def validate_invitation_transition(old_status, new_status):
    """Return True if the invitation status transition is valid."""
    return new_status in INVITATION_TRANSITIONS.get(old_status, [])


def generate_invitation_token():
    """Opaque, unguessable, URL-safe token."""
    return secrets.token_urlsafe(32)


class CompanyInvitation(db.Model):
    __tablename__ = "company_invitations"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    invited_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    invited_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    invited_email = db.Column(db.String(150), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default="MEMBER")
    status = db.Column(db.String(20), nullable=False, default="PENDING")
    invitation_token = db.Column(
        db.String(64), unique=True, nullable=False, default=generate_invitation_token,
    )
    message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        db.Index("ix_invitation_email_company_status", "invited_email", "company_id", "status"),
        db.Index(
            "uq_invitation_pending_email_company", "invited_email", "company_id", unique=True,
            postgresql_where=_PENDING, sqlite_where=_PENDING,
        ),
    )

    company = db.relationship("Company")
    invited_by = db.relationship("User", foreign_keys=[invited_by_id])
    invited_user = db.relationship("User", foreign_keys=[invited_user_id])

    @classmethod
    def issue(cls, *, company, inviter, invitee, role, message=None,
              ttl_days=DEFAULT_INVITATION_TTL_DAYS, now=None):
        """Build a fresh PENDING invitation expiring ``ttl_days`` from now."""
        now = now or utcnow()
        return cls(
            company_id=company.id,
            invited_by_id=inviter.id,
            invited_user_id=invitee.id,
            invited_email=invitee.email,
            role=role,
            status="PENDING",
            invitation_token=generate_invitation_token(),
            message=message,
            created_at=now,
            expires_at=now + timedelta(days=ttl_days),
        )

    @property
    def action_url(self):
        return f"/invitations/{self.invitation_token}"

    def is_expired(self, now=None):
        return (now or utcnow()) > as_utc(self.expires_at)

    def to_dict(self, now=None):
        created = as_utc(self.created_at)
        expires = as_utc(self.expires_at)
        responded = as_utc(self.responded_at)
        return {
            "id": self.id,
            "company_id": self.company_id,
            "company_name": self.company.name if self.company else None,
            "invited_by_name": self.invited_by.full_name if self.invited_by else None,
            "invited_by_email": self.invited_by.email if self.invited_by else None,
            "invited_email": self.invited_email,
            "role": self.role,
            "status": self.status,
            "token": self.invitation_token,
            "message": self.message,
            "created_at": created.isoformat() if created else None,
            "expires_at": expires.isoformat() if expires else None,
            "responded_at": responded.isoformat() if responded else None,
            "is_expired": self.is_expired(now),
        }

    def __repr__(self):
        return f"<CompanyInvitation {self.id}: {self.invited_email} → {self.company_id} {self.status}>"
