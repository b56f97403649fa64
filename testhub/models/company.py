"""
Company (tenant root) and the Membership Ledger.

``CompanyMember`` is the single source of truth for company-level
authorisation. Role precedence is an explicit table keyed by role name so
that reordering the constants can never change who may do what.
"""

from testhub.models import db
from testhub.models.soft_delete import as_utc, audit_columns, audit_property, utcnow


# ── Roles ────────────────────────────────────────────────────────────────────

COMPANY_ROLES = ("OWNER", "ADMIN", "MEMBER")

# role -> every role it satisfies
ROLE_DOMINATES = {
    "OWNER": frozenset({"OWNER", "ADMIN", "MEMBER"}),
    "ADMIN": frozenset({"ADMIN", "MEMBER"}),
    "MEMBER": frozenset({"MEMBER"}),
}

ROLE_DISPLAY = {"OWNER": "Owner", "ADMIN": "Admin", "MEMBER": "Member"}


def role_satisfies(actual, required):
    """Return True if ``actual`` is at least as privileged as ``required``."""
    return required in ROLE_DOMINATES.get(actual, frozenset())


class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    owner_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        comment="Creator; provenance only",
    )
    created_at, updated_at, deleted_at = audit_columns()
    audit = audit_property()

    owner = db.relationship("User", foreign_keys=[owner_id])
    members = db.relationship(
        "CompanyMember", back_populates="company", lazy="dynamic", cascade="all, delete-orphan",
    )
    projects = db.relationship("Project", back_populates="company", lazy="dynamic")

    def to_dict(self, role=None):
        d = {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "owner_name": self.owner.full_name if self.owner else None,
            "owner_email": self.owner.email if self.owner else None,
            "member_count": self.members.count(),
            **self.audit.to_dict(),
        }
        if role is not None:
            d["user_role"] = role
        return d

    def __repr__(self):
        return f"<Company {self.id}: {self.name}>"


class CompanyMember(db.Model):
    """One row per (user, company); the composite key forbids duplicates."""

    __tablename__ = "company_members"

    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
    )
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), primary_key=True,
    )
    role = db.Column(db.String(20), nullable=False, default="MEMBER")
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        db.Index("ix_company_members_company_role", "company_id", "role"),
    )

    user = db.relationship("User", back_populates="memberships")
    company = db.relationship("Company", back_populates="members")

    def satisfies(self, required):
        return role_satisfies(self.role, required)

    def to_dict(self):
        joined = as_utc(self.joined_at)
        return {
            "user_id": self.user_id,
            "email": self.user.email if self.user else None,
            "first_name": self.user.first_name if self.user else None,
            "last_name": self.user.last_name if self.user else None,
            "company_id": self.company_id,
            "company_name": self.company.name if self.company else None,
            "role": self.role,
            "joined_at": joined.isoformat() if joined else None,
        }

    def __repr__(self):
        return f"<CompanyMember user={self.user_id} company={self.company_id} {self.role}>"
