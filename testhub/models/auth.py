"""
Identity models — registered users and their global role.

Company-level authority does NOT live here; see ``CompanyMember`` in
``testhub.models.company``. The global role only gates platform
administration endpoints (user listing, role changes, statistics).
"""

from testhub.models import db
from testhub.models.soft_delete import as_utc, utcnow


USER_ROLES = ("ADMIN", "MODERATOR", "USER")


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(150), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(50), nullable=False, default="")
    last_name = db.Column(db.String(50), nullable=False, default="")
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="USER")
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    memberships = db.relationship(
        "CompanyMember", back_populates="user", lazy="dynamic", cascade="all, delete-orphan",
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self):
        return self.role == "ADMIN"

    def to_dict(self):
        created = as_utc(self.created_at)
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "role": self.role,
            "created_at": created.isoformat() if created else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"
