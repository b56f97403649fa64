"""
Test Management Hub
Notification domain model.

Models:
    - Notification: per-user in-app notification with read tracking
"""

from testhub.models import db
from testhub.models.soft_delete import as_utc, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = ("COMPANY_INVITATION", "SYSTEM_MESSAGE", "PROJECT_UPDATE", "TASK_ASSIGNMENT")


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    type = db.Column(db.String(30), nullable=False, default="SYSTEM_MESSAGE")
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    action_url = db.Column(db.String(500), nullable=True)
    related_entity_id = db.Column(db.Integer, nullable=True)

    # Explicit link for invitation notifications (see delete_invitation_notification)
    invitation_id = db.Column(
        db.Integer, db.ForeignKey("company_invitations.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )

    # Read tracking
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.Index("ix_notifications_user_type", "user_id", "type"),
    )

    user = db.relationship("User")

    def mark_read(self):
        self.is_read = True
        self.read_at = utcnow()

    def to_dict(self):
        created = as_utc(self.created_at)
        read = as_utc(self.read_at)
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "is_read": self.is_read,
            "action_url": self.action_url,
            "related_entity_id": self.related_entity_id,
            "invitation_id": self.invitation_id,
            "created_at": created.isoformat() if created else None,
            "read_at": read.isoformat() if read else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
