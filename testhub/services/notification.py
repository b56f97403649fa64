"""
Test Management Hub
Notification Relay.

Creates, lists and retires per-user in-app notifications. Invitation
workflows call ``create`` and ``delete_invitation_notification`` as side
effects inside their own unit of work, so those two only flush; the
user-facing actions (mark read, delete) commit.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update

from testhub.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from testhub.models import db
from testhub.models.auth import User
from testhub.models.invitation import CompanyInvitation
from testhub.models.notification import NOTIFICATION_TYPES, Notification
from testhub.models.soft_delete import utcnow
from testhub.utils.helpers import commit_unit

logger = logging.getLogger(__name__)


def _user_by_email(email: str) -> User:
    user = db.session.execute(
        select(User).where(User.email == (email or "").strip().lower())
    ).scalar_one_or_none()
    if user is None:
        raise NotFoundError(resource="User")
    return user


def _owned(notification_id: int, owner_email: str) -> Notification:
    owner = _user_by_email(owner_email)
    notif = db.session.get(Notification, notification_id)
    if notif is None:
        raise NotFoundError(resource="Notification", resource_id=notification_id)
    if notif.user_id != owner.id:
        logger.warning(
            "User %s denied access to notification %s", owner.id, notification_id,
        )
        raise ForbiddenError("Access denied to this notification")
    return notif


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(recipient_email, type, title, message="", action_url=None,
               related_entity_id=None, invitation_id=None):
        """
        Record a notification for the user registered under ``recipient_email``.

        Joins the caller's transaction (flush only, no commit).

        Returns:
            The pending Notification instance.
        """
        if type not in NOTIFICATION_TYPES:
            raise ValidationError(
                f"Invalid notification type. Must be one of: {list(NOTIFICATION_TYPES)}"
            )
        recipient = _user_by_email(recipient_email)
        notif = Notification(
            user_id=recipient.id,
            type=type,
            title=title,
            message=message or "",
            action_url=action_url,
            related_entity_id=related_entity_id,
            invitation_id=invitation_id,
        )
        db.session.add(notif)
        db.session.flush()
        logger.debug("Notification %s (%s) queued for user %s", notif.id, type, recipient.id)
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(owner_email, unread_only=False):
        """Notifications of one user, newest first."""
        owner = _user_by_email(owner_email)
        stmt = select(Notification).where(Notification.user_id == owner.id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        return db.session.execute(stmt).scalars().all()

    @staticmethod
    def list_unread(owner_email):
        return NotificationService.list_for_user(owner_email, unread_only=True)

    @staticmethod
    def unread_count(owner_email):
        owner = _user_by_email(owner_email)
        return db.session.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == owner.id,
                Notification.is_read.is_(False),
            )
        ).scalar_one()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, owner_email):
        """Mark a single notification as read. Only its owner may do so."""
        notif = _owned(notification_id, owner_email)
        if not notif.is_read:
            notif.mark_read()
        commit_unit()
        return notif

    @staticmethod
    def mark_all_read(owner_email):
        """Mark every unread notification of the owner as read."""
        owner = _user_by_email(owner_email)
        result = db.session.execute(
            update(Notification)
            .where(Notification.user_id == owner.id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        commit_unit()
        return result.rowcount

    @staticmethod
    def delete(notification_id, owner_email):
        notif = _owned(notification_id, owner_email)
        db.session.delete(notif)
        commit_unit()
        return notification_id

    # ── Invitation coupling ───────────────────────────────────────────────

    @staticmethod
    def delete_invitation_notification(owner_email, token):
        """
        Remove the notification that announced invitation ``token`` to its owner.

        Scans the owner's COMPANY_INVITATION notifications, newest first, and
        deletes the first one linked to the invitation: by the explicit
        ``invitation_id`` relation, or, for rows created without it, by the
        token embedded in ``action_url``. Joins the caller's transaction.

        Returns:
            The deleted notification id, or None if nothing matched.
        """
        owner = _user_by_email(owner_email)
        invitation_id = db.session.execute(
            select(CompanyInvitation.id).where(CompanyInvitation.invitation_token == token)
        ).scalar_one_or_none()

        candidates = db.session.execute(
            select(Notification)
            .where(
                Notification.user_id == owner.id,
                Notification.type == "COMPANY_INVITATION",
            )
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        ).scalars().all()

        for notif in candidates:
            if notif.invitation_id is not None:
                matched = invitation_id is not None and notif.invitation_id == invitation_id
            else:
                matched = bool(notif.action_url) and token in notif.action_url
            if matched:
                db.session.delete(notif)
                db.session.flush()
                return notif.id
        logger.debug("No invitation notification for user %s matched token", owner.id)
        return None
