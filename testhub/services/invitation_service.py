"""
Test Management Hub
Invitation workflow: send, accept, reject, expire, list.

Every PENDING → terminal transition goes through ``_transition``, a
conditional UPDATE guarded by ``status = 'PENDING'``. Two concurrent
responses to the same token therefore cannot both win: the loser sees zero
affected rows and gets ``StateConflictError`` before any side effect runs.

Expiry is lazy. ``accept_invitation`` on an overdue PENDING invitation
commits EXPIRED and then raises ``ExpiredError``; ``expire_overdue_invitations``
is an optional sweep for an external scheduler. Until one of them settles it,
an overdue PENDING row still blocks a new invitation to the same company.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import select, update

from testhub.core.exceptions import (
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InsufficientRoleError,
    NotFoundError,
    StateConflictError,
)
from testhub.models import db
from testhub.models.auth import User
from testhub.models.company import COMPANY_ROLES, ROLE_DISPLAY, CompanyMember
from testhub.models.invitation import (
    DEFAULT_INVITATION_TTL_DAYS,
    CompanyInvitation,
    validate_invitation_transition,
)
from testhub.models.soft_delete import utcnow
from testhub.services.authorization import authorize_operation, is_member
from testhub.services.notification import NotificationService
from testhub.utils.helpers import choice, commit_unit, flush_unit, normalize_email

logger = logging.getLogger(__name__)


def _ttl_days() -> int:
    return int(current_app.config.get("INVITATION_TTL_DAYS", DEFAULT_INVITATION_TTL_DAYS))


def _by_token(token: str) -> CompanyInvitation:
    invitation = db.session.execute(
        select(CompanyInvitation).where(CompanyInvitation.invitation_token == token)
    ).scalar_one_or_none()
    if invitation is None:
        raise NotFoundError(resource="Invitation")
    return invitation


def _transition(invitation: CompanyInvitation, target: str, now) -> None:
    """Compare-and-swap PENDING → ``target``. Raises StateConflictError on a lost race."""
    if not validate_invitation_transition("PENDING", target):
        raise ValueError(f"PENDING → {target} is not a valid transition")
    result = db.session.execute(
        update(CompanyInvitation)
        .where(
            CompanyInvitation.id == invitation.id,
            CompanyInvitation.status == "PENDING",
        )
        .values(status=target, responded_at=now)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        logger.info("Invitation %s already left PENDING (wanted %s)", invitation.id, target)
        raise StateConflictError("Invitation has already been responded to")


def _guard_response(invitation: CompanyInvitation, caller: User) -> None:
    if invitation.invited_user_id != caller.id:
        logger.warning(
            "User %s tried to respond to invitation %s addressed to user %s",
            caller.id, invitation.id, invitation.invited_user_id,
        )
        raise ForbiddenError("This invitation is not addressed to you")
    if invitation.status != "PENDING":
        raise StateConflictError(
            f"Invitation has already been responded to (status {invitation.status})"
        )


def _notify_inviter(invitation: CompanyInvitation, caller: User, verb: str) -> None:
    inviter = invitation.invited_by
    if inviter is None:
        return
    company_name = invitation.company.name if invitation.company else "the company"
    NotificationService.create(
        recipient_email=inviter.email,
        type="SYSTEM_MESSAGE",
        title=f"Invitation {verb}",
        message=f"{caller.full_name or caller.email} {verb} your invitation to join {company_name}",
        related_entity_id=invitation.company_id,
    )


# ═══════════════════════════════════════════════════════════════
# Send
# ═══════════════════════════════════════════════════════════════
def send_invitation(company_id: int, email, role, message, inviter: User, *, now=None):
    """
    Invite the registered user behind ``email`` into ``company_id``.

    Raises:
        NotFoundError: Company unknown/deleted, or no user registered for ``email``.
        ForbiddenError: Inviter is not OWNER/ADMIN (only an OWNER may invite an OWNER).
        StateConflictError: The user is already a member.
        ConflictError: A PENDING invitation for (email, company) exists.
    """
    now = now or utcnow()
    membership = authorize_operation(inviter, company_id, "invitation.send")
    role = choice(role, COMPANY_ROLES, "role", default="MEMBER")
    if role == "OWNER" and not membership.satisfies("OWNER"):
        raise InsufficientRoleError(membership.role, "OWNER")

    email = normalize_email(email)
    invitee = db.session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()
    if invitee is None:
        raise NotFoundError(resource="User")
    if is_member(invitee.id, company_id):
        raise StateConflictError("User is already a member of this company")

    pending = db.session.execute(
        select(CompanyInvitation).where(
            CompanyInvitation.invited_email == email,
            CompanyInvitation.company_id == company_id,
            CompanyInvitation.status == "PENDING",
        )
    ).scalar_one_or_none()
    # Overdue rows still count until accept or the sweep marks them EXPIRED.
    if pending is not None:
        raise ConflictError("CompanyInvitation", "invited_email", email)

    company = membership.company
    invitation = CompanyInvitation.issue(
        company=company, inviter=inviter, invitee=invitee, role=role,
        message=message, ttl_days=_ttl_days(), now=now,
    )
    db.session.add(invitation)
    flush_unit(ConflictError("CompanyInvitation", "invited_email", email))

    NotificationService.create(
        recipient_email=invitee.email,
        type="COMPANY_INVITATION",
        title=f"Invitation to join {company.name}",
        message=(
            f"{inviter.full_name or inviter.email} invited you to join {company.name} "
            f"as {ROLE_DISPLAY[role]}"
        ),
        action_url=invitation.action_url,
        related_entity_id=company.id,
        invitation_id=invitation.id,
    )
    commit_unit(ConflictError("CompanyInvitation", "invited_email", email))
    logger.info(
        "Invitation %s sent: company=%s invitee=%s role=%s by user %s",
        invitation.id, company_id, invitee.id, role, inviter.id,
    )
    return invitation


# ═══════════════════════════════════════════════════════════════
# Respond
# ═══════════════════════════════════════════════════════════════
def accept_invitation(token: str, caller: User, *, now=None) -> CompanyMember:
    """
    Accept invitation ``token`` as ``caller`` and create the membership.

    Raises:
        NotFoundError: Unknown token, or the company has been deleted.
        ForbiddenError: ``caller`` is not the invited user.
        StateConflictError: Already responded, or ``caller`` is already a member.
        ExpiredError: Past ``expires_at``; the invitation is committed as EXPIRED first.
    """
    now = now or utcnow()
    invitation = _by_token(token)
    _guard_response(invitation, caller)

    if invitation.is_expired(now):
        _transition(invitation, "EXPIRED", now)
        commit_unit()
        logger.info("Invitation %s expired on accept", invitation.id)
        raise ExpiredError("Invitation has expired")

    company = invitation.company
    if company is None or company.deleted_at is not None:
        raise NotFoundError(resource="Company", resource_id=invitation.company_id)
    if is_member(caller.id, invitation.company_id):
        raise StateConflictError("You are already a member of this company")

    _transition(invitation, "ACCEPTED", now)
    membership = CompanyMember(
        user_id=caller.id, company_id=invitation.company_id, role=invitation.role, joined_at=now,
    )
    db.session.add(membership)
    flush_unit(StateConflictError("You are already a member of this company"))
    NotificationService.delete_invitation_notification(caller.email, token)
    _notify_inviter(invitation, caller, "accepted")
    commit_unit(StateConflictError("You are already a member of this company"))
    logger.info(
        "Invitation %s accepted: user %s joined company %s as %s",
        invitation.id, caller.id, invitation.company_id, invitation.role,
    )
    return membership


def reject_invitation(token: str, caller: User, *, now=None) -> CompanyInvitation:
    """
    Reject invitation ``token``. Overdue PENDING invitations may still be rejected.

    Raises:
        NotFoundError: Unknown token.
        ForbiddenError: ``caller`` is not the invited user.
        StateConflictError: Already responded.
    """
    now = now or utcnow()
    invitation = _by_token(token)
    _guard_response(invitation, caller)

    _transition(invitation, "REJECTED", now)
    NotificationService.delete_invitation_notification(caller.email, token)
    _notify_inviter(invitation, caller, "rejected")
    commit_unit()
    logger.info("Invitation %s rejected by user %s", invitation.id, caller.id)
    return invitation


# ═══════════════════════════════════════════════════════════════
# Query
# ═══════════════════════════════════════════════════════════════
def list_user_invitations(user: User) -> list[CompanyInvitation]:
    """Every invitation addressed to ``user``, newest first."""
    return db.session.execute(
        select(CompanyInvitation)
        .where(CompanyInvitation.invited_user_id == user.id)
        .order_by(CompanyInvitation.created_at.desc(), CompanyInvitation.id.desc())
    ).scalars().all()


def list_pending_invitations(user: User) -> list[CompanyInvitation]:
    """PENDING invitations addressed to ``user``, overdue ones included.

    Each row carries ``is_expired`` in ``to_dict`` so clients can grey out
    the overdue ones.
    """
    return [i for i in list_user_invitations(user) if i.status == "PENDING"]


def list_company_invitations(company_id: int, user: User) -> list[CompanyInvitation]:
    """Invitations ``user`` sent for ``company_id`` (OWNER/ADMIN only)."""
    authorize_operation(user, company_id, "invitation.list")
    return db.session.execute(
        select(CompanyInvitation)
        .where(
            CompanyInvitation.company_id == company_id,
            CompanyInvitation.invited_by_id == user.id,
        )
        .order_by(CompanyInvitation.created_at.desc(), CompanyInvitation.id.desc())
    ).scalars().all()


# ═══════════════════════════════════════════════════════════════
# Sweep
# ═══════════════════════════════════════════════════════════════
def expire_overdue_invitations(now=None) -> int:
    """Flip every overdue PENDING invitation to EXPIRED. Returns the count."""
    now = now or utcnow()
    result = db.session.execute(
        update(CompanyInvitation)
        .where(
            CompanyInvitation.status == "PENDING",
            CompanyInvitation.expires_at < now,
        )
        .values(status="EXPIRED", responded_at=now)
        .execution_options(synchronize_session="fetch")
    )
    commit_unit()
    if result.rowcount:
        logger.info("Expired %d overdue invitation(s)", result.rowcount)
    return result.rowcount
