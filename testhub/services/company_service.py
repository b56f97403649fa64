"""
Test Management Hub
Company and membership management.

A company is created together with its creator's OWNER membership in one
unit of work. From then on the Membership Ledger is the only authority; the
``owner_id`` column is provenance and never consulted for permissions.

Every company keeps at least one OWNER. Demoting, removing or letting the
last OWNER leave raises ``StateConflictError``.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from testhub.core.exceptions import (
    InsufficientRoleError,
    NotFoundError,
    StateConflictError,
)
from testhub.models import db
from testhub.models.company import COMPANY_ROLES, Company, CompanyMember
from testhub.models.soft_delete import active, utcnow
from testhub.services.authorization import authorize, authorize_operation, get_membership
from testhub.services.cascade import soft_delete
from testhub.utils.helpers import choice, commit_unit, require_text

logger = logging.getLogger(__name__)


def owner_rows_for_update(company_id: int):
    """SELECT of the company's OWNER membership ids with ``FOR UPDATE``.

    Concurrent demotions of the last two owners serialise on these row locks,
    so the second one sees a count of 1. SQLite ignores ``FOR UPDATE``.
    """
    return (
        select(CompanyMember.user_id)
        .where(
            CompanyMember.company_id == company_id,
            CompanyMember.role == "OWNER",
        )
        .with_for_update()
    )


def _owner_count(company_id: int) -> int:
    return len(db.session.execute(owner_rows_for_update(company_id)).scalars().all())


def _guard_last_owner(member: CompanyMember, action: str) -> None:
    if member.role == "OWNER" and _owner_count(member.company_id) <= 1:
        raise StateConflictError(f"Cannot {action} the last owner of the company")


# ── Company ──────────────────────────────────────────────────────────────────

def create_company(data: dict, creator):
    """Create a company; the creator becomes its first OWNER."""
    name = require_text(data, "name", max_length=100)
    company = Company(name=name, owner_id=creator.id)
    db.session.add(company)
    db.session.flush()
    db.session.add(CompanyMember(
        user_id=creator.id, company_id=company.id, role="OWNER", joined_at=utcnow(),
    ))
    commit_unit()
    logger.info("Company %s (%s) created by user %s", company.id, name, creator.id)
    return company


def list_my_companies(user) -> list[tuple[Company, str]]:
    """Live companies ``user`` belongs to, with the user's role in each."""
    rows = db.session.execute(
        select(Company, CompanyMember.role)
        .join(CompanyMember, CompanyMember.company_id == Company.id)
        .where(CompanyMember.user_id == user.id, active(Company))
        .order_by(Company.name.asc(), Company.id.asc())
    ).all()
    return [(company, role) for company, role in rows]


def list_owned_companies(user) -> list[Company]:
    """Live companies where ``user`` holds the OWNER role."""
    return [company for company, role in list_my_companies(user) if role == "OWNER"]


def get_company(company_id: int, user) -> tuple[Company, str]:
    membership = authorize_operation(user, company_id, "company.read", "Company")
    return membership.company, membership.role


def my_role(company_id: int, user) -> str:
    return authorize_operation(user, company_id, "company.read", "Company").role


def update_company(company_id: int, data: dict, user) -> Company:
    membership = authorize_operation(user, company_id, "company.update")
    company = membership.company
    if "name" in data:
        company.name = require_text(data, "name", max_length=100)
    commit_unit()
    return company


def delete_company(company_id: int, user) -> dict[str, int]:
    """Soft-delete the company and everything beneath it."""
    membership = authorize_operation(user, company_id, "company.delete")
    counts = soft_delete(membership.company)
    commit_unit()
    logger.info("Company %s deleted by user %s", company_id, user.id)
    return counts


# ── Membership ───────────────────────────────────────────────────────────────

def list_members(company_id: int, user) -> list[CompanyMember]:
    authorize_operation(user, company_id, "member.list", "Company")
    return db.session.execute(
        select(CompanyMember)
        .where(CompanyMember.company_id == company_id)
        .order_by(CompanyMember.joined_at.asc(), CompanyMember.user_id.asc())
    ).scalars().all()


def _target_member(company_id: int, user_id: int) -> CompanyMember:
    member = get_membership(user_id, company_id)
    if member is None:
        raise NotFoundError(resource="Member", resource_id=user_id)
    return member


def update_member_role(company_id: int, user_id: int, data: dict, actor) -> CompanyMember:
    """Change a member's role. Granting or taking away OWNER needs OWNER."""
    acting = authorize_operation(actor, company_id, "member.update_role")
    new_role = choice(data.get("role"), COMPANY_ROLES, "role")
    member = _target_member(company_id, user_id)

    if "OWNER" in (new_role, member.role) and not acting.satisfies("OWNER"):
        raise InsufficientRoleError(acting.role, "OWNER")
    if member.role == new_role:
        return member
    if new_role != "OWNER":
        _guard_last_owner(member, "demote")

    old_role = member.role
    member.role = new_role
    commit_unit()
    logger.info(
        "Member %s of company %s: %s → %s (by user %s)",
        user_id, company_id, old_role, new_role, actor.id,
    )
    return member


def remove_member(company_id: int, user_id: int, actor) -> None:
    acting = authorize_operation(actor, company_id, "member.remove")
    member = _target_member(company_id, user_id)
    if member.role == "OWNER" and not acting.satisfies("OWNER"):
        raise InsufficientRoleError(acting.role, "OWNER")
    _guard_last_owner(member, "remove")
    db.session.delete(member)
    commit_unit()
    logger.info("User %s removed from company %s by user %s", user_id, company_id, actor.id)


def leave_company(company_id: int, user) -> None:
    member = authorize(user, company_id, "MEMBER")
    _guard_last_owner(member, "remove")
    db.session.delete(member)
    commit_unit()
    logger.info("User %s left company %s", user.id, company_id)

