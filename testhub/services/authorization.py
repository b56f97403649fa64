"""
Authorization Gate — company-level role checks.

The Membership Ledger (``CompanyMember``) is the only source of company
authority. The gate fails closed: an unknown/deleted company, a missing
membership and a role below the minimum all refuse the call.

``OPERATION_MIN_ROLE`` is the single table of who may do what. Creation of
test features, scenarios and steps and step execution results are open to
every member; structural changes, scenario assignment/status and step
reordering need ADMIN or OWNER.

Reads conceal membership: a non-member reading anything inside a company
gets ``NotFoundError`` for the requested resource, exactly like a missing
row. Writes by non-members raise ``NotMemberError`` (403) for existing and
unknown company ids alike.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from testhub.core.exceptions import InsufficientRoleError, NotFoundError, NotMemberError
from testhub.models import db
from testhub.models.company import Company, CompanyMember, role_satisfies

logger = logging.getLogger(__name__)


OPERATION_MIN_ROLE: dict[str, str] = {
    # Company & membership
    "company.read": "MEMBER",
    "company.update": "ADMIN",
    "company.delete": "ADMIN",
    "member.list": "MEMBER",
    "member.update_role": "ADMIN",
    "member.remove": "ADMIN",
    # Structural levels
    "project.create": "ADMIN",
    "project.read": "MEMBER",
    "project.update": "ADMIN",
    "project.delete": "ADMIN",
    "project.restore": "ADMIN",
    "platform.create": "ADMIN",
    "platform.read": "MEMBER",
    "platform.update": "ADMIN",
    "platform.delete": "ADMIN",
    "version.create": "ADMIN",
    "version.read": "MEMBER",
    "version.update": "ADMIN",
    "version.delete": "ADMIN",
    # Test artefacts
    "test_suite.create": "ADMIN",
    "test_suite.read": "MEMBER",
    "test_suite.update": "ADMIN",
    "test_suite.delete": "ADMIN",
    "test_feature.create": "MEMBER",
    "test_feature.read": "MEMBER",
    "test_feature.update": "ADMIN",
    "test_feature.delete": "ADMIN",
    "test_scenario.create": "MEMBER",
    "test_scenario.read": "MEMBER",
    "test_scenario.update": "ADMIN",
    "test_scenario.delete": "ADMIN",
    "test_scenario.assign": "ADMIN",
    "test_scenario.update_status": "ADMIN",
    "test_step.create": "MEMBER",
    "test_step.read": "MEMBER",
    "test_step.update": "ADMIN",
    "test_step.delete": "ADMIN",
    "test_step.reorder": "ADMIN",
    "test_step.execute": "MEMBER",
    # Invitations
    "invitation.send": "ADMIN",
    "invitation.list": "ADMIN",
}

_CONCEALED_ACTIONS = frozenset({"read"})


def get_membership(user_id: int, company_id: int) -> CompanyMember | None:
    return db.session.execute(
        select(CompanyMember).where(
            CompanyMember.user_id == user_id,
            CompanyMember.company_id == company_id,
        )
    ).scalar_one_or_none()


def is_member(user_id: int, company_id: int) -> bool:
    return get_membership(user_id, company_id) is not None


def _live_company(company_id: int) -> Company:
    company = db.session.get(Company, company_id)
    if company is None or company.deleted_at is not None:
        raise NotFoundError(resource="Company", resource_id=company_id)
    return company


def authorize(principal, company_id: int, min_role: str = "MEMBER", *,
              conceal_as: str | None = None) -> CompanyMember:
    """Return the principal's membership if its role dominates ``min_role``.

    Args:
        principal: The authenticated ``User``.
        company_id: Company the operation targets.
        min_role: OWNER, ADMIN or MEMBER.
        conceal_as: When set, a missing membership raises
            ``NotFoundError(conceal_as)`` instead of ``NotMemberError``.

    Raises:
        NotFoundError: Member of a deleted company, or concealed non-membership.
        NotMemberError: No membership row, whether or not the company exists.
        InsufficientRoleError: Role below ``min_role``.
    """
    # Membership first: outsiders get the same answer whether or not the
    # company exists.
    membership = get_membership(principal.id, company_id)
    if membership is None:
        logger.warning("User %s denied: not a member of company %s", principal.id, company_id)
        if conceal_as:
            raise NotFoundError(resource=conceal_as)
        raise NotMemberError(company_id)
    _live_company(company_id)
    if not role_satisfies(membership.role, min_role):
        logger.warning(
            "User %s denied: role %s below %s in company %s",
            principal.id, membership.role, min_role, company_id,
        )
        raise InsufficientRoleError(membership.role, min_role)
    return membership


def authorize_operation(principal, company_id: int, operation: str,
                        resource: str | None = None) -> CompanyMember:
    """Authorize ``operation`` (a key of ``OPERATION_MIN_ROLE``).

    Read operations conceal non-membership as ``NotFoundError(resource)``.
    """
    try:
        min_role = OPERATION_MIN_ROLE[operation]
    except KeyError:
        raise ValueError(f"Unknown operation {operation!r}") from None
    action = operation.rsplit(".", 1)[-1]
    conceal_as = (resource or "Resource") if action in _CONCEALED_ACTIONS else None
    return authorize(principal, company_id, min_role, conceal_as=conceal_as)
