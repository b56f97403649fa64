"""
User Service — registration, authentication and global role administration.

Global roles (ADMIN, MODERATOR, USER) only gate the administration
functions at the bottom of this module. Company authority comes from
``CompanyMember`` alone.
"""

import logging

from sqlalchemy import func, select

from testhub.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from testhub.models import db
from testhub.models.auth import USER_ROLES, User
from testhub.models.company import Company, CompanyMember
from testhub.models.soft_delete import active
from testhub.utils.crypto import MAX_PASSWORD_BYTES, hash_password, verify_password
from testhub.utils.helpers import choice, commit_unit, normalize_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _check_password(password) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
            details={"password": "too long"},
        )
    return password


# ═══════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════
def get_user_by_email(email) -> User | None:
    """Look up a user by e-mail (case-insensitive). Returns None if absent."""
    email = str(email or "").strip().lower()
    if not email:
        return None
    return db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()


def get_user_by_id(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def register_user(email, password, first_name="", last_name="") -> User:
    """Create a user with the global USER role."""
    email = normalize_email(email)
    _check_password(password)
    if get_user_by_email(email) is not None:
        raise ConflictError("User", "email", email)

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=str(first_name or "").strip()[:50],
        last_name=str(last_name or "").strip()[:50],
        role="USER",
    )
    db.session.add(user)
    commit_unit(ConflictError("User", "email", email))
    logger.info("User %s registered", user.id)
    return user


def authenticate_user(email, password) -> User:
    """Return the user for valid credentials; raise AuthenticationError otherwise."""
    user = get_user_by_email(email)
    if user is None or not verify_password(str(password or ""), user.password_hash):
        logger.warning("Failed login for %s", str(email or "").strip().lower())
        raise AuthenticationError("Invalid email or password")
    return user


# ═══════════════════════════════════════════════════════════════
# Global administration (ADMIN only)
# ═══════════════════════════════════════════════════════════════
def _require_admin(actor: User) -> None:
    if not actor.is_admin:
        logger.warning("User %s denied global administration", actor.id)
        raise ForbiddenError("Requires global ADMIN role")


def list_users(actor: User) -> list[User]:
    _require_admin(actor)
    return db.session.execute(select(User).order_by(User.id.asc())).scalars().all()


def update_user_role(actor: User, user_id: int, role) -> User:
    _require_admin(actor)
    user = get_user_by_id(user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    new_role = choice(role, USER_ROLES, "role")
    if user.id == actor.id and new_role != "ADMIN":
        raise ValidationError("You cannot remove your own ADMIN role")
    user.role = new_role
    commit_unit()
    logger.info("User %s global role set to %s by user %s", user.id, new_role, actor.id)
    return user


def user_statistics(actor: User) -> dict:
    """Head counts per global role plus company and membership totals."""
    _require_admin(actor)
    by_role = dict(
        db.session.execute(select(User.role, func.count(User.id)).group_by(User.role)).all()
    )
    return {
        "total_users": sum(by_role.values()),
        "users_by_role": {role: by_role.get(role, 0) for role in USER_ROLES},
        "total_companies": db.session.execute(
            select(func.count(Company.id)).where(active(Company))
        ).scalar_one(),
        "total_memberships": db.session.execute(
            select(func.count()).select_from(CompanyMember)
        ).scalar_one(),
    }
