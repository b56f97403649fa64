"""
Crypto utilities — bcrypt password hashing.
"""

import bcrypt
from flask import current_app, has_app_context

DEFAULT_BCRYPT_ROUNDS = 12
# bcrypt only looks at the first 72 bytes and newer releases reject longer input.
MAX_PASSWORD_BYTES = 72


def _rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS))
    return DEFAULT_BCRYPT_ROUNDS


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (12 rounds unless BCRYPT_ROUNDS says otherwise)."""
    salt = bcrypt.gensalt(rounds=_rounds())
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against its bcrypt hash."""
    if not password_hash or not password_hash.startswith(("$2b$", "$2a$")):
        return False
    encoded = plain_password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
