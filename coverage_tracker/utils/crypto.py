"""
Crypto utilities — bcrypt password hashing.

Only bcrypt hashes ($2b$ / $2a$) are produced or accepted. bcrypt reads at
most 72 bytes of input; longer passwords are refused rather than truncated.
"""

import bcrypt

BCRYPT_ROUNDS = 12
BCRYPT_MAX_PASSWORD_BYTES = 72


def password_too_long(plain_password: str) -> bool:
    return len(plain_password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against its bcrypt hash.

    Returns False for empty or non-bcrypt hashes, and for non-string or
    over-long passwords, instead of raising.
    """
    if not password_hash or not password_hash.startswith(("$2b$", "$2a$")):
        return False
    if not isinstance(plain_password, str) or password_too_long(plain_password):
        return False
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        password_hash.encode("utf-8"),
    )
