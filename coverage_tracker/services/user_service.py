"""
User Service — registration and password login.
"""

import logging

from email_validator import EmailNotValidError, validate_email
from flask import current_app

from coverage_tracker.models.user import ROLE_VALUES, UserRole
from coverage_tracker.utils.crypto import (
    BCRYPT_MAX_PASSWORD_BYTES,
    BCRYPT_ROUNDS,
    hash_password,
    password_too_long,
    verify_password,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class UserServiceError(Exception):
    """Custom exception for user service errors."""
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _clean(value):
    if value is None:
        return None
    if not isinstance(value, str):
        raise UserServiceError("Invalid field value")
    return value.strip() or None


def register_user(
    repos,
    username: str,
    password: str,
    email: str = None,
    first_name: str = None,
    last_name: str = None,
    role: str = UserRole.ENGINEER.value,
):
    """Create a user with a bcrypt-hashed password."""
    username = _clean(username)
    if not username:
        raise UserServiceError("Username is required")
    if len(username) > 100:
        raise UserServiceError("Username must be ≤ 100 characters")
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise UserServiceError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if password_too_long(password):
        raise UserServiceError(
            f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes"
        )

    role = _clean(role) or UserRole.ENGINEER.value
    if role not in ROLE_VALUES:
        raise UserServiceError(
            f"Invalid role '{role}'. Must be one of: {', '.join(sorted(ROLE_VALUES))}"
        )

    email = _clean(email)
    if email:
        try:
            email = validate_email(email, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise UserServiceError(f"Invalid email: {e}")

    with repos.transaction():
        if repos.users.get_by_username(username):
            raise UserServiceError("Username already exists")
        if email and repos.users.get_by_email(email):
            raise UserServiceError("Email already registered")
        user = repos.users.create(
            username=username,
            email=email,
            password_hash=hash_password(
                password, current_app.config.get("BCRYPT_ROUNDS", BCRYPT_ROUNDS),
            ),
            first_name=_clean(first_name),
            last_name=_clean(last_name),
            role=UserRole(role),
        )

    logger.info("User registered", extra={"event_type": "user_registered", "user_id": user.id})
    return user


def authenticate_user(repos, username: str, password: str):
    """Authenticate with username + password. Returns the User on success.

    Unknown usernames and wrong passwords fail with the same message.
    """
    username = _clean(username)
    if not username or not isinstance(password, str) or not password:
        raise UserServiceError("Username and password are required")

    user = repos.users.get_by_username(username)
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login for username %r", username)
        raise UserServiceError("Invalid credentials", 401)
    return user
