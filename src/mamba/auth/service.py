"""
Credential store operations.

Signup, login, password change and account deletion, all keyed by the
lowercased email.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from email_validator import EmailNotValidError, validate_email

from mamba.auth.password import (
    PasswordStrengthError,
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from mamba.clock import utcnow
from mamba.errors import (
    AuthenticationError,
    ConflictError,
    DuplicateEmailError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from mamba.db.models import User
    from mamba.storage import Storage

logger = structlog.get_logger()


def normalize_email(email: str) -> str:
    """Lowercase and strip an email, rejecting malformed addresses."""
    candidate = (email or "").strip().lower()
    try:
        validate_email(candidate, check_deliverability=False)
    except EmailNotValidError as e:
        msg = "Invalid email address"
        raise ValidationError(msg) from e
    return candidate


def _check_strength(password: str) -> None:
    try:
        validate_password_strength(password)
    except PasswordStrengthError as e:
        raise ValidationError(str(e)) from e


# ---------------------------------------------------------------------------
# Signup / login
# ---------------------------------------------------------------------------


async def create_user(
    storage: Storage,
    email: str,
    password: str,
    now: datetime | None = None,
) -> User:
    """
    Register a new user with email + password.

    Raises:
        ValidationError: If the email is malformed or the password too short.
        DuplicateEmailError: If the email is already registered.
    """
    email = normalize_email(email)
    _check_strength(password)

    msg = "Email already registered"
    if await storage.get_user_by_email(email) is not None:
        raise DuplicateEmailError(msg)

    # the store's unique constraint closes the race between check and insert
    try:
        user = await storage.create_user(email, hash_password(password), now=now or utcnow())
    except ConflictError as e:
        raise DuplicateEmailError(msg) from e
    logger.info("user_created", user_id=user.id)
    return user


async def verify_credentials(storage: Storage, email: str, password: str) -> User | None:
    """
    Return the user if the password matches, else None.

    Unknown emails take the same hashing path as wrong passwords.
    """
    try:
        email = normalize_email(email)
    except ValidationError:
        verify_password(password, None)
        return None

    user = await storage.get_user_by_email(email)
    if user is None:
        verify_password(password, None)
        return None
    if not verify_password(password, user.password_hash):
        return None

    if check_needs_rehash(user.password_hash):
        await storage.update_password_hash(email, hash_password(password))
        logger.info("password_rehashed", user_id=user.id)
    return user


async def authenticate(storage: Storage, email: str, password: str) -> User:
    """Like ``verify_credentials`` but raises AuthenticationError on mismatch."""
    user = await verify_credentials(storage, email, password)
    if user is None:
        msg = "Invalid email or password"
        raise AuthenticationError(msg)
    return user


# ---------------------------------------------------------------------------
# Account maintenance
# ---------------------------------------------------------------------------


async def change_password(storage: Storage, email: str, old_password: str, new_password: str) -> User:
    """Change password after verifying the current one."""
    user = await verify_credentials(storage, email, old_password)
    if user is None:
        msg = "Current password is incorrect"
        raise AuthenticationError(msg)

    _check_strength(new_password)

    await storage.update_password_hash(user.email, hash_password(new_password))
    logger.info("password_changed", user_id=user.id)
    return user


async def delete_user(storage: Storage, email: str, password: str) -> User:
    """Hard-delete an account after verifying the password."""
    user = await verify_credentials(storage, email, password)
    if user is None:
        msg = "Invalid email or password"
        raise AuthenticationError(msg)

    if not await storage.delete_user(user.email):
        msg = "Account not found"
        raise NotFoundError(msg)
    logger.info("user_deleted", user_id=user.id)
    return user
