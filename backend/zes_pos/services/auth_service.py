# Overview: Service-layer operations for operator accounts; password hashing and user management.

"""
Authentication Service

WHY: Every invoice and payment records who created it. Operators log in
with a username/password and the ledger receives their username as the
explicit actor.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""
from __future__ import annotations

import logging
import re

import bcrypt

from ..extensions import db
from ..models import User
from ..permissions import ROLE_OWNER, ROLE_SHOPKEEPER, VALID_ROLES
from ..time_utils import utcnow
from ..validation import ValidationError, NotFoundError, ConflictError

log = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{3,64}$")


class AuthError(Exception):
    """401-level failure: bad credentials or an invalid session."""


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password must be a string")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_username(username: str) -> str:
    username = (username or "").strip()
    if not USERNAME_PATTERN.match(username):
        raise ValidationError("Username must be 3-64 characters: letters, digits, '_', '.', '-'")
    return username


def _ensure_username_free(username: str, *, exclude_user_id: str | None = None) -> None:
    query = db.session.query(User).filter(db.func.lower(User.username) == username.lower())
    if exclude_user_id:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise ConflictError(f"Username {username} is already taken")


def create_user(username: str, password: str, *, name: str | None = None, role: str = ROLE_SHOPKEEPER) -> User:
    """
    Create new user with bcrypt password hashing.

    Args:
        username: Unique username (case-insensitive)
        password: Password meeting strength requirements
        name: Display name (defaults to username)
        role: owner or shopkeeper

    Raises:
        ValidationError: Bad username, role or weak password
        ConflictError: Username already exists
    """
    username = _normalize_username(username)
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of {', '.join(VALID_ROLES)}")
    _ensure_username_free(username)

    user = User(
        username=username,
        name=(name or "").strip() or username,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    log.info("Created %s account %s", role, username)
    return user


def add_shopkeeper(username: str, password: str, name: str | None = None) -> User:
    """Owner action: add a counter operator."""
    return create_user(username, password, name=name, role=ROLE_SHOPKEEPER)


def authenticate(username: str, password: str) -> User:
    """
    Authenticate user with username and password.

    Updates last_login_at timestamp on successful authentication.

    Raises:
        AuthError: Unknown user, inactive account, or wrong password
    """
    user = (
        db.session.query(User)
        .filter(db.func.lower(User.username) == (username or "").strip().lower())
        .first()
    )
    if not user or not user.is_active or not verify_password(password or "", user.password_hash):
        log.info("Failed login for %r", username)
        raise AuthError("Invalid username or password")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def change_password(user_id: str, current_password: str, new_password: str) -> None:
    """
    Change a user's password after re-checking the current one.

    Raises:
        AuthError: current_password is wrong
        PasswordValidationError: new_password is weak
    """
    user = get_user(user_id)
    if not verify_password(current_password or "", user.password_hash):
        raise AuthError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.session.commit()
    log.info("Password changed for %s", user.username)


def rename_user(user_id: str, new_username: str) -> User:
    """
    Change a user's login name.

    Existing invoices keep the old name in created_by; that field is a
    snapshot of who acted at the time.
    """
    user = get_user(user_id)
    new_username = _normalize_username(new_username)
    _ensure_username_free(new_username, exclude_user_id=user.id)
    old = user.username
    user.username = new_username
    db.session.commit()
    log.info("Renamed user %s to %s", old, new_username)
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.asc(), User.username.asc()).all()


def create_default_users(owner_password: str, shopkeeper_password: str) -> list[User]:
    """Create the owner and shopkeeper accounts if they don't exist."""
    created = []
    for username, name, role, password in (
        ("owner", "Owner", ROLE_OWNER, owner_password),
        ("shopkeeper", "Shopkeeper", ROLE_SHOPKEEPER, shopkeeper_password),
    ):
        if db.session.query(User).filter_by(username=username).first():
            continue
        created.append(create_user(username, password, name=name, role=role))
    return created
