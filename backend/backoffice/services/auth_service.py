# Overview: Back-office user accounts: password policy, bcrypt hashing and login checks.

"""
User accounts.

Consumption entries and closure overrides are recorded against the user who
made them, so every operator gets a personal login. Passwords are hashed with
bcrypt (cost from BCRYPT_ROUNDS) and must pass PASSWORD_RULES before hashing.
Bearer tokens live in session_service.
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import User, UserRole
from ..validation import EMAIL_RE, ConflictError, NotFoundError, StoreError, ValidationError
from . import session_service
from backoffice.time_utils import utcnow

MIN_PASSWORD_LENGTH = 8

# (pattern, what is missing)
PASSWORD_RULES = [
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"\d"), "a digit"),
    (re.compile(r"[!@#$%^&*(),.'\":{}|<>]"), "a special character"),
]


class PasswordValidationError(ValidationError):
    pass


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    for pattern, missing in PASSWORD_RULES:
        if not pattern.search(password):
            raise PasswordValidationError(f"Password must contain at least {missing}")


def hash_password(password: str) -> str:
    """Check the policy, then bcrypt-hash with the configured cost."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    # A corrupt stored hash makes checkpw raise ValueError; treat it as a mismatch.
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def parse_role(role: UserRole | str) -> UserRole:
    try:
        return UserRole(role)
    except ValueError:
        allowed = ", ".join(r.value for r in UserRole)
        raise ValidationError(f"role must be one of: {allowed}")


def create_user(
    email: str,
    name: str,
    password: str,
    role: UserRole | str = UserRole.OPERATOR,
) -> User:
    """
    Emails are stored lowercased and must be unique (ConflictError).
    A weak password raises PasswordValidationError before anything is written.
    """
    email = (email or "").strip().lower()
    name = (name or "").strip()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email is required")
    if not name:
        raise ValidationError("name is required")
    role = parse_role(role)

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("A user with this email already exists")

    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role.value,
    )
    try:
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Failed to create user") from exc
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.id.asc()).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def get_user_by_email(email: str) -> User:
    user = db.session.query(User).filter_by(email=(email or "").strip().lower()).first()
    if user is None:
        raise NotFoundError(f"User {email} not found")
    return user


def deactivate_user(user_id: int) -> tuple[User, int]:
    """
    Block a user from signing in and end every live session they hold.

    Returns (user, number_of_sessions_revoked).

    Raises:
        NotFoundError: unknown user
        ValidationError: user already inactive
    """
    user = get_user(user_id)
    if not user.is_active:
        raise ValidationError("User is already inactive")

    user.is_active = False
    db.session.commit()
    revoked = session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    current_app.logger.info("Deactivated user %s; revoked %d session(s)", user.email, revoked)
    return user, revoked


def reactivate_user(user_id: int) -> User:
    user = get_user(user_id)
    if user.is_active:
        raise ValidationError("User is already active")
    user.is_active = True
    db.session.commit()
    current_app.logger.info("Reactivated user %s", user.email)
    return user


def authenticate(email: str, password: str) -> User | None:
    """The active user matching email and password, or None. Stamps last_login_at."""
    email = (email or "").strip().lower()
    user = db.session.query(User).filter(
        User.email == email,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password or "", user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
