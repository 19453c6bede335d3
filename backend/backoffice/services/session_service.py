# Overview: Server-side bearer-token sessions for back-office users.

"""
Session tokens.

Login hands the client a random 64-hex-char token; the database keeps only its
SHA-256 digest. A session dies when any of these hold:
- it was revoked (logout, or its user was deactivated with `flask users deactivate`)
- SESSION_ABSOLUTE_TIMEOUT_HOURS passed since login
- SESSION_IDLE_TIMEOUT_HOURS passed since it was last used

Idle and deactivated-user sessions are revoked the first time they are
presented, so they show up as revoked in the table instead of lingering.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..validation import NotFoundError, ValidationError
from backoffice.time_utils import utcnow


@dataclass
class SessionContext:
    """What validate_session hands to the request: who, and through which session."""
    user: User
    session: SessionToken


def _hours(key: str, default: int) -> timedelta:
    return timedelta(hours=current_app.config.get(key, default))


def generate_token() -> str:
    """32 random bytes as hex. Sent to the client once, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens carry full entropy, so a fast digest is enough (no bcrypt here).
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _find_live(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def _death_reason(session: SessionToken, now: datetime) -> str | None:
    """Why a non-revoked session can no longer be used, or None if it can."""
    if session.expires_at < now:
        return "Expired"
    if now - session.last_used_at > _hours("SESSION_IDLE_TIMEOUT_HOURS", 2):
        return "Idle timeout"
    if session.user is None or not session.user.is_active:
        return "User account deactivated"
    return None


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for an active user.

    Returns (session_row, plaintext_token).
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not user.is_active:
        raise ValidationError("User account is deactivated")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _hours("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its user, or None.

    A valid session has last_used_at bumped to now.
    """
    session = _find_live(token)
    if session is None:
        return None

    now = utcnow()
    reason = _death_reason(session, now)
    if reason == "Expired":
        return None
    if reason:
        _revoke(session, reason)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=session.user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """False when the token does not match a live session."""
    session = _find_live(token)
    if session is None:
        return False
    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every live session of a user; returns how many were revoked."""
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for session in sessions:
        _revoke(session, reason)
    db.session.commit()
    return len(sessions)
