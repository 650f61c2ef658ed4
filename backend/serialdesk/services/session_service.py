# Overview: Opaque bearer-token sessions for API clients.

"""
Session tokens

The client holds a random 64-hex-char token; only its SHA-256 digest is
stored. A session dies on whichever comes first:
- SESSION_ABSOLUTE_HOURS after login (expires_at, fixed at creation)
- SESSION_IDLE_MINUTES without a request (last_used_at)
- logout, or an admin deactivating the account

Idle and deactivation deaths are recorded as revocations with a reason so
the session table doubles as a login audit trail.
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from serialdesk.time_utils import utcnow


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(minutes=current_app.config.get("SESSION_IDLE_MINUTES", 120))


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest; tokens carry full entropy so no salt or KDF is needed."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    if not token:
        return None
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def _mark_revoked(sessions, reason: str) -> None:
    now = utcnow()
    for s in sessions:
        s.is_revoked = True
        s.revoked_at = now
        s.revoked_reason = reason


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for an existing user.

    Returns (session_row, plaintext_token). The plaintext is never persisted.
    """
    if db.session.get(User, user_id) is None:
        raise ValueError("User not found")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> User | None:
    """
    Resolve a bearer token to its active user, touching last_used_at.

    Returns None for unknown, revoked, expired or idle tokens and for
    deactivated accounts.
    """
    session = _live_session(token)
    if session is None:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None

    reason = None
    if now - session.last_used_at > _idle_timeout():
        reason = "Idle timeout"
    elif session.user is None or not session.user.is_active:
        reason = "User account deactivated"
    if reason:
        _mark_revoked([session], reason)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return session.user


def revoke_session(token: str, reason: str = "User logout") -> bool:
    session = _live_session(token)
    if session is None:
        return False
    _mark_revoked([session], reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every open session of a user; returns how many were open."""
    sessions = (
        db.session.query(SessionToken)
        .filter(SessionToken.user_id == user_id, SessionToken.is_revoked.is_(False))
        .all()
    )
    _mark_revoked(sessions, reason)
    db.session.commit()
    return len(sessions)
