# Overview: Opaque session tokens for the auth gate.

"""
Session tokens.

The client holds a random token; only its SHA-256 digest is stored. A
session ends when it is revoked (logout), when SESSION_TTL_HOURS have passed
since login, or when it sat unused for longer than SESSION_IDLE_MINUTES.
The session id also keys the in-memory POS cart.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from .cart_service import get_cart_registry
from posdesk.time_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Authenticated user plus the session record that proved it."""
    user: User
    session: SessionToken


def _ttl() -> timedelta:
    return timedelta(hours=current_app.config["SESSION_TTL_HOURS"])


def _idle_limit() -> timedelta:
    return timedelta(minutes=current_app.config["SESSION_IDLE_MINUTES"])


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _find_active(token: str) -> SessionToken | None:
    return db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()
    get_cart_registry().discard(session.id)


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for an active user.

    Returns (session_record, plaintext_token). The plaintext is handed to the
    client once and never stored.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is deactivated")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _ttl(),
        user_agent=user_agent[:500] if user_agent else None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a token to its user, touching last_used_at.

    Idle sessions and sessions of deactivated users are revoked on the way
    out. Every ended session loses its POS cart.
    """
    session = _find_active(token)
    if not session:
        return None

    now = utcnow()
    if session.expires_at < now:
        get_cart_registry().discard(session.id)
        return None

    if now - session.last_used_at > _idle_limit():
        _revoke(session, "Idle timeout")
        logger.info("Session %s revoked after idle timeout", session.id)
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> SessionToken | None:
    """Revoke the active session for this token; None when there is none."""
    session = _find_active(token)
    if not session:
        return None
    _revoke(session, reason)
    return session


def cleanup_expired_sessions(retention_days: int = 30) -> int:
    """
    Delete sessions that ended (expired or revoked) before the retention
    window, and drop every cart whose session is no longer active.
    """
    now = utcnow()
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < now - timedelta(days=retention_days),
    ).delete(synchronize_session=False)
    db.session.commit()

    active_ids = [
        row.id for row in db.session.query(SessionToken.id).filter(
            SessionToken.is_revoked.is_(False),
            SessionToken.expires_at >= now,
        )
    ]
    dropped = get_cart_registry().retain(active_ids)
    if dropped:
        logger.info("Dropped %s carts of ended sessions", dropped)
    logger.info("Deleted %s ended sessions older than %s days", deleted, retention_days)
    return deleted
